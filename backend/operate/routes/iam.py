from flask import Blueprint, request, abort, g
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from operate import get_db, _error
from operate.models.authz import User
from operate.models.audit import AuditLog
from operate.config.pagination import normalize_pagination
from operate.constants.permissions import PERMISSION_COLUMNS, make_permission_key
from operate.constants.roles import CONFIRMATION_POLICY, ROLE_METADATA, Role
from operate.decorators.audit import audit_log
from operate.decorators.auth import authorization_service, require_admin, require_permission
from operate.services.audit import audit_log_json
from operate.services.authorization import (
    AuthorizationError,
    UnknownRoleError,
    UnknownUserError,
    parse_role,
)
from operate.services.catalog import PermissionCatalog, entry_json
from operate.services.identity import get_current_user
from operate.services.permissions import PermissionEvaluator
from operate.services.role_admin import CANCELLED, FAILED, RoleAdministrationWorkflow
from operate.services.roles import RoleResolver
from operate.utils.listing import handle_conditional, make_cached_list_response

iam_bp = Blueprint('iam', __name__)

catalog = PermissionCatalog()


def _error_status(e: AuthorizationError) -> int:
    if isinstance(e, UnknownRoleError):
        return 400
    if isinstance(e, UnknownUserError):
        return 404
    return 503


def _role_or_400(value) -> Role:
    try:
        return parse_role(value)
    except UnknownRoleError as e:
        abort(400, description=str(e))


def _pagination():
    try:
        return normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))


def _confirmations() -> int:
    data = request.get_json(silent=True) or {}
    raw = data.get('confirmations', request.args.get('confirmations', 0))
    try:
        return max(int(raw), 0)
    except (TypeError, ValueError):
        abort(400, description='confirmations must be int')


def _workflow(confirmations: int) -> RoleAdministrationWorkflow:
    """Workflow whose confirm callback accepts the first ``confirmations`` prompts."""
    workflow = RoleAdministrationWorkflow(authorization_service(), lambda prompt: prompt.step <= confirmations)
    try:
        workflow.refresh()
    except AuthorizationError as e:
        abort(_error_status(e), description=str(e))
    return workflow


def _outcome_response(outcome, success_status: int):
    if outcome.status == CANCELLED:
        return _error(428, 'Confirmation Required', outcome.message, prompt=outcome.prompt.to_json())
    if outcome.status == FAILED:
        abort(_error_status(outcome.error), description=outcome.message)
    body = {'status': outcome.status, 'message': outcome.message, 'users': [u.to_json() for u in outcome.users]}
    if outcome.assignment:
        body.update({k: outcome.assignment[k] for k in ('user_id', 'role', 'assigned_by')})
    return body, success_status


# ---------------- Authentication ---------------- #
@iam_bp.post('/auth/register')
def register():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
        abort(409, description='email already registered')
    user = User(email=email, full_name=data.get('full_name'), password_hash='')
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, description='email already registered')
    # No role rows: the account behaves as a standard user until an admin assigns more.
    return {'id': user.id, 'email': user.email, 'full_name': user.full_name, 'role': Role.STANDARD_USER.value}, 201


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        abort(401, description='invalid credentials')
    roles = RoleResolver(authorization_service()).get_user_roles(user.id)
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims={'roles': sorted(r.value for r in roles)})
    return {'access_token': token}


def _user_json(user: User):
    return {'id': user.id, 'email': user.email, 'full_name': user.full_name, 'is_active': user.is_active}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    # Identity stored as string, cast back to int for DB lookup
    user_id = int(get_jwt_identity())
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    caps = PermissionEvaluator(authorization_service()).capabilities(user.id)
    return {**_user_json(user), 'capabilities': caps.to_json()}


@iam_bp.get('/auth/session')
def session_state():
    """Current session without requiring one: bad or missing tokens resolve to signed-out."""
    user = get_current_user()
    if user is None:
        caps = PermissionEvaluator(authorization_service()).capabilities(None)
        return {'authenticated': False, 'user': None, 'capabilities': caps.to_json()}
    caps = PermissionEvaluator(authorization_service()).capabilities(user.id)
    return {'authenticated': True, 'user': _user_json(user), 'capabilities': caps.to_json()}


# ---------------- Permission catalog & checks ---------------- #
@iam_bp.get('/catalog')
@require_permission('manage_roles', 'roles')
def list_catalog():
    return {
        'columns': PERMISSION_COLUMNS,
        'data': [entry_json(e) for e in catalog.entries],
        'total': len(catalog.entries),
    }


@iam_bp.get('/permissions/check')
@jwt_required()
def check_permission():
    permission = request.args.get('permission')
    if not permission:
        abort(400, description='permission required')
    resource = request.args.get('resource') or None
    user_id = int(get_jwt_identity())
    granted = PermissionEvaluator(authorization_service()).has_permission(user_id, permission, resource)
    return {'permission': permission, 'resource': resource, 'granted': granted}


# ---------------- Roles & grants ---------------- #
def _role_info(role: Role, rows):
    meta = ROLE_METADATA[role]
    return {
        'role': role.value,
        'label': meta['label'],
        'description': meta['description'],
        'confirmations': CONFIRMATION_POLICY[role],
        'permissions': [r for r in rows if r['role'] == role.value],
    }


@iam_bp.get('/roles')
@require_admin
def list_roles():
    try:
        rows = authorization_service().get_all_roles()
    except AuthorizationError as e:
        abort(_error_status(e), description=str(e))
    return {
        'data': [_role_info(role, rows) for role in Role],
        'unmapped': catalog.unmapped(rows),
    }


def _granted_keys(rows):
    keys = set()
    for r in rows:
        try:
            keys.add(make_permission_key(r['permission'], r['resource']))
        except ValueError:
            continue
    return keys


def _role_rows(role: Role):
    try:
        return authorization_service().get_role_permissions(role)
    except AuthorizationError as e:
        abort(_error_status(e), description=str(e))


@iam_bp.get('/roles/<role>/permissions')
@require_admin
def role_permissions(role):
    role = _role_or_400(role)
    rows = _role_rows(role)
    return {
        'role': role.value,
        'data': rows,
        'catalog': [entry_json(e) for e in catalog.list_entries(role, _granted_keys(rows))],
        'unmapped': catalog.unmapped(rows),
    }


@iam_bp.post('/roles/<role>/permissions')
@require_admin
@audit_log('ROLE.PERM.UPDATE', entity='Role', entity_id_key='role', meta_builder=lambda data, a, kw: {
    'enable': data.get('enable'), 'changed': data.get('changed'),
})
def update_role_permissions(role):
    role = _role_or_400(role)
    data = request.json or {}
    entries = data.get('entries')
    if not isinstance(entries, list) or not entries:
        abort(400, description='entries required')
    enable = bool(data.get('enable', True))
    resolved = []
    for item in entries:
        permission = (item or {}).get('permission')
        resource = (item or {}).get('resource') or None
        entry = catalog.find(permission, resource) if permission else None
        if entry is None:
            abort(400, description=f'Unknown permission entry: {permission}::{resource or "null"}')
        resolved.append(entry)
    service = authorization_service()
    try:
        for entry in resolved:
            if enable:
                service.grant_role_permission(role, entry.permission, entry.resource, entry.description)
            else:
                service.revoke_role_permission(role, entry.permission, entry.resource)
        rows = service.get_role_permissions(role)
    except AuthorizationError as e:
        abort(_error_status(e), description=str(e))
    return {'role': role.value, 'enable': enable, 'changed': [e.key for e in resolved], 'data': rows}


@iam_bp.get('/roles/<role>/matrix')
@require_admin
def role_matrix(role):
    role = _role_or_400(role)
    rows = _role_rows(role)
    granted = _granted_keys(rows)
    return {'role': role.value, 'columns': PERMISSION_COLUMNS, 'modules': catalog.render(granted)}


# ---------------- User role administration ---------------- #
@iam_bp.get('/users')
@require_admin
def list_users():
    limit, offset = _pagination()
    workflow = _workflow(0)
    users = workflow.search(request.args.get('q'))
    if request.args.get('sort') == 'name':
        listed = {u.user_id for u in users}
        users = [u for u in workflow.sorted_by_name() if u.user_id in listed]
    page = users[offset:offset + limit]
    return {
        'data': [u.to_json() for u in page],
        'stats': workflow.stats(),
        'assignable_roles': [r.value for r in workflow.assignable_roles()],
        'pagination': {'total': len(users), 'limit': limit, 'offset': offset, 'returned': len(page)},
    }


@iam_bp.post('/users/<int:user_id>/roles')
@require_admin
@audit_log('USER.ROLE.ASSIGN', entity='User', entity_id_arg='user_id', meta_keys=['role'])
def assign_user_role(user_id: int):
    data = request.json or {}
    if not data.get('role'):
        abort(400, description='role required')
    role = _role_or_400(data.get('role'))
    workflow = _workflow(_confirmations())
    outcome = workflow.assign_role(user_id, role, g.user_id)
    return _outcome_response(outcome, 201)


@iam_bp.delete('/users/<int:user_id>/roles/<role>')
@require_admin
@audit_log('USER.ROLE.REMOVE', entity='User', entity_id_arg='user_id', meta_builder=lambda data, a, kw: {'role': kw.get('role')})
def remove_user_role(user_id: int, role):
    role = _role_or_400(role)
    workflow = _workflow(_confirmations())
    outcome = workflow.remove_role(user_id, role)
    return _outcome_response(outcome, 200)


# ---------------- Audit trail ---------------- #
@iam_bp.get('/audit/logs')
@require_admin
def list_audit_logs():
    session = get_db()
    limit, offset = _pagination()
    q = session.query(AuditLog)
    action = request.args.get('action')
    if action:
        q = q.filter(AuditLog.action == action)
    total = q.count()
    rows = q.order_by(AuditLog.id.desc()).offset(offset).limit(limit).all()
    latest_ts = rows[0].created_at if rows else None
    resp, etag = make_cached_list_response([audit_log_json(r) for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp
