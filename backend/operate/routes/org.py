from flask import Blueprint, request, abort, g
from flask_jwt_extended import jwt_required, get_jwt_identity
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from operate import get_db
from operate.models.authz import User
from operate.models.organization import Organization, Branch
from operate.decorators.audit import audit_log
from operate.decorators.auth import require_admin
from operate.services.branch import BranchSelector, SqlPreferenceStore, summary

org_bp = Blueprint('org', __name__)


def _selector() -> BranchSelector:
    session = get_db()
    return BranchSelector(session, SqlPreferenceStore(session))


def _org_json(o: Organization):
    return {'id': o.id, 'name': o.name, 'code': o.code, 'description': o.description}


def _branch_json(b: Branch):
    return {'id': b.id, 'organization_id': b.organization_id, 'name': b.name, 'code': b.code, 'is_default': bool(b.is_default)}


def _commit_or_409(detail: str):
    session = get_db()
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, description=detail)


# ---------------- Current user's branches ---------------- #
@org_bp.get('/branches/mine')
@jwt_required()
def my_branches():
    user_id = int(get_jwt_identity())
    state = _selector().load(user_id)
    if state.error:
        abort(503, description=state.error)
    return state.to_json()


@org_bp.put('/branches/current')
@jwt_required()
def select_current_branch():
    user_id = int(get_jwt_identity())
    branch_id = (request.json or {}).get('branch_id')
    if not branch_id:
        abort(400, description='branch_id required')
    entry = _selector().select(user_id, branch_id)
    if entry is None:
        abort(404, description='branch not assigned to user')
    return {'current_branch': summary(entry)}


# ---------------- Organizations & branches (admin) ---------------- #
@org_bp.get('/organizations')
@require_admin
def list_organizations():
    rows = get_db().execute(select(Organization).order_by(Organization.id)).scalars().all()
    return {'data': [_org_json(o) for o in rows]}


@org_bp.post('/organizations')
@require_admin
@audit_log('ORG.CREATE', entity='Organization', entity_id_key='id', meta_keys=['name', 'code'])
def create_organization():
    data = request.json or {}
    name = (data.get('name') or '').strip()
    if not name:
        abort(400, description='name required')
    org = Organization(name=name, code=data.get('code'), description=data.get('description'))
    get_db().add(org)
    _commit_or_409('organization code already exists')
    return _org_json(org), 201


@org_bp.get('/branches')
@require_admin
def list_branches():
    q = select(Branch).order_by(Branch.id)
    org_id = request.args.get('organization_id', type=int)
    if org_id:
        q = q.where(Branch.organization_id == org_id)
    rows = get_db().execute(q).scalars().all()
    return {'data': [_branch_json(b) for b in rows]}


@org_bp.post('/branches')
@require_admin
@audit_log('BRANCH.CREATE', entity='Branch', entity_id_key='id', meta_keys=['name', 'organization_id'])
def create_branch():
    data = request.json or {}
    name = (data.get('name') or '').strip()
    org_id = data.get('organization_id')
    if not name or not org_id:
        abort(400, description='name & organization_id required')
    session = get_db()
    if not session.get(Organization, org_id):
        abort(404, description='organization not found')
    is_default = bool(data.get('is_default'))
    if is_default:
        # a single default branch system-wide
        session.execute(update(Branch).values(is_default=False))
    branch = Branch(organization_id=org_id, name=name, code=data.get('code'), is_default=is_default)
    session.add(branch)
    _commit_or_409('branch could not be created')
    return _branch_json(branch), 201


# ---------------- User branch assignments (admin) ---------------- #
def _user_or_404(user_id: int) -> User:
    user = get_db().get(User, user_id)
    if not user:
        abort(404, description='user not found')
    return user


@org_bp.get('/users/<int:user_id>/branches')
@require_admin
def user_branches(user_id: int):
    _user_or_404(user_id)
    return {'data': _selector().user_branches(user_id)}


@org_bp.post('/users/<int:user_id>/branches')
@require_admin
@audit_log('USER.BRANCH.ASSIGN', entity='User', entity_id_arg='user_id', meta_keys=['branch_id', 'is_primary'])
def assign_user_branch(user_id: int):
    _user_or_404(user_id)
    data = request.json or {}
    branch_id = data.get('branch_id')
    if not branch_id or not get_db().get(Branch, branch_id):
        abort(404, description='branch not found')
    selector = _selector()
    selector.assign(user_id, branch_id, is_primary=bool(data.get('is_primary')), assigned_by=g.user_id)
    for entry in selector.user_branches(user_id):
        if entry['branch_id'] == branch_id:
            return entry, 201
    abort(500)


@org_bp.put('/users/<int:user_id>/branches/<int:branch_id>/primary')
@require_admin
@audit_log('USER.BRANCH.PRIMARY', entity='User', entity_id_arg='user_id', meta_keys=['branch_id'])
def set_primary_branch(user_id: int, branch_id: int):
    if not _selector().set_primary(user_id, branch_id):
        abort(404, description='branch not assigned to user')
    return {'user_id': user_id, 'branch_id': branch_id, 'is_primary': True}


@org_bp.delete('/users/<int:user_id>/branches/<int:branch_id>')
@require_admin
@audit_log('USER.BRANCH.REMOVE', entity='User', entity_id_arg='user_id', meta_keys=['branch_id'])
def remove_user_branch(user_id: int, branch_id: int):
    if not _selector().unassign(user_id, branch_id):
        abort(404, description='branch not assigned to user')
    return {'user_id': user_id, 'branch_id': branch_id, 'removed': True}
