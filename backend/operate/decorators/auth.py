from functools import wraps
from typing import Optional
from flask import abort, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from sqlalchemy import select
from operate import get_db
from operate.models.authz import User
from operate.services.authorization import SqlAuthorizationService
from operate.services.permissions import PermissionEvaluator
from operate.services.roles import RoleResolver


def authorization_service() -> SqlAuthorizationService:
    return SqlAuthorizationService(get_db())


def _authenticated_user_id() -> int:
    verify_jwt_in_request()
    user_id = int(get_jwt_identity())
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None or not user.is_active:
        abort(401, description='Account not found or inactive')
    g.user_id = user_id
    return user_id


def require_admin(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user_id = _authenticated_user_id()
        if not RoleResolver(authorization_service()).is_admin(user_id):
            abort(403, description='Admin role required')
        return fn(*args, **kwargs)
    return wrapper


def require_permission(permission: str, resource: Optional[str] = None):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user_id = _authenticated_user_id()
            if not PermissionEvaluator(authorization_service()).has_permission(user_id, permission, resource):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer
