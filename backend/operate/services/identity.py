"""Identity of the active session (the bearer token), resolved without raising."""
from __future__ import annotations
import logging
from typing import Optional

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import select

from operate import get_db
from operate.models.authz import User

log = logging.getLogger(__name__)


def current_user_id() -> Optional[int]:
    """User id from a valid token, or None (no token, bad token or expired token)."""
    try:
        verify_jwt_in_request(optional=True)
        ident = get_jwt_identity()
    except (JWTExtendedException, PyJWTError) as e:
        log.warning('Session token rejected: %s', e)
        return None
    if ident is None:
        return None
    try:
        return int(ident)
    except (TypeError, ValueError):
        log.warning('Session token carries non-numeric identity %r', ident)
        return None


def get_current_user() -> Optional[User]:
    user_id = current_user_id()
    if user_id is None:
        return None
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user
