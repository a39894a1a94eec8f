from __future__ import annotations
import logging
from typing import FrozenSet, Optional

from operate.constants.roles import Role
from operate.services.authorization import AuthorizationError, AuthorizationPort

log = logging.getLogger(__name__)


class RoleResolver:
    """Answers "which roles does this user hold" with safe defaults.

    Store failures are logged and never raised: the primary role falls back to
    STANDARD_USER and every specific role check is False. A STANDARD_USER answer is
    therefore not proof that the user holds no elevated role.
    """

    def __init__(self, port: AuthorizationPort):
        self.port = port

    def get_user_role(self, user_id: Optional[int]) -> Role:
        if user_id is None:
            return Role.STANDARD_USER
        try:
            return self.port.get_user_role(user_id)
        except AuthorizationError:
            log.warning('Role lookup failed for user %s; using %s', user_id, Role.STANDARD_USER.value, exc_info=True)
            return Role.STANDARD_USER

    def get_user_roles(self, user_id: Optional[int]) -> FrozenSet[Role]:
        if user_id is None:
            return frozenset()
        try:
            return frozenset(self.port.get_user_roles(user_id))
        except AuthorizationError:
            log.warning('Role set lookup failed for user %s', user_id, exc_info=True)
            return frozenset()

    def has_role(self, user_id: Optional[int], role) -> bool:
        if user_id is None:
            return False
        try:
            return bool(self.port.has_role(user_id, role))
        except AuthorizationError:
            log.warning('Role check %s failed for user %s', role, user_id, exc_info=True)
            return False

    def is_admin(self, user_id: Optional[int]) -> bool:
        return self.has_role(user_id, Role.ADMIN)

    def is_creator(self, user_id: Optional[int]) -> bool:
        return self.has_role(user_id, Role.CREATOR)

    def is_verifier(self, user_id: Optional[int]) -> bool:
        return self.has_role(user_id, Role.VERIFIER)
