from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from operate.constants.roles import Role
from operate.services.authorization import AuthorizationError, AuthorizationPort
from operate.services.roles import RoleResolver

log = logging.getLogger(__name__)

INVENTORY_RESOURCE = 'inventory'


@dataclass(frozen=True)
class Capabilities:
    user_id: Optional[int]
    user_role: Role = Role.STANDARD_USER
    roles: List[str] = field(default_factory=list)
    is_admin: bool = False
    can_view_inventory: bool = False
    can_manage_inventory: bool = False
    loading: bool = False

    def to_json(self) -> Dict:
        return {
            'user_id': self.user_id,
            'user_role': self.user_role.value,
            'roles': list(self.roles),
            'is_admin': self.is_admin,
            'can_view_inventory': self.can_view_inventory,
            'can_manage_inventory': self.can_manage_inventory,
            'loading': self.loading,
        }


class PermissionEvaluator:
    """Thin proxy over the store's permission check.

    Used only to hide controls the user cannot use; the store enforces.
    """

    def __init__(self, port: AuthorizationPort, resolver: Optional[RoleResolver] = None):
        self.port = port
        self.resolver = resolver or RoleResolver(port)

    def has_permission(self, user_id: Optional[int], permission: str, resource: Optional[str] = None) -> bool:
        if user_id is None:
            return False
        try:
            return bool(self.port.has_permission(user_id, permission, resource))
        except AuthorizationError:
            log.warning('Permission check %s/%s failed for user %s', permission, resource, user_id, exc_info=True)
            return False

    def capabilities(self, user_id: Optional[int]) -> Capabilities:
        if user_id is None:
            return Capabilities(user_id=None)
        is_admin = self.resolver.is_admin(user_id)
        can_manage = (
            self.has_permission(user_id, 'add_inventory_items', INVENTORY_RESOURCE)
            or self.has_permission(user_id, 'edit_inventory_items', INVENTORY_RESOURCE)
            or is_admin
        )
        return Capabilities(
            user_id=user_id,
            user_role=self.resolver.get_user_role(user_id),
            roles=sorted(r.value for r in self.resolver.get_user_roles(user_id)),
            is_admin=is_admin,
            can_view_inventory=self.has_permission(user_id, 'view_inventory', INVENTORY_RESOURCE),
            can_manage_inventory=can_manage,
        )
