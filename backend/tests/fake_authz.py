"""In-memory AuthorizationPort used by the service tests."""
from typing import Dict, List, Optional, Set, Tuple

from operate.constants.roles import Role
from operate.services.authorization import (
    AuthorizationPort,
    AuthorizationServiceError,
    UnknownUserError,
    parse_role,
)


class FakeAuthorizationPort(AuthorizationPort):
    def __init__(self, users: Optional[Dict[int, str]] = None):
        self.users: Dict[int, str] = dict(users or {})
        self.assignments: Dict[int, Set[Role]] = {}
        self.grants: Set[Tuple[str, str, Optional[str]]] = set()
        self.calls: List[str] = []
        self.fail = False

    # helpers
    def give(self, user_id: int, *roles: Role):
        self.assignments.setdefault(user_id, set()).update(roles)

    def grant(self, role: Role, permission: str, resource: Optional[str] = None):
        self.grants.add((role.value, permission, resource))

    def mutations(self) -> List[str]:
        return [c for c in self.calls if c.startswith(('assign_role', 'remove_role', 'grant', 'revoke'))]

    def _call(self, name: str):
        self.calls.append(name)
        if self.fail:
            raise AuthorizationServiceError(f'{name} failed: unavailable')

    # port
    def get_user_roles(self, user_id):
        self._call('get_user_roles')
        return frozenset(self.assignments.get(user_id, set()))

    def has_role(self, user_id, role):
        self._call('has_role')
        return parse_role(role) in self.assignments.get(user_id, set())

    def has_permission(self, user_id, permission, resource=None):
        self._call('has_permission')
        held = self.assignments.get(user_id, set())
        if Role.ADMIN in held:
            return True
        tags = {r.value for r in held} | {Role.STANDARD_USER.value}
        return any(
            role in tags and perm == permission and (resource is None or res == resource)
            for role, perm, res in self.grants
        )

    def get_all_roles(self):
        self._call('get_all_roles')
        return [{'role': r, 'permission': p, 'resource': res} for r, p, res in sorted(self.grants, key=str)]

    def get_role_permissions(self, role):
        self._call('get_role_permissions')
        role = parse_role(role)
        return [row for row in self.get_all_roles() if row['role'] == role.value]

    def get_all_users_with_roles(self):
        self._call('get_all_users_with_roles')
        rows = []
        for uid in sorted(self.users):
            held = sorted(r.value for r in self.assignments.get(uid, set()))
            base = {'user_id': uid, 'email': self.users[uid], 'full_name': self.users[uid].split('@')[0].title()}
            if not held:
                rows.append({**base, 'role': None})
            rows.extend({**base, 'role': r} for r in held)
        return rows

    def assign_role(self, user_id, role, assigned_by):
        self._call('assign_role')
        role = parse_role(role)
        if user_id not in self.users:
            raise UnknownUserError(f'Unknown user: {user_id}')
        self.assignments.setdefault(user_id, set()).add(role)
        return {'user_id': user_id, 'role': role.value, 'assigned_by': assigned_by}

    def remove_role(self, user_id, role):
        self._call('remove_role')
        self.assignments.get(user_id, set()).discard(parse_role(role))

    def grant_role_permission(self, role, permission, resource, description=None):
        self._call('grant_role_permission')
        self.grants.add((parse_role(role).value, permission, resource))
        return {'role': parse_role(role).value, 'permission': permission, 'resource': resource}

    def revoke_role_permission(self, role, permission, resource):
        self._call('revoke_role_permission')
        self.grants.discard((parse_role(role).value, permission, resource))

    def count_admins(self):
        self._call('count_admins')
        return sum(1 for held in self.assignments.values() if Role.ADMIN in held)
