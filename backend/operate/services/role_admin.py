"""Admin-only role assignment and removal with friction scaled to the role.

The number of confirmations per role comes from ``CONFIRMATION_POLICY``; the workflow asks
them in order through the injected ``confirm`` callback and touches the store only after
the last one is accepted. After every successful mutation the user listing is re-fetched.
"""
from __future__ import annotations
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from operate.constants.roles import ADMIN_WARNING, CONFIRMATION_POLICY, REMOVAL_CONFIRMATIONS, Role
from operate.services.authorization import AuthorizationError, AuthorizationPort, UnknownRoleError, parse_role

log = logging.getLogger(__name__)

ASSIGNED = 'assigned'
REMOVED = 'removed'
CANCELLED = 'cancelled'
FAILED = 'failed'


@dataclass(frozen=True)
class ResolvedUserRoleSet:
    user_id: int
    email: Optional[str] = None
    full_name: Optional[str] = None
    roles: tuple = ()

    @property
    def has_roles(self) -> bool:
        return len(self.roles) > 0

    def holds(self, role: Role) -> bool:
        return role.value in self.roles

    def to_json(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'email': self.email,
            'full_name': self.full_name,
            'roles': list(self.roles),
            'has_roles': self.has_roles,
        }


def group_user_roles(rows: Iterable[Mapping[str, Any]]) -> List[ResolvedUserRoleSet]:
    """Group assignment rows by user; placeholder rows (role None) yield a user with no roles."""
    grouped: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
    for row in rows:
        uid = row.get('user_id')
        if uid is None:
            continue
        entry = grouped.setdefault(uid, {'email': row.get('email'), 'full_name': row.get('full_name'), 'roles': set()})
        if row.get('role'):
            entry['roles'].add(row['role'])
    return [
        ResolvedUserRoleSet(uid, e['email'], e['full_name'], tuple(sorted(e['roles'])))
        for uid, e in grouped.items()
    ]


@dataclass(frozen=True)
class ConfirmationPrompt:
    action: str
    role: str
    step: int
    total: int
    message: str
    admin_count: Optional[int] = None
    warning: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'role': self.role,
            'step': self.step,
            'total': self.total,
            'message': self.message,
            'admin_count': self.admin_count,
            'warning': self.warning,
        }


@dataclass
class RoleChangeOutcome:
    status: str
    message: str
    prompt: Optional[ConfirmationPrompt] = None
    assignment: Optional[Dict[str, Any]] = None
    error: Optional[AuthorizationError] = None
    users: List[ResolvedUserRoleSet] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (ASSIGNED, REMOVED)


Confirm = Callable[[ConfirmationPrompt], bool]


class RoleAdministrationWorkflow:
    def __init__(self, port: AuthorizationPort, confirm: Confirm):
        self.port = port
        self.confirm = confirm
        self.users: List[ResolvedUserRoleSet] = []

    # ---- listing ----
    def refresh(self) -> List[ResolvedUserRoleSet]:
        self.users = group_user_roles(self.port.get_all_users_with_roles())
        return self.users

    def find(self, user_id: int) -> Optional[ResolvedUserRoleSet]:
        for u in self.users:
            if u.user_id == user_id:
                return u
        return None

    def admin_count(self) -> int:
        return sum(1 for u in self.users if u.holds(Role.ADMIN))

    def stats(self) -> Dict[str, int]:
        total = len(self.users)
        admins = self.admin_count()
        return {'total': total, 'admins': admins, 'regular': max(total - admins, 0)}

    def search(self, query: Optional[str]) -> List[ResolvedUserRoleSet]:
        q = (query or '').strip().lower()
        if not q:
            return list(self.users)
        return [
            u for u in self.users
            if (u.full_name and q in u.full_name.lower())
            or (u.email and q in u.email.lower())
            or q in str(u.user_id)
            or any(q in r for r in u.roles)
        ]

    def sorted_by_name(self) -> List[ResolvedUserRoleSet]:
        return sorted(self.users, key=lambda u: (u.full_name or u.email or str(u.user_id)).lower())

    @staticmethod
    def assignable_roles() -> List[Role]:
        # admin is granted through its own guarded control
        return [r for r in Role if r is not Role.ADMIN]

    def can_assign(self, user_id: int, role) -> bool:
        role = parse_role(role)
        user = self.find(user_id)
        return not (user and user.holds(role))

    # ---- prompts ----
    def assignment_prompts(self, role: Role) -> List[ConfirmationPrompt]:
        total = CONFIRMATION_POLICY[role]
        if role is Role.ADMIN:
            count = self._current_admin_count()
            messages = [
                f'WARNING: Admin Role Assignment. Current admin count: {count}. '
                'Are you absolutely sure you want to assign admin role to this user?',
                f'This is a FINAL confirmation. Current admin count: {count}. Assign admin role?',
            ]
            return [
                ConfirmationPrompt('assign', role.value, i + 1, total, messages[min(i, len(messages) - 1)], count, ADMIN_WARNING)
                for i in range(total)
            ]
        return [
            ConfirmationPrompt('assign', role.value, i + 1, total, f'Assign role "{role.value}" to this user?')
            for i in range(total)
        ]

    def _current_admin_count(self) -> int:
        try:
            return self.port.count_admins()
        except AuthorizationError:
            log.warning('Admin count unavailable; using the cached listing', exc_info=True)
            return self.admin_count()

    def removal_prompts(self, role: Role) -> List[ConfirmationPrompt]:
        return [
            ConfirmationPrompt('remove', role.value, i + 1, REMOVAL_CONFIRMATIONS, f'Remove role "{role.value}" from this user?')
            for i in range(REMOVAL_CONFIRMATIONS)
        ]

    def _confirmed(self, prompts: List[ConfirmationPrompt]) -> Optional[ConfirmationPrompt]:
        """Return the first declined prompt, or None when all were accepted."""
        for prompt in prompts:
            if not self.confirm(prompt):
                return prompt
        return None

    # ---- mutations ----
    def assign_role(self, user_id: int, role, assigned_by: Optional[int]) -> RoleChangeOutcome:
        try:
            role = parse_role(role)
        except UnknownRoleError as e:
            return RoleChangeOutcome(FAILED, f'Failed to assign role: {e}', error=e, users=self.users)
        declined = self._confirmed(self.assignment_prompts(role))
        if declined:
            return RoleChangeOutcome(CANCELLED, 'Role assignment cancelled', prompt=declined, users=self.users)
        try:
            assignment = self.port.assign_role(user_id, role, assigned_by)
        except AuthorizationError as e:
            log.error('Error assigning role %s to user %s: %s', role.value, user_id, e)
            return RoleChangeOutcome(FAILED, f'Failed to assign role: {e}', error=e, users=self.users)
        users = self._refresh_after_mutation()
        return RoleChangeOutcome(ASSIGNED, f'Role "{role.value}" assigned successfully!', assignment=assignment, users=users)

    def remove_role(self, user_id: int, role) -> RoleChangeOutcome:
        try:
            role = parse_role(role)
        except UnknownRoleError as e:
            return RoleChangeOutcome(FAILED, f'Failed to remove role: {e}', error=e, users=self.users)
        declined = self._confirmed(self.removal_prompts(role))
        if declined:
            return RoleChangeOutcome(CANCELLED, 'Role removal cancelled', prompt=declined, users=self.users)
        try:
            self.port.remove_role(user_id, role)
        except AuthorizationError as e:
            log.error('Error removing role %s from user %s: %s', role.value, user_id, e)
            return RoleChangeOutcome(FAILED, f'Failed to remove role: {e}', error=e, users=self.users)
        users = self._refresh_after_mutation()
        return RoleChangeOutcome(REMOVED, 'Role removed successfully!', users=users)

    def _refresh_after_mutation(self) -> List[ResolvedUserRoleSet]:
        try:
            return self.refresh()
        except AuthorizationError:
            # the mutation stands; the listing is stale until the next refresh
            log.warning('User listing refresh failed after role change', exc_info=True)
            return self.users
