"""Role tags and the static data attached to them.

``Role.STANDARD_USER`` is the zero value: a user without assignment rows behaves as it.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional


class Role(str, Enum):
    ADMIN = 'admin'
    CREATOR = 'creator'
    VERIFIER = 'verifier'
    STANDARD_USER = 'user'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'Role':
        """Map a stored tag to a Role; empty means STANDARD_USER, unknown tags raise ValueError."""
        if value is None or value == '':
            return cls.STANDARD_USER
        if isinstance(value, Role):
            return value
        return cls(str(value).strip().lower())

    @classmethod
    def values(cls) -> List[str]:
        return [r.value for r in cls]

    def __str__(self) -> str:
        return self.value


ROLE_METADATA: Dict[Role, Dict[str, str]] = {
    Role.ADMIN: {
        'label': 'Administrator',
        'description': 'Full control over the platform, including system configuration, user management, workflow overrides, and access to all data.',
    },
    Role.CREATOR: {
        'label': 'Creator',
        'description': 'Prepares job calculations, manages own drafts, submits work for verification, and can maintain supporting inventory records.',
    },
    Role.VERIFIER: {
        'label': 'Verifier',
        'description': 'Reviews submitted jobs, requests clarifications, and finalises approvals. Limited to oversight capabilities.',
    },
    Role.STANDARD_USER: {
        'label': 'Standard User',
        'description': 'Can work on their own records with restricted visibility into broader system data.',
    },
}

# Number of explicit confirmations an operator must give before the store is touched.
CONFIRMATION_POLICY: Dict[Role, int] = {
    Role.ADMIN: 2,
    Role.CREATOR: 1,
    Role.VERIFIER: 1,
    Role.STANDARD_USER: 1,
}
REMOVAL_CONFIRMATIONS = 1

ADMIN_WARNING = (
    'Admin users have full system access including: view and edit all user data, '
    'manage all user roles, bypass all workflow restrictions, delete any job. '
    'Admin access should be limited to trusted personnel only.'
)

# Role -> permission keys seeded into the store. '*' expands to the whole catalog.
DEFAULT_ROLE_GRANTS: Dict[Role, List[str]] = {
    Role.ADMIN: ['*'],
    Role.CREATOR: [
        'view_own_jobs::jobs', 'create_jobs::jobs', 'edit_own_jobs::jobs', 'delete_own_draft_jobs::jobs',
        'submit_for_review::jobs', 'view_verification_history::jobs', 'export_own_data::data',
        'view_inventory::inventory', 'add_inventory_items::inventory', 'edit_inventory_items::inventory',
        'manage_inventory_transactions::inventory',
    ],
    Role.VERIFIER: [
        'view_all_jobs::jobs', 'verify_jobs::jobs', 'request_modification::jobs',
        'view_verification_history::jobs', 'view_analytics::jobs',
    ],
    Role.STANDARD_USER: [
        'view_own_jobs::jobs', 'create_jobs::jobs', 'edit_own_jobs::jobs', 'delete_own_jobs::jobs',
        'export_own_data::data',
    ],
}
