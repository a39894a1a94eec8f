"""Idempotent seeding of the store: default role grants and the initial admin."""
from __future__ import annotations
import hashlib
import json
import logging
import os
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select

from operate.constants.permissions import ALL_ENTRIES, parse_permission_key
from operate.constants.roles import Role
from operate.models.authz import RolePermission, User, UserRole
from operate.services.catalog import PermissionCatalog, default_grant_keys

log = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = 'admin@example.com'
DEFAULT_ADMIN_PASSWORD = 'ChangeMe123!'


def seed_role_permissions(session) -> int:
    """Insert every missing default grant; returns the number of rows created. Does not commit."""
    descriptions = {e.key: e.description for e in ALL_ENTRIES}
    existing = {
        (rp.role, rp.permission, rp.resource)
        for rp in session.execute(select(RolePermission)).scalars().all()
    }
    created = 0
    for role in Role:
        for key in sorted(default_grant_keys(role)):
            permission, resource = parse_permission_key(key)
            ident = (role.value, permission, resource or '')
            if ident in existing:
                continue
            session.add(RolePermission(
                role=role.value, permission=permission, resource=resource or '',
                description=descriptions.get(key),
            ))
            existing.add(ident)
            created += 1
    session.flush()
    return created


def ensure_initial_admin(session, email: Optional[str] = None, password: Optional[str] = None) -> Tuple[User, bool]:
    """Create the admin user (and its admin assignment) when missing. Does not commit."""
    email = email or os.getenv('SEED_ADMIN_EMAIL') or DEFAULT_ADMIN_EMAIL
    created = False
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(email=email, full_name='Administrator', password_hash='')
        user.set_password(password or os.getenv('SEED_ADMIN_PASSWORD') or DEFAULT_ADMIN_PASSWORD)
        session.add(user)
        session.flush()
        created = True
        log.info('Created initial admin user %s with temporary password', email)
    held = session.execute(
        select(UserRole.id).where(UserRole.user_id == user.id, UserRole.role == Role.ADMIN.value)
    ).first()
    if not held:
        session.add(UserRole(user_id=user.id, role=Role.ADMIN.value))
        session.flush()
    return user, created


def build_role_permission_map(session) -> Dict[str, List[str]]:
    mapping: Dict[str, List[str]] = {}
    for rp in session.execute(select(RolePermission)).scalars().all():
        mapping.setdefault(rp.role, []).append(f'{rp.permission}::{rp.resource or "null"}')
    return {role: sorted(keys) for role, keys in sorted(mapping.items())}


def role_map_checksum(mapping: Dict[str, List[str]]) -> str:
    canonical = json.dumps(mapping, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def validate_store(session, catalog: Optional[PermissionCatalog] = None) -> List[str]:
    """Problems found in the store: unknown role tags and grants with no catalog entry."""
    catalog = catalog or PermissionCatalog()
    problems = []
    known = set(Role.values())
    for tag in sorted(set(session.execute(select(UserRole.role)).scalars().all())):
        if tag not in known:
            problems.append(f"Unknown role tag assigned to users: {tag}")
    rows = [
        {'role': rp.role, 'permission': rp.permission, 'resource': rp.resource_tag}
        for rp in session.execute(select(RolePermission)).scalars().all()
    ]
    for r in rows:
        if r['role'] not in known:
            problems.append(f"Grant for unknown role '{r['role']}': {r['permission']}")
    for r in catalog.unmapped(rows):
        problems.append(f"Role '{r['role']}' grants unmapped permission: {r['permission']}::{r['resource'] or 'null'}")
    return problems
