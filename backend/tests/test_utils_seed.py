"""Test seeding utilities to reduce duplication.

These helpers create users, role assignments, store grants and branches directly in the
shared in-memory database. Emails must be unique per test since the database lives for the
whole session.
"""
from typing import Dict, Iterable, Optional
from sqlalchemy import select
from operate import get_db
from operate.constants.roles import Role
from operate.models.authz import User, UserRole
from operate.models.organization import Branch, Organization
from operate.services.seed import seed_role_permissions


def ensure_user(email: str, full_name: Optional[str] = None, password: str = 'pw') -> User:
    session = get_db()
    u = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not u:
        u = User(email=email, full_name=full_name or email.split('@')[0].title(), password_hash='')
        u.set_password(password)
        session.add(u); session.commit()
    return u


def ensure_roles(user: User, roles: Iterable[Role]):
    session = get_db()
    for role in roles:
        held = session.execute(
            select(UserRole).where(UserRole.user_id == user.id, UserRole.role == role.value)
        ).scalar_one_or_none()
        if not held:
            session.add(UserRole(user_id=user.id, role=role.value))
    session.commit()


def ensure_default_grants() -> int:
    session = get_db()
    created = seed_role_permissions(session)
    session.commit()
    return created


def seed_user_with_roles(email: str, roles: Iterable[Role] = (), password: str = 'pw') -> User:
    ensure_default_grants()
    user = ensure_user(email, password=password)
    ensure_roles(user, roles)
    return user


def login_headers(client, email: str, password: str = 'pw') -> Dict[str, str]:
    resp = client.post('/iam/auth/login', json={'email': email, 'password': password})
    assert resp.status_code == 200, resp.get_json()
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}


def ensure_branch(org_code: str, code: str, name: Optional[str] = None, is_default: bool = False) -> Branch:
    session = get_db()
    org = session.execute(select(Organization).where(Organization.code == org_code)).scalar_one_or_none()
    if not org:
        org = Organization(name=org_code.title(), code=org_code)
        session.add(org); session.flush()
    branch = session.execute(
        select(Branch).where(Branch.organization_id == org.id, Branch.code == code)
    ).scalar_one_or_none()
    if not branch:
        branch = Branch(organization_id=org.id, name=name or code.title(), code=code, is_default=is_default)
        session.add(branch)
    session.commit()
    return branch


__all__ = [
    'ensure_user', 'ensure_roles', 'ensure_default_grants', 'seed_user_with_roles', 'login_headers', 'ensure_branch',
]
