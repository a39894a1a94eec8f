"""Authorization store contract and its SQL-backed implementation.

Role membership, permission checks and role mutations are answered by the store; callers
(resolver, evaluator, admin workflow) never evaluate policy themselves.
"""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, FrozenSet, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from operate.constants.roles import Role
from operate.models.authz import RolePermission, User, UserRole

log = logging.getLogger(__name__)


class AuthorizationError(Exception):
    pass


class UnknownRoleError(AuthorizationError, ValueError):
    pass


class UnknownUserError(AuthorizationError, LookupError):
    pass


class AuthorizationServiceError(AuthorizationError):
    """The store could not answer (transport, query or constraint failure)."""


def parse_role(value) -> Role:
    try:
        return Role.parse(value)
    except ValueError:
        raise UnknownRoleError(f'Unknown role: {value}')


class AuthorizationPort(ABC):
    @abstractmethod
    def get_user_roles(self, user_id: int) -> FrozenSet[Role]: ...

    def get_user_role(self, user_id: int) -> Role:
        """Alphabetically lowest held role, or STANDARD_USER when none is held."""
        roles = self.get_user_roles(user_id)
        if not roles:
            return Role.STANDARD_USER
        return min(roles, key=lambda r: r.value)

    @abstractmethod
    def has_role(self, user_id: int, role) -> bool: ...

    @abstractmethod
    def has_permission(self, user_id: int, permission: str, resource: Optional[str] = None) -> bool: ...

    @abstractmethod
    def get_all_roles(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_role_permissions(self, role) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_all_users_with_roles(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def assign_role(self, user_id: int, role, assigned_by: Optional[int]) -> Dict[str, Any]: ...

    @abstractmethod
    def remove_role(self, user_id: int, role) -> None: ...

    @abstractmethod
    def grant_role_permission(self, role, permission: str, resource: Optional[str], description: Optional[str] = None) -> Dict[str, Any]: ...

    @abstractmethod
    def revoke_role_permission(self, role, permission: str, resource: Optional[str]) -> None: ...

    @abstractmethod
    def count_admins(self) -> int: ...


def role_permission_json(rp: RolePermission) -> Dict[str, Any]:
    return {
        'id': rp.id,
        'role': rp.role,
        'permission': rp.permission,
        'resource': rp.resource_tag,
        'description': rp.description,
    }


def assignment_json(ur: Optional[UserRole], user: User) -> Dict[str, Any]:
    return {
        'id': ur.id if ur else None,
        'user_id': user.id,
        'email': user.email,
        'full_name': user.full_name,
        'role': ur.role if ur else None,
        'assigned_by': ur.assigned_by if ur else None,
        'created_at': ur.created_at.isoformat() if ur and ur.created_at else None,
    }


class SqlAuthorizationService(AuthorizationPort):
    def __init__(self, session):
        self.session = session

    @contextmanager
    def _store(self, what: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            raise AuthorizationServiceError(f'{what} failed: {e.__class__.__name__}') from e

    def get_user_roles(self, user_id: int) -> FrozenSet[Role]:
        with self._store('role lookup'):
            tags = self.session.execute(select(UserRole.role).where(UserRole.user_id == user_id)).scalars().all()
        roles = set()
        for tag in tags:
            try:
                roles.add(Role.parse(tag))
            except ValueError:
                log.warning('Ignoring unknown role tag %r held by user %s', tag, user_id)
        return frozenset(roles)

    def has_role(self, user_id: int, role) -> bool:
        role = parse_role(role)
        with self._store('role check'):
            row = self.session.execute(
                select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role.value).limit(1)
            ).first()
        return row is not None

    def _is_active_user(self, user_id: int) -> bool:
        with self._store('user lookup'):
            active = self.session.execute(select(User.is_active).where(User.id == user_id)).scalar_one_or_none()
        return bool(active)

    def has_permission(self, user_id: int, permission: str, resource: Optional[str] = None) -> bool:
        # Missing or deactivated accounts hold nothing, not even the implicit user grants
        if not self._is_active_user(user_id):
            return False
        roles = self.get_user_roles(user_id)
        # Admin wildcard: every permission, present or future
        if Role.ADMIN in roles:
            return True
        tags = {r.value for r in roles} | {Role.STANDARD_USER.value}
        q = select(RolePermission.id).where(RolePermission.role.in_(tags), RolePermission.permission == permission)
        if resource is not None:
            q = q.where(RolePermission.resource == resource)
        with self._store('permission check'):
            return self.session.execute(q.limit(1)).first() is not None

    def get_all_roles(self) -> List[Dict[str, Any]]:
        with self._store('role catalog'):
            rows = self.session.execute(
                select(RolePermission).order_by(RolePermission.role, RolePermission.permission, RolePermission.resource)
            ).scalars().all()
        return [role_permission_json(rp) for rp in rows]

    def get_role_permissions(self, role) -> List[Dict[str, Any]]:
        role = parse_role(role)
        with self._store('role permissions'):
            rows = self.session.execute(
                select(RolePermission).where(RolePermission.role == role.value)
                .order_by(RolePermission.permission, RolePermission.resource)
            ).scalars().all()
        return [role_permission_json(rp) for rp in rows]

    def get_all_users_with_roles(self) -> List[Dict[str, Any]]:
        """One row per (user, role); users holding nothing get a single placeholder row with role None."""
        with self._store('user listing'):
            users = self.session.execute(select(User).order_by(User.id)).scalars().all()
            assignments = self.session.execute(select(UserRole).order_by(UserRole.user_id, UserRole.role)).scalars().all()
        by_user = defaultdict(list)
        for a in assignments:
            by_user[a.user_id].append(a)
        rows = []
        for user in users:
            held = by_user.get(user.id)
            if not held:
                rows.append(assignment_json(None, user))
                continue
            rows.extend(assignment_json(a, user) for a in held)
        return rows

    def _user(self, user_id: int) -> User:
        with self._store('user lookup'):
            user = self.session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
        if not user:
            raise UnknownUserError(f'Unknown user: {user_id}')
        return user

    def _assignment(self, user_id: int, role: Role) -> Optional[UserRole]:
        with self._store('assignment lookup'):
            return self.session.execute(
                select(UserRole).where(UserRole.user_id == user_id, UserRole.role == role.value)
            ).scalar_one_or_none()

    def assign_role(self, user_id: int, role, assigned_by: Optional[int]) -> Dict[str, Any]:
        role = parse_role(role)
        user = self._user(user_id)
        existing = self._assignment(user_id, role)
        if existing:
            return assignment_json(existing, user)
        ur = UserRole(user_id=user_id, role=role.value, assigned_by=assigned_by)
        try:
            self.session.add(ur)
            self.session.commit()
        except IntegrityError:
            # Concurrent insert of the same (user, role): the other writer's row stands.
            self.session.rollback()
            existing = self._assignment(user_id, role)
            if existing is None:
                raise AuthorizationServiceError('role assignment failed: IntegrityError')
            return assignment_json(existing, user)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise AuthorizationServiceError(f'role assignment failed: {e.__class__.__name__}') from e
        log.info('Assigned role %s to user %s (by %s)', role.value, user_id, assigned_by)
        return assignment_json(ur, user)

    def remove_role(self, user_id: int, role) -> None:
        role = parse_role(role)
        with self._store('role removal'):
            result = self.session.execute(
                delete(UserRole).where(UserRole.user_id == user_id, UserRole.role == role.value)
            )
            self.session.commit()
        log.info('Removed role %s from user %s (%s rows)', role.value, user_id, result.rowcount)

    def grant_role_permission(self, role, permission: str, resource: Optional[str], description: Optional[str] = None) -> Dict[str, Any]:
        role = parse_role(role)
        res = resource or ''
        with self._store('permission grant'):
            rp = self.session.execute(
                select(RolePermission).where(
                    RolePermission.role == role.value,
                    RolePermission.permission == permission,
                    RolePermission.resource == res,
                )
            ).scalar_one_or_none()
            if rp is None:
                rp = RolePermission(role=role.value, permission=permission, resource=res, description=description)
                self.session.add(rp)
                self.session.commit()
        return role_permission_json(rp)

    def revoke_role_permission(self, role, permission: str, resource: Optional[str]) -> None:
        role = parse_role(role)
        with self._store('permission revoke'):
            self.session.execute(
                delete(RolePermission).where(
                    RolePermission.role == role.value,
                    RolePermission.permission == permission,
                    RolePermission.resource == (resource or ''),
                )
            )
            self.session.commit()

    def count_admins(self) -> int:
        with self._store('admin count'):
            return self.session.execute(
                select(func.count(func.distinct(UserRole.user_id))).where(UserRole.role == Role.ADMIN.value)
            ).scalar_one()
