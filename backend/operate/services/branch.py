"""Current-branch selection per user.

The selection is a non-sensitive preference kept in a key/value store under a per-user key,
so two accounts sharing a client never see each other's choice.
"""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from operate.models.authz import Preference
from operate.models.organization import Branch, UserBranch

log = logging.getLogger(__name__)

STORAGE_PREFIX = 'duriyam.current_branch'
DEFAULT_BRANCH_CODE = 'MAIN'


def branch_preference_key(user_id) -> str:
    return f'{STORAGE_PREFIX}:{user_id}'


class PreferenceStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...


class MemoryPreferenceStore(PreferenceStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SqlPreferenceStore(PreferenceStore):
    def __init__(self, session):
        self.session = session

    def get(self, key: str) -> Optional[str]:
        return self.session.execute(select(Preference.value).where(Preference.key == key)).scalar_one_or_none()

    def set(self, key: str, value: str) -> None:
        pref = self.session.execute(select(Preference).where(Preference.key == key)).scalar_one_or_none()
        if pref is None:
            self.session.add(Preference(key=key, value=value))
        else:
            pref.value = value
        self.session.commit()

    def remove(self, key: str) -> None:
        pref = self.session.execute(select(Preference).where(Preference.key == key)).scalar_one_or_none()
        if pref is not None:
            self.session.delete(pref)
            self.session.commit()


def resolve_current_branch(branches: Sequence[Dict[str, Any]], stored_branch_id=None) -> Optional[Dict[str, Any]]:
    """Stored selection (if still assigned), else the primary branch, else the first one, else None."""
    if stored_branch_id is not None:
        for entry in branches:
            if str(entry.get('branch_id')) == str(stored_branch_id):
                return entry
    for entry in branches:
        if entry.get('is_primary'):
            return entry
    return branches[0] if branches else None


def summary(entry: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not entry:
        return None
    return {
        'id': entry['branch_id'],
        'name': entry.get('branch_name'),
        'code': entry.get('branch_code'),
        'organization_name': entry.get('organization_name'),
        'organization_code': entry.get('organization_code'),
        'is_primary': bool(entry.get('is_primary')),
    }


def user_branch_json(ub: UserBranch) -> Dict[str, Any]:
    branch = ub.branch
    org = branch.organization if branch else None
    return {
        'id': ub.id,
        'branch_id': ub.branch_id,
        'branch_name': branch.name if branch else None,
        'branch_code': branch.code if branch else None,
        'organization_id': org.id if org else None,
        'organization_name': org.name if org else None,
        'organization_code': org.code if org else None,
        'is_primary': bool(ub.is_primary),
    }


@dataclass
class BranchState:
    branches: List[Dict[str, Any]] = field(default_factory=list)
    current: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {'branches': self.branches, 'current_branch': summary(self.current), 'error': self.error}


class BranchSelector:
    def __init__(self, session, preferences: PreferenceStore):
        self.session = session
        self.preferences = preferences

    # ---- preference access; storage problems degrade to "nothing stored" ----
    def _stored(self, user_id) -> Optional[str]:
        try:
            return self.preferences.get(branch_preference_key(user_id))
        except Exception:
            log.warning('Could not access stored branch selection', exc_info=True)
            return None

    def _persist(self, user_id, branch_id) -> None:
        if user_id is None:
            return
        key = branch_preference_key(user_id)
        try:
            if branch_id:
                self.preferences.set(key, str(branch_id))
            else:
                self.preferences.remove(key)
        except Exception:
            log.warning('Could not persist branch selection', exc_info=True)

    # ---- store access ----
    def user_branches(self, user_id: int) -> List[Dict[str, Any]]:
        rows = self.session.execute(
            select(UserBranch).where(UserBranch.user_id == user_id).order_by(UserBranch.id)
        ).scalars().all()
        return [user_branch_json(ub) for ub in rows]

    def default_branch(self) -> Optional[Branch]:
        branches = self.session.execute(select(Branch).order_by(Branch.id)).scalars().all()
        for b in branches:
            if b.is_default:
                return b
        for b in branches:
            if b.code == DEFAULT_BRANCH_CODE:
                return b
        return branches[0] if branches else None

    def assign(self, user_id: int, branch_id: int, is_primary: bool = False, assigned_by: Optional[int] = None) -> UserBranch:
        ub = self.session.execute(
            select(UserBranch).where(UserBranch.user_id == user_id, UserBranch.branch_id == branch_id)
        ).scalar_one_or_none()
        if ub is None:
            ub = UserBranch(user_id=user_id, branch_id=branch_id, is_primary=False, assigned_by=assigned_by)
            self.session.add(ub)
            self.session.flush()
        if is_primary:
            self._make_primary(user_id, branch_id)
        self.session.commit()
        return ub

    def _make_primary(self, user_id: int, branch_id: int) -> None:
        self.session.execute(update(UserBranch).where(UserBranch.user_id == user_id).values(is_primary=False))
        self.session.execute(
            update(UserBranch).where(UserBranch.user_id == user_id, UserBranch.branch_id == branch_id).values(is_primary=True)
        )

    def set_primary(self, user_id: int, branch_id: int) -> bool:
        exists = self.session.execute(
            select(UserBranch.id).where(UserBranch.user_id == user_id, UserBranch.branch_id == branch_id)
        ).first()
        if not exists:
            return False
        self._make_primary(user_id, branch_id)
        self.session.commit()
        return True

    def unassign(self, user_id: int, branch_id: int) -> bool:
        ub = self.session.execute(
            select(UserBranch).where(UserBranch.user_id == user_id, UserBranch.branch_id == branch_id)
        ).scalar_one_or_none()
        if ub is None:
            return False
        self.session.delete(ub)
        self.session.commit()
        return True

    # ---- selection ----
    def load(self, user_id: Optional[int]) -> BranchState:
        if user_id is None:
            return BranchState()
        try:
            branches = self.user_branches(user_id)
            if not branches:
                branches = self._auto_assign(user_id)
            current = resolve_current_branch(branches, self._stored(user_id))
            if current:
                self._persist(user_id, current['branch_id'])
            return BranchState(branches, current)
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error('Error loading branches for user %s: %s', user_id, e)
            return BranchState(error='Could not load branches')

    def _auto_assign(self, user_id: int) -> List[Dict[str, Any]]:
        try:
            default = self.default_branch()
            if default is None:
                return []
            self.assign(user_id, default.id, is_primary=True, assigned_by=user_id)
        except SQLAlchemyError:
            self.session.rollback()
            log.warning('Could not auto-assign branch to user %s', user_id, exc_info=True)
            return []
        return self.user_branches(user_id)

    def select(self, user_id: int, branch_id) -> Optional[Dict[str, Any]]:
        """Make ``branch_id`` current; only branches assigned to the user are accepted."""
        if not branch_id:
            return None
        for entry in self.user_branches(user_id):
            if str(entry['branch_id']) == str(branch_id):
                self._persist(user_id, entry['branch_id'])
                return entry
        return None
