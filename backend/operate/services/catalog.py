from __future__ import annotations
from typing import Dict, Iterable, List, Mapping, Optional, Set

from operate.constants.permissions import (
    ALL_ENTRIES,
    PERMISSION_COLUMNS,
    PERMISSION_CONFIG_KEYS,
    PERMISSION_MATRIX,
    CatalogEntry,
    build_permission_keys,
    iter_entries,
    make_permission_key,
)
from operate.constants.roles import DEFAULT_ROLE_GRANTS, Role

CHECKED = 'checked'
INDETERMINATE = 'indeterminate'
UNCHECKED = 'unchecked'


def dedupe_entries(entries: Iterable[CatalogEntry]) -> List[CatalogEntry]:
    seen: Set[str] = set()
    out: List[CatalogEntry] = []
    for entry in entries:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        out.append(entry)
    return out


def default_grant_keys(role: Role) -> Set[str]:
    codes = DEFAULT_ROLE_GRANTS.get(Role.parse(role), [])
    if '*' in codes:
        return set(PERMISSION_CONFIG_KEYS)
    return set(codes)


class PermissionCatalog:
    """Read-only view over the permission matrix used by the admin screens."""

    def __init__(self, matrix: Optional[List[Dict]] = None):
        self.matrix = matrix if matrix is not None else PERMISSION_MATRIX
        if matrix is None:
            self.entries = ALL_ENTRIES
            self.keys = PERMISSION_CONFIG_KEYS
        else:
            self.keys = frozenset(build_permission_keys(matrix))
            self.entries = [e for _, _, _, e in iter_entries(matrix)]

    @staticmethod
    def key_of(permission: str, resource: Optional[str]) -> str:
        return make_permission_key(permission, resource)

    def contains(self, permission: str, resource: Optional[str]) -> bool:
        return make_permission_key(permission, resource) in self.keys

    def find(self, permission: str, resource: Optional[str]) -> Optional[CatalogEntry]:
        key = make_permission_key(permission, resource)
        for entry in self.entries:
            if entry.key == key:
                return entry
        return None

    def list_entries(self, role, granted_keys: Optional[Iterable[str]] = None) -> List[CatalogEntry]:
        """Catalog entries associated with ``role``.

        The catalog itself is role-agnostic: with ``granted_keys`` (store grants for the role) it is
        filtered by them, otherwise by the role's default grants.
        """
        keys = set(granted_keys) if granted_keys is not None else default_grant_keys(role)
        return dedupe_entries(e for e in self.entries if e.key in keys)

    def entries_for_column(self, row: Mapping, column: str) -> List[CatalogEntry]:
        actions = row.get('actions') or {}
        if column == 'full':
            explicit = actions.get('full')
            if explicit:
                return list(explicit)
            collected = []
            for key, entries in actions.items():
                if key == 'full':
                    continue
                collected.extend(e for e in entries if e.include_in_full)
            return dedupe_entries(collected)
        return list(actions.get(column) or [])

    def column_state(self, row: Mapping, column: str, granted_keys: Iterable[str]) -> str:
        entries = self.entries_for_column(row, column)
        if not entries:
            return UNCHECKED
        granted = set(granted_keys)
        active = sum(1 for e in entries if e.key in granted)
        if active == len(entries):
            return CHECKED
        if active:
            return INDETERMINATE
        return UNCHECKED

    def unmapped(self, rows: Iterable[Mapping]) -> List[Mapping]:
        """Store rows whose (permission, resource) has no catalog entry."""
        out = []
        for r in rows:
            try:
                key = make_permission_key(r.get('permission'), r.get('resource'))
            except ValueError:
                out.append(r)
                continue
            if key not in self.keys:
                out.append(r)
        return out

    def render(self, granted_keys: Iterable[str]) -> List[Dict]:
        granted = set(granted_keys)
        modules = []
        for module in self.matrix:
            rows = []
            for row in module['rows']:
                columns = {}
                for col in PERMISSION_COLUMNS:
                    entries = self.entries_for_column(row, col['key'])
                    if not entries:
                        continue
                    columns[col['key']] = {
                        'state': self.column_state(row, col['key'], granted),
                        'active': sum(1 for e in entries if e.key in granted),
                        'entries': [entry_json(e, e.key in granted) for e in entries],
                    }
                rows.append({'key': row['key'], 'label': row['label'], 'columns': columns})
            modules.append({'module': module['module'], 'description': module['description'], 'rows': rows})
        return modules


def entry_json(entry: CatalogEntry, granted: Optional[bool] = None) -> Dict:
    data = {
        'permission': entry.permission,
        'resource': entry.resource,
        'key': entry.key,
        'label': entry.label,
        'description': entry.description,
        'include_in_full': entry.include_in_full,
    }
    if granted is not None:
        data['granted'] = granted
    return data
