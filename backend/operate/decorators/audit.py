from __future__ import annotations
"""Audit logging decorator for mutating route handlers.

Usage:

@audit_log('USER.ROLE.ASSIGN', entity='User', entity_id_arg='user_id', meta_keys=['role'])
def assign_role(user_id): ...

Parameters:
  action: audit action code (e.g. ROLE.PERM.GRANT)
  entity: optional entity label (Role, User, Branch)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: path parameter used for entity_id when entity_id_key is absent.
  meta_keys: keys projected from the returned JSON into meta.
  meta_builder: callable (data, args, kwargs) -> meta; overrides meta_keys.

Only successful responses (status < 400) are audited.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from operate import get_db
from operate.services.audit import add_audit

log = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) for the common Flask return shapes."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    status = getattr(rv, 'status_code', 200)
    return rv, status


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, args, kwargs)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            else:
                meta = None
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except SQLAlchemyError:
                # the mutation is already committed; a missing audit row must not turn it into an error
                session.rollback()
                log.error('Could not write audit entry %s', action, exc_info=True)
            return rv
        return wrapper
    return outer
