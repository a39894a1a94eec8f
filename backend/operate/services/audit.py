from __future__ import annotations
from typing import Any, Dict, Optional
from operate import get_db
from operate.models.audit import AuditLog
from operate.services.identity import current_user_id


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. USER.ROLE.ASSIGN, ROLE.PERM.GRANT, USER.BRANCH.ASSIGN
      entity: optional entity name (Role, User, Branch, etc.)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    session = get_db()
    log = AuditLog(
        actor_user_id=current_user_id() or 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log


def audit_log_json(r: AuditLog) -> Dict[str, Any]:
    return {
        'id': r.id,
        'actor_user_id': r.actor_user_id,
        'action': r.action,
        'entity': r.entity,
        'entity_id': r.entity_id,
        'meta': r.meta,
        'created_at': r.created_at.isoformat() if r.created_at else None,
    }
