# Overview: Service-layer operations for audit; encapsulates business logic and database work.

"""
Audit Recorder

- Append-only log of state-changing actions.
- Fire-and-forget: each entry is committed on its own, after the business
  transaction it describes has already committed.
- A failed audit write (database or otherwise) is logged and rolled back,
  never raised. The business
  outcome it describes stands.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AuditLogEntry
from kiosk.time_utils import utcnow

AUDIT_LIST_LIMIT = 200


def record(
    *,
    actor_id: int | None,
    actor_name: str | None,
    action: str,
    entity_type: str,
    entity_id=None,
    metadata: dict | None = None,
) -> AuditLogEntry | None:
    """
    Append one audit entry in its own commit.

    Returns the entry, or None when the write failed.
    """
    try:
        entry = AuditLogEntry(
            actor_id=actor_id,
            actor_name=actor_name or "UNKNOWN",
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            meta=metadata or {},
            created_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Audit write failed: action=%s entity=%s:%s", action, entity_type, entity_id
        )
        return None


def list_entries(
    limit: int = AUDIT_LIST_LIMIT,
    action: str | None = None,
    entity_type: str | None = None,
) -> list[AuditLogEntry]:
    """Newest first, optionally filtered by action and entity type."""
    query = db.session.query(AuditLogEntry)
    if action:
        query = query.filter(AuditLogEntry.action == action)
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type)
    limit = max(1, min(int(limit), AUDIT_LIST_LIMIT))
    return (
        query.order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .limit(limit)
        .all()
    )
