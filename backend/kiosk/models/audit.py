from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class AuditLogEntry(db.Model):
    """
    Audit trail of state-changing actions.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    actor_name is stored denormalized so entries stay readable after staff changes.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_action_created", "action", "created_at"),
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    actor_id = db.Column(db.Integer, db.ForeignKey("staff_users.id"), nullable=True, index=True)  # Nullable for anonymous
    actor_name = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(64), nullable=False)  # CHECKOUT_SALE, ADJUST_STOCK, LOGIN_FAIL...
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)

    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "metadata": self.meta,
            "created_at": to_utc_z(self.created_at),
        }
