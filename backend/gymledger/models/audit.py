from __future__ import annotations

import json

from ..extensions import db
from gymledger.time_utils import to_utc_z, utcnow


class AuditEvent(db.Model):
    """
    Append-only audit trail for ledger writes.

    IMMUTABLE: rows are never updated or deleted.
    REDACTED: payload never carries amounts or notes.
    Written inside the same transaction as the change it records.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_tenant_occurred", "tenant_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    tenant_id = db.Column(db.String(36), nullable=False, index=True)
    branch_id = db.Column(db.String(36), nullable=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False, index=True)
    actor_id = db.Column(db.String(36), nullable=True)
    correlation_id = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    payload = db.Column(db.Text, nullable=True)

    @property
    def payload_dict(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": self.correlation_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "payload": self.payload_dict,
        }
