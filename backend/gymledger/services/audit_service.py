# Overview: Service-layer operations for the audit trail; persists and logs redacted ledger events.

"""
Audit Trail Invariants (authoritative)

- Append-only: events are never updated or deleted.
- Written inside the same DB transaction as the change they record.
- Monetary values and free text never enter an event: `amount`,
  `amount_cents`, `note` and `correction_reason` are stripped before
  persisting or logging.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..logging_config import LogContext, get_logger
from ..models import AuditEvent
from ..time_utils import to_utc_z, utcnow

logger = get_logger(__name__)

REDACTED_FIELDS = frozenset({"amount", "amount_cents", "note", "correction_reason"})


def _redact(fields: dict[str, Any]) -> dict[str, Any]:
    clean = {}
    for key, value in fields.items():
        if key in REDACTED_FIELDS:
            continue
        if isinstance(value, datetime):
            value = to_utc_z(value)
        clean[key] = value
    return clean


def record_event(
    *,
    event_type: str,
    tenant_id: str,
    entity_type: str,
    entity_id: str,
    actor_id: Optional[str] = None,
    branch_id: Optional[str] = None,
    **fields: Any,
) -> AuditEvent:
    """
    Append an audit event to the current transaction and emit a log line.

    The caller owns the commit; the event only becomes durable together
    with the change it describes.
    """
    payload = _redact(fields)
    correlation_id = LogContext.get("correlation_id")

    ev = AuditEvent(
        event_type=event_type,
        tenant_id=tenant_id,
        branch_id=branch_id,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        correlation_id=correlation_id,
        occurred_at=utcnow(),
        payload=json.dumps(payload, sort_keys=True),
    )
    db.session.add(ev)
    db.session.flush()

    logger.info(
        event_type,
        extra={
            "event": event_type,
            "tenant_id": tenant_id,
            "branch_id": branch_id,
            "entity_id": entity_id,
            "actor_user_id": actor_id,
            "result": "success",
            **payload,
        },
    )
    return ev


def list_events(
    *,
    tenant_id: str,
    entity_id: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: int = 200,
) -> list[AuditEvent]:
    query = db.session.query(AuditEvent).filter(AuditEvent.tenant_id == tenant_id)
    if entity_id:
        query = query.filter(AuditEvent.entity_id == entity_id)
    if event_type:
        query = query.filter(AuditEvent.event_type == event_type)
    return query.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc()).limit(limit).all()
