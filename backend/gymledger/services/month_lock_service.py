# Overview: Service-layer operations for revenue month locks (closed accounting periods).

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import RevenueMonthLock
from ..time_utils import is_valid_month_key, month_key, truncate_to_utc_day, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from ..logging_config import get_logger

logger = get_logger(__name__)


def _require_month(month: str) -> str:
    if not is_valid_month_key(month):
        raise ValidationError("MONTH_INVALID", "Month must be in YYYY-MM format (e.g., 2026-02)")
    return month


def is_month_locked(tenant_id: str, branch_id: str, month: str) -> bool:
    """True when the (tenant, branch, month) accounting period is closed."""
    return db.session.query(RevenueMonthLock.id).filter_by(
        tenant_id=tenant_id,
        branch_id=branch_id,
        month=month,
    ).first() is not None


def is_date_locked(tenant_id: str, branch_id: str, value) -> bool:
    """True when the month holding `value` (by its UTC calendar date) is closed."""
    return is_month_locked(tenant_id, branch_id, month_key(truncate_to_utc_day(value)))


def locked_months(tenant_id: str, branch_id: str, months: list[str]) -> set[str]:
    """Subset of `months` that are locked, in one query."""
    if not months:
        return set()
    rows = db.session.query(RevenueMonthLock.month).filter(
        RevenueMonthLock.tenant_id == tenant_id,
        RevenueMonthLock.branch_id == branch_id,
        RevenueMonthLock.month.in_(months),
    ).all()
    return {row.month for row in rows}


def list_locks(tenant_id: str, branch_id: str, month: Optional[str] = None) -> list[RevenueMonthLock]:
    query = db.session.query(RevenueMonthLock).filter_by(tenant_id=tenant_id, branch_id=branch_id)
    if month:
        query = query.filter_by(month=_require_month(month))
    return query.order_by(RevenueMonthLock.month.desc()).all()


def lock_month(tenant_id: str, branch_id: str, month: str, locked_by: Optional[str] = None) -> RevenueMonthLock:
    """
    Close a month for a branch.

    Raises:
        ValidationError: malformed month key
        ConflictError: month already locked
    """
    _require_month(month)
    if is_month_locked(tenant_id, branch_id, month):
        raise ConflictError("MONTH_ALREADY_LOCKED", f"Month {month} is already locked")

    lock = RevenueMonthLock(
        tenant_id=tenant_id,
        branch_id=branch_id,
        month=month,
        locked_by=locked_by,
        locked_at=utcnow(),
    )
    db.session.add(lock)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race against another locker
        db.session.rollback()
        raise ConflictError("MONTH_ALREADY_LOCKED", f"Month {month} is already locked")

    logger.info("revenue_month.locked", extra={"branch_id": branch_id, "month": month})
    return lock


def unlock_month(tenant_id: str, branch_id: str, month: str) -> None:
    _require_month(month)
    lock = db.session.query(RevenueMonthLock).filter_by(
        tenant_id=tenant_id,
        branch_id=branch_id,
        month=month,
    ).first()
    if not lock:
        raise NotFoundError("MONTH_LOCK_NOT_FOUND", "Month lock not found")

    db.session.delete(lock)
    db.session.commit()
    logger.info("revenue_month.unlocked", extra={"branch_id": branch_id, "month": month})
