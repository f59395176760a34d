# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Membership Payment Ledger Service

WHY: Record membership fee payments against members so revenue can be
reported per branch and month.

DESIGN PRINCIPLES:
- Immutable ledger: amount, date, method and note never change after insert
- Corrections are new rows (see correction_service), never edits
- Tenant isolation: every lookup filters by tenant_id; foreign rows look absent
- Date-only business dates: paid_on is stored as 00:00:00 UTC
- Exact money: Decimal in Python, integer cents at rest
- Audit events never include amounts or notes
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import IdempotencyKey, Payment, PAYMENT_METHODS
from ..money import CENT, MAX_AMOUNT, decimal_places, decimal_to_cents, parse_amount, quantize
from ..time_utils import today_in_timezone, truncate_to_utc_day, utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_int,
    validate_text,
)
from .audit_service import record_event
from .concurrency import atomic
from .member_service import get_member, get_tenant_timezone


PAYMENT_NOT_FOUND_MESSAGE = "Payment not found"

DEFAULT_PAGE_SIZE = 20


def _config(name: str, default: Any) -> Any:
    if has_app_context():
        return current_app.config.get(name, default)
    return default


# =============================================================================
# SHARED VALIDATION (used by creation and correction)
# =============================================================================

def validate_amount(raw: Any) -> Decimal:
    """
    Validate a payment amount and return it as a scale-2 Decimal.

    Rules (each a distinct error code):
    - AMOUNT_NOT_POSITIVE: amount must be > 0
    - AMOUNT_TOO_LARGE: amount must be <= 999999.99
    - AMOUNT_PRECISION: at most 2 decimal places
    """
    amount = parse_amount(raw)

    if amount <= 0:
        raise ValidationError("AMOUNT_NOT_POSITIVE", "Payment amount must be positive (minimum 0.01)")

    if amount > MAX_AMOUNT:
        raise ValidationError("AMOUNT_TOO_LARGE", "Payment amount may be at most 999999.99")

    if decimal_places(amount) > 2 or amount != amount.quantize(CENT):
        raise ValidationError("AMOUNT_PRECISION", "Payment amount may have at most 2 decimal places")

    return quantize(amount)


def validate_payment_method(method: Any) -> str:
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            "PAYMENT_METHOD_INVALID",
            f"Invalid payment method: {method}. Must be one of {PAYMENT_METHODS}",
        )
    return method


def validate_paid_on(tenant_id: str, raw: Any, today: Optional[date] = None) -> datetime:
    """
    Reject future business dates, then truncate to 00:00:00 UTC.

    "Today" is evaluated in the tenant's timezone; the payment's own date
    is its UTC calendar date. `today` is injectable for tests.
    """
    if raw is None or raw == "":
        raise ValidationError("PAID_ON_INVALID", "Payment date is required")
    try:
        paid_on = truncate_to_utc_day(raw)
    except (TypeError, ValueError):
        raise ValidationError("PAID_ON_INVALID", "Payment date must be an ISO-8601 date")

    if today is None:
        today = today_in_timezone(get_tenant_timezone(tenant_id))

    if paid_on.date() > today:
        raise ValidationError("PAID_ON_IN_FUTURE", "Payment date cannot be in the future")

    return paid_on


def validate_note(note: Any) -> Optional[str]:
    return validate_text(note, "note", "NOTE_TOO_LONG")


def _parse_filter_date(value: Any, name: str) -> datetime:
    try:
        return truncate_to_utc_day(value)
    except (TypeError, ValueError):
        raise ValidationError("DATE_INVALID", f"{name} must be an ISO-8601 date")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def create_payment(
    tenant_id: str,
    actor_id: str,
    *,
    member_id: str,
    amount: Any,
    paid_on: Any,
    payment_method: str,
    note: Optional[str] = None,
    idempotency_key: Optional[str] = None,
    today: Optional[date] = None,
) -> Payment:
    """
    Record a membership payment.

    Validation order (first failure wins):
    1. Member exists and belongs to the tenant (NotFoundError)
    2. Amount bounds and precision (ValidationError)
    3. paid_on not after today in the tenant timezone (ValidationError)
    4. Payment method and note (ValidationError)

    The branch is copied from the member. version starts at 0 and the
    correction flags at False.

    Args:
        idempotency_key: Optional client key; a live key for this tenant
            returns the payment it was first stored with.
        today: Override for "today" (tests)

    Raises:
        NotFoundError, ValidationError, ConflictError
    """
    if idempotency_key:
        cached = _find_idempotent_payment(idempotency_key, tenant_id)
        if cached:
            return cached

    member = get_member(tenant_id, member_id)
    amount_value = validate_amount(amount)
    paid_on_day = validate_paid_on(tenant_id, paid_on, today=today)
    method = validate_payment_method(payment_method)
    note = validate_note(note)

    try:
        with atomic():
            payment = Payment(
                tenant_id=tenant_id,
                branch_id=member.branch_id,
                member_id=member.id,
                amount_cents=decimal_to_cents(amount_value),
                paid_on=paid_on_day,
                payment_method=method,
                note=note,
                is_correction=False,
                is_corrected=False,
                version=0,
                created_by=actor_id,
            )
            db.session.add(payment)
            db.session.flush()  # Get payment ID

            record_event(
                event_type="payment.created",
                tenant_id=payment.tenant_id,
                branch_id=payment.branch_id,
                entity_type="payment",
                entity_id=payment.id,
                actor_id=actor_id,
                payment_id=payment.id,
                member_id=payment.member_id,
                payment_method=payment.payment_method,
                paid_on=payment.paid_on,
            )

            if idempotency_key:
                _store_idempotency_key(idempotency_key, tenant_id, actor_id, payment.id)
    except IntegrityError:
        if not idempotency_key:
            raise
        # A concurrent request stored the same key first
        cached = _find_idempotent_payment(idempotency_key, tenant_id)
        if cached:
            return cached
        raise ConflictError("IDEMPOTENCY_KEY_CONFLICT", "Idempotency key has already been used")

    return payment


def _find_idempotent_payment(key: str, tenant_id: str) -> Optional[Payment]:
    """
    Return the payment stored under a live key for this tenant, else None.

    Keys of another tenant are ignored; expired keys are deleted.
    """
    record = db.session.query(IdempotencyKey).filter_by(key=key).first()
    if not record:
        return None

    if record.tenant_id != tenant_id:
        return None

    if record.is_expired():
        db.session.delete(record)
        db.session.commit()
        return None

    return db.session.get(Payment, record.payment_id)


def _store_idempotency_key(key: str, tenant_id: str, user_id: str, payment_id: str) -> IdempotencyKey:
    ttl_hours = _config("IDEMPOTENCY_TTL_HOURS", 24)
    now = utcnow()
    record = IdempotencyKey(
        key=key,
        tenant_id=tenant_id,
        user_id=user_id,
        payment_id=payment_id,
        created_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
    )
    db.session.add(record)
    db.session.flush()
    return record


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_payment(tenant_id: str, payment_id: str) -> Payment:
    """
    Get a payment by id within a tenant.

    SECURITY: absent and foreign payments raise the same NotFoundError.
    """
    payment = db.session.get(Payment, payment_id) if payment_id else None
    if not payment or payment.tenant_id != tenant_id:
        raise NotFoundError("PAYMENT_NOT_FOUND", PAYMENT_NOT_FOUND_MESSAGE)
    return payment


def list_payments(
    tenant_id: str,
    *,
    member_id: Optional[str] = None,
    branch_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    start_date: Any = None,
    end_date: Any = None,
    include_corrections: bool = False,
    page: Any = 1,
    limit: Any = DEFAULT_PAGE_SIZE,
) -> dict:
    """
    List payments with filtering and pagination.

    - Always scoped to the tenant
    - end_date is inclusive (the whole day is covered)
    - Superseded originals are hidden unless include_corrections is True

    Returns:
        {"data": [Payment, ...], "pagination": {page, limit, total, total_pages}}
    """
    page = parse_int(page, "page", default=1, minimum=1)
    limit = parse_int(
        limit,
        "limit",
        default=DEFAULT_PAGE_SIZE,
        minimum=1,
        maximum=_config("PAYMENT_LIST_MAX_LIMIT", 100),
    )

    query = db.session.query(Payment).filter(Payment.tenant_id == tenant_id)

    if member_id:
        query = query.filter(Payment.member_id == member_id)

    if branch_id:
        query = query.filter(Payment.branch_id == branch_id)

    if payment_method:
        query = query.filter(Payment.payment_method == validate_payment_method(payment_method))

    if start_date:
        query = query.filter(Payment.paid_on >= _parse_filter_date(start_date, "start_date"))

    if end_date:
        end_exclusive = _parse_filter_date(end_date, "end_date") + timedelta(days=1)
        query = query.filter(Payment.paid_on < end_exclusive)

    if not include_corrections:
        query = query.filter(Payment.counts_toward_revenue())

    total = query.count()
    rows = query.order_by(
        Payment.paid_on.desc(),
        Payment.created_at.desc(),
        Payment.id.desc(),
    ).offset((page - 1) * limit).limit(limit).all()

    return {
        "data": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def get_member_payments(
    tenant_id: str,
    member_id: str,
    *,
    start_date: Any = None,
    end_date: Any = None,
    page: Any = 1,
    limit: Any = DEFAULT_PAGE_SIZE,
) -> dict:
    """List a member's payments after confirming the member belongs to the tenant."""
    get_member(tenant_id, member_id)
    return list_payments(
        tenant_id,
        member_id=member_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
