# Overview: Service-layer operations for payment corrections; optimistic concurrency over the ledger.

"""
Payment Correction Service

WHY: Payments are immutable. A wrong amount, date or method is fixed by
inserting a correcting payment and marking the original as corrected, so
the original survives as an audit record.

CONCURRENCY (compare-and-swap over a version column):
- Gate 1: the client's expected version is checked against the loaded row
  before any transaction opens (fast failure on stale client state).
- Gate 2: inside the unit of work, the original is updated with
  WHERE id = :id AND version = :expected. Zero affected rows means another
  corrector won; the whole unit of work rolls back, including the insert.

POLICY: a payment may be corrected only once. A stale version token is
reported as a conflict before the already-corrected check, so a client
holding an outdated token always learns it must refetch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Generic, Optional, TypeVar

from ..extensions import db
from ..models import Payment
from ..money import decimal_to_cents
from ..validation import ConflictError, ValidationError, parse_int, validate_text
from .audit_service import record_event
from .concurrency import atomic, conditional_update
from .payment_service import (
    get_payment,
    validate_amount,
    validate_note,
    validate_paid_on,
    validate_payment_method,
)


T = TypeVar("T")

VERSION_CONFLICT_MESSAGE = (
    "Payment was modified by another user. Refresh and try again."
)


@dataclass(frozen=True)
class FieldPatch(Generic[T]):
    """
    Per-field override: either an explicitly provided value or "use original".

    Keeps "explicitly set to None" distinct from "not supplied".
    """
    is_provided: bool = False
    value: Optional[T] = None

    @classmethod
    def provided(cls, value: T) -> "FieldPatch[T]":
        return cls(is_provided=True, value=value)

    @classmethod
    def use_original(cls) -> "FieldPatch[T]":
        return cls(is_provided=False, value=None)

    @classmethod
    def from_mapping(cls, data: dict, key: str) -> "FieldPatch":
        """Provided when the key is present in `data` (even with a null value)."""
        if key in data:
            return cls.provided(data[key])
        return cls.use_original()

    def resolve(self, original: T) -> T:
        return self.value if self.is_provided else original


@dataclass(frozen=True)
class CorrectionPatch:
    expected_version: int
    amount: FieldPatch = field(default_factory=FieldPatch.use_original)
    paid_on: FieldPatch = field(default_factory=FieldPatch.use_original)
    payment_method: FieldPatch = field(default_factory=FieldPatch.use_original)
    note: FieldPatch = field(default_factory=FieldPatch.use_original)
    correction_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CorrectionPatch":
        """Build a patch from a JSON body; `version` is required."""
        if not isinstance(data, dict):
            raise ValidationError("BODY_INVALID", "Request body must be a JSON object")
        if data.get("version") is None:
            raise ValidationError("VERSION_REQUIRED", "version is required")
        return cls(
            expected_version=parse_int(data.get("version"), "version", minimum=0),
            amount=FieldPatch.from_mapping(data, "amount"),
            paid_on=FieldPatch.from_mapping(data, "paid_on"),
            payment_method=FieldPatch.from_mapping(data, "payment_method"),
            note=FieldPatch.from_mapping(data, "note"),
            correction_reason=data.get("correction_reason"),
        )


@dataclass(frozen=True)
class _ResolvedFields:
    amount_cents: int
    paid_on: Any
    payment_method: str
    note: Optional[str]


def _resolve_fields(
    original: Payment,
    patch: CorrectionPatch,
    today: Optional[date],
) -> _ResolvedFields:
    """Validate provided overrides with the creation rules and merge with the original."""
    if patch.amount.is_provided:
        amount_cents = decimal_to_cents(validate_amount(patch.amount.value))
    else:
        amount_cents = original.amount_cents

    if patch.paid_on.is_provided:
        paid_on = validate_paid_on(original.tenant_id, patch.paid_on.value, today=today)
    else:
        paid_on = original.paid_on

    if patch.payment_method.is_provided:
        payment_method = validate_payment_method(patch.payment_method.value)
    else:
        payment_method = original.payment_method

    # An explicit null clears the note on the correcting row
    note = validate_note(patch.note.resolve(original.note))

    return _ResolvedFields(
        amount_cents=amount_cents,
        paid_on=paid_on,
        payment_method=payment_method,
        note=note,
    )


def correct_payment(
    tenant_id: str,
    actor_id: str,
    payment_id: str,
    patch: CorrectionPatch,
    today: Optional[date] = None,
) -> Payment:
    """
    Supersede a payment with a correcting payment.

    Steps:
    1. Load original within the tenant (NotFoundError)
    2. Gate 1: expected version must match (ConflictError)
    3. Already corrected originals and correction rows are rejected (ValidationError)
    4. Validate provided overrides
    5. Unit of work: insert correcting row, conditional update of original
    6. Gate 2: zero rows updated -> roll back everything (ConflictError)

    Returns:
        The newly created correcting payment.
    """
    original = get_payment(tenant_id, payment_id)

    if original.version != patch.expected_version:
        raise ConflictError("VERSION_CONFLICT", VERSION_CONFLICT_MESSAGE)

    if original.is_corrected:
        raise ValidationError(
            "ALREADY_CORRECTED",
            "This payment has already been corrected. A payment can only be corrected once.",
        )

    # Chains stay two nodes long; a corrected correction would be double counted
    if original.is_correction:
        raise ValidationError(
            "CORRECTION_NOT_CORRECTABLE",
            "Correction payments cannot be corrected again.",
        )

    resolved = _resolve_fields(original, patch, today)
    reason = validate_text(patch.correction_reason, "correction_reason", "CORRECTION_REASON_TOO_LONG")

    original_id = original.id
    expected_version = patch.expected_version

    with atomic():
        correcting = Payment(
            tenant_id=original.tenant_id,
            branch_id=original.branch_id,
            member_id=original.member_id,
            amount_cents=resolved.amount_cents,
            paid_on=resolved.paid_on,
            payment_method=resolved.payment_method,
            note=resolved.note,
            is_correction=True,
            corrected_payment_id=original_id,
            is_corrected=False,
            correction_reason=reason,
            version=0,
            created_by=actor_id,
        )
        db.session.add(correcting)
        db.session.flush()

        updated = conditional_update(
            Payment,
            where={"id": original_id, "tenant_id": tenant_id, "version": expected_version},
            values={
                "is_corrected": True,
                "corrected_payment_id": correcting.id,
                "version": Payment.version + 1,
            },
        )

        if updated == 0:
            # Lost the race: atomic() rolls back the correcting insert
            raise ConflictError("VERSION_CONFLICT", VERSION_CONFLICT_MESSAGE)

        record_event(
            event_type="payment.corrected",
            tenant_id=correcting.tenant_id,
            branch_id=correcting.branch_id,
            entity_type="payment",
            entity_id=correcting.id,
            actor_id=actor_id,
            original_payment_id=original_id,
            corrected_payment_id=correcting.id,
            member_id=correcting.member_id,
            payment_method=correcting.payment_method,
            paid_on=correcting.paid_on,
        )

    return correcting
