from __future__ import annotations

from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from gymledger.money import cents_to_decimal
from gymledger.time_utils import to_date_string, to_utc_z, utcnow
from .tenancy import new_id


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "CASH"
METHOD_CREDIT_CARD = "CREDIT_CARD"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_CHECK = "CHECK"
METHOD_OTHER = "OTHER"

PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CREDIT_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_CHECK,
    METHOD_OTHER,
]


class Payment(db.Model):
    """
    Membership payment in the append-mostly ledger.

    IMMUTABLE CORE: tenant/branch/member, amount, paid_on, method and note
    never change after insert. A mistake is fixed by inserting a correcting
    row (is_correction=True, corrected_payment_id -> original) and flipping
    the original's is_corrected flag.

    CONCURRENCY: `version` starts at 0 and is bumped exactly once, by the
    conditional UPDATE that marks the original as corrected. It is the
    optimistic concurrency token clients send back with a correction.

    DATES: paid_on is a date-only business value stored as 00:00:00 UTC.
    AMOUNTS: stored as integer cents, exposed as Decimal via `amount`.
    """
    __tablename__ = "payments"
    __table_args__ = (
        # Composite index for branch revenue windows
        db.Index("ix_payments_tenant_branch_paid_on", "tenant_id", "branch_id", "paid_on"),
        db.Index("ix_payments_tenant_member", "tenant_id", "member_id"),
        db.CheckConstraint(
            "amount_cents > 0 AND amount_cents <= 99999999",
            name="ck_payments_amount_range",
        ),
        db.CheckConstraint("version >= 0", name="ck_payments_version_non_negative"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(36), db.ForeignKey("branches.id"), nullable=False, index=True)
    member_id = db.Column(db.String(36), db.ForeignKey("members.id"), nullable=False, index=True)

    # Amount paid (in cents)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Business date (00:00:00 UTC)
    paid_on = db.Column(db.DateTime, nullable=False, index=True)

    payment_method = db.Column(db.String(32), nullable=False, index=True)
    note = db.Column(db.String(500), nullable=True)

    # Correction chain
    is_correction = db.Column(db.Boolean, nullable=False, default=False, index=True)
    corrected_payment_id = db.Column(db.String(36), db.ForeignKey("payments.id"), nullable=True, index=True)
    is_corrected = db.Column(db.Boolean, nullable=False, default=False, index=True)
    correction_reason = db.Column(db.String(500), nullable=True)

    version = db.Column(db.Integer, nullable=False, default=0)

    # Attribution
    created_by = db.Column(db.String(36), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def amount(self) -> Decimal:
        return cents_to_decimal(self.amount_cents)

    @classmethod
    def counts_toward_revenue(cls):
        """
        Correction-exclusion rule shared by every revenue query.

        Include corrections and never-corrected originals; exclude originals
        that a correction has superseded.
        """
        return or_(cls.is_correction.is_(True), cls.is_corrected.is_(False))

    def __repr__(self) -> str:
        return f"<Payment id={self.id} version={self.version} corrected={self.is_corrected}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "member_id": self.member_id,
            "amount": format(self.amount, "f"),
            "paid_on": to_date_string(self.paid_on),
            "payment_method": self.payment_method,
            "note": self.note,
            "is_correction": self.is_correction,
            "corrected_payment_id": self.corrected_payment_id,
            "is_corrected": self.is_corrected,
            "correction_reason": self.correction_reason,
            "version": self.version,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class IdempotencyKey(db.Model):
    """
    Client-supplied key that makes payment creation safe to retry.

    A live key for the same tenant returns the payment it was stored with
    instead of inserting a duplicate. Keys expire after a TTL.
    """
    __tablename__ = "idempotency_keys"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(255), nullable=False, unique=True, index=True)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.String(36), nullable=False)
    payment_id = db.Column(db.String(36), db.ForeignKey("payments.id"), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    payment = db.relationship("Payment", foreign_keys=[payment_id])

    def is_expired(self, now=None) -> bool:
        return self.expires_at < (now or utcnow())
