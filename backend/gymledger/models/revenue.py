from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from gymledger.money import cents_to_decimal
from gymledger.time_utils import to_utc_z, utcnow
from .tenancy import new_id


class ProductSale(db.Model):
    """
    In-gym product sale (written by the product sales module).

    The revenue reports only read it: sold_at decides the day/month bucket,
    total_amount_cents and payment_method feed the product revenue figures.
    """
    __tablename__ = "product_sales"
    __table_args__ = (
        db.Index("ix_product_sales_tenant_branch_sold_at", "tenant_id", "branch_id", "sold_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(36), db.ForeignKey("branches.id"), nullable=False, index=True)
    sold_at = db.Column(db.DateTime, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def total_amount(self) -> Decimal:
        return cents_to_decimal(self.total_amount_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "sold_at": to_utc_z(self.sold_at),
            "total_amount": format(self.total_amount, "f"),
            "payment_method": self.payment_method,
        }


class RevenueMonthLock(db.Model):
    """
    Closed accounting month for a branch.

    Presence of a row means the month is locked. Reports surface the flag;
    write paths decide whether to enforce it.
    """
    __tablename__ = "revenue_month_locks"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "branch_id", "month", name="uq_revenue_month_locks_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(36), db.ForeignKey("branches.id"), nullable=False, index=True)
    month = db.Column(db.String(7), nullable=False)  # YYYY-MM
    locked_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    locked_by = db.Column(db.String(36), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "month": self.month,
            "locked_at": to_utc_z(self.locked_at),
            "locked_by": self.locked_by,
        }
