# Overview: Service-layer operations for revenue reporting; read-only aggregation over the payment ledger.

"""
Revenue Reporting Service

Every query here is a pure read scoped by tenant (and branch):

- Membership revenue comes from payments filtered by the correction-exclusion
  rule (corrections count, superseded originals do not), so an original and
  its correction are never summed together once the correction committed.
- Product revenue comes from product sales over the same window.
- Month windows are half-open [first day, first day of next month) in UTC.
- Sums run over integer cents; empty sums are exact zero, never None.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

from flask import current_app, has_app_context
from sqlalchemy import func

from ..extensions import db
from ..models import Payment, ProductSale
from ..money import cents_to_decimal, to_money_string
from ..time_utils import (
    iter_month_days,
    month_key,
    month_range,
    shift_month,
    to_date_string,
    truncate_to_utc_day,
    utcnow,
    week_start,
)
from ..validation import ValidationError, parse_int
from .month_lock_service import is_month_locked, locked_months
from .payment_service import validate_payment_method


GROUP_BY_DAY = "day"
GROUP_BY_WEEK = "week"
GROUP_BY_MONTH = "month"

GROUP_BY_MODES = (GROUP_BY_DAY, GROUP_BY_WEEK, GROUP_BY_MONTH)

DEFAULT_TREND_MONTHS = 6
DEFAULT_MAX_TREND_MONTHS = 24


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class MonthlyRevenue:
    month: str
    membership_revenue: Decimal
    product_revenue: Decimal
    total_revenue: Decimal
    locked: bool

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "membership_revenue": to_money_string(self.membership_revenue),
            "product_revenue": to_money_string(self.product_revenue),
            "total_revenue": to_money_string(self.total_revenue),
            "locked": self.locked,
        }


@dataclass(frozen=True)
class DailyRevenue:
    date: str
    membership_revenue: Decimal
    product_revenue: Decimal
    total_revenue: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "membership_revenue": to_money_string(self.membership_revenue),
            "product_revenue": to_money_string(self.product_revenue),
            "total_revenue": to_money_string(self.total_revenue),
        }


@dataclass(frozen=True)
class MethodAmount:
    payment_method: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {
            "payment_method": self.payment_method,
            "amount": to_money_string(self.amount),
        }


@dataclass(frozen=True)
class PaymentMethodBreakdown:
    month: str
    membership_by_method: list[MethodAmount]
    product_sales_by_method: list[MethodAmount]

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "membership_by_method": [row.to_dict() for row in self.membership_by_method],
            "product_sales_by_method": [row.to_dict() for row in self.product_sales_by_method],
        }


# =============================================================================
# INTERNAL QUERY HELPERS
# =============================================================================

def _month_window(month: str) -> tuple[datetime, datetime]:
    try:
        return month_range(month)
    except (TypeError, ValueError):
        raise ValidationError("MONTH_INVALID", "Month must be in YYYY-MM format (e.g., 2026-02)")


def _membership_query(tenant_id: str, branch_id: str, start: datetime, end: datetime, *columns):
    return db.session.query(*columns).filter(
        Payment.tenant_id == tenant_id,
        Payment.branch_id == branch_id,
        Payment.paid_on >= start,
        Payment.paid_on < end,
        Payment.counts_toward_revenue(),
    )


def _product_query(tenant_id: str, branch_id: str, start: datetime, end: datetime, *columns):
    return db.session.query(*columns).filter(
        ProductSale.tenant_id == tenant_id,
        ProductSale.branch_id == branch_id,
        ProductSale.sold_at >= start,
        ProductSale.sold_at < end,
    )


def _membership_total(tenant_id: str, branch_id: str, start: datetime, end: datetime) -> Decimal:
    cents = _membership_query(
        tenant_id, branch_id, start, end, func.sum(Payment.amount_cents)
    ).scalar()
    return cents_to_decimal(cents)


def _product_total(tenant_id: str, branch_id: str, start: datetime, end: datetime) -> Decimal:
    cents = _product_query(
        tenant_id, branch_id, start, end, func.sum(ProductSale.total_amount_cents)
    ).scalar()
    return cents_to_decimal(cents)


# =============================================================================
# MONTHLY REPORTS
# =============================================================================

def monthly_revenue(tenant_id: str, branch_id: str, month: str) -> MonthlyRevenue:
    """
    Membership + product revenue for one month of a branch.

    Args:
        month: "YYYY-MM"

    Returns:
        MonthlyRevenue with Decimal totals (0.00 when empty) and the lock flag.
    """
    return _build_monthly(tenant_id, branch_id, month, is_month_locked(tenant_id, branch_id, month))


def _build_monthly(tenant_id: str, branch_id: str, month: str, locked: bool) -> MonthlyRevenue:
    start, end = _month_window(month)

    membership = _membership_total(tenant_id, branch_id, start, end)
    product = _product_total(tenant_id, branch_id, start, end)

    return MonthlyRevenue(
        month=month,
        membership_revenue=membership,
        product_revenue=product,
        total_revenue=membership + product,
        locked=locked,
    )


def revenue_trend(
    tenant_id: str,
    branch_id: str,
    months: Any = DEFAULT_TREND_MONTHS,
    as_of: Optional[datetime] = None,
) -> list[MonthlyRevenue]:
    """
    Monthly revenue for the last `months` months, oldest first.

    The window ends with the month containing `as_of` (default: now, UTC).
    `months` is clamped to [1, REVENUE_TREND_MAX_MONTHS] (24 by default).
    """
    max_months = DEFAULT_MAX_TREND_MONTHS
    if has_app_context():
        max_months = current_app.config.get("REVENUE_TREND_MAX_MONTHS", DEFAULT_MAX_TREND_MONTHS)

    count = parse_int(months, "months", default=DEFAULT_TREND_MONTHS)
    count = max(1, min(count, max_months))

    current = month_key(as_of or utcnow())
    keys = [shift_month(current, -offset) for offset in range(count - 1, -1, -1)]
    locked = locked_months(tenant_id, branch_id, keys)
    return [_build_monthly(tenant_id, branch_id, key, key in locked) for key in keys]


def daily_breakdown(tenant_id: str, branch_id: str, month: str) -> list[DailyRevenue]:
    """
    One entry per calendar day of the month, zero-filled.

    Days bucket by the UTC calendar date of paid_on / sold_at.
    """
    start, end = _month_window(month)

    membership_cents: dict[str, int] = defaultdict(int)
    for row in _membership_query(
        tenant_id, branch_id, start, end, Payment.paid_on, Payment.amount_cents
    ).all():
        membership_cents[to_date_string(truncate_to_utc_day(row.paid_on))] += row.amount_cents

    product_cents: dict[str, int] = defaultdict(int)
    for row in _product_query(
        tenant_id, branch_id, start, end, ProductSale.sold_at, ProductSale.total_amount_cents
    ).all():
        product_cents[to_date_string(truncate_to_utc_day(row.sold_at))] += row.total_amount_cents

    days = []
    for day in iter_month_days(month):
        key = to_date_string(day)
        membership = cents_to_decimal(membership_cents.get(key, 0))
        product = cents_to_decimal(product_cents.get(key, 0))
        days.append(
            DailyRevenue(
                date=key,
                membership_revenue=membership,
                product_revenue=product,
                total_revenue=membership + product,
            )
        )
    return days


def payment_method_breakdown(tenant_id: str, branch_id: str, month: str) -> PaymentMethodBreakdown:
    """
    Revenue of one month grouped by payment method.

    Only methods with rows appear; a NULL group sum is reported as 0.00.
    """
    start, end = _month_window(month)

    membership_rows = _membership_query(
        tenant_id,
        branch_id,
        start,
        end,
        Payment.payment_method.label("payment_method"),
        func.sum(Payment.amount_cents).label("amount_cents"),
    ).group_by(Payment.payment_method).order_by(Payment.payment_method).all()

    product_rows = _product_query(
        tenant_id,
        branch_id,
        start,
        end,
        ProductSale.payment_method.label("payment_method"),
        func.sum(ProductSale.total_amount_cents).label("amount_cents"),
    ).group_by(ProductSale.payment_method).order_by(ProductSale.payment_method).all()

    return PaymentMethodBreakdown(
        month=month,
        membership_by_method=[
            MethodAmount(payment_method=row.payment_method, amount=cents_to_decimal(row.amount_cents))
            for row in membership_rows
        ],
        product_sales_by_method=[
            MethodAmount(payment_method=row.payment_method, amount=cents_to_decimal(row.amount_cents))
            for row in product_rows
        ],
    )


# =============================================================================
# PERIOD REPORT (day / week / month grouping)
# =============================================================================

def _period_key_function(group_by: str) -> Callable[[datetime], str]:
    if group_by not in GROUP_BY_MODES:
        raise ValidationError("GROUP_BY_INVALID", f"group_by must be one of {GROUP_BY_MODES}")
    if group_by == GROUP_BY_WEEK:
        return lambda paid_on: to_date_string(week_start(paid_on))
    if group_by == GROUP_BY_MONTH:
        return month_key
    return to_date_string


def _require_date(value: Any, name: str) -> datetime:
    if value is None or value == "":
        raise ValidationError("DATE_REQUIRED", f"{name} is required")
    try:
        return truncate_to_utc_day(value)
    except (TypeError, ValueError):
        raise ValidationError("DATE_INVALID", f"{name} must be an ISO-8601 date")


def revenue_report(
    tenant_id: str,
    *,
    start_date: Any,
    end_date: Any,
    branch_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    group_by: str = GROUP_BY_DAY,
) -> dict:
    """
    Membership revenue between two dates (both inclusive) grouped by period.

    Period keys:
    - day:   "YYYY-MM-DD"
    - week:  "YYYY-MM-DD" of the Monday starting the week
    - month: "YYYY-MM"

    Returns:
        {"total_revenue": Decimal, "period": group_by,
         "breakdown": [{"period", "revenue": Decimal, "count"}, ...]} ascending
    """
    period_key = _period_key_function(group_by or GROUP_BY_DAY)

    start = _require_date(start_date, "start_date")
    end_exclusive = _require_date(end_date, "end_date") + timedelta(days=1)
    if end_exclusive <= start:
        raise ValidationError("DATE_RANGE_INVALID", "end_date must not be before start_date")

    query = db.session.query(Payment.paid_on, Payment.amount_cents).filter(
        Payment.tenant_id == tenant_id,
        Payment.paid_on >= start,
        Payment.paid_on < end_exclusive,
        Payment.counts_toward_revenue(),
    )
    if branch_id:
        query = query.filter(Payment.branch_id == branch_id)
    if payment_method:
        query = query.filter(Payment.payment_method == validate_payment_method(payment_method))

    buckets: dict[str, list[int]] = {}
    total_cents = 0
    for row in query.all():
        key = period_key(row.paid_on)
        bucket = buckets.setdefault(key, [0, 0])
        bucket[0] += row.amount_cents
        bucket[1] += 1
        total_cents += row.amount_cents

    return {
        "total_revenue": cents_to_decimal(total_cents),
        "period": group_by or GROUP_BY_DAY,
        "breakdown": [
            {
                "period": key,
                "revenue": cents_to_decimal(cents),
                "count": count,
            }
            for key, (cents, count) in sorted(buckets.items())
        ],
    }
