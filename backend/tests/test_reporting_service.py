# Overview: Pytest coverage for revenue aggregation over the correction-aware ledger.

from datetime import datetime
from decimal import Decimal

import pytest

from gymledger.services import month_lock_service
from gymledger.services.reporting_service import (
    daily_breakdown,
    monthly_revenue,
    payment_method_breakdown,
    revenue_report,
    revenue_trend,
)
from gymledger.validation import ValidationError


ZERO = Decimal("0.00")


@pytest.fixture
def corrected_pair(ledger_row, member_a):
    """100.00 original superseded by a 150.00 correction, both in January 2024."""
    original = ledger_row(member_a, "100.00", "2024-01-15", is_corrected=True, version=1)
    correction = ledger_row(
        member_a,
        "150.00",
        "2024-01-15",
        is_correction=True,
        corrected_payment_id=original.id,
    )
    return original, correction


class TestMonthlyRevenue:

    def test_empty_month_is_zero(self, db_session, tenant_a, branch_a):
        report = monthly_revenue(tenant_a.id, branch_a.id, "2026-02")
        assert report.membership_revenue == ZERO
        assert report.product_revenue == ZERO
        assert report.total_revenue == ZERO
        assert report.locked is False
        assert report.to_dict()["total_revenue"] == "0.00"

    def test_correction_counted_once(self, db_session, tenant_a, branch_a, corrected_pair):
        report = monthly_revenue(tenant_a.id, branch_a.id, "2024-01")
        assert report.membership_revenue == Decimal("150.00")

    def test_membership_and_products(self, db_session, tenant_a, branch_a, member_a, ledger_row, product_sale):
        ledger_row(member_a, "100.00", "2026-03-01")
        ledger_row(member_a, "49.99", "2026-03-31")
        product_sale(branch_a, "20.50", "2026-03-10T18:00:00")

        report = monthly_revenue(tenant_a.id, branch_a.id, "2026-03")
        assert report.membership_revenue == Decimal("149.99")
        assert report.product_revenue == Decimal("20.50")
        assert report.total_revenue == Decimal("170.49")

    def test_december_boundary(self, db_session, tenant_a, branch_a, member_a, ledger_row, product_sale):
        ledger_row(member_a, "10.00", "2026-11-30")
        ledger_row(member_a, "20.00", "2026-12-01")
        ledger_row(member_a, "30.00", "2026-12-31")
        ledger_row(member_a, "40.00", "2027-01-01")
        product_sale(branch_a, "5.00", "2026-12-31T23:59:59")
        product_sale(branch_a, "7.00", "2027-01-01T00:00:00")

        report = monthly_revenue(tenant_a.id, branch_a.id, "2026-12")
        assert report.membership_revenue == Decimal("50.00")
        assert report.product_revenue == Decimal("5.00")

    def test_scoped_to_branch_and_tenant(
        self, db_session, tenant_a, branch_a, branch_a2, member_a, member_b, ledger_row
    ):
        ledger_row(member_a, "100.00", "2026-03-05")
        ledger_row(member_b, "999.00", "2026-03-05")

        assert monthly_revenue(tenant_a.id, branch_a.id, "2026-03").membership_revenue == Decimal("100.00")
        assert monthly_revenue(tenant_a.id, branch_a2.id, "2026-03").membership_revenue == ZERO
        # Tenant A cannot read Tenant B's branch even with the right id
        assert monthly_revenue(tenant_a.id, member_b.branch_id, "2026-03").membership_revenue == ZERO

    def test_lock_flag(self, db_session, tenant_a, branch_a):
        month_lock_service.lock_month(tenant_a.id, branch_a.id, "2026-01", locked_by="owner")
        assert monthly_revenue(tenant_a.id, branch_a.id, "2026-01").locked is True
        assert monthly_revenue(tenant_a.id, branch_a.id, "2026-02").locked is False

    @pytest.mark.parametrize("month", ["2026-13", "2026-1", "January", ""])
    def test_invalid_month(self, db_session, tenant_a, branch_a, month):
        with pytest.raises(ValidationError) as excinfo:
            monthly_revenue(tenant_a.id, branch_a.id, month)
        assert excinfo.value.code == "MONTH_INVALID"


class TestRevenueTrend:

    def test_months_end_with_current_month(self, db_session, tenant_a, branch_a, member_a, ledger_row):
        ledger_row(member_a, "80.00", "2026-02-14")

        trend = revenue_trend(tenant_a.id, branch_a.id, months=3, as_of=datetime(2026, 3, 15))
        assert [row.month for row in trend] == ["2026-01", "2026-02", "2026-03"]
        assert [row.membership_revenue for row in trend] == [ZERO, Decimal("80.00"), ZERO]

    def test_crosses_year_boundary(self, db_session, tenant_a, branch_a):
        trend = revenue_trend(tenant_a.id, branch_a.id, months=4, as_of=datetime(2026, 2, 1))
        assert [row.month for row in trend] == ["2025-11", "2025-12", "2026-01", "2026-02"]

    def test_default_is_six_months(self, db_session, tenant_a, branch_a):
        assert len(revenue_trend(tenant_a.id, branch_a.id, as_of=datetime(2026, 6, 1))) == 6

    @pytest.mark.parametrize("requested,expected", [(0, 1), (-4, 1), (1, 1), (24, 24), (500, 24), ("12", 12)])
    def test_months_clamped(self, db_session, tenant_a, branch_a, requested, expected):
        trend = revenue_trend(tenant_a.id, branch_a.id, months=requested, as_of=datetime(2026, 6, 1))
        assert len(trend) == expected

    def test_each_entry_matches_monthly_revenue(self, db_session, tenant_a, branch_a, corrected_pair):
        month_lock_service.lock_month(tenant_a.id, branch_a.id, "2024-01")

        trend = revenue_trend(tenant_a.id, branch_a.id, months=2, as_of=datetime(2024, 2, 10))
        assert trend[0] == monthly_revenue(tenant_a.id, branch_a.id, "2024-01")
        assert trend[0].locked is True
        assert trend[0].membership_revenue == Decimal("150.00")

    def test_non_integer_months(self, db_session, tenant_a, branch_a):
        with pytest.raises(ValidationError):
            revenue_trend(tenant_a.id, branch_a.id, months="six")


class TestDailyBreakdown:

    def test_leap_year_february(self, db_session, tenant_a, branch_a):
        days = daily_breakdown(tenant_a.id, branch_a.id, "2024-02")
        assert len(days) == 29
        assert days[-1].date == "2024-02-29"

    def test_common_year_february(self, db_session, tenant_a, branch_a):
        assert len(daily_breakdown(tenant_a.id, branch_a.id, "2026-02")) == 28

    def test_buckets_and_zero_fill(self, db_session, tenant_a, branch_a, member_a, ledger_row, product_sale):
        ledger_row(member_a, "25.00", "2024-02-29")
        ledger_row(member_a, "25.00", "2024-02-29")
        product_sale(branch_a, "3.50", "2024-02-29T21:15:00")
        product_sale(branch_a, "1.00", "2024-02-01T00:00:00")

        days = {row.date: row for row in daily_breakdown(tenant_a.id, branch_a.id, "2024-02")}
        assert days["2024-02-29"].membership_revenue == Decimal("50.00")
        assert days["2024-02-29"].product_revenue == Decimal("3.50")
        assert days["2024-02-29"].total_revenue == Decimal("53.50")
        assert days["2024-02-01"].total_revenue == Decimal("1.00")
        assert days["2024-02-15"].total_revenue == ZERO

    def test_applies_correction_rule(self, db_session, tenant_a, branch_a, corrected_pair):
        days = {row.date: row for row in daily_breakdown(tenant_a.id, branch_a.id, "2024-01")}
        assert days["2024-01-15"].membership_revenue == Decimal("150.00")


class TestPaymentMethodBreakdown:

    def test_groups_by_method(self, db_session, tenant_a, branch_a, member_a, ledger_row, product_sale):
        ledger_row(member_a, "100.00", "2026-04-02", method="CASH")
        ledger_row(member_a, "50.00", "2026-04-03", method="CASH")
        ledger_row(member_a, "75.00", "2026-04-04", method="CREDIT_CARD")
        product_sale(branch_a, "12.00", "2026-04-05T10:00:00", method="CASH")

        breakdown = payment_method_breakdown(tenant_a.id, branch_a.id, "2026-04")
        membership = {row.payment_method: row.amount for row in breakdown.membership_by_method}
        products = {row.payment_method: row.amount for row in breakdown.product_sales_by_method}

        assert membership == {"CASH": Decimal("150.00"), "CREDIT_CARD": Decimal("75.00")}
        assert "BANK_TRANSFER" not in membership
        assert products == {"CASH": Decimal("12.00")}

    def test_empty_month_has_no_methods(self, db_session, tenant_a, branch_a):
        breakdown = payment_method_breakdown(tenant_a.id, branch_a.id, "2026-04")
        assert breakdown.membership_by_method == []
        assert breakdown.product_sales_by_method == []

    def test_superseded_original_not_counted(self, db_session, tenant_a, branch_a, member_a, ledger_row):
        original = ledger_row(member_a, "100.00", "2026-04-02", method="CASH", is_corrected=True, version=1)
        ledger_row(
            member_a, "100.00", "2026-04-02",
            method="BANK_TRANSFER", is_correction=True, corrected_payment_id=original.id,
        )

        breakdown = payment_method_breakdown(tenant_a.id, branch_a.id, "2026-04")
        assert [row.to_dict() for row in breakdown.membership_by_method] == [
            {"payment_method": "BANK_TRANSFER", "amount": "100.00"}
        ]


class TestRevenueReport:

    def test_group_by_day_inclusive_end(self, db_session, tenant_a, member_a, ledger_row):
        ledger_row(member_a, "10.00", "2026-03-01")
        ledger_row(member_a, "15.00", "2026-03-01")
        ledger_row(member_a, "20.00", "2026-03-03")
        ledger_row(member_a, "99.00", "2026-03-04")

        report = revenue_report(tenant_a.id, start_date="2026-03-01", end_date="2026-03-03")
        assert report["total_revenue"] == Decimal("45.00")
        assert report["period"] == "day"
        assert report["breakdown"] == [
            {"period": "2026-03-01", "revenue": Decimal("25.00"), "count": 2},
            {"period": "2026-03-03", "revenue": Decimal("20.00"), "count": 1},
        ]

    def test_group_by_week_starts_monday(self, db_session, tenant_a, member_a, ledger_row):
        ledger_row(member_a, "10.00", "2026-03-02")  # Monday
        ledger_row(member_a, "20.00", "2026-03-08")  # Sunday, same week
        ledger_row(member_a, "30.00", "2026-03-09")  # next Monday

        report = revenue_report(tenant_a.id, start_date="2026-03-01", end_date="2026-03-31", group_by="week")
        assert [(row["period"], row["revenue"]) for row in report["breakdown"]] == [
            ("2026-03-02", Decimal("30.00")),
            ("2026-03-09", Decimal("30.00")),
        ]

    def test_group_by_month_with_corrections(self, db_session, tenant_a, member_a, ledger_row, corrected_pair):
        ledger_row(member_a, "40.00", "2024-02-10")

        report = revenue_report(tenant_a.id, start_date="2024-01-01", end_date="2024-02-29", group_by="month")
        assert report["breakdown"] == [
            {"period": "2024-01", "revenue": Decimal("150.00"), "count": 1},
            {"period": "2024-02", "revenue": Decimal("40.00"), "count": 1},
        ]
        assert report["total_revenue"] == Decimal("190.00")

    def test_filters(self, db_session, tenant_a, member_a, ledger_row):
        ledger_row(member_a, "10.00", "2026-03-01", method="CASH")
        ledger_row(member_a, "20.00", "2026-03-01", method="CHECK")

        report = revenue_report(
            tenant_a.id,
            start_date="2026-03-01",
            end_date="2026-03-01",
            branch_id=member_a.branch_id,
            payment_method="CHECK",
        )
        assert report["total_revenue"] == Decimal("20.00")

    def test_empty_range(self, db_session, tenant_a):
        report = revenue_report(tenant_a.id, start_date="2026-03-01", end_date="2026-03-31")
        assert report["total_revenue"] == ZERO
        assert report["breakdown"] == []

    @pytest.mark.parametrize("kwargs,code", [
        ({"start_date": "2026-03-01", "end_date": "2026-03-31", "group_by": "year"}, "GROUP_BY_INVALID"),
        ({"start_date": None, "end_date": "2026-03-31"}, "DATE_REQUIRED"),
        ({"start_date": "yesterday", "end_date": "2026-03-31"}, "DATE_INVALID"),
        ({"start_date": "2026-03-31", "end_date": "2026-03-01"}, "DATE_RANGE_INVALID"),
    ])
    def test_invalid_arguments(self, db_session, tenant_a, kwargs, code):
        with pytest.raises(ValidationError) as excinfo:
            revenue_report(tenant_a.id, **kwargs)
        assert excinfo.value.code == code
