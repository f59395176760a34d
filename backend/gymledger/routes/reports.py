from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import error_response, internal_error_response, require_tenant
from ..services import month_lock_service, reporting_service
from ..services.member_service import get_branch
from ..validation import LedgerError, ValidationError, require_fields


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _require_branch_id() -> str:
    branch_id = request.args.get("branch_id")
    if not branch_id:
        raise ValidationError("BRANCH_REQUIRED", "branch_id is required")
    get_branch(g.tenant_id, branch_id)
    return branch_id


def _require_month() -> str:
    month = request.args.get("month")
    if not month:
        raise ValidationError("MONTH_REQUIRED", "month is required")
    return month


@reports_bp.get("/revenue")
@require_tenant
def monthly_revenue_report():
    try:
        branch_id = _require_branch_id()
        report = reporting_service.monthly_revenue(g.tenant_id, branch_id, _require_month())
        return jsonify({**report.to_dict(), "currency": current_app.config["CURRENCY"]}), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build monthly revenue report")
        return internal_error_response()


@reports_bp.get("/revenue/trend")
@require_tenant
def revenue_trend_report():
    try:
        branch_id = _require_branch_id()
        months = reporting_service.revenue_trend(
            g.tenant_id,
            branch_id,
            months=request.args.get("months", reporting_service.DEFAULT_TREND_MONTHS),
        )
        return jsonify({
            "currency": current_app.config["CURRENCY"],
            "months": [row.to_dict() for row in months],
        }), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build revenue trend")
        return internal_error_response()


@reports_bp.get("/revenue/daily")
@require_tenant
def daily_revenue_report():
    try:
        branch_id = _require_branch_id()
        month = _require_month()
        days = reporting_service.daily_breakdown(g.tenant_id, branch_id, month)
        return jsonify({
            "month": month,
            "currency": current_app.config["CURRENCY"],
            "days": [row.to_dict() for row in days],
        }), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build daily revenue report")
        return internal_error_response()


@reports_bp.get("/revenue/payment-methods")
@require_tenant
def payment_method_report():
    try:
        branch_id = _require_branch_id()
        breakdown = reporting_service.payment_method_breakdown(g.tenant_id, branch_id, _require_month())
        return jsonify({**breakdown.to_dict(), "currency": current_app.config["CURRENCY"]}), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build payment method report")
        return internal_error_response()


# =============================================================================
# MONTH LOCKS
# =============================================================================

@reports_bp.get("/locks")
@require_tenant
def list_month_locks():
    try:
        branch_id = _require_branch_id()
        locks = month_lock_service.list_locks(g.tenant_id, branch_id, month=request.args.get("month"))
        return jsonify({"locks": [lock.to_dict() for lock in locks]}), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list month locks")
        return internal_error_response()


@reports_bp.get("/locks/status")
@require_tenant
def month_lock_status():
    """
    Whether the month holding a date is closed for a branch.

    Query params:
    - branch_id (required)
    - date (required, ISO-8601; bucketed by its UTC calendar date)
    """
    try:
        branch_id = _require_branch_id()
        value = request.args.get("date")
        if not value:
            raise ValidationError("DATE_REQUIRED", "date is required")
        try:
            locked = month_lock_service.is_date_locked(g.tenant_id, branch_id, value)
        except (TypeError, ValueError):
            raise ValidationError("DATE_INVALID", "date must be an ISO-8601 date")
        return jsonify({"branch_id": branch_id, "date": value, "locked": locked}), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to read month lock status")
        return internal_error_response()


@reports_bp.post("/locks")
@require_tenant
def lock_month():
    """
    Close a revenue month for a branch.

    Request body:
    {
        "branch_id": "uuid",
        "month": "2026-01"
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), ["branch_id", "month"])
        get_branch(g.tenant_id, data["branch_id"])
        lock = month_lock_service.lock_month(
            g.tenant_id,
            data["branch_id"],
            data["month"],
            locked_by=g.actor_id,
        )
        return jsonify({"lock": lock.to_dict()}), 201
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to lock month")
        return internal_error_response()


@reports_bp.delete("/locks/<branch_id>/<month>")
@require_tenant
def unlock_month(branch_id: str, month: str):
    try:
        get_branch(g.tenant_id, branch_id)
        month_lock_service.unlock_month(g.tenant_id, branch_id, month)
        return jsonify({"unlocked": True, "branch_id": branch_id, "month": month}), 200
    except LedgerError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to unlock month")
        return internal_error_response()
