# Overview: Flask API routes for membership payments; parses input and returns JSON responses.

# backend/gymledger/routes/payments.py
"""
Membership Payment API Routes

WHY: Record membership fees and fix mistakes through REST.

DESIGN:
- Create payments (optional Idempotency-Key header for safe retries)
- Correct payments by inserting a correcting row (version token required)
- List and filter payments; superseded originals hidden by default
- Period revenue report grouped by day, week or month

SECURITY:
- Tenant context comes from require_tenant; every lookup is tenant scoped
- Foreign ids answer 404 exactly like absent ones
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, internal_error_response, require_tenant
from ..money import to_money_string
from ..services import audit_service, correction_service, payment_service, reporting_service
from ..services.correction_service import CorrectionPatch
from ..validation import LedgerError, parse_bool, require_fields


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _page_response(result: dict) -> dict:
    return {
        "payments": [p.to_dict() for p in result["data"]],
        "pagination": result["pagination"],
    }


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("/")
@require_tenant
def create_payment_route():
    """
    Record a membership payment.

    Headers:
    - Idempotency-Key (optional): replaying the same key within 24h
      returns the original payment instead of a duplicate.

    Request body:
    {
        "member_id": "uuid",
        "amount": "150.00",
        "paid_on": "2024-01-15",
        "payment_method": "CASH",
        "note": "January fee"  (optional)
    }

    Returns:
        201: Payment created
        400: Invalid input
        404: Member not found
        409: Idempotency key conflict
        500: Server error
    """
    try:
        data = require_fields(
            request.get_json(silent=True),
            ["member_id", "amount", "paid_on", "payment_method"],
        )

        payment = payment_service.create_payment(
            g.tenant_id,
            g.actor_id,
            member_id=data.get("member_id"),
            amount=data.get("amount"),
            paid_on=data.get("paid_on"),
            payment_method=data.get("payment_method"),
            note=data.get("note"),
            idempotency_key=request.headers.get("Idempotency-Key"),
        )

        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create payment")
        return internal_error_response()


# =============================================================================
# PAYMENT CORRECTION
# =============================================================================

@payments_bp.post("/<payment_id>/correct")
@require_tenant
def correct_payment_route(payment_id: str):
    """
    Supersede a payment with a correcting payment.

    Request body:
    {
        "version": 0,                      (required, from the last read)
        "amount": "150.00",                (optional)
        "paid_on": "2024-01-15",           (optional)
        "payment_method": "BANK_TRANSFER", (optional)
        "note": null,                      (optional, null clears it)
        "correction_reason": "Typo"        (optional)
    }

    Omitted fields keep the original's value.

    Returns:
        201: Correcting payment created
        400: Invalid input or already corrected
        404: Payment not found
        409: Version conflict (refresh and retry)
    """
    try:
        patch = CorrectionPatch.from_dict(request.get_json(silent=True))

        correcting = correction_service.correct_payment(
            g.tenant_id,
            g.actor_id,
            payment_id,
            patch,
        )

        return jsonify({"payment": correcting.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to correct payment")
        return internal_error_response()


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("/")
@require_tenant
def list_payments_route():
    """
    List payments.

    Query params:
    - member_id, branch_id, payment_method
    - start_date, end_date (YYYY-MM-DD, end inclusive)
    - include_corrections: include superseded originals (default: false)
    - page (default 1), limit (default 20, max 100)
    """
    try:
        result = payment_service.list_payments(
            g.tenant_id,
            member_id=request.args.get("member_id"),
            branch_id=request.args.get("branch_id"),
            payment_method=request.args.get("payment_method"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            include_corrections=parse_bool(request.args.get("include_corrections")),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(_page_response(result)), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return internal_error_response()


@payments_bp.get("/revenue")
@require_tenant
def revenue_report_route():
    """
    Membership revenue between two dates grouped by period.

    Query params:
    - start_date, end_date (required, YYYY-MM-DD, both inclusive)
    - branch_id, payment_method (optional)
    - group_by: day | week | month (default: day)
    """
    try:
        report = reporting_service.revenue_report(
            g.tenant_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            branch_id=request.args.get("branch_id"),
            payment_method=request.args.get("payment_method"),
            group_by=request.args.get("group_by", reporting_service.GROUP_BY_DAY),
        )

        return jsonify({
            "total_revenue": to_money_string(report["total_revenue"]),
            "period": report["period"],
            "currency": current_app.config["CURRENCY"],
            "breakdown": [
                {
                    "period": row["period"],
                    "revenue": to_money_string(row["revenue"]),
                    "count": row["count"],
                }
                for row in report["breakdown"]
            ],
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build revenue report")
        return internal_error_response()


@payments_bp.get("/members/<member_id>")
@require_tenant
def member_payments_route(member_id: str):
    """List one member's payments (404 when the member is not in the tenant)."""
    try:
        result = payment_service.get_member_payments(
            g.tenant_id,
            member_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(_page_response(result)), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load member payments")
        return internal_error_response()


@payments_bp.get("/<payment_id>")
@require_tenant
def get_payment_route(payment_id: str):
    try:
        payment = payment_service.get_payment(g.tenant_id, payment_id)
        return jsonify({"payment": payment.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load payment")
        return internal_error_response()


@payments_bp.get("/<payment_id>/events")
@require_tenant
def payment_events_route(payment_id: str):
    """
    Audit trail for a payment, newest first.

    Payloads are redacted: no amounts, notes or correction reasons.
    """
    try:
        payment = payment_service.get_payment(g.tenant_id, payment_id)
        events = audit_service.list_events(tenant_id=g.tenant_id, entity_id=payment.id)
        return jsonify({"events": [ev.to_dict() for ev in events]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load payment events")
        return internal_error_response()
