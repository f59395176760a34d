# Overview: Pytest coverage for payment corrections and optimistic concurrency.

"""
Payment Correction Tests

Covers:
- Happy path: correcting row inserted, original flagged, version bumped once
- Stale version tokens (first gate) and lost races (second gate)
- Rollback of the correcting insert when the conditional update misses
- Single-correction policy and correction rows being final
- Per-field patches (use original / provided / explicit null note)
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import text

from gymledger.models import AuditEvent, Payment
from gymledger.services import audit_service, correction_service
from gymledger.services.correction_service import CorrectionPatch, FieldPatch, correct_payment
from gymledger.services.payment_service import create_payment
from gymledger.services.reporting_service import monthly_revenue
from gymledger.validation import ConflictError, NotFoundError, ValidationError


TODAY = date(2026, 6, 30)


@pytest.fixture
def original(db_session, tenant_a, member_a):
    """100.00 paid on 2024-01-15 in cash."""
    return create_payment(
        tenant_a.id,
        "user-1",
        member_id=member_a.id,
        amount="100.00",
        paid_on="2024-01-15",
        payment_method="CASH",
        note="January fee",
        today=TODAY,
    )


def _patch(version=0, **fields):
    return CorrectionPatch(
        expected_version=version,
        **{name: FieldPatch.provided(value) for name, value in fields.items()},
    )


class TestFieldPatch:

    def test_use_original_resolves_to_original(self):
        assert FieldPatch.use_original().resolve("kept") == "kept"

    def test_provided_none_is_distinct_from_missing(self):
        assert FieldPatch.provided(None).is_provided is True
        assert FieldPatch.provided(None).resolve("kept") is None

    def test_from_dict_tracks_present_keys(self):
        patch = CorrectionPatch.from_dict({"version": 2, "amount": "150.00", "note": None})
        assert patch.expected_version == 2
        assert patch.amount == FieldPatch.provided("150.00")
        assert patch.note == FieldPatch.provided(None)
        assert patch.paid_on == FieldPatch.use_original()
        assert patch.payment_method == FieldPatch.use_original()

    def test_from_dict_requires_version(self):
        with pytest.raises(ValidationError) as excinfo:
            CorrectionPatch.from_dict({"amount": "150.00"})
        assert excinfo.value.code == "VERSION_REQUIRED"

    def test_from_dict_rejects_non_integer_version(self):
        with pytest.raises(ValidationError):
            CorrectionPatch.from_dict({"version": "1.5"})


class TestCorrectPayment:

    def test_correction_scenario(self, db_session, tenant_a, branch_a, original):
        correcting = correct_payment(tenant_a.id, "user-2", original.id, _patch(0, amount="150.00"), today=TODAY)

        assert correcting.is_correction is True
        assert correcting.corrected_payment_id == original.id
        assert correcting.amount == Decimal("150.00")
        assert correcting.version == 0
        assert correcting.branch_id == original.branch_id
        assert correcting.member_id == original.member_id
        assert correcting.created_by == "user-2"

        db_session.expire_all()
        refreshed = db_session.get(Payment, original.id)
        assert refreshed.is_corrected is True
        assert refreshed.version == 1
        assert refreshed.corrected_payment_id == correcting.id
        assert refreshed.amount == Decimal("100.00")

        # Reports count the correction only
        assert monthly_revenue(tenant_a.id, branch_a.id, "2024-01").membership_revenue == Decimal("150.00")

        # A second attempt with the stale token is a conflict
        with pytest.raises(ConflictError) as excinfo:
            correct_payment(tenant_a.id, "user-2", original.id, _patch(0, amount="175.00"), today=TODAY)
        assert excinfo.value.code == "VERSION_CONFLICT"
        assert db_session.query(Payment).count() == 2

    def test_unpatched_fields_copy_original(self, db_session, tenant_a, original):
        correcting = correct_payment(tenant_a.id, "user-1", original.id, _patch(0, amount="150.00"), today=TODAY)

        assert correcting.paid_on == datetime(2024, 1, 15)
        assert correcting.payment_method == "CASH"
        assert correcting.note == "January fee"

    def test_explicit_null_clears_note(self, db_session, tenant_a, original):
        correcting = correct_payment(tenant_a.id, "user-1", original.id, _patch(0, note=None), today=TODAY)
        assert correcting.note is None
        assert correcting.amount == Decimal("100.00")

    def test_overrides_are_validated_and_normalized(self, db_session, tenant_a, original):
        correcting = correct_payment(
            tenant_a.id,
            "user-1",
            original.id,
            _patch(0, paid_on="2024-01-20T15:00:00Z", payment_method="BANK_TRANSFER"),
            today=TODAY,
        )
        assert correcting.paid_on == datetime(2024, 1, 20)
        assert correcting.payment_method == "BANK_TRANSFER"

    @pytest.mark.parametrize("fields,code", [
        ({"amount": "0"}, "AMOUNT_NOT_POSITIVE"),
        ({"amount": "1.234"}, "AMOUNT_PRECISION"),
        ({"amount": "150.0000000000000000000000000001"}, "AMOUNT_PRECISION"),
        ({"amount": None}, "AMOUNT_INVALID"),
        ({"paid_on": "2026-07-01"}, "PAID_ON_IN_FUTURE"),
        ({"payment_method": "BARTER"}, "PAYMENT_METHOD_INVALID"),
        ({"note": "n" * 501}, "NOTE_TOO_LONG"),
        ({"note": 42}, "TEXT_INVALID"),
    ])
    def test_invalid_overrides_leave_original_untouched(self, db_session, tenant_a, original, fields, code):
        with pytest.raises(ValidationError) as excinfo:
            correct_payment(tenant_a.id, "user-1", original.id, _patch(0, **fields), today=TODAY)
        assert excinfo.value.code == code

        db_session.expire_all()
        assert db_session.query(Payment).count() == 1
        assert db_session.get(Payment, original.id).version == 0

    def test_reason_is_recorded(self, db_session, tenant_a, original):
        patch = CorrectionPatch(expected_version=0, amount=FieldPatch.provided("90.00"), correction_reason="Typo")
        correcting = correct_payment(tenant_a.id, "user-1", original.id, patch, today=TODAY)
        assert correcting.correction_reason == "Typo"

    def test_unknown_payment(self, db_session, tenant_a):
        with pytest.raises(NotFoundError) as excinfo:
            correct_payment(tenant_a.id, "user-1", "missing", _patch(0, amount="1.00"))
        assert excinfo.value.code == "PAYMENT_NOT_FOUND"

    def test_foreign_payment_looks_absent(self, db_session, tenant_b, original):
        with pytest.raises(NotFoundError):
            correct_payment(tenant_b.id, "user-b", original.id, _patch(0, amount="1.00"))


class TestCorrectionPolicy:

    def test_already_corrected_with_current_version(self, db_session, tenant_a, original):
        correct_payment(tenant_a.id, "user-1", original.id, _patch(0, amount="150.00"), today=TODAY)

        with pytest.raises(ValidationError) as excinfo:
            correct_payment(tenant_a.id, "user-1", original.id, _patch(1, amount="175.00"), today=TODAY)
        assert excinfo.value.code == "ALREADY_CORRECTED"

    def test_correction_rows_are_final(self, db_session, tenant_a, original):
        correcting = correct_payment(tenant_a.id, "user-1", original.id, _patch(0, amount="150.00"), today=TODAY)

        with pytest.raises(ValidationError) as excinfo:
            correct_payment(tenant_a.id, "user-1", correcting.id, _patch(0, amount="175.00"), today=TODAY)
        assert excinfo.value.code == "CORRECTION_NOT_CORRECTABLE"


class TestConcurrentCorrections:

    def test_stale_token_rejected_before_any_write(self, db_session, tenant_a, original):
        with pytest.raises(ConflictError):
            correct_payment(tenant_a.id, "user-1", original.id, _patch(3, amount="150.00"), today=TODAY)
        assert db_session.query(Payment).count() == 1

    def test_lost_race_rolls_back_correcting_insert(self, db_session, tenant_a, original, monkeypatch):
        """Another writer bumps the version between the first and second gate."""
        real_resolve = correction_service._resolve_fields

        def resolve_then_race(payment, patch, today):
            db_session.execute(
                text("UPDATE payments SET version = version + 1 WHERE id = :id"),
                {"id": payment.id},
            )
            db_session.commit()
            return real_resolve(payment, patch, today)

        monkeypatch.setattr(correction_service, "_resolve_fields", resolve_then_race)

        with pytest.raises(ConflictError) as excinfo:
            correct_payment(tenant_a.id, "user-1", original.id, _patch(0, amount="150.00"), today=TODAY)
        assert excinfo.value.code == "VERSION_CONFLICT"

        db_session.expire_all()
        assert db_session.query(Payment).count() == 1
        refreshed = db_session.get(Payment, original.id)
        assert refreshed.version == 1
        assert refreshed.is_corrected is False
        assert db_session.query(AuditEvent).filter_by(event_type="payment.corrected").count() == 0

    def test_two_correctors_one_winner(self, db_session, tenant_a, branch_a, original, monkeypatch):
        """Both read version 0; the rival commits first, so this call must lose."""
        real_resolve = correction_service._resolve_fields
        state = {"rival_done": False}

        def resolve_with_rival(payment, patch, today):
            if not state["rival_done"]:
                state["rival_done"] = True
                correct_payment(tenant_a.id, "rival", payment.id, _patch(0, amount="150.00"), today=TODAY)
            return real_resolve(payment, patch, today)

        monkeypatch.setattr(correction_service, "_resolve_fields", resolve_with_rival)

        with pytest.raises(ConflictError):
            correct_payment(tenant_a.id, "user-1", original.id, _patch(0, amount="175.00"), today=TODAY)

        db_session.expire_all()
        corrections = db_session.query(Payment).filter_by(is_correction=True).all()
        assert len(corrections) == 1
        assert corrections[0].created_by == "rival"
        assert db_session.get(Payment, original.id).version == 1
        assert monthly_revenue(tenant_a.id, branch_a.id, "2024-01").membership_revenue == Decimal("150.00")


class TestCorrectionAudit:

    def test_corrected_event_is_redacted(self, db_session, tenant_a, original):
        patch = CorrectionPatch(
            expected_version=0,
            amount=FieldPatch.provided("150.00"),
            note=FieldPatch.provided("private"),
            correction_reason="Typo in amount",
        )
        correcting = correct_payment(tenant_a.id, "user-1", original.id, patch, today=TODAY)

        event = db_session.query(AuditEvent).filter_by(event_type="payment.corrected").one()
        assert event.entity_id == correcting.id
        assert event.payload_dict["original_payment_id"] == original.id
        for forbidden in ("amount", "amount_cents", "note", "correction_reason"):
            assert forbidden not in event.payload_dict
        assert "private" not in event.payload

    def test_record_event_strips_sensitive_fields(self, db_session, tenant_a):
        event = audit_service.record_event(
            event_type="payment.corrected",
            tenant_id=tenant_a.id,
            entity_type="payment",
            entity_id="pay-1",
            amount="10.00",
            amount_cents=1000,
            note="private",
            correction_reason="Typo in amount",
            payment_method="CASH",
        )
        assert event.payload_dict == {"payment_method": "CASH"}
        assert "correction_reason" in audit_service.__doc__
