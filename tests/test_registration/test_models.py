"""Tests for registration records, payload shapes and the competition catalog."""

import pytest

from django_regdesk.registration.competitions import COMPETITIONS, get_competition
from django_regdesk.registration.exceptions import BackendRejectionError, NetworkError, SubmissionError
from django_regdesk.registration.models import (
    Member,
    ParticipantListRegistration,
    PaymentRecord,
    PaymentStatus,
    Registration,
    SingleRegistration,
    SubmissionResult,
    TeamRegistration,
    parse_registration_payload,
)

# ---------------------------------------------------------------------------
# Competition catalog
# ---------------------------------------------------------------------------


class TestCompetitions:
    @pytest.mark.unit
    def test_catalog_has_six_unique_slugs(self):
        slugs = [c.slug for c in COMPETITIONS]
        assert len(slugs) == 6
        assert len(set(slugs)) == 6

    @pytest.mark.unit
    def test_team_member_slots(self):
        assert get_competition("autocad").member_slots == 0
        assert get_competition("robo-race").member_slots == 1
        assert get_competition("technical-mimic").member_slots == 3

    @pytest.mark.unit
    def test_unknown_slug(self):
        with pytest.raises(LookupError, match="Unknown competition"):
            get_competition("chess")


# ---------------------------------------------------------------------------
# Payload shapes
# ---------------------------------------------------------------------------


class TestParseRegistrationPayload:
    @pytest.mark.unit
    def test_flat_shape_is_single(self):
        payload = parse_registration_payload(
            {"name": "Asha", "email": "a@b.co", "contact": "9876543210", "branch": "IT", "institute": "APV"}
        )
        assert isinstance(payload, SingleRegistration)
        assert payload.institute == "APV"
        assert [p.name for p in payload.participants] == ["Asha"]

    @pytest.mark.unit
    def test_leader_shape_is_team_and_drops_unnamed_members(self):
        payload = parse_registration_payload(
            {
                "leader": {"name": "Lead", "institute": "APV"},
                "members": [{"name": "Two"}, {"name": ""}, "junk"],
            }
        )
        assert isinstance(payload, TeamRegistration)
        assert [p.name for p in payload.participants] == ["Lead", "Two"]
        assert len(payload.members) == 2

    @pytest.mark.unit
    def test_participants_shape_wins_over_name(self):
        payload = parse_registration_payload(
            {
                "name": "ignored",
                "participants": [{"name": "P1", "department": "Civil", "institute": "Inst"}, {"name": "P2"}],
            }
        )
        assert isinstance(payload, ParticipantListRegistration)
        assert payload.participants[0].branch == "Civil"
        assert payload.institute == "Inst"

    @pytest.mark.unit
    def test_participants_shape_prefers_payload_institute(self):
        payload = parse_registration_payload(
            {"participants": [{"name": "P1", "institute": "Inner"}], "institute": "Outer"}
        )
        assert payload.institute == "Outer"

    @pytest.mark.unit
    def test_parsed_payload_returned_unchanged(self):
        single = SingleRegistration(Member(name="Asha"))
        assert parse_registration_payload(single) is single

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [{}, {"email": "x@y.z"}, None, ["name"]])
    def test_unknown_shapes_rejected(self, data):
        with pytest.raises(ValueError):
            parse_registration_payload(data)


# ---------------------------------------------------------------------------
# Journal records
# ---------------------------------------------------------------------------


class TestRegistration:
    @pytest.mark.unit
    def test_to_dict_from_dict(self):
        registration = Registration(
            id="r1",
            event="robo-race",
            participants_count=2,
            amount_paid=2,
            payload=TeamRegistration(Member(name="Lead"), (Member(name="Two"),)),
            created_at="2027-01-15T12:00:00+00:00",
        )
        assert Registration.from_dict(registration.to_dict()) == registration

    @pytest.mark.unit
    def test_from_dict_accepts_camel_case(self):
        registration = Registration.from_dict(
            {
                "id": "r2",
                "event": "autocad",
                "participantsCount": 1,
                "amountPaid": 1,
                "payload": {"name": "Solo"},
                "createdAt": "2027-01-15",
            }
        )
        assert registration.participants_count == 1
        assert registration.amount_paid == 1
        assert registration.created_at == "2027-01-15"
        assert registration.payment_status == PaymentStatus.PENDING

    @pytest.mark.unit
    def test_from_dict_requires_payload(self):
        with pytest.raises(KeyError):
            Registration.from_dict({"id": "r3"})


class TestPaymentRecord:
    @pytest.mark.unit
    def test_from_dict_accepts_prefixed_aliases(self):
        record = PaymentRecord.from_dict(
            {"razorpay_payment_id": "pay_1", "razorpay_order_id": "order_1", "razorpay_signature": "sig", "amount": 100}
        )
        assert (record.payment_id, record.order_id, record.signature) == ("pay_1", "order_1", "sig")
        assert record.status == "success"
        assert record.currency == "INR"

    @pytest.mark.unit
    def test_legacy_aliases_are_opt_in(self):
        record = PaymentRecord("pay_1", "order_1", "sig", 100, "now", "r1", "AutoCAD Competition")
        assert "razorpay_payment_id" not in record.to_dict()
        assert record.to_dict(legacy_aliases=True)["razorpay_payment_id"] == "pay_1"


class TestSubmissionResult:
    @pytest.mark.unit
    @pytest.mark.parametrize("key", ["srNo", "sr_no", "registration_number"])
    def test_registration_number_keys(self, key):
        assert SubmissionResult.ok({"success": True, key: "A-042"}).registration_number == "A-042"

    @pytest.mark.unit
    def test_registration_number_missing(self):
        assert SubmissionResult.ok({"success": True}).registration_number == ""
        assert SubmissionResult.failure("parse", "bad").registration_number == ""

    @pytest.mark.unit
    def test_raise_for_failure_maps_stage(self):
        with pytest.raises(BackendRejectionError, match="duplicate") as exc_info:
            SubmissionResult.failure("backend_rejection", "duplicate").raise_for_failure()
        assert exc_info.value.stage == "backend_rejection"

        with pytest.raises(NetworkError):
            SubmissionResult.failure("network_error", "offline").raise_for_failure()

    @pytest.mark.unit
    def test_raise_for_failure_unknown_stage_keeps_stage(self):
        with pytest.raises(SubmissionError) as exc_info:
            SubmissionResult.failure("payment_verification", "bad signature").raise_for_failure()
        assert exc_info.value.stage == "payment_verification"

    @pytest.mark.unit
    def test_raise_for_failure_noop_on_success(self):
        SubmissionResult.ok({}).raise_for_failure()
