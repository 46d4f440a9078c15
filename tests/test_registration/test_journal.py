"""Tests for the local registration journal."""

import json
import re

import pytest
from django.core.cache import caches

from django_regdesk.registration.exceptions import JournalWriteError
from django_regdesk.registration.journal import (
    CacheJournalStorage,
    InMemoryJournalStorage,
    RegistrationJournal,
    generate_id,
)
from django_regdesk.registration.models import PaymentRecord, PaymentStatus
from tests.test_registration.factories import make_registration, make_team_registration


class BrokenStorage(InMemoryJournalStorage):
    def set(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")


def _payment(payment_id: str = "pay_1") -> PaymentRecord:
    return PaymentRecord(
        payment_id=payment_id,
        order_id="order_1",
        signature="sig",
        amount=100,
        created_at="2027-01-15T12:00:00+00:00",
        registration_id="reg-1",
        event="AutoCAD Competition",
    )


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_generate_id_is_unique() -> None:
    ids = {generate_id() for _ in range(10_000)}
    assert len(ids) == 10_000


@pytest.mark.unit
def test_generate_id_falls_back_without_secure_random() -> None:
    def no_uuid() -> str:
        raise NotImplementedError

    assert re.fullmatch(r"reg_\d+_[0-9a-z]{9}", generate_id(no_uuid))


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_keys_are_namespaced(journal: RegistrationJournal) -> None:
    assert journal.registrations_key == "technocratz_registrations_v1"
    assert journal.payments_key == "technocratz_payments_v1"
    assert journal.failed_submissions_key == "technocratz_failed_submissions_v1"


@pytest.mark.unit
def test_empty_journal_lists_nothing(journal: RegistrationJournal) -> None:
    assert journal.list_registrations() == []
    assert journal.list_payments() == []
    assert journal.list_failed_submissions() == []


@pytest.mark.unit
def test_append_and_list_registrations(journal: RegistrationJournal) -> None:
    first = make_registration()
    second = make_team_registration()
    journal.append_registration(first)
    journal.append_registration(second)

    assert journal.list_registrations() == [first, second]
    assert journal.list_registrations() == journal.list_registrations()


@pytest.mark.unit
def test_writes_versioned_envelope(journal: RegistrationJournal) -> None:
    journal.append_payment(_payment())
    stored = json.loads(journal.storage.data[journal.payments_key])
    assert stored["schema_version"] == 1
    assert stored["records"][0]["payment_id"] == "pay_1"
    assert journal.list_payments() == [_payment()]


@pytest.mark.unit
def test_reads_legacy_bare_list() -> None:
    legacy = [
        {
            "razorpay_payment_id": "pay_old",
            "razorpay_order_id": "order_old",
            "razorpay_signature": "sig",
            "amount": 100,
            "timestamp": "2026-12-01T00:00:00Z",
        }
    ]
    storage = InMemoryJournalStorage({"technocratz_payments_v1": json.dumps(legacy)})
    payments = RegistrationJournal(storage).list_payments()
    assert [p.payment_id for p in payments] == ["pay_old"]


@pytest.mark.unit
def test_corrupt_collection_lists_empty_and_append_resets(journal: RegistrationJournal) -> None:
    journal.storage.set(journal.registrations_key, "{not json")
    assert journal.list_registrations() == []

    registration = make_registration()
    journal.append_registration(registration)
    assert journal.list_registrations() == [registration]


@pytest.mark.unit
def test_write_failure_raises_journal_write_error() -> None:
    journal = RegistrationJournal(BrokenStorage())
    with pytest.raises(JournalWriteError, match="quota exceeded"):
        journal.append_registration(make_registration())


@pytest.mark.unit
def test_update_registration_amends_outcome(journal: RegistrationJournal) -> None:
    journal.append_registration(make_registration())
    updated = journal.update_registration("reg-1", payment_status=PaymentStatus.PAID, payment_id="pay_1")

    assert updated is not None
    assert updated.payment_status == PaymentStatus.PAID
    stored = journal.list_registrations()[0]
    assert stored.payment_status == "paid"
    assert stored.payment_id == "pay_1"


@pytest.mark.unit
def test_update_missing_registration_returns_none(journal: RegistrationJournal) -> None:
    assert journal.update_registration("missing", payment_status=PaymentStatus.PAID) is None


@pytest.mark.unit
def test_append_failed_submission(journal: RegistrationJournal) -> None:
    record = journal.append_failed_submission({"competition": "AutoCAD"}, "duplicate", "backend_rejection")

    assert record.stage == "backend_rejection"
    assert record.timestamp
    assert journal.list_failed_submissions() == [record]


@pytest.mark.unit
def test_custom_key_prefix() -> None:
    journal = RegistrationJournal(InMemoryJournalStorage(), key_prefix="fest")
    journal.append_payment(_payment())
    assert "fest_payments_v1" in journal.storage.data


# ---------------------------------------------------------------------------
# Django cache storage
# ---------------------------------------------------------------------------


def test_cache_storage_round_trip() -> None:
    caches["default"].clear()
    journal = RegistrationJournal(CacheJournalStorage())
    registration = make_registration()
    journal.append_registration(registration)

    assert RegistrationJournal(CacheJournalStorage("default")).list_registrations() == [registration]
    caches["default"].clear()
