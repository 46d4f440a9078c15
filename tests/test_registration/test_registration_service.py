"""Tests for RegistrationService."""

import pytest
from django.core.exceptions import ValidationError
from django.test import override_settings

from django_regdesk.registration.exceptions import JournalWriteError
from django_regdesk.registration.journal import InMemoryJournalStorage, RegistrationJournal
from django_regdesk.registration.models import PaymentStatus, TeamRegistration
from django_regdesk.registration.services.checkout import CheckoutOrchestrator, CheckoutState
from django_regdesk.registration.services.registration import RegistrationService
from django_regdesk.registration.widget import CheckoutScriptLoader
from tests.test_registration.factories import ORDER_URL, SUBMISSION_URL, FakeBackend, WidgetFactory

SINGLE = {
    "name": "Asha Rao",
    "email": "asha@example.com",
    "contact": "9876543210",
    "branch": "Computer",
    "semester": "5",
    "institute": "Agnel Polytechnic",
}


class ReadOnlyStorage(InMemoryJournalStorage):
    def set(self, key: str, value: str) -> None:
        raise PermissionError("read-only")


class TestCreateRegistration:
    def test_journals_pending_registration(self, journal):
        registration = RegistrationService.create_registration("autocad", SINGLE, journal=journal)

        assert registration.event == "autocad"
        assert registration.participants_count == 1
        assert registration.amount_paid == 1
        assert registration.payment_status == PaymentStatus.PENDING
        assert registration.created_at
        assert journal.list_registrations() == [registration]

    def test_team_amount_counts_named_participants(self, journal):
        payload = {"leader": SINGLE, "members": [dict(SINGLE, name="Member Two")]}
        with override_settings(DJANGO_REGDESK={"per_person_rate": 100}):
            registration = RegistrationService.create_registration("robo-race", payload, journal=journal)

        assert isinstance(registration.payload, TeamRegistration)
        assert registration.participants_count == 2
        assert registration.amount_paid == 200

    def test_unknown_event(self, journal):
        with pytest.raises(LookupError):
            RegistrationService.create_registration("chess", SINGLE, journal=journal)

    def test_invalid_form_is_not_journaled(self, journal):
        with pytest.raises(ValidationError):
            RegistrationService.create_registration("autocad", dict(SINGLE, contact="123"), journal=journal)
        assert journal.list_registrations() == []

    def test_journal_write_failure_propagates(self):
        with pytest.raises(JournalWriteError):
            RegistrationService.create_registration(
                "autocad", SINGLE, journal=RegistrationJournal(ReadOnlyStorage())
            )


class TestRegisterAndPay:
    def test_end_to_end(self, journal, api_client, backend: FakeBackend):
        orchestrator = CheckoutOrchestrator(
            client=api_client,
            journal=journal,
            loader=CheckoutScriptLoader(factory=WidgetFactory(lambda w: w.succeed())),
        )
        result = RegistrationService.register_and_pay("autocad", SINGLE, orchestrator=orchestrator)

        assert result.success
        assert result.state == CheckoutState.SUCCEEDED
        assert backend.bodies(ORDER_URL) == [{"amount": 100}]
        assert backend.bodies(SUBMISSION_URL)[0]["competition"] == "AutoCAD"
        stored = journal.list_registrations()
        assert len(stored) == 1
        assert stored[0].payment_status == PaymentStatus.PAID
        assert journal.list_payments()[0].registration_id == stored[0].id

    def test_cancelled_checkout(self, journal, api_client):
        orchestrator = CheckoutOrchestrator(
            client=api_client,
            journal=journal,
            loader=CheckoutScriptLoader(factory=WidgetFactory(lambda w: w.dismiss())),
        )
        result = RegistrationService.register_and_pay("autocad", SINGLE, journal=journal, orchestrator=orchestrator)

        assert result.error == "cancelled"
        assert journal.list_registrations()[0].payment_status == PaymentStatus.CANCELLED
