"""Registration service: validate, price and journal a registration, then pay.

All methods are stateless; collaborators are passed in or built from
configuration.
"""

import logging
from collections.abc import Mapping
from typing import Any

from django.utils import timezone

from django_regdesk.registration.amounts import calculate_amount, to_subunit
from django_regdesk.registration.competitions import get_competition
from django_regdesk.registration.forms import validate_registration_payload
from django_regdesk.registration.journal import RegistrationJournal
from django_regdesk.registration.models import Registration
from django_regdesk.registration.services.checkout import (
    CheckoutOrchestrator,
    CheckoutRequest,
    CheckoutResult,
)

logger = logging.getLogger(__name__)


class RegistrationService:
    """Stateless service for creating and paying for registrations."""

    @staticmethod
    def create_registration(
        event_slug: str,
        payload: Mapping[str, Any],
        journal: RegistrationJournal | None = None,
    ) -> Registration:
        """Validate a registration form and journal it as pending.

        Args:
            event_slug: Slug of the competition being registered for.
            payload: Raw form data (flat for individual events, leader plus
                members for team events).
            journal: Journal to write to. Defaults to the configured one.

        Returns:
            The journaled pending registration.

        Raises:
            LookupError: If *event_slug* is not a known competition.
            django.core.exceptions.ValidationError: If the form is invalid.
            JournalWriteError: If the pending record cannot be written.
        """
        competition = get_competition(event_slug)
        form = validate_registration_payload(competition, payload)
        journal = journal or RegistrationJournal()

        participants_count = max(len(form.participants), 1)
        registration = Registration(
            id=journal.generate_id(),
            event=competition.slug,
            participants_count=participants_count,
            amount_paid=calculate_amount(participants_count),
            payload=form,
            created_at=timezone.now().isoformat(),
        )
        journal.append_registration(registration)
        logger.info(
            "Created registration %s for %s (%d participant(s), amount %d)",
            registration.id,
            competition.slug,
            participants_count,
            registration.amount_paid,
        )
        return registration

    @staticmethod
    def register_and_pay(
        event_slug: str,
        payload: Mapping[str, Any],
        *,
        journal: RegistrationJournal | None = None,
        orchestrator: CheckoutOrchestrator | None = None,
    ) -> CheckoutResult:
        """Journal a registration and run the checkout for it.

        Args:
            event_slug: Slug of the competition being registered for.
            payload: Raw form data.
            journal: Journal to write to. Defaults to the orchestrator's.
            orchestrator: Checkout orchestrator. Defaults to a new one sharing
                *journal*.

        Returns:
            The checkout result.

        Raises:
            LookupError: If *event_slug* is not a known competition.
            django.core.exceptions.ValidationError: If the form is invalid.
            JournalWriteError: If the pending record cannot be written.
            CheckoutInProgressError: If *orchestrator* is already busy.
        """
        if orchestrator is None:
            orchestrator = CheckoutOrchestrator(journal=journal)
        journal = journal or orchestrator.journal

        registration = RegistrationService.create_registration(event_slug, payload, journal=journal)
        competition = get_competition(event_slug)
        return orchestrator.start_payment(
            CheckoutRequest(
                amount_subunit=to_subunit(registration.amount_paid),
                event_name=competition.display_name,
                registration=registration,
            )
        )
