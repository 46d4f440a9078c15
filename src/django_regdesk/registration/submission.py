"""Build and validate the registration submission payload.

The backend expects one canonical payload shape regardless of how the
registration form was structured.  :func:`build_submission_payload` maps a
journaled :class:`~django_regdesk.registration.models.Registration` plus the
gateway's payment identifiers into that shape, and
:func:`validate_submission_payload` checks it field by field before any
network call.  Client-side validation only saves a wasted round trip; the
backend re-validates authoritatively.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from django_regdesk.registration.competitions import NAME_TO_CANONICAL, SLUG_TO_CANONICAL
from django_regdesk.registration.models import (
    Registration,
    SubmissionParticipant,
    SubmissionPayload,
    parse_registration_payload,
)

logger = logging.getLogger(__name__)

CONTACT_RE = re.compile(r"\d{10}", re.ASCII)
EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

_PARTICIPANT_FIELDS = ("name", "department", "semester", "email", "contact")


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Result of :func:`validate_submission_payload`.

    Attributes:
        valid: ``True`` when every check passed.
        error: The first violation found, empty when valid.
    """

    valid: bool
    error: str = ""


def map_event_to_competition(display_name: str, slug: str | None = None) -> str:
    """Resolve the backend's canonical competition name.

    The slug is authoritative because it is a stable URL segment; the display
    name is only consulted when the slug is absent or unknown.  When neither
    matches, the display name is returned unchanged and the backend decides.

    Args:
        display_name: The event name shown to the user.
        slug: The registration page slug, if known.

    Returns:
        The canonical competition name.
    """
    if slug and slug in SLUG_TO_CANONICAL:
        return SLUG_TO_CANONICAL[slug]
    if display_name in NAME_TO_CANONICAL:
        return NAME_TO_CANONICAL[display_name]
    logger.debug("No canonical competition for %r (slug %r), using display name", display_name, slug)
    return display_name


def _payment_field(response: Mapping[str, Any], prefixed: str, plain: str) -> str:
    value = response.get(prefixed) or response.get(plain)
    return str(value) if value else ""


def build_submission_payload(
    registration: Registration | Mapping[str, Any],
    payment_response: Mapping[str, Any],
    competition: str,
) -> SubmissionPayload:
    """Build the canonical submission payload for a paid registration.

    Payment identifiers are read from either the ``razorpay_``-prefixed keys
    the widget reports or the plain keys of a journaled payment record.

    Args:
        registration: The registration (or a raw dict with a ``payload`` key).
        payment_response: Gateway success response or payment record dict.
        competition: Canonical competition name.

    Returns:
        The submission payload.  Team members without a name are dropped.

    Raises:
        ValueError: If the registration payload shape is not recognized.
    """
    if isinstance(registration, Registration):
        form = registration.payload
    else:
        form = parse_registration_payload(registration.get("payload"))

    payload = SubmissionPayload(
        razorpay_payment_id=_payment_field(payment_response, "razorpay_payment_id", "payment_id"),
        razorpay_order_id=_payment_field(payment_response, "razorpay_order_id", "order_id"),
        razorpay_signature=_payment_field(payment_response, "razorpay_signature", "signature"),
        competition=competition,
        institute=form.institute,
        participants=tuple(SubmissionParticipant.from_member(m) for m in form.participants),
    )
    logger.debug(
        "Built submission payload for %s with %d participant(s)",
        competition,
        len(payload.participants),
    )
    return payload


def validate_submission_payload(payload: SubmissionPayload) -> ValidationOutcome:
    """Validate a submission payload, stopping at the first violation.

    Checks, in order: payment id, order id, signature, competition,
    institute, a non-empty participant list, then for each participant the
    presence of name, department, semester, email and contact, the 10-digit
    contact format, and the email format.

    Args:
        payload: The payload to check.

    Returns:
        A :class:`ValidationOutcome`; participant errors name the 1-based
        participant index.
    """
    if not payload.razorpay_payment_id:
        return ValidationOutcome(False, "Missing razorpay_payment_id")
    if not payload.razorpay_order_id:
        return ValidationOutcome(False, "Missing razorpay_order_id")
    if not payload.razorpay_signature:
        return ValidationOutcome(False, "Missing razorpay_signature (required for backend verification)")
    if not payload.competition:
        return ValidationOutcome(False, "Missing competition name")
    if not payload.institute:
        return ValidationOutcome(False, "Missing institute")
    if not payload.participants:
        return ValidationOutcome(False, "Participants array cannot be empty")

    for number, participant in enumerate(payload.participants, start=1):
        for field_name in _PARTICIPANT_FIELDS:
            if not getattr(participant, field_name):
                return ValidationOutcome(False, f"Participant {number} missing {field_name}")
        if not CONTACT_RE.fullmatch(participant.contact):
            return ValidationOutcome(False, f"Participant {number} contact must be exactly 10 digits")
        if not EMAIL_RE.fullmatch(participant.email):
            return ValidationOutcome(False, f"Participant {number} email format is invalid")

    return ValidationOutcome(True)
