"""Typed records for registrations, payments, and submissions.

Registrations arrive in one of three payload shapes, modelled as a tagged
union (:data:`RegistrationPayload`):

* :class:`SingleRegistration` -- flat ``{name, email, contact, branch, semester, institute}``
* :class:`TeamRegistration` -- ``{leader: {...}, members: [...]}``
* :class:`ParticipantListRegistration` -- historical ``{participants: [...]}``

All records are frozen dataclasses with ``from_dict()``/``to_dict()`` for the
JSON journal and the wire format.  Readers are lenient about legacy key
names (``department`` for ``branch``, ``razorpay_payment_id`` for
``payment_id``, camelCase registration keys); writers emit one canonical
spelling.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Self

from django_regdesk.registration.exceptions import (
    BackendLogicError,
    BackendRejectionError,
    CorsError,
    NetworkError,
    ParseError,
    PayloadValidationError,
    SubmissionError,
)


def _text(value: object) -> str:
    """Return *value* as a string, mapping ``None`` to ``""``."""
    if value is None:
        return ""
    return str(value)


def _first(data: Mapping[str, Any], *keys: str) -> str:
    """Return the first truthy value among *keys* in *data* as text."""
    for key in keys:
        value = data.get(key)
        if value:
            return _text(value)
    return ""


class PaymentStatus(enum.StrEnum):
    """Payment outcome recorded on a journaled registration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SubmissionStage(enum.StrEnum):
    """Pipeline stage that produced a submission failure."""

    VALIDATION = "validation"
    PARSE = "parse"
    BACKEND_REJECTION = "backend_rejection"
    BACKEND_ERROR = "backend_error"
    NETWORK_ERROR = "network_error"
    CORS_ERROR = "cors_error"
    UNKNOWN_ERROR = "unknown_error"


@dataclass(frozen=True, slots=True)
class Member:
    """One person on a registration form.

    ``institute`` is only collected for the team leader or a single
    participant; plain team members leave it empty.
    """

    name: str = ""
    email: str = ""
    contact: str = ""
    branch: str = ""
    semester: str = ""
    institute: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Construct a ``Member`` from a form or journal dict.

        Accepts ``department`` as an alias for ``branch``.
        """
        return cls(
            name=_text(data.get("name")),
            email=_text(data.get("email")),
            contact=_text(data.get("contact")),
            branch=_first(data, "branch", "department"),
            semester=_text(data.get("semester")),
            institute=_text(data.get("institute")),
        )

    def to_dict(self) -> dict[str, str]:
        """Serialize to the form-payload shape."""
        return {
            "name": self.name,
            "email": self.email,
            "contact": self.contact,
            "branch": self.branch,
            "semester": self.semester,
            "institute": self.institute,
        }


@dataclass(frozen=True, slots=True)
class SingleRegistration:
    """A single-participant registration."""

    participant: Member

    @property
    def institute(self) -> str:
        return self.participant.institute

    @property
    def participants(self) -> tuple[Member, ...]:
        """All named participants, primary first."""
        return (self.participant,)

    def to_dict(self) -> dict[str, Any]:
        return self.participant.to_dict()


@dataclass(frozen=True, slots=True)
class TeamRegistration:
    """A team registration: a leader plus zero or more members.

    Members with an empty name are unfilled optional slots and are ignored
    by :attr:`participants`.
    """

    leader: Member
    members: tuple[Member, ...] = ()

    @property
    def institute(self) -> str:
        return self.leader.institute

    @property
    def participants(self) -> tuple[Member, ...]:
        """Leader followed by every named member, in form order."""
        return (self.leader, *(m for m in self.members if m.name))

    def to_dict(self) -> dict[str, Any]:
        return {
            "leader": self.leader.to_dict(),
            "members": [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True, slots=True)
class ParticipantListRegistration:
    """Historical registration shape carrying a flat participant list."""

    participants_list: tuple[Member, ...] = ()
    payload_institute: str = ""

    @property
    def institute(self) -> str:
        if self.payload_institute:
            return self.payload_institute
        return next((p.institute for p in self.participants_list if p.institute), "")

    @property
    def participants(self) -> tuple[Member, ...]:
        """Every named participant, in list order."""
        return tuple(p for p in self.participants_list if p.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "participants": [
                {
                    "name": p.name,
                    "department": p.branch,
                    "semester": p.semester,
                    "email": p.email,
                    "contact": p.contact,
                }
                for p in self.participants_list
            ],
            "institute": self.payload_institute,
        }


type RegistrationPayload = SingleRegistration | TeamRegistration | ParticipantListRegistration

_PAYLOAD_TYPES = (SingleRegistration, TeamRegistration, ParticipantListRegistration)


def parse_registration_payload(data: object) -> RegistrationPayload:
    """Resolve a raw form payload into its :data:`RegistrationPayload` variant.

    Shapes are tried in order: a ``participants`` list, a flat ``name``, then
    a nested ``leader``.  Already-parsed payloads are returned unchanged.

    Args:
        data: A payload dict or an existing payload object.

    Returns:
        The matching payload variant.

    Raises:
        ValueError: If *data* matches none of the known shapes.
    """
    if isinstance(data, _PAYLOAD_TYPES):
        return data
    if not isinstance(data, Mapping):
        msg = f"Registration payload must be a mapping, got {type(data).__name__}"
        raise ValueError(msg)

    participants = data.get("participants")
    if isinstance(participants, (list, tuple)):
        return ParticipantListRegistration(
            participants_list=tuple(Member.from_dict(p) for p in participants if isinstance(p, Mapping)),
            payload_institute=_text(data.get("institute")),
        )

    if data.get("name"):
        return SingleRegistration(participant=Member.from_dict(data))

    leader = data.get("leader")
    if isinstance(leader, Mapping):
        members = data.get("members") or []
        return TeamRegistration(
            leader=Member.from_dict(leader),
            members=tuple(Member.from_dict(m) for m in members if isinstance(m, Mapping)),
        )

    msg = "Unrecognized registration payload shape: expected 'participants', 'name', or 'leader'"
    raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class Registration:
    """A registration attempt, journaled before payment starts.

    Attributes:
        id: Opaque client-generated identifier.
        event: Competition slug.
        participants_count: Number of people registered (at least 1).
        amount_paid: Fee in whole rupees.
        payload: The registration form payload.
        created_at: ISO-8601 creation timestamp.
        payment_status: Outcome of the checkout, amended after it resolves.
        payment_id: Gateway payment id once paid.
    """

    id: str
    event: str
    participants_count: int
    amount_paid: int
    payload: RegistrationPayload
    created_at: str
    payment_status: str = PaymentStatus.PENDING
    payment_id: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Construct a ``Registration`` from a journal dict.

        Accepts the camelCase keys written by older clients.

        Raises:
            KeyError: If ``id`` or ``payload`` is missing.
            ValueError: If the payload shape is not recognized.
        """
        return cls(
            id=_text(data["id"]),
            event=_text(data.get("event")),
            participants_count=int(data.get("participants_count", data.get("participantsCount", 1))),
            amount_paid=int(data.get("amount_paid", data.get("amountPaid", 0))),
            payload=parse_registration_payload(data["payload"]),
            created_at=_first(data, "created_at", "createdAt"),
            payment_status=_text(data.get("payment_status")) or PaymentStatus.PENDING,
            payment_id=_text(data.get("payment_id")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "participants_count": self.participants_count,
            "amount_paid": self.amount_paid,
            "payload": self.payload.to_dict(),
            "created_at": self.created_at,
            "payment_status": str(self.payment_status),
            "payment_id": self.payment_id,
        }


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """A successful gateway payment.

    Only created from the widget's success callback, so ``status`` is always
    ``"success"``.  ``amount`` is in subunits (paise).
    """

    payment_id: str
    order_id: str
    signature: str
    amount: int
    created_at: str
    registration_id: str
    event: str
    currency: str = "INR"
    status: str = "success"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Construct a ``PaymentRecord`` from a journal dict or gateway response.

        Accepts both the canonical names and the ``razorpay_``-prefixed aliases.
        """
        return cls(
            payment_id=_first(data, "payment_id", "razorpay_payment_id"),
            order_id=_first(data, "order_id", "razorpay_order_id"),
            signature=_first(data, "signature", "razorpay_signature"),
            amount=int(data.get("amount") or 0),
            created_at=_text(data.get("created_at")),
            registration_id=_text(data.get("registration_id")),
            event=_text(data.get("event")),
            currency=_text(data.get("currency")) or "INR",
            status=_text(data.get("status")) or "success",
        )

    def to_dict(self, *, legacy_aliases: bool = False) -> dict[str, Any]:
        """Serialize the record.

        Args:
            legacy_aliases: Also emit ``razorpay_payment_id``,
                ``razorpay_order_id`` and ``razorpay_signature`` for readers
                that still expect the prefixed names.
        """
        data: dict[str, Any] = {
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "signature": self.signature,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "created_at": self.created_at,
            "registration_id": self.registration_id,
            "event": self.event,
        }
        if legacy_aliases:
            data["razorpay_payment_id"] = self.payment_id
            data["razorpay_order_id"] = self.order_id
            data["razorpay_signature"] = self.signature
        return data


@dataclass(frozen=True, slots=True)
class SubmissionParticipant:
    """One participant entry in the backend submission payload."""

    name: str
    department: str
    semester: str
    email: str
    contact: str

    @classmethod
    def from_member(cls, member: Member) -> Self:
        return cls(
            name=member.name,
            department=member.branch,
            semester=member.semester,
            email=member.email,
            contact=member.contact,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "department": self.department,
            "semester": self.semester,
            "email": self.email,
            "contact": self.contact,
        }


@dataclass(frozen=True, slots=True)
class SubmissionPayload:
    """Canonical registration submission sent to the backend.

    ``participants[0]`` is always the single participant or the team leader.
    """

    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str
    competition: str
    institute: str
    participants: tuple[SubmissionParticipant, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "razorpay_payment_id": self.razorpay_payment_id,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_signature": self.razorpay_signature,
            "competition": self.competition,
            "institute": self.institute,
            "participants": [p.to_dict() for p in self.participants],
        }


@dataclass(frozen=True, slots=True)
class FailedSubmissionRecord:
    """A paid registration the backend did not accept.

    Informational only; nothing retries these automatically.
    """

    payload: dict[str, Any]
    error: str
    stage: str
    timestamp: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            payload=dict(data.get("payload") or {}),
            error=_text(data.get("error")),
            stage=_text(data.get("stage")),
            timestamp=_text(data.get("timestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.payload,
            "error": self.error,
            "stage": self.stage,
            "timestamp": self.timestamp,
        }


_STAGE_ERRORS: dict[str, type[SubmissionError]] = {
    SubmissionStage.VALIDATION: PayloadValidationError,
    SubmissionStage.PARSE: ParseError,
    SubmissionStage.BACKEND_REJECTION: BackendRejectionError,
    SubmissionStage.BACKEND_ERROR: BackendLogicError,
    SubmissionStage.NETWORK_ERROR: NetworkError,
    SubmissionStage.CORS_ERROR: CorsError,
}


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    """Outcome of posting a registration to the submission backend.

    Attributes:
        success: ``True`` when the backend accepted the registration.
        stage: The failing pipeline stage (see :class:`SubmissionStage`);
            empty on success.  Backend-supplied stages are passed through.
        error: Human-readable failure message.
        data: Parsed backend response body, when one was received.
    """

    success: bool
    stage: str = ""
    error: str = ""
    data: dict[str, Any] | None = field(default=None)

    @classmethod
    def ok(cls, data: dict[str, Any]) -> Self:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, stage: str, error: str, data: dict[str, Any] | None = None) -> Self:
        return cls(success=False, stage=str(stage), error=error, data=data)

    @property
    def registration_number(self) -> str:
        """Backend-issued serial number (``srNo``/``sr_no``), or ``""``."""
        if not self.data:
            return ""
        return _first(
            self.data,
            "srNo",
            "sr_no",
            "registrationNumber",
            "registration_number",
            "serial_number",
        )

    def raise_for_failure(self) -> None:
        """Raise the :class:`SubmissionError` subclass matching :attr:`stage`.

        Does nothing for successful results.
        """
        if self.success:
            return
        exc_class = _STAGE_ERRORS.get(self.stage, SubmissionError)
        raise exc_class(self.error or "Submission failed", stage=self.stage or None)
