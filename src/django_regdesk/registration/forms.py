"""Forms for the registration app.

Single-participant competitions collect one :class:`LeaderForm`; team
competitions collect a :class:`LeaderForm` for the leader plus one
:class:`MemberForm` per member slot.  :func:`validate_registration_payload`
runs the right combination for a competition and returns the parsed
registration payload.
"""

from collections.abc import Mapping
from typing import Any

from django import forms
from django.core.exceptions import ValidationError

from django_regdesk.registration.competitions import Competition
from django_regdesk.registration.models import RegistrationPayload, parse_registration_payload

_MEMBER_FIELDS = ("name", "email", "contact", "branch", "semester")


class MemberForm(forms.Form):
    """A team member: everything but the institute."""

    name = forms.CharField(
        min_length=2,
        max_length=100,
        error_messages={"min_length": "Name must be at least 2 characters"},
    )
    email = forms.EmailField(error_messages={"invalid": "Invalid email address"})
    contact = forms.RegexField(
        regex=r"^[0-9]{10}$",
        error_messages={"invalid": "Contact must be exactly 10 digits"},
    )
    branch = forms.CharField(max_length=100, error_messages={"required": "Branch is required"})
    semester = forms.CharField(max_length=20, error_messages={"required": "Semester is required"})


class LeaderForm(MemberForm):
    """A single participant or team leader, who also names the institute."""

    institute = forms.CharField(
        min_length=2,
        max_length=200,
        error_messages={"required": "Institute is required"},
    )


def _collect(errors: dict[str, list[str]], form: forms.Form, prefix: str) -> None:
    for field_name, messages in form.errors.items():
        errors[f"{prefix}{field_name}"] = list(messages)


def _is_blank(data: Mapping[str, Any]) -> bool:
    return not any(str(data.get(name) or "").strip() for name in _MEMBER_FIELDS)


def validate_registration_payload(competition: Competition, data: object) -> RegistrationPayload:
    """Validate a submitted registration form for *competition*.

    Team competitions expect ``{"leader": {...}, "members": [...]}``; all
    others expect a flat participant dict.  For "up to" teams, member slots
    left completely blank are dropped.  For fixed-size teams every slot must
    be filled.

    Args:
        competition: The competition being registered for.
        data: The raw form data.

    Returns:
        The cleaned registration payload.

    Raises:
        ValidationError: With a dict of field errors keyed ``name``,
            ``leader.email``, ``members.1.contact`` and so on.
    """
    if not isinstance(data, Mapping):
        msg = "Registration data must be an object"
        raise ValidationError(msg)

    errors: dict[str, list[str]] = {}

    if not competition.is_team:
        form = LeaderForm(data)
        if not form.is_valid():
            _collect(errors, form, "")
            raise ValidationError(errors)
        return parse_registration_payload(form.cleaned_data)

    leader_data = data.get("leader")
    leader_form = LeaderForm(leader_data if isinstance(leader_data, Mapping) else {})
    if not leader_form.is_valid():
        _collect(errors, leader_form, "leader.")

    raw_members = data.get("members") or []
    if not isinstance(raw_members, (list, tuple)):
        errors["members"] = ["Members must be a list"]
        raw_members = []

    members: list[dict[str, Any]] = []
    filled = 0
    for idx, member in enumerate(raw_members, start=1):
        member = member if isinstance(member, Mapping) else {}
        if not competition.exact_size and _is_blank(member):
            continue
        filled += 1
        member_form = MemberForm(member)
        if member_form.is_valid():
            members.append(member_form.cleaned_data)
        else:
            _collect(errors, member_form, f"members.{idx}.")

    if competition.exact_size and len(raw_members) != competition.member_slots:
        errors.setdefault("members", []).append(
            f"{competition.display_name} requires exactly {competition.max_participants} participants"
        )
    elif filled > competition.member_slots:
        errors.setdefault("members", []).append(
            f"{competition.display_name} allows at most {competition.max_participants} participants"
        )

    if errors:
        raise ValidationError(errors)
    return parse_registration_payload({"leader": leader_form.cleaned_data, "members": members})
