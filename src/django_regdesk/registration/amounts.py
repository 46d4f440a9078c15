"""Registration fee calculation and currency subunit conversion.

The payment gateway represents amounts as integers in the smallest currency
unit (paise for rupees).  Registration fees are whole rupees, charged per
participant at the configured ``per_person_rate``.
"""

from decimal import ROUND_HALF_UP, Decimal

from django_regdesk.settings import get_config

SUBUNITS_PER_UNIT = 100


def calculate_amount(participant_count: int, *, rate: int | None = None) -> int:
    """Return the payable amount for a number of participants.

    Args:
        participant_count: Number of people being registered.
        rate: Per-person fee override. Defaults to
            ``DJANGO_REGDESK["per_person_rate"]``.

    Returns:
        The total fee in whole currency units.
    """
    if rate is None:
        rate = get_config().per_person_rate
    return rate * participant_count


def to_subunit(amount: int | Decimal | str) -> int:
    """Convert a currency amount to the integer subunit the gateway expects.

    Rounds half away from zero, so ``Decimal("0.005")`` becomes ``1``.

    Args:
        amount: The amount in whole currency units.

    Returns:
        The amount in subunits (e.g. paise).
    """
    value = Decimal(str(amount)) * SUBUNITS_PER_UNIT
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_subunit(amount: int) -> Decimal:
    """Convert an integer subunit amount back to currency units.

    This is the inverse of :func:`to_subunit` for whole subunits.
    """
    return Decimal(amount) / SUBUNITS_PER_UNIT
