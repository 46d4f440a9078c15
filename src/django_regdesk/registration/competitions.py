"""Catalog of the competitions that accept registrations.

Each competition is identified by the stable URL slug of its registration
page.  The backend knows competitions by a canonical CamelCase name, which
is resolved from the slug first and the display name second.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Competition:
    """A competition open for registration.

    Attributes:
        slug: URL segment of the registration page (e.g. ``"autocad"``).
        display_name: Human-readable name shown to users and on receipts.
        canonical_name: Name the submission backend expects.
        max_participants: Largest team size, leader included.
        is_team: ``True`` when the form collects a leader plus members.
        exact_size: ``True`` when every member slot must be filled.
    """

    slug: str
    display_name: str
    canonical_name: str
    max_participants: int = 1
    is_team: bool = False
    exact_size: bool = False

    @property
    def member_slots(self) -> int:
        """Number of non-leader member slots on the team form."""
        return self.max_participants - 1 if self.is_team else 0


COMPETITIONS: tuple[Competition, ...] = (
    Competition("blind-typing", "Blind Typing Competition", "BlindTyping"),
    Competition("hack-your-way", "Hack Your Way Competition", "HackYourWay"),
    Competition("autocad", "AutoCAD Competition", "AutoCAD"),
    Competition("robo-race", "Robo Race Competition", "RoboRace", max_participants=2, is_team=True),
    Competition(
        "bridge-building",
        "Bridge Building Competition",
        "BridgeBuilding",
        max_participants=2,
        is_team=True,
        exact_size=True,
    ),
    Competition(
        "technical-mimic",
        "Technical Mimic Competition",
        "TechnicalMimic",
        max_participants=4,
        is_team=True,
        exact_size=True,
    ),
)

SLUG_TO_CANONICAL: dict[str, str] = {c.slug: c.canonical_name for c in COMPETITIONS}
NAME_TO_CANONICAL: dict[str, str] = {c.display_name: c.canonical_name for c in COMPETITIONS}


def get_competition(slug: str) -> Competition:
    """Return the competition registered under *slug*.

    Raises:
        LookupError: If no competition uses that slug.
    """
    for competition in COMPETITIONS:
        if competition.slug == slug:
            return competition
    msg = f"Unknown competition: {slug!r}"
    raise LookupError(msg)
