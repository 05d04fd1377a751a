"""Club role catalog.

Authorities and operation-team leads make up the leadership roster shown on
the homepage. Holders of those roles may only submit once per room.
"""

FACULTY_ROLES: tuple[str, ...] = ("Coordinator",)

CLUB_AUTHORITIES: tuple[str, ...] = (
    "President",
    "Vice President",
    "Technical Manager",
    "Event Manager",
    "Workshop Manager",
    "PR Manager",
    "General Secretary",
)

CLUB_OPERATION_TEAM: tuple[str, ...] = (
    "Technical Lead",
    "Event Lead",
    "Workshop Lead",
    "PR Lead",
    "Assistant Secretary",
)

GENERAL_CLUB_ROLES: tuple[str, ...] = (
    "Public Relation Team",
    "Design and Content Creation Team",
    "Documentation and Archive Team",
    "Logistics Team",
    "Technical Team",
    "Networking and Collaboration Team",
    "Member",
)

OTHER_ROLE = "Other"

ALL_ELECTION_ROLES: tuple[str, ...] = (
    *FACULTY_ROLES,
    *CLUB_AUTHORITIES,
    *CLUB_OPERATION_TEAM,
    *GENERAL_CLUB_ROLES,
    OTHER_ROLE,
)

RESTRICTED_ROLE_TITLES: frozenset[str] = frozenset((*CLUB_AUTHORITIES, *CLUB_OPERATION_TEAM))


def is_restricted_role(title: str) -> bool:
    return str(title or "").strip() in RESTRICTED_ROLE_TITLES


def role_type_for_title(title: str) -> str:
    """Return the Term role type ("Authority" or "Lead") for a position title."""
    return "Authority" if str(title or "").strip() in CLUB_AUTHORITIES else "Lead"


def role_id_for_title(title: str) -> str:
    return "-".join(str(title or "").split())


def can_skip_reviews(title: str) -> bool:
    """Faculty and general members may leave review positions unrated."""
    key = str(title or "").strip().lower()
    return any(key == role.lower() for role in (*FACULTY_ROLES, *GENERAL_CLUB_ROLES))


def is_own_position(position_title: str, own_position_title: str) -> bool:
    # Participants never vote on or review the position they hold themselves.
    return str(position_title or "").strip().lower() == str(own_position_title or "").strip().lower()
