"""
Database Model Enums
====================

Enumerations for categorical roster columns. Stored as strings
(non-native enums) so the schema is portable across PostgreSQL and SQLite.
"""

from __future__ import annotations

import enum


class MemberRole(str, enum.Enum):
    """Role of an ACTIVE guild member. The guild leader is always an OFFICER."""

    MEMBER = "MEMBER"
    OFFICER = "OFFICER"


class MemberStatus(str, enum.Enum):
    """Membership lifecycle: PENDING (invited) -> ACTIVE (accepted)."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class CharacterRoleType(str, enum.Enum):
    """
    Activity roles a character can hold.

    WOE and WOE_TE are mutually exclusive; PVE combines with either.
    """

    WOE = "WOE"
    WOE_TE = "WOE_TE"
    PVE = "PVE"

    @property
    def is_exclusive(self) -> bool:
        return self in EXCLUSIVE_CHARACTER_ROLES


EXCLUSIVE_CHARACTER_ROLES = frozenset({CharacterRoleType.WOE, CharacterRoleType.WOE_TE})
