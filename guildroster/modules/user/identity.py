"""
Authenticated identity handed over by the external identity provider.

The roster engine never authenticates anyone itself; it trusts this value
and syncs it into a User row via UserRegistrationService.register_identity().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuthenticatedUser:
    """
    Identity claims for one logged-in user.

    Attributes:
        external_id: Stable subject id issued by the identity provider
        name: Display name
        contact: Unique contact handle
        age: Age in years
        email: Optional email address
        id: Roster user id, once known
    """

    external_id: str
    name: str
    contact: str
    age: int
    email: Optional[str] = None
    id: Optional[int] = None
