"""
User Module
===========

Identity sync between the external identity provider and roster users.

Exports:
- AuthenticatedUser: Identity claims supplied by the provider
- UserRegistrationService: register_identity upsert and user lookups
"""

from .identity import AuthenticatedUser
from .registration_service import UserRegistrationService

__all__ = [
    "AuthenticatedUser",
    "UserRegistrationService",
]
