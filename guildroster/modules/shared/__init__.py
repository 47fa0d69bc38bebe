"""
Shared domain foundations for every roster module.

- BaseService: logging, config access, event emission
- BaseRepository: type-safe database access patterns
- Domain exceptions: the NotFound / Forbidden / Conflict / InvalidState /
  ValidationError taxonomy

Usage
-----
    from guildroster.modules.shared import BaseService, NotAMemberError
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService, ConfigurationError
from .exceptions import (
    AlreadyLeadsAPartyError,
    AlreadyMemberError,
    CannotDemoteLeaderError,
    CharacterAlreadyInPartyError,
    CharacterNotFoundError,
    CharacterNotInGuildError,
    CharacterNotInPartyError,
    CharacterOrphanedError,
    ConflictError,
    CrossGuildReassignmentDeniedError,
    DuplicateCharacterNameError,
    DuplicateIdentityError,
    DuplicateNameError,
    DuplicatePartyNameError,
    DuplicateTagNameError,
    ErrorSeverity,
    ExclusiveRoleConflictError,
    ForbiddenError,
    GuildNotEmptyError,
    GuildNotFoundError,
    InvalidStateError,
    LeaderCannotLeaveError,
    NoPendingInviteError,
    NotAMemberError,
    NotFoundError,
    NotLeaderError,
    NotPartyLeaderError,
    PartyNotFoundError,
    RosterDomainException,
    StorageConflictError,
    TagInUseError,
    TagNotFoundError,
    UserNotFoundError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "BaseService",
    "BaseRepository",
    "ConfigurationError",
    "RosterDomainException",
    "ErrorSeverity",
    # NotFound
    "NotFoundError",
    "UserNotFoundError",
    "GuildNotFoundError",
    "TagNotFoundError",
    "CharacterNotFoundError",
    "PartyNotFoundError",
    # Forbidden
    "ForbiddenError",
    "NotLeaderError",
    "NotAMemberError",
    "NotPartyLeaderError",
    "CrossGuildReassignmentDeniedError",
    # Conflict
    "ConflictError",
    "DuplicateNameError",
    "AlreadyMemberError",
    "DuplicateTagNameError",
    "DuplicateCharacterNameError",
    "AlreadyLeadsAPartyError",
    "DuplicatePartyNameError",
    "DuplicateIdentityError",
    "StorageConflictError",
    # InvalidState
    "InvalidStateError",
    "NoPendingInviteError",
    "CannotDemoteLeaderError",
    "LeaderCannotLeaveError",
    "GuildNotEmptyError",
    "TagInUseError",
    "ExclusiveRoleConflictError",
    "CharacterAlreadyInPartyError",
    "CharacterNotInPartyError",
    "CharacterNotInGuildError",
    "CharacterOrphanedError",
    # Validation
    "ValidationError",
    # Helpers
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
