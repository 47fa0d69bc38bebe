"""
Domain exceptions for the guild roster engine.

Purpose
-------
Define the structured exception hierarchy raised by roster services when a
command violates a business rule. Callers (API layers, bots, CLIs) translate
these into their own responses.

Kinds
-----
Every concrete error belongs to exactly one kind, exposed as `KIND`:

- NotFound       -> `NotFoundError`
- Forbidden      -> `ForbiddenError`
- Conflict       -> `ConflictError`
- InvalidState   -> `InvalidStateError`
- ValidationError-> `ValidationError`

Design Notes
------------
- All domain exceptions inherit from `RosterDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Only `StorageConflictError` is retryable.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal rejections (permission, validation)
    WARNING = "warning"  # Concerning but handled (e.g., retryable conflicts)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class RosterDomainException(Exception):
    """
    Base exception for all roster domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise RosterDomainException(
        ...     "Guild is locked",
        ...     {"guild_id": 4}
        ... )
    """

    KIND: str = "Domain"
    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.KIND,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


# =============================================================================
# NotFound
# =============================================================================


class NotFoundError(RosterDomainException):
    """
    Raised when a referenced entity does not exist.

    Args:
        resource_type: Type of resource (e.g., "User", "Guild", "Tag")
        identifier: Optional identifier for the missing resource
    """

    KIND = "NotFound"
    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: Any) -> None:
        super().__init__("User", user_id)


class GuildNotFoundError(NotFoundError):
    def __init__(self, guild_id: int) -> None:
        super().__init__("Guild", guild_id)


class TagNotFoundError(NotFoundError):
    def __init__(self, tag_id: int) -> None:
        super().__init__("Tag", tag_id)


class CharacterNotFoundError(NotFoundError):
    def __init__(self, character_id: int) -> None:
        super().__init__("Character", character_id)


class PartyNotFoundError(NotFoundError):
    def __init__(self, party_id: int) -> None:
        super().__init__("Party", party_id)


# =============================================================================
# Forbidden
# =============================================================================


class ForbiddenError(RosterDomainException):
    """
    Raised when the acting user lacks the authority for a command.

    Args:
        action: The attempted command
        reason: Why the actor is not allowed
    """

    KIND = "Forbidden"
    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        action: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "FORBIDDEN",
    ) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Not allowed to {action}: {reason}",
            details={"action": action, "reason": reason, **(details or {})},
            error_code=error_code,
        )


class NotLeaderError(ForbiddenError):
    """Acting user is not the guild leader."""

    def __init__(self, action: str, guild_id: int, user_id: int) -> None:
        super().__init__(
            action,
            "only the guild leader may do this",
            details={"guild_id": guild_id, "user_id": user_id},
            error_code="NOT_LEADER",
        )


class NotAMemberError(ForbiddenError):
    """User holds no ACTIVE membership in the guild."""

    def __init__(self, action: str, guild_id: int, user_id: int) -> None:
        super().__init__(
            action,
            f"user {user_id} is not an active member of guild {guild_id}",
            details={"guild_id": guild_id, "user_id": user_id},
            error_code="NOT_A_MEMBER",
        )


class NotPartyLeaderError(ForbiddenError):
    """Acting user does not lead the party."""

    def __init__(self, action: str, party_id: int, user_id: int) -> None:
        super().__init__(
            action,
            "only the party leader may do this",
            details={"party_id": party_id, "user_id": user_id},
            error_code="NOT_PARTY_LEADER",
        )


class CrossGuildReassignmentDeniedError(ForbiddenError):
    """Target tag lies in a guild the move is not permitted into."""

    def __init__(self, character_id: int, from_guild_id: int, to_guild_id: int, reason: str) -> None:
        super().__init__(
            "reassign_tag",
            reason,
            details={
                "character_id": character_id,
                "from_guild_id": from_guild_id,
                "to_guild_id": to_guild_id,
            },
            error_code="CROSS_GUILD_REASSIGNMENT_DENIED",
        )


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(RosterDomainException):
    """Raised when a command collides with existing state (names, memberships, leadership)."""

    KIND = "Conflict"
    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "CONFLICT",
        is_retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(
            message,
            details=details,
            error_code=error_code,
            is_retryable=is_retryable,
        )


class DuplicateNameError(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"A guild named '{name}' already exists",
            details={"name": name},
            error_code="DUPLICATE_NAME",
        )


class AlreadyMemberError(ConflictError):
    def __init__(self, guild_id: int, user_id: int, status: str) -> None:
        super().__init__(
            f"User {user_id} already has a {status.lower()} membership in guild {guild_id}",
            details={"guild_id": guild_id, "user_id": user_id, "status": status},
            error_code="ALREADY_MEMBER",
        )


class DuplicateTagNameError(ConflictError):
    def __init__(self, guild_id: int, name: str) -> None:
        super().__init__(
            f"Guild {guild_id} already has a tag named '{name}'",
            details={"guild_id": guild_id, "name": name},
            error_code="DUPLICATE_TAG_NAME",
        )


class DuplicateCharacterNameError(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"A character named '{name}' already exists",
            details={"name": name},
            error_code="DUPLICATE_CHARACTER_NAME",
        )


class AlreadyLeadsAPartyError(ConflictError):
    def __init__(self, user_id: int, party_id: int) -> None:
        super().__init__(
            f"User {user_id} already leads party {party_id}",
            details={"user_id": user_id, "party_id": party_id},
            error_code="ALREADY_LEADS_A_PARTY",
        )


class DuplicatePartyNameError(ConflictError):
    def __init__(self, guild_id: int, name: str) -> None:
        super().__init__(
            f"Guild {guild_id} already has a party named '{name}'",
            details={"guild_id": guild_id, "name": name},
            error_code="DUPLICATE_PARTY_NAME",
        )


class DuplicateIdentityError(ConflictError):
    """Another user already owns this email or contact handle."""

    def __init__(self, field: str, value: str) -> None:
        super().__init__(
            f"Another user already uses this {field}",
            details={"field": field, "value": value},
            error_code=f"DUPLICATE_{field.upper()}",
        )


class StorageConflictError(ConflictError):
    """
    A concurrent transaction won a race at the storage layer.

    Raised for unique-constraint violations, serialization failures,
    deadlocks and lock timeouts. The transaction was rolled back and the
    command may be retried as a whole.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message,
            details=details,
            error_code="STORAGE_CONFLICT",
            is_retryable=True,
        )


# =============================================================================
# InvalidState
# =============================================================================


class InvalidStateError(RosterDomainException):
    """
    Raised when the current state does not permit the command.

    Args:
        action: The attempted command
        reason: Explanation of why it's not allowed now
    """

    KIND = "InvalidState"
    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        action: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action}: {reason}",
            details={"action": action, "reason": reason, **(details or {})},
            error_code=error_code or f"INVALID_{action.upper()}",
        )


class NoPendingInviteError(InvalidStateError):
    def __init__(self, action: str, guild_id: int, user_id: int) -> None:
        super().__init__(
            action,
            f"user {user_id} has no pending invite to guild {guild_id}",
            details={"guild_id": guild_id, "user_id": user_id},
            error_code="NO_PENDING_INVITE",
        )


class CannotDemoteLeaderError(InvalidStateError):
    def __init__(self, guild_id: int, user_id: int) -> None:
        super().__init__(
            "set_role",
            "the guild leader must remain an officer",
            details={"guild_id": guild_id, "user_id": user_id},
            error_code="CANNOT_DEMOTE_LEADER",
        )


class LeaderCannotLeaveError(InvalidStateError):
    def __init__(self, action: str, guild_id: int, user_id: int, reason: str) -> None:
        super().__init__(
            action,
            reason,
            details={"guild_id": guild_id, "user_id": user_id},
            error_code="LEADER_CANNOT_LEAVE",
        )


class GuildNotEmptyError(InvalidStateError):
    def __init__(self, guild_id: int, other_members: int, characters: int) -> None:
        super().__init__(
            "delete_guild",
            "the guild still has members or tagged characters",
            details={
                "guild_id": guild_id,
                "other_active_members": other_members,
                "tagged_characters": characters,
            },
            error_code="GUILD_NOT_EMPTY",
        )


class TagInUseError(InvalidStateError):
    def __init__(self, tag_id: int, character_count: int) -> None:
        super().__init__(
            "delete_tag",
            f"{character_count} character(s) still use this tag",
            details={"tag_id": tag_id, "character_count": character_count},
            error_code="TAG_IN_USE",
        )


class ExclusiveRoleConflictError(InvalidStateError):
    def __init__(self, character_id: int, held: str, requested: str) -> None:
        super().__init__(
            "assign_role",
            f"character already holds {held}, which excludes {requested}",
            details={"character_id": character_id, "held": held, "requested": requested},
            error_code="EXCLUSIVE_ROLE_CONFLICT",
        )


class CharacterAlreadyInPartyError(InvalidStateError):
    def __init__(self, character_id: int, party_id: int) -> None:
        super().__init__(
            "add_character",
            f"character is already in party {party_id}",
            details={"character_id": character_id, "party_id": party_id},
            error_code="CHARACTER_ALREADY_IN_PARTY",
        )


class CharacterNotInPartyError(InvalidStateError):
    def __init__(self, character_id: int, party_id: int) -> None:
        super().__init__(
            "remove_character",
            f"character is not in party {party_id}",
            details={"character_id": character_id, "party_id": party_id},
            error_code="CHARACTER_NOT_IN_PARTY",
        )


class CharacterNotInGuildError(InvalidStateError):
    def __init__(self, character_id: int, guild_id: int) -> None:
        super().__init__(
            "add_character",
            f"character is not tagged in guild {guild_id}",
            details={"character_id": character_id, "guild_id": guild_id},
            error_code="CHARACTER_NOT_IN_GUILD",
        )


class CharacterOrphanedError(InvalidStateError):
    def __init__(self, action: str, character_id: int) -> None:
        super().__init__(
            action,
            "the owner is no longer an active member of the character's guild",
            details={"character_id": character_id},
            error_code="CHARACTER_ORPHANED",
        )


# =============================================================================
# Validation
# =============================================================================


class ValidationError(RosterDomainException):
    """
    Raised when command input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    KIND = "ValidationError"
    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """True if the exception is a domain error marked retryable."""
    if isinstance(exc, RosterDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity for logging; unknown exceptions are ERROR."""
    if isinstance(exc, RosterDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
