"""
Unit tests for the roster exception taxonomy.

Covers error kinds, error codes, retryability and serialization.
"""

import pytest

from guildroster.modules.shared.exceptions import (
    AlreadyLeadsAPartyError,
    CharacterOrphanedError,
    ConflictError,
    CrossGuildReassignmentDeniedError,
    DuplicateIdentityError,
    ErrorSeverity,
    ExclusiveRoleConflictError,
    ForbiddenError,
    GuildNotFoundError,
    InvalidStateError,
    NotAMemberError,
    NotFoundError,
    RosterDomainException,
    StorageConflictError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)


class TestErrorKinds:
    """Every specific error belongs to exactly one kind."""

    @pytest.mark.parametrize(
        "error, kind_class, code",
        [
            (GuildNotFoundError(7), NotFoundError, "GUILD_NOT_FOUND"),
            (NotAMemberError("invite", 1, 2), ForbiddenError, "NOT_A_MEMBER"),
            (
                CrossGuildReassignmentDeniedError(3, 1, 2, "nope"),
                ForbiddenError,
                "CROSS_GUILD_REASSIGNMENT_DENIED",
            ),
            (AlreadyLeadsAPartyError(2, 9), ConflictError, "ALREADY_LEADS_A_PARTY"),
            (ExclusiveRoleConflictError(3, "WOE", "WOE_TE"), InvalidStateError, "EXCLUSIVE_ROLE_CONFLICT"),
            (CharacterOrphanedError("assign_role", 3), InvalidStateError, "CHARACTER_ORPHANED"),
        ],
    )
    def test_kind_and_code(self, error, kind_class, code):
        assert isinstance(error, kind_class)
        assert isinstance(error, RosterDomainException)
        assert error.error_code == code

    def test_validation_code_derived_from_field(self):
        error = ValidationError("guild_name", "Must be at least 3 characters")

        assert error.error_code == "VALIDATION_GUILD_NAME"
        assert error.field == "guild_name"
        assert error.KIND == "ValidationError"

    def test_duplicate_identity_code_derived_from_field(self):
        assert DuplicateIdentityError("email", "a@b.io").error_code == "DUPLICATE_EMAIL"
        assert DuplicateIdentityError("contact", "x").error_code == "DUPLICATE_CONTACT"

    def test_generic_invalid_state_code_uses_action(self):
        error = InvalidStateError("kick", "use leave instead")

        assert error.error_code == "INVALID_KICK"
        assert error.details["reason"] == "use leave instead"


class TestRetryability:
    """Only storage conflicts may be retried."""

    def test_storage_conflict_is_retryable(self):
        error = StorageConflictError("lost a race")

        assert error.is_retryable is True
        assert isinstance(error, ConflictError)
        assert is_transient_error(error) is True
        assert error.severity == ErrorSeverity.WARNING

    def test_business_conflicts_are_not_retryable(self):
        assert is_transient_error(AlreadyLeadsAPartyError(1, 2)) is False

    def test_foreign_exceptions_are_not_transient(self):
        assert is_transient_error(RuntimeError("boom")) is False


class TestSerialization:
    def test_to_dict_contains_kind_and_details(self):
        error = NotAMemberError("create_party", 4, 11)

        data = error.to_dict()

        assert data["error_type"] == "NotAMemberError"
        assert data["kind"] == "Forbidden"
        assert data["error_code"] == "NOT_A_MEMBER"
        assert data["details"]["guild_id"] == 4
        assert data["details"]["user_id"] == 11
        assert data["is_retryable"] is False

    def test_str_includes_code(self):
        assert str(GuildNotFoundError(5)).startswith("[GUILD_NOT_FOUND]")


class TestSeverity:
    def test_business_rejections_do_not_alert(self):
        assert should_alert(NotAMemberError("invite", 1, 2)) is False

    def test_unknown_exceptions_alert(self):
        assert get_error_severity(KeyError("x")) == ErrorSeverity.ERROR
        assert should_alert(KeyError("x")) is True
