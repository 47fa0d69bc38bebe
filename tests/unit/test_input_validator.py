"""
Unit tests for InputValidator.

Covers ids, names with config-driven bounds, email, age and enum choices.
"""

import pytest

from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.enums import CharacterRoleType, MemberRole
from guildroster.modules.shared.exceptions import ValidationError


class TestIntegers:
    def test_accepts_integral_values(self):
        assert InputValidator.validate_positive_integer(5, "guild_id") == 5
        assert InputValidator.validate_positive_integer("12", "guild_id") == 12
        assert InputValidator.validate_positive_integer(3.0, "guild_id") == 3

    @pytest.mark.parametrize("value", [None, 0, -4, True, 2.5, "abc"])
    def test_rejects_invalid_ids(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_positive_integer(value, "guild_id")

        assert exc_info.value.error_code == "VALIDATION_GUILD_ID"


class TestNames:
    def test_strips_whitespace(self, config_manager):
        assert InputValidator.validate_name("  Night Watch ", "guild_name") == "Night Watch"

    def test_guild_name_minimum_from_config(self, config_manager):
        with pytest.raises(ValidationError):
            InputValidator.validate_name("ab", "guild_name")

    def test_bounds_follow_runtime_overrides(self, config_manager):
        config_manager.set("validation.tag_name.max_length", 4)

        assert InputValidator.validate_name("Tank", "tag_name") == "Tank"
        with pytest.raises(ValidationError):
            InputValidator.validate_name("Healer", "tag_name")

    def test_configured_max_cannot_exceed_column_width(self, config_manager):
        config_manager.set("validation.character_name.max_length", 200)

        assert InputValidator.validate_name("x" * 32, "character_name") == "x" * 32
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_name("x" * 33, "character_name")

        assert exc_info.value.error_code == "VALIDATION_CHARACTER_NAME"

    def test_contact_max_capped_at_column_width(self, config_manager):
        config_manager.set("validation.contact.max_length", 500)

        with pytest.raises(ValidationError):
            InputValidator.validate_contact("c" * 129)

    def test_rejects_control_characters(self, config_manager):
        with pytest.raises(ValidationError):
            InputValidator.validate_name("Bad\x00Name", "character_name")

    def test_rejects_non_text(self, config_manager):
        with pytest.raises(ValidationError):
            InputValidator.validate_name(42, "party_name")


class TestIdentityFields:
    def test_email_is_optional_and_lowercased(self):
        assert InputValidator.validate_email(None) is None
        assert InputValidator.validate_email("Alice@Example.COM") == "alice@example.com"

    def test_rejects_malformed_email(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_email("not-an-email")

        assert exc_info.value.field == "email"

    def test_age_bounds(self, config_manager):
        assert InputValidator.validate_age(13) == 13
        with pytest.raises(ValidationError):
            InputValidator.validate_age(12)
        with pytest.raises(ValidationError):
            InputValidator.validate_age(121)


class TestChoices:
    def test_accepts_member_value_or_name(self):
        assert InputValidator.validate_choice(MemberRole.OFFICER, "role", MemberRole) is MemberRole.OFFICER
        assert InputValidator.validate_choice("officer", "role", MemberRole) is MemberRole.OFFICER
        assert InputValidator.validate_choice("woe_te", "role", CharacterRoleType) is CharacterRoleType.WOE_TE

    def test_rejects_unknown_choice(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_choice("LEADER", "role", MemberRole)

        assert "MEMBER" in exc_info.value.validation_message

    def test_bool_must_be_bool(self):
        assert InputValidator.validate_bool(False, "is_reserve") is False
        with pytest.raises(ValidationError):
            InputValidator.validate_bool("yes", "is_reserve")
