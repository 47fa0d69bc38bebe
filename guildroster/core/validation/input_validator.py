"""
Input Validation Layer

Purpose
-------
Centralized validation for every value that enters a roster command:
ids, names, ages, emails, enum choices and flags. Services call these
before opening a transaction, so a rejected input never touches storage.

Responsibilities
----------------
- Validate and convert inputs to the correct type
- Enforce bounds for numbers and lengths (name bounds come from ConfigManager)
- Validate choices against the model enums
- Raise ValidationError with a field-specific error code

Non-Responsibilities
--------------------
- Business rules (services)
- Authorization (GuildPermissionService)

Observability
-------------
Every failure is logged at debug level with field_name, raw_value and reason.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, NoReturn, Optional, Type, TypeVar

from guildroster.core.config.manager import ConfigManager
from guildroster.core.logging.logger import get_logger
from guildroster.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

E = TypeVar("E", bound=Enum)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Fallbacks when no YAML defaults are loaded. The maxima are the column
# widths and cap any configured max_length.
_NAME_BOUNDS = {
    "user_name": (1, 64),
    "guild_name": (3, 64),
    "tag_name": (1, 32),
    "character_name": (2, 32),
    "party_name": (1, 48),
}
_CONTACT_MAX_LENGTH = 128


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation.

    Every method returns the normalized value or raises ValidationError.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number, got a boolean")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if isinstance(value, float) and value != int_value:
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )

        return int_value

    @staticmethod
    def validate_positive_integer(value: Any, field_name: str) -> int:
        """Validate a database id or any other strictly positive integer."""
        return InputValidator.validate_integer(value, field_name, min_value=1)

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> str:
        """
        Validate a string; surrounding whitespace is stripped.

        Control characters are rejected.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be text")

        str_value = value.strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(field_name, str_value, f"Must be at least {min_length} characters")

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(field_name, str_value, f"Cannot exceed {max_length} characters")

        if not str_value.isprintable():
            _raise_validation_error(field_name, str_value, "Contains invalid characters")

        return str_value

    @staticmethod
    def validate_name(value: Any, field_name: str) -> str:
        """
        Validate an entity name against `validation.<field_name>.*` bounds.

        Example
        -------
        >>> InputValidator.validate_name("  Night Watch ", "guild_name")
        'Night Watch'
        """
        default_min, default_max = _NAME_BOUNDS.get(field_name, (1, 64))
        min_length = int(ConfigManager.get(f"validation.{field_name}.min_length", default_min))
        max_length = min(
            int(ConfigManager.get(f"validation.{field_name}.max_length", default_max)),
            default_max,
        )
        return InputValidator.validate_string(value, field_name, min_length, max_length)

    @staticmethod
    def validate_email(value: Any, field_name: str = "email") -> Optional[str]:
        """Validate an optional email; returns the lowercased address or None."""
        if value is None:
            return None

        email = InputValidator.validate_string(value, field_name, min_length=3, max_length=254)
        if not _EMAIL_RE.match(email):
            _raise_validation_error(field_name, value, "Must be a valid email address")
        return email.lower()

    @staticmethod
    def validate_contact(value: Any, field_name: str = "contact") -> str:
        max_length = min(
            int(ConfigManager.get("validation.contact.max_length", _CONTACT_MAX_LENGTH)),
            _CONTACT_MAX_LENGTH,
        )
        return InputValidator.validate_string(value, field_name, min_length=1, max_length=max_length)

    @staticmethod
    def validate_age(value: Any, field_name: str = "age") -> int:
        """Validate age against `users.min_age` / `users.max_age`."""
        min_age = int(ConfigManager.get("users.min_age", 13))
        max_age = int(ConfigManager.get("users.max_age", 120))
        return InputValidator.validate_integer(value, field_name, min_value=min_age, max_value=max_age)

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(value: Any, field_name: str, enum_class: Type[E]) -> E:
        """
        Resolve `value` to a member of `enum_class`.

        Accepts a member, its value or its name (case-insensitive).
        """
        if isinstance(value, enum_class):
            return value

        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in enum_class:
                if member.name == normalized or str(member.value).upper() == normalized:
                    return member

        choices = ", ".join(member.name for member in enum_class)
        _raise_validation_error(
            field_name, value, f"Invalid choice '{value}'. Must be one of: {choices}"
        )

    @staticmethod
    def validate_bool(value: Any, field_name: str) -> bool:
        if not isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be true or false")
        return value
