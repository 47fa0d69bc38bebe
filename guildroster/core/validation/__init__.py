"""
Validation package: the canonical import surface for input validation.
"""

from guildroster.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
