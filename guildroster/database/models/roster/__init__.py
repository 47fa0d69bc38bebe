"""
Roster domain ORM models.

Exports:
- Character
- CharacterRole
"""

from .character import Character
from .character_role import CharacterRole

__all__ = ["Character", "CharacterRole"]
