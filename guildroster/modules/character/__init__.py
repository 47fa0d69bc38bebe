"""
Character Module
================

Exports:
- CharacterService: Character roster (create, reassign tag, roles, delete)
"""

from .service import CharacterService

__all__ = ["CharacterService"]
