"""
Party Module
============

Exports:
- PartyService: Party coordinator (create, slots, disband, leadership)
"""

from .service import PartyService

__all__ = ["PartyService"]
