"""
Tag Module
==========

Exports:
- TagService: Tag registry (create, rename, reserve flag, delete, list)
"""

from .service import TagService

__all__ = ["TagService"]
