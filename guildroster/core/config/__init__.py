"""
Configuration package.

- Config: static, environment-driven settings (database, logging, paths)
- ConfigManager: dot-notation engine settings backed by YAML defaults
"""

from guildroster.core.config.config import Config, Environment
from guildroster.core.config.manager import (
    ConfigManager,
    ConfigManagerError,
    ConfigWriteError,
)

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigManagerError",
    "ConfigWriteError",
]
