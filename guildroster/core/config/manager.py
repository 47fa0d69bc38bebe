"""
ConfigManager: dynamic, dot-notation configuration access for the roster engine.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable engine settings
  (name length bounds, age limits, audit retention, event timeouts).
- Back configuration with YAML defaults from the `config/` directory.
- Allow runtime overrides without a restart.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory and
  take precedence until `reset()`.
- Every read falls back to the caller-supplied default, so services keep
  working when no YAML is present (e.g. an installed wheel).
- Optional per-key validators run on `set()`.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, MutableMapping, Optional

import yaml

from guildroster.core.config.config import Config


logger = logging.getLogger(__name__)


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigWriteError(ConfigManagerError):
    """Raised when a configuration write or validation fails."""


__all__ = ["ConfigManager", "ConfigManagerError", "ConfigWriteError"]


class ConfigManager:
    """
    Dynamic configuration management with YAML defaults and runtime overrides.

    Usage
    -----
    >>> ConfigManager.load()
    >>> ConfigManager.get("validation.guild_name.max_length", 64)
    64
    >>> ConfigManager.set("audit.enabled", False)
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _validators: Dict[str, Callable[[Any], Any]] = {}
    _initialized: bool = False

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load all YAML config files from `config_dir` into `_defaults`.

        Files are deep-merged in sorted order. A missing directory is not an
        error; the engine then relies on in-code defaults.
        """
        config_dir = Path(config_dir) if config_dir is not None else Config.CONFIG_DIR
        cls._defaults = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            cls._initialized = True
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug("Loaded YAML config", extra={"file": str(yaml_file)})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

        cls._initialized = True
        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded_count, "top_level_keys": len(cls._defaults)},
        )

    @classmethod
    async def initialize(cls) -> None:
        """Initialize from YAML (idempotent)."""
        if cls._initialized:
            return
        cls.load()

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def _resolve(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides win over YAML defaults; `default` is returned when neither
        defines the key.
        """
        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; loading defaults"
            )
            cls.load()

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._resolve(cls._defaults, key)
        return default if value is None else value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return top-level keys of the YAML defaults plus override keys."""
        return sorted(set(cls._defaults) | set(cls._overrides))

    # =========================================================================
    # WRITES
    # =========================================================================

    @classmethod
    def register_validator(cls, key: str, validator: Callable[[Any], Any]) -> None:
        """Register a validator that normalizes or rejects values written to `key`."""
        cls._validators[key] = validator

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """
        Override a configuration value at runtime.

        Raises
        ------
        ConfigWriteError
            If a registered validator rejects the value.
        """
        validator = cls._validators.get(key)
        if validator is not None:
            try:
                value = validator(value)
            except (TypeError, ValueError) as exc:
                raise ConfigWriteError(f"Invalid value for '{key}': {exc}") from exc

        old_value = cls.get(key)
        cls._overrides[key] = value
        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "old_value": old_value, "new_value": value},
        )

    @classmethod
    def reset(cls) -> None:
        """Drop every runtime override."""
        cls._overrides.clear()

    @classmethod
    def snapshot(cls) -> Dict[str, Any]:
        """Deep copy of the YAML defaults, for diagnostics."""
        return copy.deepcopy(cls._defaults)
