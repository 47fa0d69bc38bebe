"""
Service Container
=================

Purpose
-------
Single construction point for every roster service. The container is the
command/query interface handed to transports: one attribute per component.

Responsibilities
----------------
- Install the logging stack and load configuration defaults
- Build the shared permission gate and audit trail first, then inject them
  into the services that depend on them
- Track per-service construction time for health snapshots

Non-Responsibilities
--------------------
- Database engine lifecycle (DatabaseService.initialize / shutdown)
- Schema creation (guildroster.core.database.bootstrap)

Usage
-----
    await DatabaseService.initialize()
    container = ServiceContainer(ConfigManager, EventBus(ConfigManager), get_logger("roster"))
    await container.initialize()

    guild = await container.guilds.create_guild(user_id, "Night Watch")
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from guildroster.core.config.config import Config
from guildroster.core.logging.logger import (
    dropped_record_count,
    get_logger,
    setup_logging,
    shutdown_logging,
)
from guildroster.modules.character import CharacterService
from guildroster.modules.guild import (
    GuildAuditService,
    GuildInviteService,
    GuildMemberService,
    GuildPermissionService,
    GuildService,
)
from guildroster.modules.party import PartyService
from guildroster.modules.tag import TagService
from guildroster.modules.user import UserRegistrationService

if TYPE_CHECKING:
    from logging import Logger

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus


class ServiceContainer:
    """
    Dependency injection container for the roster services.

    Every service takes (config_manager, event_bus, logger); services that
    authorize or audit also receive the shared GuildPermissionService and
    GuildAuditService instances.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger

        self._users: Optional[UserRegistrationService] = None
        self._permissions: Optional[GuildPermissionService] = None
        self._audit: Optional[GuildAuditService] = None
        self._guilds: Optional[GuildService] = None
        self._invites: Optional[GuildInviteService] = None
        self._members: Optional[GuildMemberService] = None
        self._tags: Optional[TagService] = None
        self._characters: Optional[CharacterService] = None
        self._parties: Optional[PartyService] = None

        self._owns_logging = False
        self._initialized = False
        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self, configure_logging: bool = True) -> None:
        """
        Build every service.

        Args:
            configure_logging: Install the global logging stack first
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        if configure_logging:
            setup_logging()
            self._owns_logging = True
        await self._config_manager.initialize()

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...", extra=Config.summary())

        try:
            self._users = self._create_service("users", UserRegistrationService)
            self._permissions = self._create_service("permissions", GuildPermissionService)
            self._audit = self._create_service("audit", GuildAuditService)

            shared = {"permissions": self._permissions, "audit": self._audit}
            self._guilds = self._create_service("guilds", GuildService, **shared)
            self._invites = self._create_service("invites", GuildInviteService, **shared)
            self._members = self._create_service("members", GuildMemberService, **shared)
            self._tags = self._create_service("tags", TagService, **shared)
            self._characters = self._create_service("characters", CharacterService, **shared)
            self._parties = self._create_service("parties", PartyService, **shared)

            self._init_end = time.perf_counter()
            self._initialized = True

            self._logger.info(
                "Service container initialized successfully",
                extra={
                    "total_time_seconds": round(self._init_end - self._init_start, 3),
                    "service_count": len(self._service_init_times),
                },
            )

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        """Construct one service with its own module-scoped logger and record timing."""
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    async def shutdown(self) -> None:
        """Drain pending background listeners and mark the container closed."""
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        await self._event_bus.drain()

        self._initialized = False
        self._logger.info("Service container shut down")
        if self._owns_logging:
            shutdown_logging()
            self._owns_logging = False

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "dropped_log_records": dropped_record_count(),
            "config": Config.summary(),
        }

    # ========================================================================
    # Services
    # ========================================================================

    def _require(self, service: Optional[Any]) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    @property
    def users(self) -> UserRegistrationService:
        return self._require(self._users)

    @property
    def permissions(self) -> GuildPermissionService:
        return self._require(self._permissions)

    @property
    def audit(self) -> GuildAuditService:
        return self._require(self._audit)

    @property
    def guilds(self) -> GuildService:
        return self._require(self._guilds)

    @property
    def invites(self) -> GuildInviteService:
        return self._require(self._invites)

    @property
    def members(self) -> GuildMemberService:
        return self._require(self._members)

    @property
    def tags(self) -> TagService:
        return self._require(self._tags)

    @property
    def characters(self) -> CharacterService:
        return self._require(self._characters)

    @property
    def parties(self) -> PartyService:
        return self._require(self._parties)

    @property
    def is_initialized(self) -> bool:
        return self._initialized
