"""
GuildAuditService - Guild audit trail
=====================================

Handles:
- Appending audit entries inside the transaction of the command they describe
- Querying audit history (newest first)
- Retention-based cleanup

Entries are written with the caller's session, so an audit row exists
exactly when its command committed. `audit.enabled` switches writes off.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from guildroster.core.database.service import DatabaseService
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.social.guild_audit import GuildAudit
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus


class GuildAuditService(BaseService):
    """
    GuildAuditService handles guild audit trail operations.

    Business Logic:
    - Every mutating guild-scoped command appends one immutable entry
    - System actions have a null actor
    - Entries outlive deleted guilds until retention cleanup removes them
    """

    MAX_PAGE_SIZE = 500

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._audit_repo = BaseRepository[GuildAudit](GuildAudit, self.log)

    @property
    def enabled(self) -> bool:
        return bool(self.get_config("audit.enabled", True))

    # -------------------------------------------------------------------------
    # Writes (in-transaction)
    # -------------------------------------------------------------------------

    def record(
        self,
        session: AsyncSession,
        guild_id: Optional[int],
        actor_user_id: Optional[int],
        action: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Optional[GuildAudit]:
        """
        Append an audit entry to the caller's transaction.

        Returns:
            The pending entry, or None when auditing is disabled
        """
        if not self.enabled:
            return None

        entry = GuildAudit(
            guild_id=guild_id,
            actor_user_id=actor_user_id,
            action=action,
            meta=meta or {},
        )
        return self._audit_repo.add(session, entry)

    # -------------------------------------------------------------------------
    # Queries & Maintenance
    # -------------------------------------------------------------------------

    async def get_audit_log(
        self,
        guild_id: int,
        limit: Optional[int] = None,
        action: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Audit history of a guild, newest first.

        Args:
            guild_id: Guild ID (may belong to a deleted guild)
            limit: Maximum entries (default `audit.default_page_size`)
            action: Optional exact action filter
        """
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        if limit is None:
            limit = int(self.get_config("audit.default_page_size", 50))
        limit = InputValidator.validate_integer(
            limit, "limit", min_value=1, max_value=self.MAX_PAGE_SIZE
        )

        conditions = [GuildAudit.guild_id == guild_id]
        if action is not None:
            conditions.append(GuildAudit.action == action)

        async with DatabaseService.get_session() as session:
            entries = await self._audit_repo.find_many_where(
                session,
                *conditions,
                order_by=[GuildAudit.created_at.desc(), GuildAudit.id.desc()],
                limit=limit,
            )

        return {
            "guild_id": guild_id,
            "entries": [
                {
                    "audit_id": entry.id,
                    "action": entry.action,
                    "actor_user_id": entry.actor_user_id,
                    "meta": entry.meta,
                    "created_at": entry.created_at,
                }
                for entry in entries
            ],
            "count": len(entries),
        }

    async def cleanup_old_entries(self, retention_days: Optional[int] = None) -> Dict[str, Any]:
        """
        Delete entries older than the retention window.

        Args:
            retention_days: Override for `audit.retention_days`
        """
        if retention_days is None:
            retention_days = self.get_config("audit.retention_days", 90)
        retention_days = InputValidator.validate_positive_integer(retention_days, "retention_days")

        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)

        async with DatabaseService.get_transaction() as session:
            deleted = await self._audit_repo.delete_where(session, GuildAudit.created_at < cutoff)

        self.log_operation("cleanup_old_entries", retention_days=retention_days, deleted=deleted)

        return {"retention_days": retention_days, "cutoff": cutoff, "deleted": deleted}
