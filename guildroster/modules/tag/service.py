"""
TagService - Tag registry
=========================

Handles:
- Creating, renaming and deleting tags inside a guild
- Toggling the reserve flag
- Listing tags with their character counts

Tag names are unique per guild, not globally. A tag can only be deleted
once no character references it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import func, select

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.roster.character import Character
from guildroster.database.models.social.tag import Tag
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    DuplicateTagNameError,
    TagInUseError,
    TagNotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.guild.audit_service import GuildAuditService
    from guildroster.modules.guild.permission_service import GuildPermissionService


class TagService(BaseService):
    """
    TagService manages the sub-guild categories characters are filed under.

    Business Logic:
    - Every command requires an ACTIVE OFFICER of the tag's guild
    - Renaming to the current name is a no-op
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        permissions: GuildPermissionService,
        audit: GuildAuditService,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._permissions = permissions
        self._audit = audit
        self._tag_repo = BaseRepository[Tag](Tag, self.log)
        self._character_repo = BaseRepository[Character](Character, self.log)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def create_tag(
        self,
        acting_user_id: int,
        guild_id: int,
        name: str,
        is_reserve: bool = False,
    ) -> Dict[str, Any]:
        """
        Raises:
            GuildNotFoundError: Guild not found
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            DuplicateTagNameError: Name already used in this guild
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        name = InputValidator.validate_name(name, "tag_name")
        is_reserve = InputValidator.validate_bool(is_reserve, "is_reserve")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            await self._permissions.load_guild(session, guild_id, for_update=True)
            await self._permissions.require_officer(session, guild_id, acting_user_id, "create_tag")
            await self._ensure_name_free(session, guild_id, name, "create_tag", acting_user_id)

            tag = self._tag_repo.add(
                session, Tag(guild_id=guild_id, name=name, is_reserve=is_reserve)
            )
            await self._tag_repo.flush(session)
            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "tag_created",
                {"tag_id": tag.id, "tag_name": name, "is_reserve": is_reserve},
            )
            await self._tag_repo.flush(session)

            result = self._serialize_tag(tag)

        self.log_operation(
            "create_tag", user_id=acting_user_id, guild_id=guild_id, tag_id=result["tag_id"]
        )
        await self.emit_event(
            events.TAG_CREATED,
            {"tag_id": result["tag_id"], "guild_id": guild_id, "tag_name": name},
        )
        return result

    async def rename_tag(self, acting_user_id: int, tag_id: int, new_name: str) -> Dict[str, Any]:
        """
        Raises:
            TagNotFoundError: Tag not found
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            DuplicateTagNameError: Another tag in the guild has this name
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        tag_id = InputValidator.validate_positive_integer(tag_id, "tag_id")
        new_name = InputValidator.validate_name(new_name, "tag_name")

        async with DatabaseService.get_transaction() as session:
            tag = await self._load_tag_for_officer(session, acting_user_id, tag_id, "rename_tag")

            old_name = tag.name
            changed = old_name != new_name
            if changed:
                await self._ensure_name_free(
                    session, tag.guild_id, new_name, "rename_tag", acting_user_id
                )
                tag.name = new_name
                self._audit.record(
                    session,
                    tag.guild_id,
                    acting_user_id,
                    "tag_renamed",
                    {"tag_id": tag_id, "from_name": old_name, "to_name": new_name},
                )
                await self._tag_repo.flush(session)

            result = self._serialize_tag(tag)

        self.log_operation(
            "rename_tag", user_id=acting_user_id, guild_id=result["guild_id"], tag_id=tag_id
        )
        if changed:
            await self.emit_event(
                events.TAG_UPDATED,
                {
                    "tag_id": tag_id,
                    "guild_id": result["guild_id"],
                    "from_name": old_name,
                    "tag_name": new_name,
                },
            )
        return result

    async def set_reserve_flag(
        self, acting_user_id: int, tag_id: int, is_reserve: bool
    ) -> Dict[str, Any]:
        """
        Raises:
            TagNotFoundError: Tag not found
            ForbiddenError: Acting user is not an ACTIVE OFFICER
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        tag_id = InputValidator.validate_positive_integer(tag_id, "tag_id")
        is_reserve = InputValidator.validate_bool(is_reserve, "is_reserve")

        async with DatabaseService.get_transaction() as session:
            tag = await self._load_tag_for_officer(
                session, acting_user_id, tag_id, "set_reserve_flag"
            )

            changed = tag.is_reserve != is_reserve
            if changed:
                tag.is_reserve = is_reserve
                self._audit.record(
                    session,
                    tag.guild_id,
                    acting_user_id,
                    "tag_reserve_changed",
                    {"tag_id": tag_id, "is_reserve": is_reserve},
                )
                await self._tag_repo.flush(session)

            result = self._serialize_tag(tag)

        self.log_operation(
            "set_reserve_flag",
            user_id=acting_user_id,
            guild_id=result["guild_id"],
            tag_id=tag_id,
            is_reserve=is_reserve,
        )
        if changed:
            await self.emit_event(
                events.TAG_UPDATED,
                {"tag_id": tag_id, "guild_id": result["guild_id"], "is_reserve": is_reserve},
            )
        return result

    async def delete_tag(self, acting_user_id: int, tag_id: int) -> Dict[str, Any]:
        """
        Raises:
            TagNotFoundError: Tag not found
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            TagInUseError: Characters still reference the tag
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        tag_id = InputValidator.validate_positive_integer(tag_id, "tag_id")

        async with DatabaseService.get_transaction() as session:
            tag = await self._load_tag_for_officer(session, acting_user_id, tag_id, "delete_tag")

            in_use = await self._character_repo.count(session, Character.tag_id == tag_id)
            if in_use:
                error = TagInUseError(tag_id, in_use)
                self.log_rejection(
                    "delete_tag", error, guild_id=tag.guild_id, user_id=acting_user_id
                )
                raise error

            guild_id = tag.guild_id
            tag_name = tag.name
            await self._tag_repo.delete(session, tag)
            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "tag_deleted",
                {"tag_id": tag_id, "tag_name": tag_name},
            )
            await self._tag_repo.flush(session)

        self.log_operation("delete_tag", user_id=acting_user_id, guild_id=guild_id, tag_id=tag_id)
        await self.emit_event(
            events.TAG_DELETED, {"tag_id": tag_id, "guild_id": guild_id, "tag_name": tag_name}
        )
        return {"tag_id": tag_id, "guild_id": guild_id, "deleted": True}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def list_tags(self, guild_id: int) -> Dict[str, Any]:
        """Tags of a guild ordered by name, with character counts."""
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_session() as session:
            await self._permissions.load_guild(session, guild_id)
            stmt = (
                select(Tag, func.count(Character.id))
                .outerjoin(Character, Character.tag_id == Tag.id)
                .where(Tag.guild_id == guild_id)
                .group_by(Tag.id)
                .order_by(Tag.name)
            )
            rows = (await session.execute(stmt)).all()

            tags = []
            for tag, character_count in rows:
                entry = self._serialize_tag(tag)
                entry["character_count"] = character_count
                tags.append(entry)

            return {"guild_id": guild_id, "tags": tags}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _load_tag_for_officer(
        self, session: AsyncSession, acting_user_id: int, tag_id: int, action: str
    ) -> Tag:
        await self._permissions.load_user(session, acting_user_id)
        tag = await self._tag_repo.get(session, tag_id, for_update=True)
        if tag is None:
            raise TagNotFoundError(tag_id)
        await self._permissions.require_officer(session, tag.guild_id, acting_user_id, action)
        return tag

    async def _ensure_name_free(
        self, session: AsyncSession, guild_id: int, name: str, action: str, acting_user_id: int
    ) -> None:
        if await self._tag_repo.exists(session, Tag.guild_id == guild_id, Tag.name == name):
            error = DuplicateTagNameError(guild_id, name)
            self.log_rejection(action, error, guild_id=guild_id, user_id=acting_user_id)
            raise error

    @staticmethod
    def _serialize_tag(tag: Tag) -> Dict[str, Any]:
        return {
            "tag_id": tag.id,
            "guild_id": tag.guild_id,
            "tag_name": tag.name,
            "is_reserve": tag.is_reserve,
        }
