"""
GuildPermissionService - Membership gate for every roster command
=================================================================

Handles:
- Resolving acting users, guilds and memberships inside a caller's transaction
- Requiring ACTIVE membership, ACTIVE OFFICER role or guild leadership
- Read-only permission summaries for callers that render UI

Every other roster service takes its authorization decisions through the
`require_*` helpers here, always on the session of the command being
executed, so the check and the write see the same snapshot.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from guildroster.core.database.service import DatabaseService
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.enums import MemberRole, MemberStatus
from guildroster.database.models.identity.user import User
from guildroster.database.models.social.guild import Guild
from guildroster.database.models.social.guild_member import GuildMember
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    ForbiddenError,
    GuildNotFoundError,
    NotAMemberError,
    NotLeaderError,
    UserNotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus


class GuildPermissionService(BaseService):
    """
    GuildPermissionService answers "may this user do this in this guild?".

    Business Logic:
    - The guild leader is always an ACTIVE OFFICER
    - Officers (ACTIVE, role OFFICER) govern invites, roles, tags and
      characters of their guild
    - PENDING rows grant nothing
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ):
        super().__init__(config_manager, event_bus, logger)
        self._user_repo = BaseRepository[User](User, self.log)
        self._guild_repo = BaseRepository[Guild](Guild, self.log)
        self._member_repo = BaseRepository[GuildMember](GuildMember, self.log)

    # -------------------------------------------------------------------------
    # Entity Resolution (in-transaction)
    # -------------------------------------------------------------------------

    async def load_user(self, session: AsyncSession, user_id: int) -> User:
        user = await self._user_repo.get(session, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def load_guild(
        self, session: AsyncSession, guild_id: int, for_update: bool = False
    ) -> Guild:
        guild = await self._guild_repo.get(session, guild_id, for_update=for_update)
        if guild is None:
            raise GuildNotFoundError(guild_id)
        return guild

    async def get_membership(
        self,
        session: AsyncSession,
        guild_id: int,
        user_id: int,
        for_update: bool = False,
    ) -> Optional[GuildMember]:
        """The (user, guild) row in any status, or None."""
        return await self._member_repo.find_one_where(
            session,
            GuildMember.guild_id == guild_id,
            GuildMember.user_id == user_id,
            for_update=for_update,
        )

    async def is_active_member(
        self, session: AsyncSession, guild_id: int, user_id: int, for_update: bool = False
    ) -> bool:
        member = await self.get_membership(session, guild_id, user_id, for_update=for_update)
        return member is not None and member.status == MemberStatus.ACTIVE

    async def is_active_officer(self, session: AsyncSession, guild_id: int, user_id: int) -> bool:
        return await self._member_repo.exists(
            session,
            GuildMember.guild_id == guild_id,
            GuildMember.user_id == user_id,
            GuildMember.status == MemberStatus.ACTIVE,
            GuildMember.role == MemberRole.OFFICER,
        )

    # -------------------------------------------------------------------------
    # Gates (in-transaction)
    # -------------------------------------------------------------------------

    async def require_active_member(
        self,
        session: AsyncSession,
        guild_id: int,
        user_id: int,
        action: str,
        for_update: bool = False,
    ) -> GuildMember:
        """
        Raises:
            NotAMemberError: No ACTIVE membership
        """
        member = await self.get_membership(session, guild_id, user_id, for_update=for_update)
        if member is None or member.status != MemberStatus.ACTIVE:
            error = NotAMemberError(action, guild_id, user_id)
            self.log_rejection(action, error, guild_id=guild_id, user_id=user_id)
            raise error
        return member

    async def require_officer(
        self,
        session: AsyncSession,
        guild_id: int,
        user_id: int,
        action: str,
    ) -> GuildMember:
        """
        Raises:
            ForbiddenError: Actor is not an ACTIVE OFFICER of the guild
        """
        member = await self.get_membership(session, guild_id, user_id)
        if member is None or not member.is_officer:
            error = ForbiddenError(
                action,
                "an active officer of the guild is required",
                details={"guild_id": guild_id, "user_id": user_id},
            )
            self.log_rejection(action, error, guild_id=guild_id, user_id=user_id)
            raise error
        return member

    def require_leader(self, guild: Guild, user_id: int, action: str) -> None:
        """
        Raises:
            NotLeaderError: Actor does not lead the guild
        """
        if guild.leader_id != user_id:
            error = NotLeaderError(action, guild.id, user_id)
            self.log_rejection(action, error, guild_id=guild.id, user_id=user_id)
            raise error

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_permissions(self, guild_id: int, user_id: int) -> Dict[str, Any]:
        """
        Summarize what a user may do in a guild.

        Returns:
            Dict with membership status, role and capability flags

        Raises:
            GuildNotFoundError: Guild not found
        """
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            guild = await self.load_guild(session, guild_id)
            member = await self.get_membership(session, guild_id, user_id)

            is_active = member is not None and member.is_active
            is_officer = member is not None and member.is_officer

            return {
                "guild_id": guild_id,
                "user_id": user_id,
                "status": member.status.value if member else None,
                "role": member.role.value if member and is_active else None,
                "is_member": is_active,
                "is_officer": is_officer,
                "is_leader": guild.leader_id == user_id,
                "can_invite": is_officer,
                "can_manage_tags": is_officer,
                "can_set_roles": is_officer,
                "can_create_party": is_active,
            }
