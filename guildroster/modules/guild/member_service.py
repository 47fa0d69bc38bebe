"""
GuildMemberService - Membership workflow, active half
=====================================================

Handles:
- Role changes between MEMBER and OFFICER
- Leaving and kicking (ACTIVE -> absent)
- Membership lookups

Removing a membership keeps the user's characters. Characters tagged in
the guild are detached from their parties and stay behind as orphans
until their owner rejoins, moves or deletes them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import select, update

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.enums import MemberRole
from guildroster.database.models.roster.character import Character
from guildroster.database.models.social.guild import Guild
from guildroster.database.models.social.guild_member import GuildMember
from guildroster.database.models.social.party import Party
from guildroster.database.models.social.tag import Tag
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    CannotDemoteLeaderError,
    InvalidStateError,
    LeaderCannotLeaveError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.guild.audit_service import GuildAuditService
    from guildroster.modules.guild.permission_service import GuildPermissionService


class GuildMemberService(BaseService):
    """
    GuildMemberService manages ACTIVE memberships.

    Business Logic:
    - ACTIVE OFFICERs change roles and kick
    - The guild leader can never be demoted, leave or be kicked
    - A party leader must disband or hand over the party before leaving
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
        self._member_repo = BaseRepository[GuildMember](GuildMember, self.log)
        self._party_repo = BaseRepository[Party](Party, self.log)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def set_role(
        self,
        acting_user_id: int,
        guild_id: int,
        target_user_id: int,
        role: Any,
    ) -> Dict[str, Any]:
        """
        Promote or demote an ACTIVE member.

        Args:
            role: MemberRole or its name

        Raises:
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            NotAMemberError: Target is not ACTIVE
            CannotDemoteLeaderError: Target leads the guild and role is MEMBER
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        target_user_id = InputValidator.validate_positive_integer(target_user_id, "target_user_id")
        role = InputValidator.validate_choice(role, "role", MemberRole)

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            await self._permissions.load_user(session, target_user_id)
            guild = await self._permissions.load_guild(session, guild_id, for_update=True)
            await self._permissions.require_officer(session, guild_id, acting_user_id, "set_role")
            membership = await self._permissions.require_active_member(
                session, guild_id, target_user_id, "set_role", for_update=True
            )

            if target_user_id == guild.leader_id and role != MemberRole.OFFICER:
                error = CannotDemoteLeaderError(guild_id, target_user_id)
                self.log_rejection("set_role", error, guild_id=guild_id, user_id=acting_user_id)
                raise error

            previous_role = membership.role
            if previous_role != role:
                membership.role = role
                self._audit.record(
                    session,
                    guild_id,
                    acting_user_id,
                    "member_role_changed",
                    {
                        "target_user_id": target_user_id,
                        "from_role": previous_role.value,
                        "to_role": role.value,
                    },
                )
                await self._member_repo.flush(session)

        changed = previous_role != role
        self.log_operation(
            "set_role",
            user_id=acting_user_id,
            guild_id=guild_id,
            target_user_id=target_user_id,
            role=role.value,
            changed=changed,
        )
        if changed:
            await self.emit_event(
                events.GUILD_MEMBER_ROLE_CHANGED,
                {
                    "guild_id": guild_id,
                    "user_id": target_user_id,
                    "from_role": previous_role.value,
                    "to_role": role.value,
                    "changed_by": acting_user_id,
                },
            )
        return {
            "guild_id": guild_id,
            "user_id": target_user_id,
            "role": role.value,
            "previous_role": previous_role.value,
            "changed": changed,
        }

    async def leave(self, user_id: int, guild_id: int) -> Dict[str, Any]:
        """
        Leave a guild.

        Raises:
            NotAMemberError: User is not ACTIVE in the guild
            LeaderCannotLeaveError: User leads the guild or one of its parties
        """
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, user_id)
            guild = await self._permissions.load_guild(session, guild_id, for_update=True)
            membership = await self._permissions.require_active_member(
                session, guild_id, user_id, "leave", for_update=True
            )
            detached = await self._remove_membership(session, guild, membership, "leave")
            self._audit.record(
                session, guild_id, user_id, "member_left", {"detached_characters": detached}
            )
            await self._member_repo.flush(session)

        self.log_operation("leave", user_id=user_id, guild_id=guild_id, detached=detached)
        await self.emit_event(
            events.GUILD_MEMBER_LEFT,
            {"guild_id": guild_id, "user_id": user_id, "detached_characters": detached},
        )
        return {"guild_id": guild_id, "user_id": user_id, "detached_characters": detached}

    async def kick(
        self, acting_user_id: int, guild_id: int, target_user_id: int
    ) -> Dict[str, Any]:
        """
        Remove another member from a guild.

        Raises:
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            InvalidStateError: Acting user targets themselves
            NotAMemberError: Target is not ACTIVE in the guild
            LeaderCannotLeaveError: Target leads the guild or one of its parties
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        target_user_id = InputValidator.validate_positive_integer(target_user_id, "target_user_id")

        if acting_user_id == target_user_id:
            raise InvalidStateError(
                "kick",
                "members cannot kick themselves; use leave instead",
                details={"guild_id": guild_id, "user_id": acting_user_id},
            )

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            await self._permissions.load_user(session, target_user_id)
            guild = await self._permissions.load_guild(session, guild_id, for_update=True)
            await self._permissions.require_officer(session, guild_id, acting_user_id, "kick")
            membership = await self._permissions.require_active_member(
                session, guild_id, target_user_id, "kick", for_update=True
            )
            detached = await self._remove_membership(session, guild, membership, "kick")
            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "member_kicked",
                {"target_user_id": target_user_id, "detached_characters": detached},
            )
            await self._member_repo.flush(session)

        self.log_operation(
            "kick",
            user_id=acting_user_id,
            guild_id=guild_id,
            target_user_id=target_user_id,
            detached=detached,
        )
        await self.emit_event(
            events.GUILD_MEMBER_KICKED,
            {
                "guild_id": guild_id,
                "user_id": target_user_id,
                "kicked_by": acting_user_id,
                "detached_characters": detached,
            },
        )
        return {"guild_id": guild_id, "user_id": target_user_id, "detached_characters": detached}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_membership(self, user_id: int, guild_id: int) -> Optional[Dict[str, Any]]:
        """The membership of a user in a guild (any status), or None."""
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_session() as session:
            membership = await self._permissions.get_membership(session, guild_id, user_id)
            if membership is None:
                return None
            return {
                "guild_id": membership.guild_id,
                "user_id": membership.user_id,
                "role": membership.role.value,
                "status": membership.status.value,
                "created_at": membership.created_at,
                "updated_at": membership.updated_at,
            }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _remove_membership(
        self, session: AsyncSession, guild: Guild, membership: GuildMember, action: str
    ) -> int:
        """Delete an ACTIVE membership; returns how many characters left their parties."""
        user_id = membership.user_id

        if guild.leader_id == user_id:
            error = LeaderCannotLeaveError(
                action, guild.id, user_id, "leadership must be transferred first"
            )
            self.log_rejection(action, error, guild_id=guild.id, user_id=user_id)
            raise error

        led_party = await self._party_repo.find_one_where(
            session, Party.guild_id == guild.id, Party.leader_id == user_id
        )
        if led_party is not None:
            error = LeaderCannotLeaveError(
                action,
                guild.id,
                user_id,
                f"party {led_party.id} must be disbanded or handed over first",
            )
            self.log_rejection(action, error, guild_id=guild.id, user_id=user_id)
            raise error

        guild_tag_ids = select(Tag.id).where(Tag.guild_id == guild.id)
        result = await session.execute(
            update(Character)
            .where(
                Character.owner_id == user_id,
                Character.tag_id.in_(guild_tag_ids),
                Character.party_id.is_not(None),
            )
            .values(party_id=None)
            .execution_options(synchronize_session=False)
        )
        await self._member_repo.delete(session, membership)
        return result.rowcount or 0
