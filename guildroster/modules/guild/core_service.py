"""
GuildService - Guild registry
=============================

Handles:
- Guild creation (the founder becomes leader and ACTIVE OFFICER)
- Leadership transfer
- Guild deletion with an ordered cascade
- Guild and roster queries

All operations:
- Validate input before opening a transaction
- Lock the guild row for leadership and deletion changes
- Append an audit entry in the same transaction
- Publish events after commit
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy import select, update

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.enums import MemberRole, MemberStatus
from guildroster.database.models.roster.character import Character
from guildroster.database.models.social.guild import Guild
from guildroster.database.models.social.guild_member import GuildMember
from guildroster.database.models.social.party import Party
from guildroster.database.models.social.tag import Tag
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    DuplicateNameError,
    GuildNotEmptyError,
    NotAMemberError,
)

if TYPE_CHECKING:
    from logging import Logger

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.guild.audit_service import GuildAuditService
    from guildroster.modules.guild.permission_service import GuildPermissionService


class GuildService(BaseService):
    """
    GuildService handles the guild registry.

    Business Logic:
    - Guild names are globally unique
    - The leader always holds an ACTIVE OFFICER membership
    - A guild can only be deleted by its leader once nobody else is ACTIVE
      in it and no character is tagged in it
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
        self._guild_repo = BaseRepository[Guild](Guild, self.log)
        self._member_repo = BaseRepository[GuildMember](GuildMember, self.log)
        self._tag_repo = BaseRepository[Tag](Tag, self.log)
        self._party_repo = BaseRepository[Party](Party, self.log)
        self._character_repo = BaseRepository[Character](Character, self.log)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def create_guild(self, creator_id: int, name: str) -> Dict[str, Any]:
        """
        Create a guild led by `creator_id`.

        Returns:
            Dict with guild data

        Raises:
            UserNotFoundError: Creator not found
            DuplicateNameError: Guild name already taken
        """
        creator_id = InputValidator.validate_positive_integer(creator_id, "creator_id")
        name = InputValidator.validate_name(name, "guild_name")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, creator_id)

            if await self._guild_repo.exists(session, Guild.name == name):
                error = DuplicateNameError(name)
                self.log_rejection("create_guild", error, user_id=creator_id)
                raise error

            guild = self._guild_repo.add(session, Guild(name=name, leader_id=creator_id))
            await self._guild_repo.flush(session)

            self._member_repo.add(
                session,
                GuildMember(
                    user_id=creator_id,
                    guild_id=guild.id,
                    role=MemberRole.OFFICER,
                    status=MemberStatus.ACTIVE,
                ),
            )
            self._audit.record(session, guild.id, creator_id, "guild_created", {"guild_name": name})
            await self._guild_repo.flush(session)

            result = self._serialize_guild(guild)

        self.log_operation("create_guild", user_id=creator_id, guild_id=result["guild_id"])
        await self.emit_event(
            events.GUILD_CREATED,
            {"guild_id": result["guild_id"], "guild_name": name, "leader_id": creator_id},
        )
        return result

    async def transfer_leadership(
        self, acting_user_id: int, guild_id: int, new_leader_id: int
    ) -> Dict[str, Any]:
        """
        Hand guild leadership to another ACTIVE member.

        The new leader is promoted to OFFICER; the previous leader stays an
        ACTIVE OFFICER.

        Raises:
            GuildNotFoundError: Guild not found
            NotLeaderError: Acting user does not lead the guild
            NotAMemberError: New leader is not ACTIVE in the guild
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        new_leader_id = InputValidator.validate_positive_integer(new_leader_id, "new_leader_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            guild = await self._permissions.load_guild(session, guild_id, for_update=True)
            self._permissions.require_leader(guild, acting_user_id, "transfer_leadership")

            new_leader = await self._permissions.get_membership(
                session, guild_id, new_leader_id, for_update=True
            )
            if new_leader is None or not new_leader.is_active:
                error = NotAMemberError("transfer_leadership", guild_id, new_leader_id)
                self.log_rejection(
                    "transfer_leadership", error, guild_id=guild_id, user_id=acting_user_id
                )
                raise error

            previous_leader_id = guild.leader_id
            guild.leader_id = new_leader_id
            new_leader.role = MemberRole.OFFICER

            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "leadership_transferred",
                {"from_user_id": previous_leader_id, "to_user_id": new_leader_id},
            )
            await self._guild_repo.flush(session)

            result = self._serialize_guild(guild)

        self.log_operation(
            "transfer_leadership",
            user_id=acting_user_id,
            guild_id=guild_id,
            new_leader_id=new_leader_id,
        )
        await self.emit_event(
            events.GUILD_LEADERSHIP_TRANSFERRED,
            {
                "guild_id": guild_id,
                "previous_leader_id": previous_leader_id,
                "new_leader_id": new_leader_id,
            },
        )
        return result

    async def delete_guild(self, acting_user_id: int, guild_id: int) -> Dict[str, Any]:
        """
        Delete an emptied guild.

        Cascade order: pending invites, party slots and parties, tags, the
        leader's membership, the guild row.

        Raises:
            GuildNotFoundError: Guild not found
            NotLeaderError: Acting user does not lead the guild
            GuildNotEmptyError: Other ACTIVE members or tagged characters remain
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            guild = await self._permissions.load_guild(session, guild_id, for_update=True)
            self._permissions.require_leader(guild, acting_user_id, "delete_guild")

            other_members = await self._member_repo.count(
                session,
                GuildMember.guild_id == guild_id,
                GuildMember.status == MemberStatus.ACTIVE,
                GuildMember.user_id != guild.leader_id,
            )
            guild_tag_ids = select(Tag.id).where(Tag.guild_id == guild_id)
            characters = await self._character_repo.count(
                session, Character.tag_id.in_(guild_tag_ids)
            )
            if other_members or characters:
                error = GuildNotEmptyError(guild_id, other_members, characters)
                self.log_rejection("delete_guild", error, guild_id=guild_id, user_id=acting_user_id)
                raise error

            guild_name = guild.name

            revoked_invites = await self._member_repo.delete_where(
                session,
                GuildMember.guild_id == guild_id,
                GuildMember.status == MemberStatus.PENDING,
            )

            guild_party_ids = select(Party.id).where(Party.guild_id == guild_id)
            await session.execute(
                update(Character)
                .where(Character.party_id.in_(guild_party_ids))
                .values(party_id=None)
                .execution_options(synchronize_session=False)
            )
            parties = await self._party_repo.delete_where(session, Party.guild_id == guild_id)
            tags = await self._tag_repo.delete_where(session, Tag.guild_id == guild_id)
            await self._member_repo.delete_where(session, GuildMember.guild_id == guild_id)
            await self._guild_repo.delete(session, guild)

            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "guild_deleted",
                {
                    "guild_name": guild_name,
                    "revoked_invites": revoked_invites,
                    "parties": parties,
                    "tags": tags,
                },
            )
            await self._guild_repo.flush(session)

        self.log_operation("delete_guild", user_id=acting_user_id, guild_id=guild_id)
        await self.emit_event(
            events.GUILD_DELETED,
            {"guild_id": guild_id, "guild_name": guild_name, "deleted_by": acting_user_id},
        )
        return {
            "guild_id": guild_id,
            "guild_name": guild_name,
            "revoked_invites": revoked_invites,
            "parties_disbanded": parties,
            "tags_deleted": tags,
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_guild(self, guild_id: int) -> Dict[str, Any]:
        """
        Raises:
            GuildNotFoundError: Guild not found
        """
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_session() as session:
            guild = await self._permissions.load_guild(session, guild_id)
            result = self._serialize_guild(guild)
            result["member_count"] = await self._member_repo.count(
                session,
                GuildMember.guild_id == guild_id,
                GuildMember.status == MemberStatus.ACTIVE,
            )
            return result

    async def get_roster(self, guild_id: int) -> Dict[str, Any]:
        """
        ACTIVE members with their roles, and pending invites listed apart.

        Raises:
            GuildNotFoundError: Guild not found
        """
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_session() as session:
            guild = await self._permissions.load_guild(session, guild_id)
            rows = await self._member_repo.find_many_where(
                session,
                GuildMember.guild_id == guild_id,
                order_by=[GuildMember.created_at, GuildMember.id],
            )

            members: List[Dict[str, Any]] = []
            pending: List[Dict[str, Any]] = []
            for row in rows:
                if row.status == MemberStatus.ACTIVE:
                    members.append(
                        {
                            "user_id": row.user_id,
                            "role": row.role.value,
                            "is_leader": row.user_id == guild.leader_id,
                            "joined_at": row.updated_at,
                        }
                    )
                else:
                    pending.append({"user_id": row.user_id, "invited_at": row.created_at})

            return {
                "guild_id": guild.id,
                "guild_name": guild.name,
                "leader_id": guild.leader_id,
                "members": members,
                "pending_invites": pending,
            }

    @staticmethod
    def _serialize_guild(guild: Guild) -> Dict[str, Any]:
        return {
            "guild_id": guild.id,
            "guild_name": guild.name,
            "leader_id": guild.leader_id,
            "created_at": guild.created_at,
        }
