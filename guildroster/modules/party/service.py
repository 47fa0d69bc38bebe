"""
PartyService - Party coordinator
================================

Handles:
- Party creation by ACTIVE guild members
- Slotting characters into and out of parties
- Disbanding and leadership handover
- Party queries

A user leads at most one party across all guilds. Party creation and
leadership handover lock the prospective leader's user row, so two
concurrent attempts by the same user serialize and the loser sees the
winner's party. The unique constraint on parties.leader_id backs this up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import update

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.identity.user import User
from guildroster.database.models.roster.character import Character
from guildroster.database.models.social.party import Party
from guildroster.database.models.social.tag import Tag
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    AlreadyLeadsAPartyError,
    CharacterAlreadyInPartyError,
    CharacterNotFoundError,
    CharacterNotInGuildError,
    CharacterNotInPartyError,
    DuplicatePartyNameError,
    NotPartyLeaderError,
    PartyNotFoundError,
    TagNotFoundError,
    UserNotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.guild.audit_service import GuildAuditService
    from guildroster.modules.guild.permission_service import GuildPermissionService


class PartyService(BaseService):
    """
    PartyService coordinates parties inside a guild.

    Business Logic:
    - Any ACTIVE member may create a party and becomes its leader
    - Party names are unique within a guild
    - Only the party leader fills slots; the leader or the character's
      owner may empty one
    - The party leader or an ACTIVE OFFICER may disband
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
        self._party_repo = BaseRepository[Party](Party, self.log)
        self._character_repo = BaseRepository[Character](Character, self.log)
        self._tag_repo = BaseRepository[Tag](Tag, self.log)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def create_party(self, acting_user_id: int, guild_id: int, name: str) -> Dict[str, Any]:
        """
        Create a party led by the acting user.

        Raises:
            NotAMemberError: Acting user is not ACTIVE in the guild
            AlreadyLeadsAPartyError: Acting user already leads a party anywhere
            DuplicatePartyNameError: Name already used in this guild
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        name = InputValidator.validate_name(name, "party_name")

        async with DatabaseService.get_transaction() as session:
            await self._lock_user(session, acting_user_id)
            await self._permissions.load_guild(session, guild_id)
            await self._permissions.require_active_member(
                session, guild_id, acting_user_id, "create_party", for_update=True
            )
            await self._ensure_not_leading(session, acting_user_id, "create_party", guild_id)

            if await self._party_repo.exists(
                session, Party.guild_id == guild_id, Party.name == name
            ):
                error = DuplicatePartyNameError(guild_id, name)
                self.log_rejection("create_party", error, guild_id=guild_id, user_id=acting_user_id)
                raise error

            party = self._party_repo.add(
                session, Party(guild_id=guild_id, name=name, leader_id=acting_user_id)
            )
            await self._party_repo.flush(session)
            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "party_created",
                {"party_id": party.id, "party_name": name},
            )
            await self._party_repo.flush(session)

            result = self._serialize_party(party, [])

        self.log_operation(
            "create_party", user_id=acting_user_id, guild_id=guild_id, party_id=result["party_id"]
        )
        await self.emit_event(
            events.PARTY_CREATED,
            {
                "party_id": result["party_id"],
                "guild_id": guild_id,
                "party_name": name,
                "leader_id": acting_user_id,
            },
        )
        return result

    async def add_character(
        self, acting_user_id: int, party_id: int, character_id: int
    ) -> Dict[str, Any]:
        """
        Slot a character into a party; re-adding to the same party is a no-op.

        Raises:
            NotPartyLeaderError: Acting user does not lead the party
            NotAMemberError: Character owner is not ACTIVE in the party's guild
            CharacterNotInGuildError: Character is tagged in another guild
            CharacterAlreadyInPartyError: Character sits in a different party
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        party_id = InputValidator.validate_positive_integer(party_id, "party_id")
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            party = await self._load_party(session, party_id)
            self._require_party_leader(party, acting_user_id, "add_character")
            character = await self._load_character(session, character_id)

            await self._permissions.require_active_member(
                session, party.guild_id, character.owner_id, "add_character", for_update=True
            )
            tag = await self._tag_repo.get(session, character.tag_id)
            if tag is None:
                raise TagNotFoundError(character.tag_id)
            if tag.guild_id != party.guild_id:
                error = CharacterNotInGuildError(character_id, party.guild_id)
                self.log_rejection(
                    "add_character", error, guild_id=party.guild_id, user_id=acting_user_id
                )
                raise error

            added = character.party_id != party_id
            if added:
                if character.party_id is not None:
                    error = CharacterAlreadyInPartyError(character_id, character.party_id)
                    self.log_rejection(
                        "add_character", error, guild_id=party.guild_id, user_id=acting_user_id
                    )
                    raise error

                character.party_id = party_id
                self._audit.record(
                    session,
                    party.guild_id,
                    acting_user_id,
                    "party_character_added",
                    {"party_id": party_id, "character_id": character_id},
                )
                await self._character_repo.flush(session)

            result = await self._build_party_result(session, party)

        self.log_operation(
            "add_character",
            user_id=acting_user_id,
            guild_id=result["guild_id"],
            party_id=party_id,
            character_id=character_id,
            added=added,
        )
        if added:
            await self.emit_event(
                events.PARTY_CHARACTER_ADDED,
                {
                    "party_id": party_id,
                    "guild_id": result["guild_id"],
                    "character_id": character_id,
                },
            )
        result["added"] = added
        return result

    async def remove_character(
        self, acting_user_id: int, party_id: int, character_id: int
    ) -> Dict[str, Any]:
        """
        Empty a character's slot.

        Raises:
            NotPartyLeaderError: Actor is neither party leader nor character owner
            CharacterNotInPartyError: Character is not in this party
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        party_id = InputValidator.validate_positive_integer(party_id, "party_id")
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            party = await self._load_party(session, party_id)
            character = await self._load_character(session, character_id)

            if acting_user_id not in (party.leader_id, character.owner_id):
                self._require_party_leader(party, acting_user_id, "remove_character")

            if character.party_id != party_id:
                error = CharacterNotInPartyError(character_id, party_id)
                self.log_rejection(
                    "remove_character", error, guild_id=party.guild_id, user_id=acting_user_id
                )
                raise error

            character.party_id = None
            self._audit.record(
                session,
                party.guild_id,
                acting_user_id,
                "party_character_removed",
                {"party_id": party_id, "character_id": character_id},
            )
            await self._character_repo.flush(session)

            result = await self._build_party_result(session, party)

        self.log_operation(
            "remove_character",
            user_id=acting_user_id,
            guild_id=result["guild_id"],
            party_id=party_id,
            character_id=character_id,
        )
        await self.emit_event(
            events.PARTY_CHARACTER_REMOVED,
            {"party_id": party_id, "guild_id": result["guild_id"], "character_id": character_id},
        )
        return result

    async def disband_party(self, acting_user_id: int, party_id: int) -> Dict[str, Any]:
        """
        Clear every slot and delete the party.

        Raises:
            ForbiddenError: Actor is neither party leader nor ACTIVE OFFICER
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        party_id = InputValidator.validate_positive_integer(party_id, "party_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            party = await self._load_party(session, party_id)
            if party.leader_id != acting_user_id:
                await self._permissions.require_officer(
                    session, party.guild_id, acting_user_id, "disband_party"
                )

            guild_id = party.guild_id
            party_name = party.name
            result = await session.execute(
                update(Character)
                .where(Character.party_id == party_id)
                .values(party_id=None)
                .execution_options(synchronize_session=False)
            )
            released = result.rowcount or 0
            await self._party_repo.delete(session, party)
            self._audit.record(
                session,
                guild_id,
                acting_user_id,
                "party_disbanded",
                {"party_id": party_id, "party_name": party_name, "released_characters": released},
            )
            await self._party_repo.flush(session)

        self.log_operation(
            "disband_party", user_id=acting_user_id, guild_id=guild_id, party_id=party_id
        )
        await self.emit_event(
            events.PARTY_DISBANDED,
            {
                "party_id": party_id,
                "guild_id": guild_id,
                "party_name": party_name,
                "disbanded_by": acting_user_id,
                "released_characters": released,
            },
        )
        return {"party_id": party_id, "guild_id": guild_id, "released_characters": released}

    async def transfer_party_leadership(
        self, acting_user_id: int, party_id: int, new_leader_id: int
    ) -> Dict[str, Any]:
        """
        Hand a party to another ACTIVE member of its guild.

        Raises:
            NotPartyLeaderError: Acting user does not lead the party
            NotAMemberError: New leader is not ACTIVE in the party's guild
            AlreadyLeadsAPartyError: New leader already leads a party
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        party_id = InputValidator.validate_positive_integer(party_id, "party_id")
        new_leader_id = InputValidator.validate_positive_integer(new_leader_id, "new_leader_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            party = await self._load_party(session, party_id)
            self._require_party_leader(party, acting_user_id, "transfer_party_leadership")

            changed = new_leader_id != party.leader_id
            if changed:
                await self._lock_user(session, new_leader_id)
                await self._permissions.require_active_member(
                    session,
                    party.guild_id,
                    new_leader_id,
                    "transfer_party_leadership",
                    for_update=True,
                )
                await self._ensure_not_leading(
                    session, new_leader_id, "transfer_party_leadership", party.guild_id
                )

                party.leader_id = new_leader_id
                self._audit.record(
                    session,
                    party.guild_id,
                    acting_user_id,
                    "party_leadership_transferred",
                    {
                        "party_id": party_id,
                        "from_user_id": acting_user_id,
                        "to_user_id": new_leader_id,
                    },
                )
                await self._party_repo.flush(session)

            result = await self._build_party_result(session, party)

        self.log_operation(
            "transfer_party_leadership",
            user_id=acting_user_id,
            guild_id=result["guild_id"],
            party_id=party_id,
            new_leader_id=new_leader_id,
        )
        if changed:
            await self.emit_event(
                events.PARTY_LEADERSHIP_TRANSFERRED,
                {
                    "party_id": party_id,
                    "guild_id": result["guild_id"],
                    "previous_leader_id": acting_user_id,
                    "new_leader_id": new_leader_id,
                },
            )
        return result

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_party(self, party_id: int) -> Dict[str, Any]:
        """
        Raises:
            PartyNotFoundError: Party not found
        """
        party_id = InputValidator.validate_positive_integer(party_id, "party_id")

        async with DatabaseService.get_session() as session:
            party = await self._party_repo.get(session, party_id)
            if party is None:
                raise PartyNotFoundError(party_id)
            return await self._build_party_result(session, party)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _lock_user(self, session: AsyncSession, user_id: int) -> User:
        user = await DatabaseService.get_locked_entity(session, User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _load_party(self, session: AsyncSession, party_id: int) -> Party:
        party = await self._party_repo.get(session, party_id, for_update=True)
        if party is None:
            raise PartyNotFoundError(party_id)
        return party

    async def _load_character(self, session: AsyncSession, character_id: int) -> Character:
        character = await self._character_repo.get(session, character_id, for_update=True)
        if character is None:
            raise CharacterNotFoundError(character_id)
        return character

    def _require_party_leader(self, party: Party, user_id: int, action: str) -> None:
        if party.leader_id != user_id:
            error = NotPartyLeaderError(action, party.id, user_id)
            self.log_rejection(action, error, guild_id=party.guild_id, user_id=user_id)
            raise error

    async def _ensure_not_leading(
        self, session: AsyncSession, user_id: int, action: str, guild_id: int
    ) -> None:
        led = await self._party_repo.find_one_where(session, Party.leader_id == user_id)
        if led is not None:
            error = AlreadyLeadsAPartyError(user_id, led.id)
            self.log_rejection(action, error, guild_id=guild_id, user_id=user_id)
            raise error

    async def _build_party_result(self, session: AsyncSession, party: Party) -> Dict[str, Any]:
        members = await self._character_repo.find_many_where(
            session, Character.party_id == party.id, order_by=[Character.id]
        )
        return self._serialize_party(party, [character.id for character in members])

    @staticmethod
    def _serialize_party(party: Party, character_ids: list) -> Dict[str, Any]:
        return {
            "party_id": party.id,
            "guild_id": party.guild_id,
            "party_name": party.name,
            "leader_id": party.leader_id,
            "character_ids": character_ids,
        }
