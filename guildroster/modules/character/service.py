"""
CharacterService - Character roster and roles
=============================================

Handles:
- Character creation under a tag of a guild the owner is ACTIVE in
- Tag reassignment, inside a guild or across the owner's guilds
- WOE / WOE_TE / PVE role assignment with exclusivity enforcement
- Character deletion (roles, party slot, character)
- Character queries

Every command locks the character row, so role changes and moves on the
same character serialize. The character's governing guild is the guild of
its current tag.

Orphaned characters (owner no longer ACTIVE in the governing guild) are
kept. They cannot be moved or gain roles; their owner can still remove
roles from them or delete them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, NoReturn, Tuple

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.enums import CharacterRoleType
from guildroster.database.models.roster.character import Character
from guildroster.database.models.roster.character_role import CharacterRole
from guildroster.database.models.social.tag import Tag
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    CharacterNotFoundError,
    CharacterOrphanedError,
    CrossGuildReassignmentDeniedError,
    DuplicateCharacterNameError,
    ExclusiveRoleConflictError,
    TagNotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.guild.audit_service import GuildAuditService
    from guildroster.modules.guild.permission_service import GuildPermissionService


class CharacterService(BaseService):
    """
    CharacterService handles the character roster.

    Business Logic:
    - Character names are globally unique
    - The owner or an ACTIVE OFFICER of the governing guild may manage a character
    - Officers may only move characters within their own guild
    - A character holds at most one of WOE and WOE_TE; PVE combines with either
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
        self._character_repo = BaseRepository[Character](Character, self.log)
        self._role_repo = BaseRepository[CharacterRole](CharacterRole, self.log)
        self._tag_repo = BaseRepository[Tag](Tag, self.log)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def create_character(self, owner_id: int, name: str, tag_id: int) -> Dict[str, Any]:
        """
        Create a character for `owner_id` under `tag_id`.

        Raises:
            TagNotFoundError: Tag not found
            NotAMemberError: Owner is not ACTIVE in the tag's guild
            DuplicateCharacterNameError: Name already taken
        """
        owner_id = InputValidator.validate_positive_integer(owner_id, "owner_id")
        name = InputValidator.validate_name(name, "character_name")
        tag_id = InputValidator.validate_positive_integer(tag_id, "tag_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, owner_id)
            tag = await self._load_tag(session, tag_id)
            await self._permissions.require_active_member(
                session, tag.guild_id, owner_id, "create_character", for_update=True
            )

            if await self._character_repo.exists(session, Character.name == name):
                error = DuplicateCharacterNameError(name)
                self.log_rejection(
                    "create_character", error, guild_id=tag.guild_id, user_id=owner_id
                )
                raise error

            character = self._character_repo.add(
                session, Character(name=name, owner_id=owner_id, tag_id=tag_id)
            )
            await self._character_repo.flush(session)
            self._audit.record(
                session,
                tag.guild_id,
                owner_id,
                "character_created",
                {"character_id": character.id, "character_name": name, "tag_id": tag_id},
            )
            await self._character_repo.flush(session)

            result = self._serialize_character(character, tag, [])

        self.log_operation(
            "create_character",
            user_id=owner_id,
            guild_id=tag.guild_id,
            character_id=result["character_id"],
        )
        await self.emit_event(
            events.CHARACTER_CREATED,
            {
                "character_id": result["character_id"],
                "character_name": name,
                "owner_id": owner_id,
                "tag_id": tag_id,
                "guild_id": result["guild_id"],
            },
        )
        return result

    async def reassign_tag(
        self, acting_user_id: int, character_id: int, new_tag_id: int
    ) -> Dict[str, Any]:
        """
        Move a character to another tag.

        Moving to a tag of another guild clears the character's party slot.

        Raises:
            CharacterNotFoundError / TagNotFoundError: Unknown character or tag
            ForbiddenError: Actor is neither owner nor governing officer
            CharacterOrphanedError: Owner is no longer ACTIVE in the current guild
            CrossGuildReassignmentDeniedError: Target guild not allowed
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")
        new_tag_id = InputValidator.validate_positive_integer(new_tag_id, "new_tag_id")

        async with DatabaseService.get_transaction() as session:
            character, current_tag, is_owner = await self._load_for_actor(
                session, acting_user_id, character_id, "reassign_tag"
            )
            await self._require_not_orphaned(session, character, current_tag, "reassign_tag")

            new_tag = await self._load_tag(session, new_tag_id)
            from_guild_id = current_tag.guild_id
            to_guild_id = new_tag.guild_id

            if not is_owner and to_guild_id != from_guild_id:
                self._deny_reassignment(
                    character_id,
                    from_guild_id,
                    to_guild_id,
                    "officers may only move characters within their own guild",
                    acting_user_id,
                )
            owner_active = await self._permissions.is_active_member(
                session, to_guild_id, character.owner_id, for_update=True
            )
            if not owner_active:
                self._deny_reassignment(
                    character_id,
                    from_guild_id,
                    to_guild_id,
                    "the owner is not an active member of the target guild",
                    acting_user_id,
                )

            changed = character.tag_id != new_tag_id
            left_party_id = None
            if changed:
                previous_tag_id = character.tag_id
                character.tag_id = new_tag_id
                if to_guild_id != from_guild_id and character.party_id is not None:
                    left_party_id = character.party_id
                    character.party_id = None

                meta = {
                    "character_id": character_id,
                    "from_tag_id": previous_tag_id,
                    "to_tag_id": new_tag_id,
                    "left_party_id": left_party_id,
                }
                for guild_id in {from_guild_id, to_guild_id}:
                    self._audit.record(
                        session, guild_id, acting_user_id, "character_tag_reassigned", meta
                    )
                await self._character_repo.flush(session)

            roles = await self._load_roles(session, character_id)
            result = self._serialize_character(character, new_tag, roles)

        self.log_operation(
            "reassign_tag",
            user_id=acting_user_id,
            guild_id=to_guild_id,
            character_id=character_id,
            changed=changed,
        )
        if changed:
            await self.emit_event(
                events.CHARACTER_TAG_REASSIGNED,
                {
                    "character_id": character_id,
                    "from_guild_id": from_guild_id,
                    "to_guild_id": to_guild_id,
                    "tag_id": new_tag_id,
                    "left_party_id": left_party_id,
                },
            )
        return result

    async def assign_role(
        self,
        acting_user_id: int,
        character_id: int,
        role: Any,
        replace: bool = False,
    ) -> Dict[str, Any]:
        """
        Grant a role to a character.

        Assigning a role the character already holds is a no-op. With
        `replace=True` a conflicting exclusive role is swapped out.

        Raises:
            ForbiddenError: Actor is neither owner nor governing officer
            CharacterOrphanedError: Character is orphaned
            ExclusiveRoleConflictError: WOE / WOE_TE clash without replace
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")
        role = InputValidator.validate_choice(role, "role", CharacterRoleType)
        replace = InputValidator.validate_bool(replace, "replace")

        async with DatabaseService.get_transaction() as session:
            character, tag, _ = await self._load_for_actor(
                session, acting_user_id, character_id, "assign_role"
            )
            await self._require_not_orphaned(session, character, tag, "assign_role")

            held = await self._load_roles(session, character_id)
            replaced = None
            added = role not in held
            if added:
                if role.is_exclusive:
                    conflicting = [existing for existing in held if existing.is_exclusive]
                    if conflicting and not replace:
                        error = ExclusiveRoleConflictError(
                            character_id, conflicting[0].value, role.value
                        )
                        self.log_rejection(
                            "assign_role", error, guild_id=tag.guild_id, user_id=acting_user_id
                        )
                        raise error
                    if conflicting:
                        replaced = conflicting[0]
                        await self._role_repo.delete_where(
                            session,
                            CharacterRole.character_id == character_id,
                            CharacterRole.role == replaced,
                        )
                        held.remove(replaced)

                self._role_repo.add(session, CharacterRole(character_id=character_id, role=role))
                held.append(role)
                self._audit.record(
                    session,
                    tag.guild_id,
                    acting_user_id,
                    "character_role_assigned",
                    {
                        "character_id": character_id,
                        "role": role.value,
                        "replaced_role": replaced.value if replaced else None,
                    },
                )
                await self._role_repo.flush(session)

            result = self._serialize_character(character, tag, held)

        self.log_operation(
            "assign_role",
            user_id=acting_user_id,
            guild_id=result["guild_id"],
            character_id=character_id,
            role=role.value,
            added=added,
        )
        if added:
            await self.emit_event(
                events.CHARACTER_ROLE_ASSIGNED,
                {
                    "character_id": character_id,
                    "role": role.value,
                    "replaced_role": replaced.value if replaced else None,
                    "assigned_by": acting_user_id,
                },
            )
        result["added"] = added
        result["replaced_role"] = replaced.value if replaced else None
        return result

    async def remove_role(
        self, acting_user_id: int, character_id: int, role: Any
    ) -> Dict[str, Any]:
        """
        Remove a role from a character; removing an absent role is a no-op.

        Raises:
            ForbiddenError: Actor is neither owner nor governing officer
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")
        role = InputValidator.validate_choice(role, "role", CharacterRoleType)

        async with DatabaseService.get_transaction() as session:
            character, tag, _ = await self._load_for_actor(
                session, acting_user_id, character_id, "remove_role"
            )

            removed = bool(
                await self._role_repo.delete_where(
                    session,
                    CharacterRole.character_id == character_id,
                    CharacterRole.role == role,
                )
            )
            if removed:
                self._audit.record(
                    session,
                    tag.guild_id,
                    acting_user_id,
                    "character_role_removed",
                    {"character_id": character_id, "role": role.value},
                )
                await self._role_repo.flush(session)

            roles = await self._load_roles(session, character_id)
            result = self._serialize_character(character, tag, roles)

        self.log_operation(
            "remove_role",
            user_id=acting_user_id,
            guild_id=result["guild_id"],
            character_id=character_id,
            role=role.value,
            removed=removed,
        )
        if removed:
            await self.emit_event(
                events.CHARACTER_ROLE_REMOVED,
                {"character_id": character_id, "role": role.value, "removed_by": acting_user_id},
            )
        result["removed"] = removed
        return result

    async def delete_character(self, acting_user_id: int, character_id: int) -> Dict[str, Any]:
        """
        Delete a character: roles first, then the party slot, then the row.

        Raises:
            ForbiddenError: Actor is neither owner nor governing officer
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")

        async with DatabaseService.get_transaction() as session:
            character, tag, _ = await self._load_for_actor(
                session, acting_user_id, character_id, "delete_character"
            )

            roles_removed = await self._role_repo.delete_where(
                session, CharacterRole.character_id == character_id
            )
            left_party_id = character.party_id
            character.party_id = None
            await self._character_repo.flush(session)

            character_name = character.name
            owner_id = character.owner_id
            await self._character_repo.delete(session, character)
            self._audit.record(
                session,
                tag.guild_id,
                acting_user_id,
                "character_deleted",
                {
                    "character_id": character_id,
                    "character_name": character_name,
                    "owner_id": owner_id,
                    "left_party_id": left_party_id,
                },
            )
            await self._character_repo.flush(session)

        self.log_operation(
            "delete_character",
            user_id=acting_user_id,
            guild_id=tag.guild_id,
            character_id=character_id,
        )
        await self.emit_event(
            events.CHARACTER_DELETED,
            {
                "character_id": character_id,
                "character_name": character_name,
                "owner_id": owner_id,
                "left_party_id": left_party_id,
            },
        )
        return {
            "character_id": character_id,
            "deleted": True,
            "roles_removed": roles_removed,
            "left_party_id": left_party_id,
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_character(self, character_id: int) -> Dict[str, Any]:
        """
        Raises:
            CharacterNotFoundError: Character not found
        """
        character_id = InputValidator.validate_positive_integer(character_id, "character_id")

        async with DatabaseService.get_session() as session:
            character = await self._character_repo.get(session, character_id)
            if character is None:
                raise CharacterNotFoundError(character_id)
            tag = await self._load_tag(session, character.tag_id)
            roles = await self._load_roles(session, character_id)

            result = self._serialize_character(character, tag, roles)
            result["is_orphaned"] = not await self._permissions.is_active_member(
                session, tag.guild_id, character.owner_id
            )
            return result

    async def list_characters_for_user(self, user_id: int) -> Dict[str, Any]:
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            await self._permissions.load_user(session, user_id)
            characters = await self._character_repo.find_many_where(
                session, Character.owner_id == user_id, order_by=[Character.name]
            )

            entries = []
            for character in characters:
                tag = await self._load_tag(session, character.tag_id)
                roles = await self._load_roles(session, character.id)
                entry = self._serialize_character(character, tag, roles)
                entry["is_orphaned"] = not await self._permissions.is_active_member(
                    session, tag.guild_id, user_id
                )
                entries.append(entry)

            return {"user_id": user_id, "characters": entries}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _load_tag(self, session: AsyncSession, tag_id: int) -> Tag:
        tag = await self._tag_repo.get(session, tag_id)
        if tag is None:
            raise TagNotFoundError(tag_id)
        return tag

    async def _load_roles(
        self, session: AsyncSession, character_id: int
    ) -> List[CharacterRoleType]:
        rows = await self._role_repo.find_many_where(
            session, CharacterRole.character_id == character_id, order_by=[CharacterRole.role]
        )
        return [row.role for row in rows]

    async def _load_for_actor(
        self, session: AsyncSession, acting_user_id: int, character_id: int, action: str
    ) -> Tuple[Character, Tag, bool]:
        """
        Lock the character and authorize the actor.

        Returns:
            (character, current tag, whether the actor owns the character)
        """
        await self._permissions.load_user(session, acting_user_id)
        character = await DatabaseService.get_locked_entity(session, Character, character_id)
        if character is None:
            raise CharacterNotFoundError(character_id)
        tag = await self._load_tag(session, character.tag_id)

        is_owner = character.owner_id == acting_user_id
        if not is_owner:
            await self._permissions.require_officer(session, tag.guild_id, acting_user_id, action)
        return character, tag, is_owner

    async def _require_not_orphaned(
        self, session: AsyncSession, character: Character, tag: Tag, action: str
    ) -> None:
        if not await self._permissions.is_active_member(
            session, tag.guild_id, character.owner_id, for_update=True
        ):
            error = CharacterOrphanedError(action, character.id)
            self.log_rejection(action, error, guild_id=tag.guild_id, user_id=character.owner_id)
            raise error

    def _deny_reassignment(
        self,
        character_id: int,
        from_guild_id: int,
        to_guild_id: int,
        reason: str,
        acting_user_id: int,
    ) -> NoReturn:
        error = CrossGuildReassignmentDeniedError(character_id, from_guild_id, to_guild_id, reason)
        self.log_rejection("reassign_tag", error, guild_id=from_guild_id, user_id=acting_user_id)
        raise error

    @staticmethod
    def _serialize_character(
        character: Character, tag: Tag, roles: List[CharacterRoleType]
    ) -> Dict[str, Any]:
        return {
            "character_id": character.id,
            "character_name": character.name,
            "owner_id": character.owner_id,
            "tag_id": tag.id,
            "guild_id": tag.guild_id,
            "party_id": character.party_id,
            "roles": sorted(role.value for role in roles),
        }
