"""
GuildInviteService - Membership workflow, invitation half
=========================================================

Handles:
- Officer invitations (absent -> PENDING)
- Accepting (PENDING -> ACTIVE), declining and revoking (PENDING -> absent)
- Pending-invite queries for guilds and users

Membership rows for a guild are only written while that guild's row is
locked, so competing invites and accepts serialize on the guild.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.enums import MemberRole, MemberStatus
from guildroster.database.models.social.guild_member import GuildMember
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import AlreadyMemberError, NoPendingInviteError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.guild.audit_service import GuildAuditService
    from guildroster.modules.guild.permission_service import GuildPermissionService


class GuildInviteService(BaseService):
    """
    GuildInviteService drives the invite half of the membership state machine.

    Business Logic:
    - Only ACTIVE OFFICERs invite and revoke
    - Any existing row (PENDING or ACTIVE) blocks a new invite
    - Only the invited user accepts or declines
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

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def invite(
        self, acting_user_id: int, guild_id: int, target_user_id: int
    ) -> Dict[str, Any]:
        """
        Invite a user into a guild.

        Raises:
            UserNotFoundError: Acting or target user not found
            GuildNotFoundError: Guild not found
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            AlreadyMemberError: Target already has a PENDING or ACTIVE row
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        target_user_id = InputValidator.validate_positive_integer(target_user_id, "target_user_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            await self._permissions.load_user(session, target_user_id)
            await self._permissions.load_guild(session, guild_id, for_update=True)
            await self._permissions.require_officer(session, guild_id, acting_user_id, "invite")

            existing = await self._permissions.get_membership(session, guild_id, target_user_id)
            if existing is not None:
                error = AlreadyMemberError(guild_id, target_user_id, existing.status.value)
                self.log_rejection("invite", error, guild_id=guild_id, user_id=acting_user_id)
                raise error

            membership = self._member_repo.add(
                session,
                GuildMember(
                    user_id=target_user_id,
                    guild_id=guild_id,
                    role=MemberRole.MEMBER,
                    status=MemberStatus.PENDING,
                ),
            )
            self._audit.record(
                session, guild_id, acting_user_id, "invite_created", {"target_user_id": target_user_id}
            )
            await self._member_repo.flush(session)

            result = self._serialize_membership(membership)

        self.log_operation(
            "invite", user_id=acting_user_id, guild_id=guild_id, target_user_id=target_user_id
        )
        await self.emit_event(
            events.GUILD_INVITE_CREATED,
            {"guild_id": guild_id, "user_id": target_user_id, "invited_by": acting_user_id},
        )
        return result

    async def accept_invite(self, user_id: int, guild_id: int) -> Dict[str, Any]:
        """
        Accept a pending invite; the membership becomes ACTIVE.

        Raises:
            NoPendingInviteError: No PENDING row (including already accepted)
        """
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, user_id)
            await self._permissions.load_guild(session, guild_id, for_update=True)
            membership = await self._require_pending(session, guild_id, user_id, "accept_invite")

            membership.status = MemberStatus.ACTIVE
            self._audit.record(session, guild_id, user_id, "invite_accepted", {})
            await self._member_repo.flush(session)

            result = self._serialize_membership(membership)

        self.log_operation("accept_invite", user_id=user_id, guild_id=guild_id)
        await self.emit_event(
            events.GUILD_INVITE_ACCEPTED, {"guild_id": guild_id, "user_id": user_id}
        )
        return result

    async def decline_invite(self, user_id: int, guild_id: int) -> Dict[str, Any]:
        """
        Decline a pending invite; the row is removed.

        Raises:
            NoPendingInviteError: No PENDING row
        """
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, user_id)
            await self._permissions.load_guild(session, guild_id, for_update=True)
            membership = await self._require_pending(session, guild_id, user_id, "decline_invite")

            await self._member_repo.delete(session, membership)
            self._audit.record(session, guild_id, user_id, "invite_declined", {})
            await self._member_repo.flush(session)

        self.log_operation("decline_invite", user_id=user_id, guild_id=guild_id)
        await self.emit_event(
            events.GUILD_INVITE_DECLINED, {"guild_id": guild_id, "user_id": user_id}
        )
        return {"guild_id": guild_id, "user_id": user_id, "declined": True}

    async def revoke_invite(
        self, acting_user_id: int, guild_id: int, target_user_id: int
    ) -> Dict[str, Any]:
        """
        Withdraw a pending invite.

        Raises:
            ForbiddenError: Acting user is not an ACTIVE OFFICER
            NoPendingInviteError: Target has no PENDING row
        """
        acting_user_id = InputValidator.validate_positive_integer(acting_user_id, "acting_user_id")
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")
        target_user_id = InputValidator.validate_positive_integer(target_user_id, "target_user_id")

        async with DatabaseService.get_transaction() as session:
            await self._permissions.load_user(session, acting_user_id)
            await self._permissions.load_guild(session, guild_id, for_update=True)
            await self._permissions.require_officer(session, guild_id, acting_user_id, "revoke_invite")
            membership = await self._require_pending(
                session, guild_id, target_user_id, "revoke_invite"
            )

            await self._member_repo.delete(session, membership)
            self._audit.record(
                session, guild_id, acting_user_id, "invite_revoked", {"target_user_id": target_user_id}
            )
            await self._member_repo.flush(session)

        self.log_operation(
            "revoke_invite", user_id=acting_user_id, guild_id=guild_id, target_user_id=target_user_id
        )
        await self.emit_event(
            events.GUILD_INVITE_REVOKED,
            {"guild_id": guild_id, "user_id": target_user_id, "revoked_by": acting_user_id},
        )
        return {"guild_id": guild_id, "user_id": target_user_id, "revoked": True}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_pending_invites_for_guild(self, guild_id: int) -> Dict[str, Any]:
        guild_id = InputValidator.validate_positive_integer(guild_id, "guild_id")

        async with DatabaseService.get_session() as session:
            await self._permissions.load_guild(session, guild_id)
            rows = await self._member_repo.find_many_where(
                session,
                GuildMember.guild_id == guild_id,
                GuildMember.status == MemberStatus.PENDING,
                order_by=[GuildMember.created_at, GuildMember.id],
            )
            return {
                "guild_id": guild_id,
                "invites": [self._serialize_membership(row) for row in rows],
            }

    async def get_pending_invites_for_user(self, user_id: int) -> Dict[str, Any]:
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            await self._permissions.load_user(session, user_id)
            rows = await self._member_repo.find_many_where(
                session,
                GuildMember.user_id == user_id,
                GuildMember.status == MemberStatus.PENDING,
                order_by=[GuildMember.created_at, GuildMember.id],
            )
            return {
                "user_id": user_id,
                "invites": [self._serialize_membership(row) for row in rows],
            }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _require_pending(
        self, session: AsyncSession, guild_id: int, user_id: int, action: str
    ) -> GuildMember:
        membership = await self._permissions.get_membership(
            session, guild_id, user_id, for_update=True
        )
        if membership is None or membership.status != MemberStatus.PENDING:
            error = NoPendingInviteError(action, guild_id, user_id)
            self.log_rejection(action, error, guild_id=guild_id, user_id=user_id)
            raise error
        return membership

    @staticmethod
    def _serialize_membership(membership: GuildMember) -> Dict[str, Any]:
        return {
            "guild_id": membership.guild_id,
            "user_id": membership.user_id,
            "role": membership.role.value,
            "status": membership.status.value,
            "created_at": membership.created_at,
        }
