"""
Tests for GuildPermissionService.

Runs against the per-test SQLite database; the guards are exercised
directly inside a session the way the roster services call them.
"""

import pytest

from guildroster.core.database.service import DatabaseService
from guildroster.modules.shared.exceptions import (
    ForbiddenError,
    GuildNotFoundError,
    NotAMemberError,
    NotLeaderError,
    UserNotFoundError,
)


@pytest.mark.database
class TestGuards:
    async def test_load_user_missing(self, container):
        async with DatabaseService.get_session() as session:
            with pytest.raises(UserNotFoundError):
                await container.permissions.load_user(session, 999)

    async def test_load_guild_missing(self, container):
        async with DatabaseService.get_session() as session:
            with pytest.raises(GuildNotFoundError):
                await container.permissions.load_guild(session, 999)

    async def test_pending_invitee_is_not_a_member(self, container, make_user):
        leader = await make_user("Leader")
        invitee = await make_user("Invitee")
        guild = await container.guilds.create_guild(leader, "Alpha")
        await container.invites.invite(leader, guild["guild_id"], invitee)

        async with DatabaseService.get_session() as session:
            assert not await container.permissions.is_active_member(
                session, guild["guild_id"], invitee
            )
            with pytest.raises(NotAMemberError):
                await container.permissions.require_active_member(
                    session, guild["guild_id"], invitee, "create_party"
                )

    async def test_member_is_not_officer(self, container, make_user, enroll):
        leader = await make_user("Leader")
        member = await make_user("Member")
        guild = await container.guilds.create_guild(leader, "Alpha")
        await enroll(leader, guild["guild_id"], member)

        async with DatabaseService.get_session() as session:
            assert await container.permissions.is_active_member(session, guild["guild_id"], member)
            assert await container.permissions.is_active_officer(session, guild["guild_id"], leader)
            with pytest.raises(ForbiddenError):
                await container.permissions.require_officer(
                    session, guild["guild_id"], member, "invite"
                )

    async def test_require_leader(self, container, make_user, enroll):
        leader = await make_user("Leader")
        officer = await make_user("Officer")
        guild = await container.guilds.create_guild(leader, "Alpha")
        await enroll(leader, guild["guild_id"], officer, officer=True)

        async with DatabaseService.get_session() as session:
            loaded = await container.permissions.load_guild(session, guild["guild_id"])
            container.permissions.require_leader(loaded, leader, "delete_guild")
            with pytest.raises(NotLeaderError):
                container.permissions.require_leader(loaded, officer, "delete_guild")


@pytest.mark.database
class TestGetPermissions:
    async def test_leader_capabilities(self, container, make_user):
        leader = await make_user("Leader")
        guild = await container.guilds.create_guild(leader, "Alpha")

        perms = await container.permissions.get_permissions(guild["guild_id"], leader)

        assert perms["status"] == "ACTIVE"
        assert perms["role"] == "OFFICER"
        assert perms["is_leader"] is True
        assert perms["can_invite"] is True

    async def test_pending_invitee_has_no_capabilities(self, container, make_user):
        leader = await make_user("Leader")
        invitee = await make_user("Invitee")
        guild = await container.guilds.create_guild(leader, "Alpha")
        await container.invites.invite(leader, guild["guild_id"], invitee)

        perms = await container.permissions.get_permissions(guild["guild_id"], invitee)

        assert perms["status"] == "PENDING"
        assert perms["role"] is None
        assert perms["is_member"] is False
        assert perms["can_create_party"] is False

    async def test_stranger(self, container, make_user):
        leader = await make_user("Leader")
        stranger = await make_user("Stranger")
        guild = await container.guilds.create_guild(leader, "Alpha")

        perms = await container.permissions.get_permissions(guild["guild_id"], stranger)

        assert perms["status"] is None
        assert perms["is_member"] is False
        assert perms["is_leader"] is False
