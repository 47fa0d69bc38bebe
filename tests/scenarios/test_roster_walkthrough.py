"""
End-to-end walkthroughs that chain the roster components together.
"""

import pytest

from guildroster.modules.shared.exceptions import (
    ConflictError,
    ExclusiveRoleConflictError,
    LeaderCannotLeaveError,
)

pytestmark = pytest.mark.database


class TestRosterWalkthrough:
    async def test_guild_founding_to_first_tag(self, container, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        guild = await container.guilds.create_guild(alice, "Alpha")
        guild_id = guild["guild_id"]
        leader = await container.members.get_membership(alice, guild_id)
        assert (leader["status"], leader["role"]) == ("ACTIVE", "OFFICER")

        await container.invites.invite(alice, guild_id, bob)
        pending = await container.members.get_membership(bob, guild_id)
        assert pending["status"] == "PENDING"

        await container.invites.accept_invite(bob, guild_id)
        joined = await container.members.get_membership(bob, guild_id)
        assert (joined["status"], joined["role"]) == ("ACTIVE", "MEMBER")

        await container.members.set_role(alice, guild_id, bob, "OFFICER")
        promoted = await container.members.get_membership(bob, guild_id)
        assert promoted["role"] == "OFFICER"

        tag = await container.tags.create_tag(bob, guild_id, "DPS")
        assert tag["tag_name"] == "DPS"

        with pytest.raises(ConflictError):
            await container.tags.create_tag(bob, guild_id, "DPS")

    async def test_exclusive_war_roles(self, container, make_user, enroll):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        guild = await container.guilds.create_guild(alice, "Alpha")
        await enroll(alice, guild["guild_id"], bob)
        tag = await container.tags.create_tag(alice, guild["guild_id"], "DPS")
        hero = await container.characters.create_character(bob, "Hero1", tag["tag_id"])
        await container.characters.assign_role(bob, hero["character_id"], "WOE")

        with pytest.raises(ExclusiveRoleConflictError) as exc_info:
            await container.characters.assign_role(bob, hero["character_id"], "WOE_TE")
        assert exc_info.value.KIND == "InvalidState"

        await container.characters.assign_role(bob, hero["character_id"], "WOE_TE", replace=True)

        refreshed = await container.characters.get_character(hero["character_id"])
        assert refreshed["roles"] == ["WOE_TE"]

    async def test_leader_hands_over_then_leaves(self, container, make_user, enroll):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        guild = await container.guilds.create_guild(alice, "Alpha")
        guild_id = guild["guild_id"]
        await enroll(alice, guild_id, bob)

        with pytest.raises(LeaderCannotLeaveError) as exc_info:
            await container.members.leave(alice, guild_id)
        assert exc_info.value.KIND == "InvalidState"

        await container.guilds.transfer_leadership(alice, guild_id, bob)
        await container.members.leave(alice, guild_id)

        assert await container.members.get_membership(alice, guild_id) is None
        roster = await container.guilds.get_roster(guild_id)
        assert roster["leader_id"] == bob
        assert [m["user_id"] for m in roster["members"]] == [bob]
