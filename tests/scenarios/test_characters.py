"""
Character roster scenarios: creation, tag reassignment, roles and deletion.
"""

import pytest

from guildroster.modules.shared.exceptions import (
    CharacterNotFoundError,
    CharacterOrphanedError,
    CrossGuildReassignmentDeniedError,
    DuplicateCharacterNameError,
    ExclusiveRoleConflictError,
    ForbiddenError,
    NotAMemberError,
    ValidationError,
)

pytestmark = pytest.mark.database


@pytest.fixture
async def roster(container, make_user, enroll):
    """
    Guild "Alpha" with leader, member Bob, tags DPS and Tanks, and
    Bob's character Hero1 under DPS.
    """
    leader = await make_user("Leader")
    bob = await make_user("Bob")
    guild = await container.guilds.create_guild(leader, "Alpha")
    guild_id = guild["guild_id"]
    await enroll(leader, guild_id, bob)
    dps = await container.tags.create_tag(leader, guild_id, "DPS")
    tanks = await container.tags.create_tag(leader, guild_id, "Tanks")
    hero = await container.characters.create_character(bob, "Hero1", dps["tag_id"])
    return {
        "guild_id": guild_id,
        "leader": leader,
        "bob": bob,
        "dps": dps["tag_id"],
        "tanks": tanks["tag_id"],
        "hero": hero["character_id"],
    }


class TestCreateCharacter:
    async def test_created_under_tag(self, container, roster):
        hero = await container.characters.get_character(roster["hero"])

        assert hero["owner_id"] == roster["bob"]
        assert hero["guild_id"] == roster["guild_id"]
        assert hero["roles"] == []
        assert hero["party_id"] is None
        assert hero["is_orphaned"] is False

    async def test_name_is_globally_unique(self, container, make_user, roster):
        other = await make_user("Other")
        beta = await container.guilds.create_guild(other, "Beta")
        tag = await container.tags.create_tag(other, beta["guild_id"], "Main")

        with pytest.raises(DuplicateCharacterNameError):
            await container.characters.create_character(other, "Hero1", tag["tag_id"])

    async def test_owner_must_be_active_member(self, container, make_user, roster):
        stranger = await make_user("Stranger")

        with pytest.raises(NotAMemberError):
            await container.characters.create_character(stranger, "Hero2", roster["dps"])

    async def test_name_too_short(self, container, roster):
        with pytest.raises(ValidationError):
            await container.characters.create_character(roster["bob"], "H", roster["dps"])

    async def test_list_for_user(self, container, roster):
        await container.characters.create_character(roster["bob"], "Alt", roster["tanks"])

        listing = await container.characters.list_characters_for_user(roster["bob"])

        assert [c["character_name"] for c in listing["characters"]] == ["Alt", "Hero1"]


class TestRoles:
    async def test_non_exclusive_roles_coexist(self, container, roster):
        await container.characters.assign_role(roster["bob"], roster["hero"], "WOE")
        result = await container.characters.assign_role(roster["bob"], roster["hero"], "PVE")

        assert result["roles"] == ["PVE", "WOE"]

    async def test_duplicate_role_is_noop(self, container, roster):
        await container.characters.assign_role(roster["bob"], roster["hero"], "WOE")

        result = await container.characters.assign_role(roster["bob"], roster["hero"], "WOE")

        assert result["added"] is False
        assert result["roles"] == ["WOE"]

    async def test_exclusive_conflict_and_replace(self, container, roster):
        await container.characters.assign_role(roster["bob"], roster["hero"], "WOE")

        with pytest.raises(ExclusiveRoleConflictError):
            await container.characters.assign_role(roster["bob"], roster["hero"], "WOE_TE")

        result = await container.characters.assign_role(
            roster["bob"], roster["hero"], "WOE_TE", replace=True
        )
        assert result["roles"] == ["WOE_TE"]
        assert result["replaced_role"] == "WOE"

    async def test_officer_may_assign(self, container, roster):
        result = await container.characters.assign_role(roster["leader"], roster["hero"], "PVE")

        assert result["roles"] == ["PVE"]

    async def test_other_member_may_not_assign(self, container, make_user, enroll, roster):
        carol = await make_user("Carol")
        await enroll(roster["leader"], roster["guild_id"], carol)

        with pytest.raises(ForbiddenError):
            await container.characters.assign_role(carol, roster["hero"], "PVE")

    async def test_unknown_role(self, container, roster):
        with pytest.raises(ValidationError):
            await container.characters.assign_role(roster["bob"], roster["hero"], "HEALER")

    async def test_remove_role(self, container, roster):
        await container.characters.assign_role(roster["bob"], roster["hero"], "WOE")

        removed = await container.characters.remove_role(roster["bob"], roster["hero"], "WOE")
        again = await container.characters.remove_role(roster["bob"], roster["hero"], "WOE")

        assert removed["removed"] is True
        assert removed["roles"] == []
        assert again["removed"] is False

    async def test_orphaned_character_rejects_new_roles(self, container, roster):
        await container.members.leave(roster["bob"], roster["guild_id"])

        with pytest.raises(CharacterOrphanedError):
            await container.characters.assign_role(roster["bob"], roster["hero"], "PVE")


class TestReassignTag:
    async def test_within_guild_by_officer(self, container, roster):
        result = await container.characters.reassign_tag(
            roster["leader"], roster["hero"], roster["tanks"]
        )

        assert result["tag_id"] == roster["tanks"]

    async def test_cross_guild_by_owner_clears_party(self, container, make_user, enroll, roster):
        beta_leader = await make_user("BetaLeader")
        beta = await container.guilds.create_guild(beta_leader, "Beta")
        await enroll(beta_leader, beta["guild_id"], roster["bob"])
        beta_tag = await container.tags.create_tag(beta_leader, beta["guild_id"], "Main")
        party = await container.parties.create_party(roster["leader"], roster["guild_id"], "Raid")
        await container.parties.add_character(roster["leader"], party["party_id"], roster["hero"])

        result = await container.characters.reassign_tag(
            roster["bob"], roster["hero"], beta_tag["tag_id"]
        )

        assert result["guild_id"] == beta["guild_id"]
        assert result["party_id"] is None
        raid = await container.parties.get_party(party["party_id"])
        assert raid["character_ids"] == []

    async def test_cross_guild_by_officer_denied(self, container, make_user, enroll, roster):
        beta = await container.guilds.create_guild(roster["leader"], "Beta")
        await enroll(roster["leader"], beta["guild_id"], roster["bob"])
        beta_tag = await container.tags.create_tag(roster["leader"], beta["guild_id"], "Main")

        with pytest.raises(CrossGuildReassignmentDeniedError):
            await container.characters.reassign_tag(
                roster["leader"], roster["hero"], beta_tag["tag_id"]
            )

    async def test_cross_guild_requires_owner_membership(self, container, make_user, roster):
        beta_leader = await make_user("BetaLeader")
        beta = await container.guilds.create_guild(beta_leader, "Beta")
        beta_tag = await container.tags.create_tag(beta_leader, beta["guild_id"], "Main")

        with pytest.raises(CrossGuildReassignmentDeniedError) as exc_info:
            await container.characters.reassign_tag(
                roster["bob"], roster["hero"], beta_tag["tag_id"]
            )

        assert exc_info.value.KIND == "Forbidden"
        hero = await container.characters.get_character(roster["hero"])
        assert hero["tag_id"] == roster["dps"]

    async def test_orphaned_character_cannot_move(self, container, roster):
        await container.members.leave(roster["bob"], roster["guild_id"])

        with pytest.raises(CharacterOrphanedError):
            await container.characters.reassign_tag(
                roster["bob"], roster["hero"], roster["tanks"]
            )


class TestDeleteCharacter:
    async def test_delete_removes_roles_and_slot(self, container, roster):
        await container.characters.assign_role(roster["bob"], roster["hero"], "WOE")
        await container.characters.assign_role(roster["bob"], roster["hero"], "PVE")
        party = await container.parties.create_party(roster["leader"], roster["guild_id"], "Raid")
        await container.parties.add_character(roster["leader"], party["party_id"], roster["hero"])

        result = await container.characters.delete_character(roster["bob"], roster["hero"])

        assert result["roles_removed"] == 2
        assert result["left_party_id"] == party["party_id"]
        with pytest.raises(CharacterNotFoundError):
            await container.characters.get_character(roster["hero"])

    async def test_officer_may_delete_orphaned_character(self, container, roster):
        await container.members.leave(roster["bob"], roster["guild_id"])

        result = await container.characters.delete_character(roster["leader"], roster["hero"])

        assert result["deleted"] is True
