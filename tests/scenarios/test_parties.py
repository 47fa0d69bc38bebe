"""
Party coordinator scenarios.
"""

import asyncio

import pytest

from guildroster.modules.shared.exceptions import (
    AlreadyLeadsAPartyError,
    CharacterAlreadyInPartyError,
    CharacterNotInGuildError,
    CharacterNotInPartyError,
    ConflictError,
    DuplicatePartyNameError,
    ForbiddenError,
    NotAMemberError,
    NotPartyLeaderError,
    PartyNotFoundError,
)

pytestmark = pytest.mark.database


@pytest.fixture
async def guild_setup(container, make_user, enroll):
    leader = await make_user("Leader")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    guild = await container.guilds.create_guild(leader, "Alpha")
    guild_id = guild["guild_id"]
    await enroll(leader, guild_id, bob)
    await enroll(leader, guild_id, carol)
    tag = await container.tags.create_tag(leader, guild_id, "DPS")
    hero = await container.characters.create_character(bob, "Hero1", tag["tag_id"])
    mage = await container.characters.create_character(carol, "Mage1", tag["tag_id"])
    return {
        "guild_id": guild_id,
        "leader": leader,
        "bob": bob,
        "carol": carol,
        "hero": hero["character_id"],
        "mage": mage["character_id"],
    }


class TestCreateParty:
    async def test_member_creates_party(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        assert party["leader_id"] == guild_setup["bob"]
        assert party["character_ids"] == []

    async def test_one_party_per_leader(self, container, guild_setup):
        await container.parties.create_party(guild_setup["bob"], guild_setup["guild_id"], "Raid")

        with pytest.raises(AlreadyLeadsAPartyError) as exc_info:
            await container.parties.create_party(
                guild_setup["bob"], guild_setup["guild_id"], "Raid 2"
            )

        assert exc_info.value.KIND == "Conflict"

    async def test_one_party_per_leader_across_guilds(self, container, enroll, guild_setup):
        beta = await container.guilds.create_guild(guild_setup["carol"], "Beta")
        await enroll(guild_setup["carol"], beta["guild_id"], guild_setup["bob"])
        await container.parties.create_party(guild_setup["bob"], guild_setup["guild_id"], "Raid")

        with pytest.raises(AlreadyLeadsAPartyError):
            await container.parties.create_party(guild_setup["bob"], beta["guild_id"], "Raid")

    async def test_concurrent_creates_across_guilds_have_one_winner(
        self, container, enroll, guild_setup
    ):
        beta = await container.guilds.create_guild(guild_setup["carol"], "Beta")
        await enroll(guild_setup["carol"], beta["guild_id"], guild_setup["bob"])

        results = await asyncio.gather(
            container.parties.create_party(guild_setup["bob"], guild_setup["guild_id"], "Raid"),
            container.parties.create_party(guild_setup["bob"], beta["guild_id"], "Raid"),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, BaseException)]
        rejected = [r for r in results if isinstance(r, BaseException)]
        assert len(created) == 1
        assert len(rejected) == 1
        assert isinstance(rejected[0], ConflictError)
        assert rejected[0].KIND == "Conflict"
        assert created[0]["leader_id"] == guild_setup["bob"]

    async def test_duplicate_name_in_guild(self, container, guild_setup):
        await container.parties.create_party(guild_setup["bob"], guild_setup["guild_id"], "Raid")

        with pytest.raises(DuplicatePartyNameError):
            await container.parties.create_party(
                guild_setup["carol"], guild_setup["guild_id"], "Raid"
            )

    async def test_non_member_cannot_create(self, container, make_user, guild_setup):
        stranger = await make_user("Stranger")

        with pytest.raises(NotAMemberError):
            await container.parties.create_party(stranger, guild_setup["guild_id"], "Raid")


class TestSlots:
    async def test_add_and_remove(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )
        party_id = party["party_id"]

        added = await container.parties.add_character(
            guild_setup["bob"], party_id, guild_setup["mage"]
        )
        again = await container.parties.add_character(
            guild_setup["bob"], party_id, guild_setup["mage"]
        )

        assert added["added"] is True
        assert again["added"] is False
        assert added["character_ids"] == [guild_setup["mage"]]

        # The character owner may pull their own character out.
        removed = await container.parties.remove_character(
            guild_setup["carol"], party_id, guild_setup["mage"]
        )
        assert removed["character_ids"] == []

    async def test_only_party_leader_adds(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        with pytest.raises(NotPartyLeaderError):
            await container.parties.add_character(
                guild_setup["carol"], party["party_id"], guild_setup["mage"]
            )

    async def test_character_in_one_party_only(self, container, guild_setup):
        raid = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )
        other = await container.parties.create_party(
            guild_setup["carol"], guild_setup["guild_id"], "Dungeon"
        )
        await container.parties.add_character(
            guild_setup["bob"], raid["party_id"], guild_setup["hero"]
        )

        with pytest.raises(CharacterAlreadyInPartyError):
            await container.parties.add_character(
                guild_setup["carol"], other["party_id"], guild_setup["hero"]
            )

    async def test_character_from_other_guild(self, container, enroll, guild_setup):
        beta = await container.guilds.create_guild(guild_setup["carol"], "Beta")
        await enroll(guild_setup["carol"], beta["guild_id"], guild_setup["bob"])
        tag = await container.tags.create_tag(guild_setup["carol"], beta["guild_id"], "Main")
        outsider = await container.characters.create_character(
            guild_setup["bob"], "Outsider", tag["tag_id"]
        )
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        with pytest.raises(CharacterNotInGuildError):
            await container.parties.add_character(
                guild_setup["bob"], party["party_id"], outsider["character_id"]
            )

    async def test_remove_character_not_in_party(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        with pytest.raises(CharacterNotInPartyError):
            await container.parties.remove_character(
                guild_setup["bob"], party["party_id"], guild_setup["hero"]
            )

    async def test_orphaned_owner_cannot_be_slotted(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )
        await container.members.leave(guild_setup["carol"], guild_setup["guild_id"])

        with pytest.raises(NotAMemberError):
            await container.parties.add_character(
                guild_setup["bob"], party["party_id"], guild_setup["mage"]
            )


class TestDisbandAndTransfer:
    async def test_leader_disbands(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )
        await container.parties.add_character(
            guild_setup["bob"], party["party_id"], guild_setup["hero"]
        )

        result = await container.parties.disband_party(guild_setup["bob"], party["party_id"])

        assert result["released_characters"] == 1
        hero = await container.characters.get_character(guild_setup["hero"])
        assert hero["party_id"] is None
        with pytest.raises(PartyNotFoundError):
            await container.parties.get_party(party["party_id"])

        # Disbanding frees the leader to lead again.
        await container.parties.create_party(guild_setup["bob"], guild_setup["guild_id"], "Raid")

    async def test_officer_disbands(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        result = await container.parties.disband_party(guild_setup["leader"], party["party_id"])

        assert result["party_id"] == party["party_id"]

    async def test_member_cannot_disband(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        with pytest.raises(ForbiddenError):
            await container.parties.disband_party(guild_setup["carol"], party["party_id"])

    async def test_transfer_party_leadership(self, container, guild_setup):
        party = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )

        result = await container.parties.transfer_party_leadership(
            guild_setup["bob"], party["party_id"], guild_setup["carol"]
        )

        assert result["leader_id"] == guild_setup["carol"]
        # Bob no longer leads a party and may leave.
        await container.members.leave(guild_setup["bob"], guild_setup["guild_id"])

    async def test_transfer_to_existing_leader_conflicts(self, container, guild_setup):
        raid = await container.parties.create_party(
            guild_setup["bob"], guild_setup["guild_id"], "Raid"
        )
        await container.parties.create_party(
            guild_setup["carol"], guild_setup["guild_id"], "Dungeon"
        )

        with pytest.raises(AlreadyLeadsAPartyError):
            await container.parties.transfer_party_leadership(
                guild_setup["bob"], raid["party_id"], guild_setup["carol"]
            )
