"""
Identity sync: user registration and profile refresh.
"""

import pytest

from guildroster.core.event import types as events
from guildroster.modules.shared.exceptions import (
    DuplicateIdentityError,
    UserNotFoundError,
    ValidationError,
)
from guildroster.modules.user.identity import AuthenticatedUser

pytestmark = pytest.mark.database


def identity(**overrides):
    claims = {
        "external_id": "oidc|alice",
        "name": "Alice",
        "contact": "alice#0001",
        "age": 30,
        "email": "Alice@Example.com",
    }
    claims.update(overrides)
    return AuthenticatedUser(**claims)


class TestRegisterIdentity:
    async def test_first_login_creates_user(self, container, recorded_events):
        result = await container.users.register_identity(identity())

        assert result["created"] is True
        assert result["email"] == "alice@example.com"
        assert recorded_events[-1]["event_type"] == events.USER_REGISTERED

    async def test_repeat_login_is_idempotent(self, container, recorded_events):
        first = await container.users.register_identity(identity())
        recorded_events.clear()

        second = await container.users.register_identity(identity())

        assert second["user_id"] == first["user_id"]
        assert second["created"] is False
        assert second["changed_fields"] == []
        assert recorded_events == []

    async def test_profile_changes_are_applied(self, container, recorded_events):
        first = await container.users.register_identity(identity())

        updated = await container.users.register_identity(identity(name="Alicia", age=31))

        assert updated["user_id"] == first["user_id"]
        assert sorted(updated["changed_fields"]) == ["age", "name"]
        assert recorded_events[-1]["event_type"] == events.USER_UPDATED

    async def test_contact_owned_by_another_user(self, container):
        await container.users.register_identity(identity())

        with pytest.raises(DuplicateIdentityError):
            await container.users.register_identity(
                identity(external_id="oidc|bob", name="Bob", email="bob@example.com")
            )

    async def test_mismatched_id_claim(self, container):
        created = await container.users.register_identity(identity())

        with pytest.raises(ValidationError):
            await container.users.register_identity(identity(id=created["user_id"] + 1))

    @pytest.mark.parametrize("age", [12, 121])
    async def test_age_bounds(self, container, age):
        with pytest.raises(ValidationError):
            await container.users.register_identity(identity(age=age))


class TestLookups:
    async def test_by_external_id(self, container):
        created = await container.users.register_identity(identity())

        found = await container.users.get_user_by_external_id("oidc|alice")

        assert found["user_id"] == created["user_id"]

    async def test_unknown_user(self, container):
        with pytest.raises(UserNotFoundError):
            await container.users.get_user(404)
