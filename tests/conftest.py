"""
Pytest Configuration and Fixtures for the Guild Roster Tests
============================================================

Purpose
-------
Centralized fixtures for the roster test suite: configuration, database,
event bus, the service container and small data builders.

Responsibilities
----------------
- Point configuration at the repository's YAML defaults and a test environment
- Provide a fresh SQLite database (aiosqlite) with the full schema per test
- Provide a PostgreSQL testcontainer for the integration suite
- Build users, guilds and memberships through the public service API
- Mocks for unit tests that must not touch the database

Architecture Notes
------------------
- Scenario tests run the real services against a temporary SQLite file
- Integration tests (`-m integration`) use testcontainers and are skipped
  when Docker is unavailable
- Every database fixture is function scoped: each test starts empty
"""

from __future__ import annotations

import itertools
import os
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Generator, List

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_COLORS", "false")
os.environ.setdefault("CONFIG_DIR", str(Path(__file__).resolve().parent.parent / "config"))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from guildroster.core.config.manager import ConfigManager  # noqa: E402
from guildroster.core.database.bootstrap import create_schema  # noqa: E402
from guildroster.core.database.service import DatabaseService  # noqa: E402
from guildroster.core.event.bus import EventBus  # noqa: E402
from guildroster.core.event.types import ListenerPriority  # noqa: E402
from guildroster.core.logging.logger import clear_log_context, get_logger  # noqa: E402
from guildroster.core.services.container import ServiceContainer  # noqa: E402
from guildroster.modules.user.identity import AuthenticatedUser  # noqa: E402

logger = get_logger(__name__)

_identity_counter = itertools.count(1)


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> Generator[type[ConfigManager], None, None]:
    """
    ConfigManager loaded from config/*.yaml, overrides cleared afterwards.

    Scope: function
    """
    ConfigManager.load()
    yield ConfigManager
    ConfigManager.reset()
    clear_log_context()


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[str, None]:
    """
    Initialize DatabaseService on a temporary SQLite file with the full schema.

    Scope: function (new database per test)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'roster.db'}"
    await DatabaseService.shutdown()
    await DatabaseService.initialize(url)
    await create_schema()

    yield url

    await DatabaseService.shutdown()


def start_postgres_container() -> Any:
    """Start a PostgreSQL testcontainer, or skip the calling test without Docker."""
    from testcontainers.postgres import PostgresContainer

    try:
        container = PostgresContainer(image="postgres:16-alpine", driver="asyncpg")
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started")
    return container


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    PostgreSQL testcontainer for integration tests.

    Scope: session. Skips the requesting tests when Docker is unavailable.
    """
    container = start_postgres_container()
    yield container

    container.stop()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def event_bus(config_manager: type[ConfigManager]) -> EventBus:
    return EventBus(config_manager)


@pytest.fixture
def recorded_events(event_bus: EventBus) -> List[Dict[str, Any]]:
    """Every payload published on the bus, in publish order."""
    payloads: List[Dict[str, Any]] = []

    async def record(payload: Dict[str, Any]) -> None:
        payloads.append(payload)

    event_bus.subscribe("*", record, priority=ListenerPriority.CRITICAL, identifier="tests.recorder")
    return payloads


@pytest_asyncio.fixture
async def container(
    database: str,
    config_manager: type[ConfigManager],
    event_bus: EventBus,
) -> AsyncGenerator[ServiceContainer, None]:
    """
    Fully wired ServiceContainer on the per-test database.

    Scope: function
    """
    services = ServiceContainer(config_manager, event_bus, get_logger("tests.container"))
    await services.initialize(configure_logging=False)

    yield services

    await services.shutdown()


# ============================================================================
# DATA BUILDERS
# ============================================================================


@pytest.fixture
def make_user(container: ServiceContainer) -> Callable[..., Awaitable[int]]:
    """
    Register a user through identity sync and return its id.

    Usage:
        alice = await make_user("Alice")
    """

    async def _make_user(name: str = "Player", age: int = 25, email: str | None = None) -> int:
        seq = next(_identity_counter)
        identity = AuthenticatedUser(
            external_id=f"ext-{seq}",
            name=name,
            contact=f"contact-{seq}",
            age=age,
            email=email,
        )
        result = await container.users.register_identity(identity)
        return result["user_id"]

    return _make_user


@pytest.fixture
def enroll(container: ServiceContainer) -> Callable[..., Awaitable[None]]:
    """
    Invite and accept in one step, optionally promoting to OFFICER.

    Usage:
        await enroll(leader_id, guild_id, bob, officer=True)
    """

    async def _enroll(officer_id: int, guild_id: int, user_id: int, officer: bool = False) -> None:
        await container.invites.invite(officer_id, guild_id, user_id)
        await container.invites.accept_invite(user_id, guild_id)
        if officer:
            await container.members.set_role(officer_id, guild_id, user_id, "OFFICER")

    return _enroll


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """EventBus stand-in whose publish() is awaitable."""
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """ConfigManager stand-in returning the supplied default for every key."""
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config
