"""
Pytest configuration and fixtures for BlurRanker tests.

This module provides shared fixtures for testing the async services and
MongoDB interactions using mongomock-motor (no real MongoDB required).
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from blurranker.dal.change_feed import ChangeFeed
from blurranker.dal.database import ensure_indexes
from blurranker.dal.storage import Storage
from blurranker.services.game_service import GameService
from blurranker.services.ledger_service import LedgerService
from blurranker.services.session_service import SessionService

OWNER = "alice"
MEMBERS = ["bob", "carol", "dave", "erin"]


@pytest.fixture
def anyio_backend():
    """Specify anyio backend for async tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def mock_db():
    """In-memory MongoDB mock database with all indexes in place.

    The database is ephemeral -- it disappears after each test.
    """
    client = AsyncMongoMockClient()
    db = client["blurranker_test"]
    await ensure_indexes(db)
    yield db
    client.close()


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed(queue_size=64)


@pytest.fixture
def storage(mock_db, feed) -> Storage:
    return Storage(mock_db, feed=feed, use_transactions=False)


@pytest.fixture
def session_service(storage) -> SessionService:
    return SessionService(storage)


@pytest.fixture
def game_service(storage) -> GameService:
    return GameService(storage)


@pytest.fixture
def ledger_service(storage) -> LedgerService:
    return LedgerService(storage)


@pytest_asyncio.fixture
async def session(session_service):
    """An active session owned by alice, stake 200, with four more members."""
    created = await session_service.create_session("Friday Blur", Decimal("200"), OWNER)
    for player_id in MEMBERS:
        await session_service.join_session(created.id, player_id)
    return created
