"""MongoDB database connection management using Motor async driver.

Includes connection lifecycle and index management for all collections.
The unique indexes back the entity invariants: one membership per
(session, player), one game per (session, seq_no), one ranking per
(game, player) and per (game, position), one confirmation per
(game, player).
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from blurranker.config import settings

logger = logging.getLogger("blurranker.dal.database")

# Global database client and database instances
_client: AsyncIOMotorClient | None = None
_database: AsyncIOMotorDatabase | None = None


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    """Establish connection to MongoDB and return the database handle."""
    global _client, _database

    _client = AsyncIOMotorClient(
        settings.MONGO_URL,
        serverSelectionTimeoutMS=5000  # 5 second timeout
    )
    _database = _client[settings.DATABASE_NAME]

    # Verify connection by pinging the database
    await _client.admin.command("ping")
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)
    return _database


async def close_mongo_connection() -> None:
    """Close the MongoDB connection if one is open."""
    global _client, _database

    if _client:
        _client.close()
        logger.info("Closed MongoDB connection")
    _client = None
    _database = None


def get_database() -> AsyncIOMotorDatabase:
    """Get the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized.
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() first."
        )
    return _database


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create all indexes. Idempotent; safe to call on every startup."""
    logger.info("Ensuring indexes for all collections...")

    # --- sessions ---
    await db.sessions.create_index(
        [("status", ASCENDING), ("created_at", DESCENDING)],
        name="idx_status_created",
    )

    # --- memberships ---
    await db.memberships.create_index(
        [("session_id", ASCENDING), ("player_id", ASCENDING)],
        unique=True,
        name="uq_session_player",
    )
    await db.memberships.create_index(
        [("player_id", ASCENDING)],
        name="idx_player",
    )

    # --- games ---
    await db.games.create_index(
        [("session_id", ASCENDING), ("seq_no", ASCENDING)],
        unique=True,
        name="uq_session_seq_no",
    )

    # --- rankings ---
    await db.rankings.create_index(
        [("game_id", ASCENDING), ("player_id", ASCENDING)],
        unique=True,
        name="uq_game_player",
    )
    await db.rankings.create_index(
        [("game_id", ASCENDING), ("position", ASCENDING)],
        unique=True,
        name="uq_game_position",
    )
    await db.rankings.create_index(
        [("player_id", ASCENDING)],
        name="idx_player",
    )

    # --- confirmations ---
    await db.confirmations.create_index(
        [("game_id", ASCENDING), ("player_id", ASCENDING)],
        unique=True,
        name="uq_game_player",
    )

    # --- debts ---
    await db.debts.create_index(
        [("session_id", ASCENDING), ("is_paid", ASCENDING)],
        name="idx_session_paid",
    )
    await db.debts.create_index([("game_id", ASCENDING)], name="idx_game")
    await db.debts.create_index([("payer_id", ASCENDING)], name="idx_payer")
    await db.debts.create_index([("payee_id", ASCENDING)], name="idx_payee")

    logger.info("All indexes ensured successfully.")
