"""Pydantic models for BlurRanker."""

from blurranker.models.common import (
    ChangeOperation,
    EntityType,
    GameStatus,
    Money,
    PyObjectId,
    SessionStatus,
)
from blurranker.models.debt import DebtRecord, PairSummary, Transfer
from blurranker.models.event import ChangeEvent
from blurranker.models.game import Confirmation, Game, GameDetails, Ranking, RankingEntry
from blurranker.models.session import Membership, Session, SessionSummary, SessionWithMembers
from blurranker.models.stats import (
    LeaderboardEntry,
    PlayerProfile,
    PlayerStats,
    RecentGame,
    SessionOverview,
)

__all__ = [
    # Enums and types
    "ChangeOperation",
    "EntityType",
    "GameStatus",
    "Money",
    "PyObjectId",
    "SessionStatus",
    # Session models
    "Session",
    "Membership",
    "SessionWithMembers",
    "SessionSummary",
    # Game models
    "Game",
    "GameDetails",
    "Ranking",
    "RankingEntry",
    "Confirmation",
    # Ledger models
    "DebtRecord",
    "Transfer",
    "PairSummary",
    # Stats models
    "PlayerStats",
    "LeaderboardEntry",
    "RecentGame",
    "PlayerProfile",
    "SessionOverview",
    # Events
    "ChangeEvent",
]
