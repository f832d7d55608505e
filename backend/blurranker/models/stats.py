"""Read-side statistics models produced by the standings aggregator."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from blurranker.models.common import Money
from blurranker.models.debt import DebtRecord, PairSummary, Transfer
from blurranker.models.game import GameDetails
from blurranker.models.session import SessionWithMembers


class PlayerStats(BaseModel):
    """Per-player totals over a set of completed games.

    ``win_rate`` is a fraction in [0, 1].
    """

    player_id: str
    games_played: int = 0
    wins: int = 0
    second_places: int = 0
    third_places: int = 0
    last_places: int = 0
    win_rate: float = 0.0
    total_received: Money = Decimal("0")
    total_paid: Money = Decimal("0")
    net_profit: Money = Decimal("0")
    average_position: float = 0.0


class LeaderboardEntry(PlayerStats):
    """All-time stats plus the number of sessions the player joined."""

    sessions_joined: int = 0


class RecentGame(BaseModel):
    """One completed game as seen from a single player."""

    game_id: str
    session_id: str
    session_name: str
    position: int
    total_players: int
    net_result: Money
    completed_at: Optional[datetime] = None


class PlayerProfile(LeaderboardEntry):
    """All-time stats and recent history for one player."""

    recent_games: list[RecentGame] = Field(default_factory=list)


class SessionOverview(BaseModel):
    """Everything a session view renders, read in one pass."""

    session: SessionWithMembers
    games: list[GameDetails] = Field(default_factory=list)
    debts: list[DebtRecord] = Field(default_factory=list)
    standings: list[PlayerStats] = Field(default_factory=list)
    balances: dict[str, Money] = Field(default_factory=dict)
    unpaid_pairs: list[PairSummary] = Field(default_factory=list)
    simplified: list[Transfer] = Field(default_factory=list)
