"""Game, Ranking and Confirmation domain models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from blurranker.models.common import GameStatus, MongoDocument, utcnow
from blurranker.models.debt import DebtRecord


class Game(MongoDocument):
    """One ranked round within a session.

    ``seq_no`` is unique per session and assigned at creation.
    ``revision`` is bumped by every ranking submission and guards
    concurrent resubmissions (compare-and-set).
    """

    session_id: str
    seq_no: int = Field(ge=1)
    status: GameStatus = GameStatus.PENDING
    revision: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == GameStatus.COMPLETED

    @field_serializer("created_at", "completed_at", when_used="json")
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        if value is None:
            return None
        return value.isoformat()


class RankingEntry(BaseModel):
    """One line of a submitted finishing order."""

    player_id: str
    position: int


class Ranking(MongoDocument):
    """A persisted finishing position of one player in one game."""

    game_id: str
    player_id: str
    position: int = Field(gt=0)


class Confirmation(MongoDocument):
    """A player's acknowledgement of a game's result. No financial effect."""

    game_id: str
    player_id: str
    confirmed_at: datetime = Field(default_factory=utcnow)


class GameDetails(BaseModel):
    """A game with all of its child records, rankings sorted by position."""

    game: Game
    rankings: list[Ranking] = Field(default_factory=list)
    confirmations: list[Confirmation] = Field(default_factory=list)
    debts: list[DebtRecord] = Field(default_factory=list)

    @property
    def confirmed_player_ids(self) -> set[str]:
        return {c.player_id for c in self.confirmations}
