"""Session and Membership domain models.

A session is a named group of players sharing a fixed per-game stake.
Memberships link players to sessions; a player may join many sessions.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from blurranker.models.common import Money, MongoDocument, SessionStatus, utcnow


class Session(MongoDocument):
    """Represents a session stored in the sessions collection."""

    name: str
    stake: Money = Field(gt=0)
    owner_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    archived_at: Optional[datetime] = None

    @property
    def is_archived(self) -> bool:
        return self.status == SessionStatus.ARCHIVED

    @field_serializer("created_at", "archived_at", when_used="json")
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        if value is None:
            return None
        return value.isoformat()


class Membership(MongoDocument):
    """A player's membership of a session. Unique per (session, player)."""

    session_id: str
    player_id: str
    is_creator: bool = False
    joined_at: datetime = Field(default_factory=utcnow)


class SessionWithMembers(BaseModel):
    """A session together with its current memberships."""

    session: Session
    members: list[Membership] = Field(default_factory=list)

    @property
    def member_ids(self) -> list[str]:
        return [m.player_id for m in self.members]


class SessionSummary(BaseModel):
    """Archive listing row: a session plus headline totals."""

    session: Session
    member_count: int = 0
    game_count: int = 0
    total_money_moved: Money = Decimal("0")
