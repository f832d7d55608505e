"""Debt ledger models.

A DebtRecord is one directed obligation from payer to payee. Records with
``game_id=None`` are manual entries not tied to a single game.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from blurranker.models.common import Money, MongoDocument, utcnow


class DebtRecord(MongoDocument):
    """Represents a ledger entry stored in the debts collection."""

    session_id: str
    game_id: Optional[str] = None
    payer_id: str
    payee_id: str
    amount: Money = Field(gt=0)
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_serializer("paid_at", "created_at", when_used="json")
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        if value is None:
            return None
        return value.isoformat()


class Transfer(BaseModel):
    """An unpersisted (payer, payee, amount) obligation.

    Produced by settlement and by debt simplification.
    """

    model_config = {"frozen": True}

    payer_id: str
    payee_id: str
    amount: Money


class PairSummary(BaseModel):
    """Unpaid totals for one ordered (payer, payee) pair."""

    payer_id: str
    payee_id: str
    amount: Money
    count: int
