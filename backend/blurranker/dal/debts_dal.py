"""Debt Data Access Layer -- MongoDB operations for the debts collection.

Amounts are stored as Decimal128 and surfaced as ``decimal.Decimal``.
"""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId

from blurranker.dal.base import BaseDAL
from blurranker.dal.unit_of_work import UnitOfWork
from blurranker.models.common import ChangeOperation, EntityType
from blurranker.models.debt import DebtRecord

logger = logging.getLogger("blurranker.dal.debts")

COLLECTION = "debts"

_NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


class DebtDAL(BaseDAL[DebtRecord]):
    """Data access layer for the debts collection."""

    COLLECTION = COLLECTION
    MODEL = DebtRecord

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self, record: DebtRecord, uow: Optional[UnitOfWork] = None
    ) -> DebtRecord:
        record = await self._insert(record, uow)
        if uow is not None:
            uow.record_change(EntityType.DEBT, ChangeOperation.INSERT, record.session_id)
        logger.info(
            "Created debt %s: %s owes %s %s",
            record.id, record.payer_id, record.payee_id, record.amount,
        )
        return record

    async def create_many(
        self, records: list[DebtRecord], uow: Optional[UnitOfWork] = None
    ) -> list[DebtRecord]:
        records = await self._insert_many(records, uow)
        if records and uow is not None:
            uow.record_change(
                EntityType.DEBT, ChangeOperation.INSERT, records[0].session_id
            )
        return records

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_by_session(
        self, session_id: str, unpaid_only: bool = False
    ) -> list[DebtRecord]:
        """A session's ledger, newest first. Uses ``idx_session_paid``."""
        query: dict = {"session_id": session_id}
        if unpaid_only:
            query["is_paid"] = False
        return await self._find(query, sort=_NEWEST_FIRST)

    async def list_by_sessions(self, session_ids: list[str]) -> list[DebtRecord]:
        if not session_ids:
            return []
        return await self._find({"session_id": {"$in": session_ids}}, sort=_NEWEST_FIRST)

    async def list_by_game(self, game_id: str) -> list[DebtRecord]:
        return await self._find({"game_id": game_id}, sort=_NEWEST_FIRST)

    async def list_by_games(self, game_ids: list[str]) -> list[DebtRecord]:
        if not game_ids:
            return []
        return await self._find({"game_id": {"$in": game_ids}}, sort=_NEWEST_FIRST)

    async def list_by_player(
        self, player_id: str, unpaid_only: bool = False
    ) -> list[DebtRecord]:
        """Every record where the player is payer or payee, newest first."""
        query: dict = {"$or": [{"payer_id": player_id}, {"payee_id": player_id}]}
        if unpaid_only:
            query["is_paid"] = False
        return await self._find(query, sort=_NEWEST_FIRST)

    async def list_all(self) -> list[DebtRecord]:
        return await self._find({})

    async def count_by_game(self, game_id: str) -> int:
        return await self._count({"game_id": game_id})

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def set_paid(
        self,
        record: DebtRecord,
        paid: bool,
        paid_at: Optional[datetime],
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Set or clear the paid flag. No-op if already in that state."""
        modified = await self._writer(uow).update_one(
            self._collection,
            {"_id": ObjectId(record.id), "is_paid": not paid},
            {"$set": {"is_paid": paid, "paid_at": paid_at if paid else None}},
        )
        if modified:
            if uow is not None:
                uow.record_change(EntityType.DEBT, ChangeOperation.UPDATE, record.session_id)
            logger.info("Debt %s marked %s", record.id, "paid" if paid else "unpaid")
        return modified > 0

    async def mark_paid_between(
        self,
        session_id: str,
        payer_id: str,
        payee_id: str,
        paid_at: datetime,
        uow: Optional[UnitOfWork] = None,
    ) -> int:
        """Mark every unpaid payer -> payee record in a session as paid."""
        modified = await self._writer(uow).update_many(
            self._collection,
            {
                "session_id": session_id,
                "payer_id": payer_id,
                "payee_id": payee_id,
                "is_paid": False,
            },
            {"$set": {"is_paid": True, "paid_at": paid_at}},
        )
        if modified:
            if uow is not None:
                uow.record_change(EntityType.DEBT, ChangeOperation.UPDATE, session_id)
            logger.info(
                "Marked %d debts paid from %s to %s in session %s",
                modified, payer_id, payee_id, session_id,
            )
        return modified

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_by_game(
        self,
        game_id: str,
        scope: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> int:
        deleted = await self._writer(uow).delete_many(
            self._collection, {"game_id": game_id}
        )
        if deleted:
            if uow is not None:
                uow.record_change(EntityType.DEBT, ChangeOperation.DELETE, scope)
            logger.info("Deleted %d debts for game %s", deleted, game_id)
        return deleted
