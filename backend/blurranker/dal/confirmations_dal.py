"""Confirmation Data Access Layer -- MongoDB operations for the confirmations collection."""

import logging
from typing import Optional

from blurranker.dal.base import BaseDAL
from blurranker.dal.unit_of_work import UnitOfWork
from blurranker.models.common import ChangeOperation, EntityType
from blurranker.models.game import Confirmation

logger = logging.getLogger("blurranker.dal.confirmations")

COLLECTION = "confirmations"


class ConfirmationDAL(BaseDAL[Confirmation]):
    """Data access layer for the confirmations collection."""

    COLLECTION = COLLECTION
    MODEL = Confirmation

    async def create(
        self,
        confirmation: Confirmation,
        scope: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> Confirmation:
        confirmation = await self._insert(confirmation, uow)
        if uow is not None:
            uow.record_change(EntityType.CONFIRMATION, ChangeOperation.INSERT, scope)
        logger.info(
            "Player %s confirmed game %s", confirmation.player_id, confirmation.game_id
        )
        return confirmation

    async def get(self, game_id: str, player_id: str) -> Optional[Confirmation]:
        return await self._find_one({"game_id": game_id, "player_id": player_id})

    async def list_by_game(self, game_id: str) -> list[Confirmation]:
        return await self._find({"game_id": game_id}, sort=[("confirmed_at", 1)])

    async def list_by_games(self, game_ids: list[str]) -> list[Confirmation]:
        if not game_ids:
            return []
        return await self._find({"game_id": {"$in": game_ids}})

    async def delete(
        self,
        game_id: str,
        player_id: str,
        scope: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        deleted = await self._writer(uow).delete_many(
            self._collection, {"game_id": game_id, "player_id": player_id}
        )
        if deleted:
            if uow is not None:
                uow.record_change(EntityType.CONFIRMATION, ChangeOperation.DELETE, scope)
            logger.info("Player %s unconfirmed game %s", player_id, game_id)
        return deleted > 0

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
                uow.record_change(EntityType.CONFIRMATION, ChangeOperation.DELETE, scope)
            logger.info("Deleted %d confirmations for game %s", deleted, game_id)
        return deleted
