"""Ranking Data Access Layer -- MongoDB operations for the rankings collection.

Unique indexes on (game_id, player_id) and (game_id, position) back the
permutation invariant at the storage level.
"""

import logging
from typing import Optional

from blurranker.dal.base import BaseDAL
from blurranker.dal.unit_of_work import UnitOfWork
from blurranker.models.common import ChangeOperation, EntityType
from blurranker.models.game import Ranking

logger = logging.getLogger("blurranker.dal.rankings")

COLLECTION = "rankings"


class RankingDAL(BaseDAL[Ranking]):
    """Data access layer for the rankings collection."""

    COLLECTION = COLLECTION
    MODEL = Ranking

    async def create_many(
        self,
        rankings: list[Ranking],
        scope: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> list[Ranking]:
        """Insert a full ranking set. ``scope`` is the owning session id."""
        rankings = await self._insert_many(rankings, uow)
        if rankings and uow is not None:
            uow.record_change(EntityType.RANKING, ChangeOperation.INSERT, scope)
        return rankings

    async def list_by_game(self, game_id: str) -> list[Ranking]:
        """A game's rankings, best position first."""
        return await self._find({"game_id": game_id}, sort=[("position", 1)])

    async def list_by_games(self, game_ids: list[str]) -> list[Ranking]:
        if not game_ids:
            return []
        return await self._find(
            {"game_id": {"$in": game_ids}}, sort=[("game_id", 1), ("position", 1)]
        )

    async def list_by_player(self, player_id: str) -> list[Ranking]:
        """Every ranking a player holds. Uses ``idx_player``."""
        return await self._find({"player_id": player_id})

    async def count_by_game(self, game_id: str) -> int:
        return await self._count({"game_id": game_id})

    async def delete_by_game(
        self,
        game_id: str,
        scope: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> int:
        """Delete a game's whole ranking set. Returns the number removed."""
        deleted = await self._writer(uow).delete_many(
            self._collection, {"game_id": game_id}
        )
        if deleted:
            if uow is not None:
                uow.record_change(EntityType.RANKING, ChangeOperation.DELETE, scope)
            logger.info("Deleted %d rankings for game %s", deleted, game_id)
        return deleted
