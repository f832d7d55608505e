"""Game Data Access Layer -- MongoDB operations for the games collection.

All ObjectId handling is transparent: callers pass/receive strings, the
DAL converts as needed.
"""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId

from blurranker.dal.base import BaseDAL
from blurranker.dal.unit_of_work import UnitOfWork
from blurranker.models.common import ChangeOperation, EntityType, GameStatus
from blurranker.models.game import Game

logger = logging.getLogger("blurranker.dal.games")

COLLECTION = "games"


class GameDAL(BaseDAL[Game]):
    """Data access layer for the games collection."""

    COLLECTION = COLLECTION
    MODEL = Game

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, game: Game, uow: Optional[UnitOfWork] = None) -> Game:
        """Insert a new game and return it with its generated id.

        Raises:
            ConflictError: Another game already holds this ``seq_no`` in
                the session (``uq_session_seq_no``).
        """
        game = await self._insert(game, uow)
        if uow is not None:
            uow.record_change(EntityType.GAME, ChangeOperation.INSERT, game.session_id)
        logger.info(
            "Created game %s #%d in session %s", game.id, game.seq_no, game.session_id
        )
        return game

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_by_session(
        self,
        session_id: str,
        status: Optional[GameStatus] = None,
    ) -> list[Game]:
        """List a session's games, highest ``seq_no`` first."""
        query: dict = {"session_id": session_id}
        if status is not None:
            query["status"] = str(status)
        return await self._find(query, sort=[("seq_no", -1)])

    async def list_by_status(self, status: GameStatus) -> list[Game]:
        return await self._find({"status": str(status)})

    async def max_seq_no(self, session_id: str) -> int:
        """Highest sequence number used in a session, 0 if none."""
        latest = await self._find_one(
            {"session_id": session_id}, sort=[("seq_no", -1)]
        )
        return latest.seq_no if latest is not None else 0

    async def count_by_session(self, session_id: str) -> int:
        return await self._count({"session_id": session_id})

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def claim_revision(
        self,
        game: Game,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Compare-and-set: bump the revision only if it is still ``game.revision``.

        Returns:
            False if another writer changed the game since it was read.
        """
        modified = await self._writer(uow).update_one(
            self._collection,
            {"_id": ObjectId(game.id), "revision": game.revision},
            {"$inc": {"revision": 1}},
        )
        return modified > 0

    async def mark_completed(
        self,
        game: Game,
        completed_at: datetime,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Set status completed and stamp the completion time.

        Only applies while the game still holds the revision claimed for
        this submission (``game.revision + 1``), and advances it once more
        so the write is never a no-op.

        Returns:
            False if the game was deleted or re-claimed in the meantime.
        """
        modified = await self._writer(uow).update_one(
            self._collection,
            {"_id": ObjectId(game.id), "revision": game.revision + 1},
            {
                "$set": {"status": str(GameStatus.COMPLETED), "completed_at": completed_at},
                "$inc": {"revision": 1},
            },
        )
        if modified:
            if uow is not None:
                uow.record_change(EntityType.GAME, ChangeOperation.UPDATE, game.session_id)
            logger.info("Game %s marked completed", game.id)
        return modified > 0

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, game: Game, uow: Optional[UnitOfWork] = None) -> bool:
        """Delete a pending game document.

        Matches only while the game is pending and still at ``game.revision``,
        so a submission that has already claimed the game wins.
        """
        deleted = await self._writer(uow).delete_many(
            self._collection,
            {
                "_id": ObjectId(game.id),
                "status": str(GameStatus.PENDING),
                "revision": game.revision,
            },
        )
        if deleted:
            if uow is not None:
                uow.record_change(EntityType.GAME, ChangeOperation.DELETE, game.session_id)
            logger.info("Deleted game %s", game.id)
        return deleted > 0
