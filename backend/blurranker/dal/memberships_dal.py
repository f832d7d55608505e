"""Membership Data Access Layer -- MongoDB operations for the memberships collection.

One document per (session, player), enforced by the ``uq_session_player``
unique index.
"""

import logging
from typing import Optional

from blurranker.dal.base import BaseDAL
from blurranker.dal.unit_of_work import UnitOfWork
from blurranker.models.common import ChangeOperation, EntityType
from blurranker.models.session import Membership

logger = logging.getLogger("blurranker.dal.memberships")

COLLECTION = "memberships"


class MembershipDAL(BaseDAL[Membership]):
    """Data access layer for the memberships collection."""

    COLLECTION = COLLECTION
    MODEL = Membership

    async def create(
        self, membership: Membership, uow: Optional[UnitOfWork] = None
    ) -> Membership:
        """Insert a membership.

        Raises:
            ConflictError: The player is already a member of the session.
        """
        membership = await self._insert(membership, uow)
        if uow is not None:
            uow.record_change(
                EntityType.MEMBERSHIP, ChangeOperation.INSERT, membership.session_id
            )
        logger.info(
            "Player %s joined session %s", membership.player_id, membership.session_id
        )
        return membership

    async def get(self, session_id: str, player_id: str) -> Optional[Membership]:
        return await self._find_one({"session_id": session_id, "player_id": player_id})

    async def list_by_session(self, session_id: str) -> list[Membership]:
        """List members of a session in join order."""
        return await self._find({"session_id": session_id}, sort=[("joined_at", 1)])

    async def list_by_player(self, player_id: str) -> list[Membership]:
        """List every membership of a player. Uses ``idx_player``."""
        return await self._find({"player_id": player_id}, sort=[("joined_at", -1)])

    async def list_all(self) -> list[Membership]:
        return await self._find({})

    async def count_by_session(self, session_id: str) -> int:
        return await self._count({"session_id": session_id})

    async def delete(
        self, session_id: str, player_id: str, uow: Optional[UnitOfWork] = None
    ) -> bool:
        """Remove a membership. Returns True if one was deleted."""
        deleted = await self._writer(uow).delete_many(
            self._collection, {"session_id": session_id, "player_id": player_id}
        )
        if deleted:
            if uow is not None:
                uow.record_change(EntityType.MEMBERSHIP, ChangeOperation.DELETE, session_id)
            logger.info("Player %s left session %s", player_id, session_id)
        return deleted > 0
