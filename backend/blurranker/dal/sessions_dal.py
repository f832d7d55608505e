"""Session Data Access Layer -- MongoDB operations for the sessions collection."""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId

from blurranker.dal.base import BaseDAL
from blurranker.dal.unit_of_work import UnitOfWork
from blurranker.models.common import ChangeOperation, EntityType, SessionStatus
from blurranker.models.session import Session

logger = logging.getLogger("blurranker.dal.sessions")

COLLECTION = "sessions"


class SessionDAL(BaseDAL[Session]):
    """Data access layer for the sessions collection."""

    COLLECTION = COLLECTION
    MODEL = Session

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, session: Session, uow: Optional[UnitOfWork] = None) -> Session:
        """Insert a new session and return it with its generated id."""
        session = await self._insert(session, uow)
        if uow is not None:
            uow.record_change(EntityType.SESSION, ChangeOperation.INSERT, session.id)
        logger.info("Created session %s (%s)", session.id, session.name)
        return session

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_by_status(self, status: SessionStatus) -> list[Session]:
        """List sessions with a status, newest first.

        Uses the ``idx_status_created`` index. Archived sessions are
        ordered by archival time instead.
        """
        sort = [("created_at", -1)]
        if status == SessionStatus.ARCHIVED:
            sort.insert(0, ("archived_at", -1))
        return await self._find({"status": str(status)}, sort=sort)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def archive(
        self,
        session_id: str,
        archived_at: datetime,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Archive an active session.

        Returns:
            True if the session moved from active to archived.
        """
        if not ObjectId.is_valid(session_id):
            return False
        modified = await self._writer(uow).update_one(
            self._collection,
            {"_id": ObjectId(session_id), "status": str(SessionStatus.ACTIVE)},
            {"$set": {"status": str(SessionStatus.ARCHIVED), "archived_at": archived_at}},
        )
        if modified:
            if uow is not None:
                uow.record_change(EntityType.SESSION, ChangeOperation.UPDATE, session_id)
            logger.info("Session %s archived", session_id)
        return modified > 0
