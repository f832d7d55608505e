"""Authorization guard: owner and member checks.

The acting player is always passed in explicitly; the library keeps no
notion of a current player.
"""

import logging

from blurranker.dal.memberships_dal import MembershipDAL
from blurranker.errors import AuthorizationError
from blurranker.models.session import Session

logger = logging.getLogger("blurranker.services.authorization")


class AuthorizationGuard:
    """Stateless role checks for session-scoped operations."""

    def __init__(self, membership_dal: MembershipDAL) -> None:
        self._membership_dal = membership_dal

    @staticmethod
    def is_owner(session: Session, actor_id: str) -> bool:
        return bool(actor_id) and session.owner_id == actor_id

    async def is_member(self, session_id: str, actor_id: str) -> bool:
        if not actor_id:
            return False
        return await self._membership_dal.get(session_id, actor_id) is not None

    def require_owner(self, session: Session, actor_id: str, action: str) -> None:
        """Raise AuthorizationError unless ``actor_id`` owns the session."""
        if not self.is_owner(session, actor_id):
            logger.warning(
                "Denied %s on session %s to non-owner %s", action, session.id, actor_id
            )
            raise AuthorizationError(f"Only the session owner can {action}")

    async def require_member(self, session_id: str, actor_id: str, action: str) -> None:
        """Raise AuthorizationError unless ``actor_id`` belongs to the session."""
        if not await self.is_member(session_id, actor_id):
            logger.warning(
                "Denied %s on session %s to non-member %s", action, session_id, actor_id
            )
            raise AuthorizationError(f"Only session members can {action}")
