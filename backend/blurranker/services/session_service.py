"""Session business logic service.

Handles session creation, joining, leaving, archiving and listing.
The creator owns the session and is recorded as its first member.
"""

import logging
from decimal import Decimal
from typing import Any

from blurranker.dal.storage import Storage
from blurranker.errors import ConflictError, NotFoundError, StateError, ValidationError
from blurranker.models.common import SessionStatus, utcnow
from blurranker.models.session import Membership, Session, SessionSummary, SessionWithMembers
from blurranker.services.authorization import AuthorizationGuard
from blurranker.services.settlement import coerce_amount

logger = logging.getLogger("blurranker.services.session")

_MAX_NAME_LENGTH = 100


class SessionService:
    """Service layer for session-related operations."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage
        self._session_dal = storage.sessions
        self._membership_dal = storage.memberships
        self._game_dal = storage.games
        self._debt_dal = storage.debts
        self._guard = AuthorizationGuard(storage.memberships)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_session_or_404(self, session_id: str) -> Session:
        session = await self._session_dal.get_by_id(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    @staticmethod
    def _validate_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Session name cannot be empty")
        if len(name) > _MAX_NAME_LENGTH:
            raise ValidationError(
                f"Session name must be at most {_MAX_NAME_LENGTH} characters"
            )
        return name

    @staticmethod
    def _validate_stake(stake: Any) -> Decimal:
        amount = coerce_amount(stake, "stake")
        if amount <= 0:
            raise ValidationError(f"Stake must be positive, got {amount}")
        return amount

    # ------------------------------------------------------------------
    # Create session
    # ------------------------------------------------------------------

    async def create_session(self, name: str, stake: Any, owner_id: str) -> Session:
        """Create a session owned by ``owner_id`` and enrol the owner.

        The session and the owner's membership are written as one unit.

        Raises:
            ValidationError: Empty/too long name, non-positive stake or
                missing owner.
        """
        name = self._validate_name(name)
        amount = self._validate_stake(stake)
        if not owner_id:
            raise ValidationError("A session needs an owner")

        now = utcnow()
        async with self._storage.unit_of_work() as uow:
            session = await self._session_dal.create(
                Session(name=name, stake=amount, owner_id=owner_id, created_at=now),
                uow,
            )
            await self._membership_dal.create(
                Membership(
                    session_id=session.id,
                    player_id=owner_id,
                    is_creator=True,
                    joined_at=now,
                ),
                uow,
            )

        logger.info(
            "Session created: id=%s name=%s stake=%s owner=%s",
            session.id, name, amount, owner_id,
        )
        return session

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def join_session(self, session_id: str, player_id: str) -> Membership:
        """Add a player to a session. Joining twice returns the existing membership.

        Raises:
            NotFoundError: Session not found.
            ValidationError: Empty player id.
            StateError: Session is archived.
        """
        session = await self._get_session_or_404(session_id)
        if not player_id:
            raise ValidationError("A player id is required to join")

        existing = await self._membership_dal.get(session_id, player_id)
        if existing is not None:
            return existing
        if session.is_archived:
            raise StateError("Cannot join an archived session")

        try:
            async with self._storage.unit_of_work() as uow:
                membership = await self._membership_dal.create(
                    Membership(session_id=session_id, player_id=player_id), uow
                )
        except ConflictError:
            existing = await self._membership_dal.get(session_id, player_id)
            if existing is None:
                raise
            return existing
        return membership

    async def leave_session(self, session_id: str, player_id: str) -> bool:
        """Remove a player from a session. Returns False if they were not a member.

        Rankings and debts involving the player are kept.

        Raises:
            NotFoundError: Session not found.
            StateError: The owner tried to leave their own session.
        """
        session = await self._get_session_or_404(session_id)
        if self._guard.is_owner(session, player_id):
            raise StateError("The session owner cannot leave the session")

        async with self._storage.unit_of_work() as uow:
            removed = await self._membership_dal.delete(session_id, player_id, uow)
        return removed

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    async def archive_session(self, session_id: str, actor_id: str) -> Session:
        """Archive a session. Terminal: archived sessions never reopen.

        Raises:
            NotFoundError: Session not found.
            AuthorizationError: Actor is not the owner.
            StateError: Session already archived.
        """
        session = await self._get_session_or_404(session_id)
        self._guard.require_owner(session, actor_id, "archive the session")
        if session.is_archived:
            raise StateError("Session is already archived")

        async with self._storage.unit_of_work() as uow:
            archived = await self._session_dal.archive(session_id, utcnow(), uow)
            if not archived:
                raise ConflictError(f"Session {session_id} was archived concurrently")

        return await self._get_session_or_404(session_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> Session:
        """Raises NotFoundError if the session does not exist."""
        return await self._get_session_or_404(session_id)

    async def get_session_with_members(self, session_id: str) -> SessionWithMembers:
        session = await self._get_session_or_404(session_id)
        members = await self._membership_dal.list_by_session(session_id)
        return SessionWithMembers(session=session, members=members)

    async def list_active_sessions(self) -> list[Session]:
        return await self._session_dal.list_by_status(SessionStatus.ACTIVE)

    async def list_player_sessions(self, player_id: str) -> list[Session]:
        """Active sessions the player belongs to."""
        memberships = await self._membership_dal.list_by_player(player_id)
        sessions = await self._session_dal.get_many([m.session_id for m in memberships])
        active = [s for s in sessions if not s.is_archived]
        return sorted(active, key=lambda s: s.created_at, reverse=True)

    async def list_archived_sessions(self) -> list[SessionSummary]:
        """Archived sessions with member count, game count and money moved."""
        sessions = await self._session_dal.list_by_status(SessionStatus.ARCHIVED)
        debts = await self._debt_dal.list_by_sessions([s.id for s in sessions])

        moved: dict[str, Decimal] = {}
        for record in debts:
            moved[record.session_id] = moved.get(record.session_id, Decimal("0")) + record.amount

        summaries = []
        for session in sessions:
            summaries.append(
                SessionSummary(
                    session=session,
                    member_count=await self._membership_dal.count_by_session(session.id),
                    game_count=await self._game_dal.count_by_session(session.id),
                    total_money_moved=moved.get(session.id, Decimal("0")),
                )
            )
        return summaries
