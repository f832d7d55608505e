"""Ledger and standings read side, plus payment bookkeeping.

Every query reads fresh from storage and hands the rows to the pure
functions in ``standings`` and ``simplification``. Nothing is cached.
"""

import logging
from decimal import Decimal
from typing import Any

from blurranker.config import settings
from blurranker.dal.storage import Storage
from blurranker.errors import NotFoundError, ValidationError
from blurranker.models.common import GameStatus, utcnow
from blurranker.models.debt import DebtRecord, Transfer
from blurranker.models.game import Game, GameDetails
from blurranker.models.session import Session, SessionWithMembers
from blurranker.models.stats import LeaderboardEntry, PlayerProfile, PlayerStats, SessionOverview
from blurranker.services import simplification, standings
from blurranker.services.authorization import AuthorizationGuard
from blurranker.services.settlement import coerce_amount

logger = logging.getLogger("blurranker.services.ledger")


class LedgerService:
    """Service layer for balances, standings, leaderboards and payments."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage
        self._session_dal = storage.sessions
        self._membership_dal = storage.memberships
        self._game_dal = storage.games
        self._ranking_dal = storage.rankings
        self._confirmation_dal = storage.confirmations
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

    async def _get_record_or_404(self, record_id: str) -> DebtRecord:
        record = await self._debt_dal.get_by_id(record_id)
        if record is None:
            raise NotFoundError("Debt record", record_id)
        return record

    async def _with_rankings(self, games: list[Game]) -> list[GameDetails]:
        rankings = await self._ranking_dal.list_by_games([g.id for g in games])
        details = {g.id: GameDetails(game=g) for g in games}
        for ranking in rankings:
            details[ranking.game_id].rankings.append(ranking)
        return [details[g.id] for g in games]

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    async def session_debts(self, session_id: str, unpaid_only: bool = False) -> list[DebtRecord]:
        await self._get_session_or_404(session_id)
        return await self._debt_dal.list_by_session(session_id, unpaid_only=unpaid_only)

    async def player_debts(self, player_id: str, unpaid_only: bool = False) -> list[DebtRecord]:
        """Every record where the player pays or receives, across sessions."""
        return await self._debt_dal.list_by_player(player_id, unpaid_only=unpaid_only)

    async def session_balances(self, session_id: str) -> dict[str, Decimal]:
        """Outstanding (unpaid) net balance per player in a session."""
        return simplification.net_balances(await self.session_debts(session_id))

    async def simplified_session_debts(self, session_id: str) -> list[Transfer]:
        """Suggested transfers that clear all unpaid debts in a session."""
        records = await self.session_debts(session_id, unpaid_only=True)
        return simplification.simplify_debts(records)

    async def simplified_player_debts(self, player_id: str) -> list[Transfer]:
        """Suggested transfers over the unpaid records touching a player.

        Counterparties' balances only reflect their dealings with this
        player, so a suggested transfer may route between two of them.
        """
        records = await self.player_debts(player_id, unpaid_only=True)
        return simplification.simplify_debts(records)

    # ------------------------------------------------------------------
    # Standings
    # ------------------------------------------------------------------

    async def session_standings(self, session_id: str) -> list[PlayerStats]:
        """Members of a session ranked by net profit, wins, average position."""
        await self._get_session_or_404(session_id)
        members = await self._membership_dal.list_by_session(session_id)
        games = await self._game_dal.list_by_session(session_id, status=GameStatus.COMPLETED)
        details = await self._with_rankings(games)
        records = await self._debt_dal.list_by_session(session_id)
        return standings.session_standings(
            [m.player_id for m in members], details, records
        )

    async def all_time_leaderboard(self) -> list[LeaderboardEntry]:
        """Stats across all sessions for every player with a completed game."""
        memberships = await self._membership_dal.list_all()
        sessions_per_player: dict[str, int] = {}
        for membership in memberships:
            sessions_per_player[membership.player_id] = (
                sessions_per_player.get(membership.player_id, 0) + 1
            )

        games = await self._game_dal.list_by_status(GameStatus.COMPLETED)
        details = await self._with_rankings(games)
        records = await self._debt_dal.list_all()

        ranked_players = [r.player_id for d in details for r in d.rankings]
        player_ids = list(dict.fromkeys([*sessions_per_player, *ranked_players]))
        return standings.all_time_leaderboard(
            player_ids, details, records, sessions_per_player
        )

    async def player_profile(self, player_id: str) -> PlayerProfile:
        """One player's all-time stats and recent completed games."""
        memberships = await self._membership_dal.list_by_player(player_id)
        own_rankings = await self._ranking_dal.list_by_player(player_id)
        games = await self._game_dal.get_many(
            list({r.game_id for r in own_rankings})
        )
        completed = [g for g in games if g.is_completed]
        details = await self._with_rankings(completed)
        records = await self._debt_dal.list_by_player(player_id)

        session_ids = {g.session_id for g in completed} | {m.session_id for m in memberships}
        sessions = await self._session_dal.get_many(list(session_ids))

        return standings.player_profile(
            player_id,
            details,
            records,
            sessions_joined=len(memberships),
            session_names={s.id: s.name for s in sessions},
            recent_limit=settings.RECENT_GAMES_LIMIT,
        )

    async def session_overview(self, session_id: str) -> SessionOverview:
        """Everything a session screen shows, read in one pass."""
        session = await self._get_session_or_404(session_id)
        members = await self._membership_dal.list_by_session(session_id)
        games = await self._game_dal.list_by_session(session_id)
        game_ids = [g.id for g in games]
        rankings = await self._ranking_dal.list_by_games(game_ids)
        confirmations = await self._confirmation_dal.list_by_games(game_ids)
        records = await self._debt_dal.list_by_session(session_id)

        details = {g.id: GameDetails(game=g) for g in games}
        for ranking in rankings:
            details[ranking.game_id].rankings.append(ranking)
        for confirmation in confirmations:
            details[confirmation.game_id].confirmations.append(confirmation)
        for record in records:
            if record.game_id in details:
                details[record.game_id].debts.append(record)
        game_details = [details[g.id] for g in games]

        return SessionOverview(
            session=SessionWithMembers(session=session, members=members),
            games=game_details,
            debts=records,
            standings=standings.session_standings(
                [m.player_id for m in members], game_details, records
            ),
            balances=simplification.net_balances(records),
            unpaid_pairs=simplification.unpaid_pair_summary(records),
            simplified=simplification.simplify_debts(records),
        )

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def mark_paid(self, record_id: str, actor_id: str) -> DebtRecord:
        """Mark one debt record as paid. No-op if it already is.

        Raises:
            NotFoundError: Record not found.
            AuthorizationError: Actor is not a member of the record's session.
        """
        return await self._set_paid(record_id, actor_id, paid=True)

    async def mark_unpaid(self, record_id: str, actor_id: str) -> DebtRecord:
        """Clear the paid flag and timestamp of a record. No-op if unpaid."""
        return await self._set_paid(record_id, actor_id, paid=False)

    async def _set_paid(self, record_id: str, actor_id: str, paid: bool) -> DebtRecord:
        record = await self._get_record_or_404(record_id)
        action = "mark payments" if paid else "unmark payments"
        await self._guard.require_member(record.session_id, actor_id, action)

        async with self._storage.unit_of_work() as uow:
            await self._debt_dal.set_paid(record, paid, utcnow() if paid else None, uow)
        return await self._get_record_or_404(record_id)

    async def mark_all_paid_between(
        self,
        session_id: str,
        payer_id: str,
        payee_id: str,
        actor_id: str,
    ) -> int:
        """Mark every unpaid payer -> payee record in a session as paid.

        Returns:
            The number of records that changed.

        Raises:
            NotFoundError: Session not found.
            AuthorizationError: Actor is not a session member.
        """
        await self._get_session_or_404(session_id)
        await self._guard.require_member(session_id, actor_id, "mark payments")

        async with self._storage.unit_of_work() as uow:
            changed = await self._debt_dal.mark_paid_between(
                session_id, payer_id, payee_id, utcnow(), uow
            )
        return changed

    async def record_manual_debt(
        self,
        session_id: str,
        payer_id: str,
        payee_id: str,
        amount: Any,
        actor_id: str,
    ) -> DebtRecord:
        """Add a ledger entry that is not tied to any game.

        Raises:
            NotFoundError: Session not found.
            AuthorizationError: Actor is not the session owner.
            ValidationError: Non-positive amount, or payer equals payee.
        """
        session = await self._get_session_or_404(session_id)
        self._guard.require_owner(session, actor_id, "record manual debts")

        value = coerce_amount(amount)
        if value <= 0:
            raise ValidationError(f"Amount must be positive, got {value}")
        if not payer_id or not payee_id:
            raise ValidationError("Both payer and payee are required")
        if payer_id == payee_id:
            raise ValidationError("Payer and payee must be different players")

        async with self._storage.unit_of_work() as uow:
            record = await self._debt_dal.create(
                DebtRecord(
                    session_id=session_id,
                    game_id=None,
                    payer_id=payer_id,
                    payee_id=payee_id,
                    amount=value,
                ),
                uow,
            )
        return record
