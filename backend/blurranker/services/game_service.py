"""Game lifecycle service.

Owns the game state machine::

    pending --submit--> completed --resubmit--> completed
    pending --delete--> (gone)

A completed game never returns to pending and cannot be deleted.
Ranking submission replaces the game's rankings and debt records in one
unit of work, so a failure part-way leaves the previous result in place.
"""

import logging
from typing import Any, Iterable

from blurranker.dal.storage import Storage
from blurranker.errors import ConflictError, NotFoundError, StateError
from blurranker.models.common import utcnow
from blurranker.models.debt import DebtRecord
from blurranker.models.game import Confirmation, Game, GameDetails, Ranking
from blurranker.models.session import Session
from blurranker.services.authorization import AuthorizationGuard
from blurranker.services.settlement import settle, validate_ranking

logger = logging.getLogger("blurranker.services.game")


class GameService:
    """Service layer for game creation, ranking, confirmation and deletion."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage
        self._session_dal = storage.sessions
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

    async def _get_game_or_404(self, game_id: str) -> Game:
        game = await self._game_dal.get_by_id(game_id)
        if game is None:
            raise NotFoundError("Game", game_id)
        return game

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_game(self, game_id: str) -> Game:
        """Get a game by id.

        Raises:
            NotFoundError: Game not found.
        """
        return await self._get_game_or_404(game_id)

    async def get_game_details(self, game_id: str) -> GameDetails:
        """Get a game with its rankings, confirmations and debt records."""
        game = await self._get_game_or_404(game_id)
        return GameDetails(
            game=game,
            rankings=await self._ranking_dal.list_by_game(game_id),
            confirmations=await self._confirmation_dal.list_by_game(game_id),
            debts=await self._debt_dal.list_by_game(game_id),
        )

    async def list_session_games(self, session_id: str) -> list[GameDetails]:
        """All games of a session with their child records, newest first."""
        await self._get_session_or_404(session_id)
        games = await self._game_dal.list_by_session(session_id)
        return await self.load_details(games)

    async def load_details(self, games: list[Game]) -> list[GameDetails]:
        """Attach child records to ``games`` with one query per collection."""
        game_ids = [g.id for g in games]
        rankings = await self._ranking_dal.list_by_games(game_ids)
        confirmations = await self._confirmation_dal.list_by_games(game_ids)
        debts = await self._debt_dal.list_by_games(game_ids)

        details = {
            g.id: GameDetails(game=g) for g in games
        }
        for ranking in rankings:
            details[ranking.game_id].rankings.append(ranking)
        for confirmation in confirmations:
            details[confirmation.game_id].confirmations.append(confirmation)
        for debt in debts:
            details[debt.game_id].debts.append(debt)
        return [details[g.id] for g in games]

    # ------------------------------------------------------------------
    # Create game
    # ------------------------------------------------------------------

    async def create_game(self, session_id: str, actor_id: str) -> Game:
        """Create the next pending game of a session.

        The sequence number is one past the highest existing number in
        the session (1 for the first game); numbers freed by deleted
        games are not reused unless they were the highest.

        Args:
            session_id: The owning session.
            actor_id: The player issuing the command.

        Returns:
            The new pending Game.

        Raises:
            NotFoundError: Session not found.
            AuthorizationError: Actor is not the session owner.
            StateError: Session is archived.
            ConflictError: A concurrent create took the same number.
        """
        session = await self._get_session_or_404(session_id)
        self._guard.require_owner(session, actor_id, "create games")
        if session.is_archived:
            raise StateError("Cannot create games in an archived session")

        seq_no = await self._game_dal.max_seq_no(session_id) + 1
        game = Game(session_id=session_id, seq_no=seq_no)

        async with self._storage.unit_of_work() as uow:
            game = await self._game_dal.create(game, uow)

        logger.info("Game %s #%d created in session %s", game.id, seq_no, session_id)
        return game

    # ------------------------------------------------------------------
    # Submit rankings
    # ------------------------------------------------------------------

    async def submit_rankings(
        self,
        game_id: str,
        rankings: Iterable[Any],
        actor_id: str,
    ) -> GameDetails:
        """Record a game's finishing order and settle it.

        Replaces any previous rankings and debt records of the game. The
        whole replacement is one unit of work: claim the game revision,
        discard the old rankings and debts, write the new rankings, settle,
        write the new debts, mark the game completed.

        Args:
            game_id: The game to finalize.
            rankings: Entries with ``player_id`` and ``position``.
            actor_id: The player issuing the command.

        Returns:
            The game's details as re-read from storage.

        Raises:
            NotFoundError: Game or session not found.
            AuthorizationError: Actor is not the session owner.
            ValidationError: Malformed ranking set.
            StateError: Session is archived.
            ConflictError: Another submission or a delete changed the game first.
        """
        game = await self._get_game_or_404(game_id)
        session = await self._get_session_or_404(game.session_id)
        self._guard.require_owner(session, actor_id, "submit rankings")

        ordered = validate_ranking(rankings)
        if session.is_archived:
            raise StateError("Cannot record results in an archived session")

        scope = game.session_id
        resubmission = game.is_completed

        async with self._storage.unit_of_work() as uow:
            if not await self._game_dal.claim_revision(game, uow):
                raise ConflictError(
                    f"Game {game_id} was modified concurrently; reload and retry"
                )

            await self._ranking_dal.delete_by_game(game_id, scope, uow)
            await self._debt_dal.delete_by_game(game_id, scope, uow)

            await self._ranking_dal.create_many(
                [
                    Ranking(game_id=game_id, player_id=r.player_id, position=r.position)
                    for r in ordered
                ],
                scope,
                uow,
            )

            transfers = settle(ordered, session.stake)
            await self._debt_dal.create_many(
                [
                    DebtRecord(
                        session_id=scope,
                        game_id=game_id,
                        payer_id=t.payer_id,
                        payee_id=t.payee_id,
                        amount=t.amount,
                    )
                    for t in transfers
                ],
                uow,
            )

            if not await self._game_dal.mark_completed(game, utcnow(), uow):
                raise ConflictError(
                    f"Game {game_id} was deleted or modified during submission"
                )

        logger.info(
            "%s rankings for game %s: %d players, %d debts",
            "Resubmitted" if resubmission else "Submitted",
            game_id,
            len(ordered),
            len(transfers),
        )
        return await self.get_game_details(game_id)

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    async def confirm_game(self, game_id: str, player_id: str) -> bool:
        """Record a player's acknowledgement of the game result.

        Idempotent. Returns True if a confirmation was added, False if the
        player had already confirmed.

        Raises:
            NotFoundError: Game not found.
            AuthorizationError: Player is not a session member.
        """
        game = await self._get_game_or_404(game_id)
        await self._guard.require_member(game.session_id, player_id, "confirm games")

        if await self._confirmation_dal.get(game_id, player_id) is not None:
            return False

        try:
            async with self._storage.unit_of_work() as uow:
                await self._confirmation_dal.create(
                    Confirmation(game_id=game_id, player_id=player_id),
                    game.session_id,
                    uow,
                )
        except ConflictError:
            # A concurrent confirm won the unique index; same end state
            logger.info("Player %s already confirmed game %s", player_id, game_id)
            return False
        return True

    async def unconfirm_game(self, game_id: str, player_id: str) -> bool:
        """Withdraw a player's acknowledgement.

        Idempotent. Returns True if a confirmation was removed.

        Raises:
            NotFoundError: Game not found.
            AuthorizationError: Player is not a session member.
        """
        game = await self._get_game_or_404(game_id)
        await self._guard.require_member(game.session_id, player_id, "unconfirm games")

        async with self._storage.unit_of_work() as uow:
            removed = await self._confirmation_dal.delete(
                game_id, player_id, game.session_id, uow
            )
        return removed

    # ------------------------------------------------------------------
    # Delete game
    # ------------------------------------------------------------------

    async def delete_game(self, game_id: str, actor_id: str) -> None:
        """Delete a pending game and all of its child records.

        Other games keep their sequence numbers.

        Raises:
            NotFoundError: Game not found.
            AuthorizationError: Actor is not the session owner.
            StateError: Game is completed.
            ConflictError: The game was claimed by a submission while being deleted.
        """
        game = await self._get_game_or_404(game_id)
        session = await self._get_session_or_404(game.session_id)
        self._guard.require_owner(session, actor_id, "delete games")

        if game.is_completed:
            raise StateError(
                "Completed games cannot be deleted; their results are settled history"
            )

        scope = game.session_id
        async with self._storage.unit_of_work() as uow:
            # Game document first: a submission that already claimed it wins
            if not await self._game_dal.delete(game, uow):
                raise ConflictError(f"Game {game_id} changed before it could be deleted")
            await self._confirmation_dal.delete_by_game(game_id, scope, uow)
            await self._ranking_dal.delete_by_game(game_id, scope, uow)
            await self._debt_dal.delete_by_game(game_id, scope, uow)

        logger.info("Game %s #%d deleted from session %s", game_id, game.seq_no, scope)
