"""Unit tests for the collection DAL classes against mongomock-motor."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pymongo.errors import DuplicateKeyError

from blurranker.dal.database import ensure_indexes
from blurranker.errors import ConflictError
from blurranker.models.common import GameStatus, SessionStatus
from blurranker.models.debt import DebtRecord
from blurranker.models.game import Game, Ranking
from blurranker.models.session import Membership, Session

_T0 = datetime(2024, 3, 1, 19, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------

class TestIndexes:

    @pytest.mark.asyncio
    async def test_ensure_indexes_is_idempotent(self, mock_db):
        await ensure_indexes(mock_db)
        await mock_db.confirmations.insert_one({"game_id": "g1", "player_id": "a"})
        with pytest.raises(DuplicateKeyError):
            await mock_db.confirmations.insert_one({"game_id": "g1", "player_id": "a"})

    @pytest.mark.asyncio
    async def test_unique_membership(self, storage):
        await storage.memberships.create(Membership(session_id="s1", player_id="bob"))
        with pytest.raises(ConflictError):
            await storage.memberships.create(Membership(session_id="s1", player_id="bob"))

    @pytest.mark.asyncio
    async def test_unique_ranking_position(self, storage):
        with pytest.raises(ConflictError):
            await storage.rankings.create_many([
                Ranking(game_id="g1", player_id="a", position=1),
                Ranking(game_id="g1", player_id="b", position=1),
            ])

    @pytest.mark.asyncio
    async def test_unique_game_number(self, storage):
        await storage.games.create(Game(session_id="s1", seq_no=1))
        with pytest.raises(ConflictError):
            await storage.games.create(Game(session_id="s1", seq_no=1))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReads:

    @pytest.mark.asyncio
    async def test_get_by_id_tolerates_bad_ids(self, storage):
        assert await storage.sessions.get_by_id("nope") is None
        assert await storage.sessions.get_by_id("000000000000000000000000") is None
        assert await storage.sessions.get_many(["nope"]) == []

    @pytest.mark.asyncio
    async def test_sessions_by_status_newest_first(self, storage):
        for offset, name in enumerate(["old", "mid", "new"]):
            await storage.sessions.create(
                Session(name=name, stake=1, owner_id="a", created_at=_T0 + timedelta(hours=offset))
            )
        active = await storage.sessions.list_by_status(SessionStatus.ACTIVE)
        assert [s.name for s in active] == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_games_newest_first_and_max_seq_no(self, storage):
        assert await storage.games.max_seq_no("s1") == 0
        for seq_no in (1, 2, 3):
            await storage.games.create(Game(session_id="s1", seq_no=seq_no))
        await storage.games.create(Game(session_id="s2", seq_no=9))

        games = await storage.games.list_by_session("s1")
        assert [g.seq_no for g in games] == [3, 2, 1]
        assert await storage.games.max_seq_no("s1") == 3
        assert await storage.games.list_by_session("s1", status=GameStatus.COMPLETED) == []

    @pytest.mark.asyncio
    async def test_debts_by_player_and_unpaid_filter(self, storage):
        await storage.debts.create_many([
            DebtRecord(session_id="s1", game_id="g1", payer_id="a", payee_id="b", amount=Decimal("5")),
            DebtRecord(session_id="s1", game_id="g1", payer_id="c", payee_id="a", amount=Decimal("5")),
            DebtRecord(session_id="s1", game_id="g1", payer_id="c", payee_id="b", amount=Decimal("5"),
                       is_paid=True),
        ])
        assert len(await storage.debts.list_by_player("a")) == 2
        assert len(await storage.debts.list_by_player("b", unpaid_only=True)) == 1
        assert len(await storage.debts.list_by_session("s1", unpaid_only=True)) == 2

        record = (await storage.debts.list_by_player("a"))[0]
        assert isinstance(record.amount, Decimal)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class TestWrites:

    @pytest.mark.asyncio
    async def test_claim_revision_is_compare_and_set(self, storage):
        game = await storage.games.create(Game(session_id="s1", seq_no=1))

        assert await storage.games.claim_revision(game) is True
        assert await storage.games.claim_revision(game) is False
        assert (await storage.games.get_by_id(game.id)).revision == 1

    @pytest.mark.asyncio
    async def test_mark_completed_requires_the_claimed_revision(self, storage):
        game = await storage.games.create(Game(session_id="s1", seq_no=1))
        assert await storage.games.mark_completed(game, _T0) is False

        assert await storage.games.claim_revision(game) is True
        assert await storage.games.mark_completed(game, _T0) is True

        reloaded = await storage.games.get_by_id(game.id)
        assert reloaded.status == GameStatus.COMPLETED
        assert reloaded.revision == 2

    @pytest.mark.asyncio
    async def test_delete_only_removes_pending_games(self, storage):
        game = await storage.games.create(Game(session_id="s1", seq_no=1))
        await storage.games.claim_revision(game)
        await storage.games.mark_completed(game, _T0)

        assert await storage.games.delete(game) is False
        assert await storage.games.get_by_id(game.id) is not None

    @pytest.mark.asyncio
    async def test_delete_requires_current_revision(self, storage):
        game = await storage.games.create(Game(session_id="s1", seq_no=1))
        await storage.games.claim_revision(game)

        assert await storage.games.delete(game) is False
        current = await storage.games.get_by_id(game.id)
        assert await storage.games.delete(current) is True

    @pytest.mark.asyncio
    async def test_set_paid_is_noop_when_unchanged(self, storage):
        [record] = await storage.debts.create_many([
            DebtRecord(session_id="s1", payer_id="a", payee_id="b", amount=Decimal("1")),
        ])
        assert await storage.debts.set_paid(record, False, None) is False
        assert await storage.debts.set_paid(record, True, _T0) is True
        assert await storage.debts.set_paid(record, True, _T0) is False

    @pytest.mark.asyncio
    async def test_archive_only_once(self, storage):
        session = await storage.sessions.create(Session(name="S", stake=1, owner_id="a"))
        assert await storage.sessions.archive(session.id, _T0) is True
        assert await storage.sessions.archive(session.id, _T0) is False
