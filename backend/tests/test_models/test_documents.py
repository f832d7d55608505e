"""Tests for the MongoDB document models and shared types."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from bson import Decimal128, ObjectId
from pydantic import ValidationError as PydanticValidationError

from blurranker.models.common import ChangeOperation, EntityType, GameStatus, SessionStatus
from blurranker.models.debt import DebtRecord, Transfer
from blurranker.models.event import ChangeEvent
from blurranker.models.game import Game, GameDetails, Ranking
from blurranker.models.session import Membership, Session, SessionWithMembers


class TestSessionModel:

    def test_defaults(self):
        session = Session(name="Friday", stake=Decimal("10"), owner_id="alice")
        assert session.id is None
        assert session.status == SessionStatus.ACTIVE
        assert not session.is_archived
        assert session.created_at.tzinfo is not None

    def test_stake_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            Session(name="Free", stake=Decimal("0"), owner_id="alice")

    def test_to_mongo_dict_stores_decimal128_and_drops_empty_id(self):
        doc = Session(name="Friday", stake="12.5", owner_id="alice").to_mongo_dict()
        assert "_id" not in doc
        assert isinstance(doc["stake"], Decimal128)
        assert doc["stake"].to_decimal() == Decimal("12.5")
        assert isinstance(doc["created_at"], datetime)

    def test_from_mongo_converts_ids_and_amounts(self):
        oid = ObjectId()
        session = Session.from_mongo({
            "_id": oid,
            "name": "Friday",
            "stake": Decimal128("200"),
            "owner_id": "alice",
            "status": "archived",
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "archived_at": datetime(2024, 1, 2, tzinfo=timezone.utc),
        })
        assert session.id == str(oid)
        assert session.stake == Decimal("200")
        assert session.is_archived

    def test_json_dump_uses_strings(self):
        session = Session(
            _id=str(ObjectId()), name="Friday", stake="7.25", owner_id="alice"
        )
        data = session.model_dump(mode="json", by_alias=True)
        assert data["stake"] == "7.25"
        assert isinstance(data["created_at"], str)
        assert data["status"] == "active"

    def test_member_ids(self):
        full = SessionWithMembers(
            session=Session(name="S", stake=1, owner_id="alice"),
            members=[
                Membership(session_id="s", player_id="alice", is_creator=True),
                Membership(session_id="s", player_id="bob"),
            ],
        )
        assert full.member_ids == ["alice", "bob"]


class TestGameModels:

    def test_game_defaults(self):
        game = Game(session_id="s1", seq_no=1)
        assert game.status == GameStatus.PENDING
        assert game.revision == 0
        assert not game.is_completed

    def test_seq_no_starts_at_one(self):
        with pytest.raises(PydanticValidationError):
            Game(session_id="s1", seq_no=0)

    def test_ranking_position_positive(self):
        with pytest.raises(PydanticValidationError):
            Ranking(game_id="g1", player_id="a", position=0)

    def test_details_confirmed_ids(self):
        details = GameDetails(game=Game(session_id="s1", seq_no=1))
        assert details.confirmed_player_ids == set()


class TestLedgerModels:

    def test_debt_amount_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            DebtRecord(session_id="s1", payer_id="a", payee_id="b", amount="-1")

    def test_manual_debt_has_no_game(self):
        record = DebtRecord(session_id="s1", payer_id="a", payee_id="b", amount="5")
        assert record.game_id is None
        assert record.to_mongo_dict()["game_id"] is None

    def test_transfer_is_frozen(self):
        transfer = Transfer(payer_id="a", payee_id="b", amount="1")
        with pytest.raises(PydanticValidationError):
            transfer.amount = Decimal("2")

    def test_money_rejects_booleans(self):
        with pytest.raises(PydanticValidationError):
            Transfer(payer_id="a", payee_id="b", amount=True)


class TestChangeEvent:

    def test_events_are_hashable_and_comparable(self):
        a = ChangeEvent(entity=EntityType.DEBT, operation=ChangeOperation.UPDATE, scope="s1")
        b = ChangeEvent(entity=EntityType.DEBT, operation=ChangeOperation.UPDATE, scope="s1")
        assert a == b
        assert len({a, b}) == 1

    def test_scope_optional(self):
        event = ChangeEvent(entity="session", operation="insert")
        assert event.scope is None
        assert event.entity == EntityType.SESSION
