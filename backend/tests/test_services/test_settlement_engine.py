"""Tests for the settlement engine pure functions.

Covers the per-pair stake rule, its worked examples, ranking validation
and the empty-result edge cases.
"""

import random
from decimal import Decimal

import pytest

from blurranker.errors import ValidationError
from blurranker.models.game import RankingEntry
from blurranker.services.settlement import coerce_amount, settle, validate_ranking
from blurranker.services.simplification import net_balances


def _order(*player_ids):
    return [
        {"player_id": player_id, "position": position}
        for position, player_id in enumerate(player_ids, start=1)
    ]


# ---------------------------------------------------------------------------
# settle
# ---------------------------------------------------------------------------

class TestSettle:

    def test_five_players_stake_200(self):
        transfers = settle(_order("p1", "p2", "p3", "p4", "p5"), Decimal("200"))
        nets = net_balances(transfers)

        assert len(transfers) == 10
        assert nets["p1"] == Decimal("800")
        assert nets["p2"] == Decimal("400")
        assert nets.get("p3", Decimal("0")) == Decimal("0")
        assert nets["p4"] == Decimal("-400")
        assert nets["p5"] == Decimal("-800")

    def test_four_players_stake_10(self):
        transfers = settle(_order("a", "b", "c", "d"), 10)
        nets = net_balances(transfers)

        assert len(transfers) == 6
        assert nets["a"] == Decimal("30")
        assert nets["b"] == Decimal("10")
        assert nets["c"] == Decimal("-10")
        assert nets["d"] == Decimal("-30")

    @pytest.mark.parametrize("n", [2, 3, 4, 6, 8, 10])
    def test_pair_count_and_zero_sum(self, n):
        players = [f"p{i}" for i in range(1, n + 1)]
        transfers = settle(_order(*players), Decimal("5"))

        assert len(transfers) == n * (n - 1) // 2
        assert sum(net_balances(transfers).values()) == Decimal("0")

    def test_every_transfer_pays_the_stake_upwards(self):
        ranking = _order("w", "x", "y", "z")
        positions = {r["player_id"]: r["position"] for r in ranking}

        for transfer in settle(ranking, Decimal("7.5")):
            assert transfer.amount == Decimal("7.5")
            assert positions[transfer.payer_id] > positions[transfer.payee_id]

    def test_each_pair_appears_once(self):
        transfers = settle(_order("a", "b", "c", "d", "e"), 1)
        pairs = {frozenset((t.payer_id, t.payee_id)) for t in transfers}
        assert len(pairs) == len(transfers)

    def test_input_order_does_not_matter(self):
        ranking = _order("a", "b", "c", "d", "e")
        shuffled = list(ranking)
        random.Random(7).shuffle(shuffled)

        key = lambda t: (t.payer_id, t.payee_id)
        assert sorted(settle(ranking, 3), key=key) == sorted(settle(shuffled, 3), key=key)

    def test_accepts_models_and_pairs(self):
        entries = [RankingEntry(player_id="a", position=1), ("b", 2)]
        transfers = settle(entries, 50)
        assert len(transfers) == 1
        assert transfers[0].payer_id == "b"
        assert transfers[0].payee_id == "a"

    def test_single_player_is_empty(self):
        assert settle(_order("solo"), 100) == []

    def test_no_players_is_empty(self):
        assert settle([], 100) == []

    @pytest.mark.parametrize("stake", [0, "0", -5, Decimal("-0.01")])
    def test_non_positive_stake_is_empty(self, stake):
        assert settle(_order("a", "b", "c"), stake) == []

    def test_non_numeric_stake_rejected(self):
        with pytest.raises(ValidationError):
            settle(_order("a", "b"), "lots")


# ---------------------------------------------------------------------------
# validate_ranking
# ---------------------------------------------------------------------------

class TestValidateRanking:

    def test_returns_entries_sorted_by_position(self):
        ranking = [
            {"player_id": "c", "position": 3},
            {"player_id": "a", "position": 1},
            {"player_id": "b", "position": 2},
        ]
        result = validate_ranking(ranking)
        assert [r.player_id for r in result] == ["a", "b", "c"]

    def test_strips_player_ids(self):
        result = validate_ranking([("  a ", 1), ("b", 2)])
        assert result[0].player_id == "a"

    def test_rejects_single_entry(self):
        with pytest.raises(ValidationError):
            validate_ranking(_order("a"))

    def test_rejects_duplicate_player(self):
        with pytest.raises(ValidationError):
            validate_ranking([("a", 1), ("a", 2)])

    def test_rejects_duplicate_position(self):
        with pytest.raises(ValidationError):
            validate_ranking([("a", 1), ("b", 1)])

    def test_rejects_gap_in_positions(self):
        with pytest.raises(ValidationError):
            validate_ranking([("a", 1), ("b", 3)])

    def test_rejects_positions_not_starting_at_one(self):
        with pytest.raises(ValidationError):
            validate_ranking([("a", 0), ("b", 1)])

    def test_rejects_empty_player_id(self):
        with pytest.raises(ValidationError):
            validate_ranking([("a", 1), ("  ", 2)])

    def test_rejects_malformed_entry(self):
        with pytest.raises(ValidationError):
            validate_ranking([{"player_id": "a"}, {"player_id": "b", "position": 2}])

    def test_rejects_non_integer_position(self):
        with pytest.raises(ValidationError):
            validate_ranking([("a", "first"), ("b", 2)])


class TestCoerceAmount:

    def test_parses_strings_and_ints(self):
        assert coerce_amount("12.50") == Decimal("12.50")
        assert coerce_amount(3) == Decimal("3")

    @pytest.mark.parametrize("value", ["abc", True, float("nan"), "Infinity", None])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            coerce_amount(value)
