"""Settlement engine: converts a finishing order into pairwise debts.

Every player pays the stake to every player who finished above them.
With 5 players and a stake of 200:

- 1st receives 200 from each of 2nd..5th: +800
- 2nd pays 1st, receives from 3rd..5th: +400
- 3rd pays 1st and 2nd, receives from 4th and 5th: 0
- 4th: -400
- 5th pays everyone above: -800

For N players this yields N*(N-1)/2 transfers. The quadratic cost is
accepted: N is the number of players in one game, typically 10 or fewer.

Pure functions only. No database access, no async.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from blurranker.errors import ValidationError
from blurranker.models.debt import Transfer
from blurranker.models.game import RankingEntry

MIN_RANKED_PLAYERS = 2


def coerce_amount(value: Any, what: str = "amount") -> Decimal:
    """Parse a monetary value into a Decimal.

    Raises:
        ValidationError: The value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {what}: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid {what}: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid {what}: {value!r}")
    return amount


def _as_entry(item: Any) -> RankingEntry:
    if isinstance(item, RankingEntry):
        return item
    if isinstance(item, dict):
        return RankingEntry(player_id=item["player_id"], position=item["position"])
    if isinstance(item, (tuple, list)) and len(item) == 2:
        return RankingEntry(player_id=item[0], position=item[1])
    if hasattr(item, "player_id") and hasattr(item, "position"):
        return RankingEntry(player_id=item.player_id, position=item.position)
    raise ValidationError(f"Unrecognised ranking entry: {item!r}")


def _as_entries(items: Iterable[Any]) -> list[RankingEntry]:
    try:
        return [_as_entry(item) for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed ranking entry: {exc}") from exc


def validate_ranking(entries: Iterable[Any]) -> list[RankingEntry]:
    """Check a submitted ranking set and return it sorted by position.

    A valid set has at least two entries, each for a distinct non-empty
    player, and positions forming exactly 1..N.

    Raises:
        ValidationError: The set violates any of the rules above.
    """
    ranking = _as_entries(entries)

    if len(ranking) < MIN_RANKED_PLAYERS:
        raise ValidationError(
            f"A ranking needs at least {MIN_RANKED_PLAYERS} players, got {len(ranking)}"
        )

    players = [r.player_id.strip() for r in ranking]
    if any(not p for p in players):
        raise ValidationError("Ranking contains an empty player id")
    if len(set(players)) != len(players):
        raise ValidationError("Each player may appear only once in a ranking")

    positions = sorted(r.position for r in ranking)
    if positions != list(range(1, len(ranking) + 1)):
        raise ValidationError(
            f"Positions must be exactly 1..{len(ranking)} with no duplicates, "
            f"got {positions}"
        )

    return sorted(
        (RankingEntry(player_id=p, position=r.position) for p, r in zip(players, ranking)),
        key=lambda r: r.position,
    )


def settle(ranking: Iterable[Any], stake: Any) -> list[Transfer]:
    """Compute the debts produced by one finishing order.

    Args:
        ranking: Entries with ``player_id`` and ``position`` (RankingEntry,
            Ranking, dicts or ``(player_id, position)`` pairs), any order.
        stake: Amount paid per losing-to-winning pair.

    Returns:
        One Transfer per unordered pair, the worse position paying the
        better one. Empty for fewer than 2 entries or a stake <= 0.
    """
    amount = coerce_amount(stake, "stake")
    entries = _as_entries(ranking)
    if len(entries) < MIN_RANKED_PLAYERS or amount <= 0:
        return []

    ordered = sorted(entries, key=lambda r: r.position)
    transfers: list[Transfer] = []
    for i in range(1, len(ordered)):
        payer = ordered[i]
        for receiver in ordered[:i]:
            transfers.append(
                Transfer(
                    payer_id=payer.player_id,
                    payee_id=receiver.player_id,
                    amount=amount,
                )
            )
    return transfers
