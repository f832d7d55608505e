"""Debt simplification and balance helpers.

``simplify_debts`` nets a set of unpaid debts into fewer transfers with
the same effect on every player's balance:

1. Split the players into groups connected by who owes whom. Each
   group is settled on its own, so no transfer links players who had no
   chain of debts between them.
2. Net balance per player: amounts received minus amounts paid.
3. Creditors (net > 0) and debtors (net < 0, as a magnitude), each sorted
   by magnitude, largest first.
4. Repeatedly match the largest remaining debtor with the largest
   remaining creditor for ``min(debtor, creditor)``, moving past whichever
   reaches zero.

This is a greedy heuristic. A group of k players yields at most k - 1
transfers and holds at least k - 1 distinct pairs, so the output never
exceeds the number of distinct (payer, payee) pairs in the input. It
does not promise the minimum possible count. An exact min-cost-flow
solver could replace it behind the same signature.

Pure functions only. No database access, no async.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable

from blurranker.errors import ValidationError
from blurranker.models.debt import PairSummary, Transfer

ZERO = Decimal("0")


def _is_paid(record: Any) -> bool:
    # Transfers carry no paid flag and always count as outstanding
    return bool(getattr(record, "is_paid", False))


def _checked(records: Iterable[Any], only_unpaid: bool) -> list[Any]:
    selected = []
    for record in records:
        if only_unpaid and _is_paid(record):
            continue
        if record.amount <= 0:
            raise ValidationError(f"Debt amounts must be positive, got {record.amount}")
        if record.payer_id == record.payee_id:
            raise ValidationError(f"Player {record.payer_id} cannot owe themselves")
        selected.append(record)
    return selected


def net_balances(records: Iterable[Any], only_unpaid: bool = True) -> dict[str, Decimal]:
    """Net balance per player: positive is owed money, negative owes money."""
    balances: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for record in _checked(records, only_unpaid):
        balances[record.payee_id] += record.amount
        balances[record.payer_id] -= record.amount
    return dict(balances)


def player_balance(player_id: str, records: Iterable[Any], only_unpaid: bool = False) -> Decimal:
    """Net balance of one player over ``records``."""
    return net_balances(records, only_unpaid=only_unpaid).get(player_id, ZERO)


def unpaid_pair_summary(records: Iterable[Any]) -> list[PairSummary]:
    """Total and count of unpaid records per ordered (payer, payee) pair."""
    totals: dict[tuple[str, str], list] = {}
    for record in _checked(records, only_unpaid=True):
        key = (record.payer_id, record.payee_id)
        entry = totals.setdefault(key, [ZERO, 0])
        entry[0] += record.amount
        entry[1] += 1
    return [
        PairSummary(payer_id=payer, payee_id=payee, amount=amount, count=count)
        for (payer, payee), (amount, count) in totals.items()
    ]


def _debt_groups(records: list[Any]) -> list[list[str]]:
    """Players partitioned by who owes whom, smallest player id first."""
    parent: dict[str, str] = {}

    def find(player: str) -> str:
        parent.setdefault(player, player)
        while parent[player] != player:
            parent[player] = parent[parent[player]]
            player = parent[player]
        return player

    for record in records:
        a, b = find(record.payer_id), find(record.payee_id)
        if a != b:
            parent[max(a, b)] = min(a, b)

    groups: dict[str, list[str]] = defaultdict(list)
    for player in sorted(parent):
        groups[find(player)].append(player)
    return [groups[root] for root in sorted(groups)]


def _match(balances: dict[str, Decimal]) -> list[Transfer]:
    creditors = [[player, amount] for player, amount in balances.items() if amount > 0]
    debtors = [[player, -amount] for player, amount in balances.items() if amount < 0]
    creditors.sort(key=lambda c: (-c[1], c[0]))
    debtors.sort(key=lambda d: (-d[1], d[0]))

    transfers: list[Transfer] = []
    d = c = 0
    while d < len(debtors) and c < len(creditors):
        debtor, creditor = debtors[d], creditors[c]
        amount = min(debtor[1], creditor[1])
        if amount > 0:
            transfers.append(
                Transfer(payer_id=debtor[0], payee_id=creditor[0], amount=amount)
            )
        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] == 0:
            d += 1
        if creditor[1] == 0:
            c += 1
    return transfers


def simplify_debts(records: Iterable[Any]) -> list[Transfer]:
    """Net unpaid debts into an equivalent, usually smaller, transfer list.

    Paid records are ignored. Ties in magnitude are broken by player id
    so the output is deterministic.
    """
    outstanding = _checked(records, only_unpaid=True)
    balances = net_balances(outstanding, only_unpaid=False)

    transfers: list[Transfer] = []
    for group in _debt_groups(outstanding):
        transfers.extend(_match({player: balances[player] for player in group}))
    return transfers
