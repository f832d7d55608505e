"""Ledger/standings aggregator.

Derives per-player statistics, session standings and the all-time
leaderboard from rankings and debt records. Everything is recomputed on
each call; nothing is cached between queries.

Only completed games count. Debt records count when they belong to a
completed game or are manual entries (``game_id is None``).

Pure functions only. No database access, no async.
"""

from collections import Counter, defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from blurranker.models.debt import DebtRecord
from blurranker.models.game import GameDetails, Ranking
from blurranker.models.stats import LeaderboardEntry, PlayerProfile, PlayerStats, RecentGame

ZERO = Decimal("0")


def completed_games(games: Iterable[GameDetails]) -> list[GameDetails]:
    return [g for g in games if g.game.is_completed]


def players_per_game(rankings: Iterable[Ranking]) -> dict[str, int]:
    """Number of ranked players in each game."""
    return dict(Counter(r.game_id for r in rankings))


def countable_records(
    records: Iterable[DebtRecord], completed_game_ids: set[str]
) -> list[DebtRecord]:
    """Records from completed games plus manual (game-less) records."""
    return [
        r for r in records
        if r.game_id is None or r.game_id in completed_game_ids
    ]


def compute_player_stats(
    player_id: str,
    rankings: Iterable[Ranking],
    records: Iterable[DebtRecord],
    game_sizes: dict[str, int],
) -> PlayerStats:
    """Stats for one player over the given rankings and records.

    Args:
        player_id: The player to report on.
        rankings: Rankings of completed games (any players).
        records: Debt records to total up (any players).
        game_sizes: Ranked-player count per game, for last places.

    A player with no ranked games gets zero placing stats; manual debts
    still count toward their money totals.
    """
    total_received = ZERO
    total_paid = ZERO
    for record in records:
        if record.payee_id == player_id:
            total_received += record.amount
        if record.payer_id == player_id:
            total_paid += record.amount

    own = [r for r in rankings if r.player_id == player_id]
    games_played = len(own)
    if games_played == 0:
        return PlayerStats(
            player_id=player_id,
            total_received=total_received,
            total_paid=total_paid,
            net_profit=total_received - total_paid,
        )

    positions = Counter(r.position for r in own)
    wins = positions[1]
    last_places = sum(1 for r in own if r.position == game_sizes.get(r.game_id, 0))

    return PlayerStats(
        player_id=player_id,
        games_played=games_played,
        wins=wins,
        second_places=positions[2],
        third_places=positions[3],
        last_places=last_places,
        win_rate=wins / games_played,
        total_received=total_received,
        total_paid=total_paid,
        net_profit=total_received - total_paid,
        average_position=sum(r.position for r in own) / games_played,
    )


def _flatten(games: Iterable[GameDetails]) -> tuple[list[Ranking], set[str]]:
    finished = completed_games(games)
    rankings = [r for g in finished for r in g.rankings]
    return rankings, {g.game.id for g in finished}


def session_standings(
    member_ids: Iterable[str],
    games: Iterable[GameDetails],
    records: Iterable[DebtRecord],
) -> list[PlayerStats]:
    """Rank session members.

    Order: net profit (desc), wins (desc), average position (asc),
    then player id.
    """
    rankings, completed_ids = _flatten(games)
    counted = countable_records(records, completed_ids)
    sizes = players_per_game(rankings)

    standings = [
        compute_player_stats(player_id, rankings, counted, sizes)
        for player_id in dict.fromkeys(member_ids)
    ]
    standings.sort(
        key=lambda s: (-s.net_profit, -s.wins, s.average_position, s.player_id)
    )
    return standings


def all_time_leaderboard(
    player_ids: Iterable[str],
    games: Iterable[GameDetails],
    records: Iterable[DebtRecord],
    sessions_per_player: dict[str, int],
) -> list[LeaderboardEntry]:
    """All-time stats across every session.

    Players with no completed games are left out. Order: net profit,
    wins, win rate (all desc), then player id.
    """
    rankings, completed_ids = _flatten(games)
    counted = countable_records(records, completed_ids)
    sizes = players_per_game(rankings)

    leaderboard: list[LeaderboardEntry] = []
    for player_id in dict.fromkeys(player_ids):
        stats = compute_player_stats(player_id, rankings, counted, sizes)
        if stats.games_played == 0:
            continue
        leaderboard.append(
            LeaderboardEntry(
                **stats.model_dump(),
                sessions_joined=sessions_per_player.get(player_id, 0),
            )
        )
    leaderboard.sort(
        key=lambda e: (-e.net_profit, -e.wins, -e.win_rate, e.player_id)
    )
    return leaderboard


def player_profile(
    player_id: str,
    games: Iterable[GameDetails],
    records: Iterable[DebtRecord],
    sessions_joined: int,
    session_names: dict[str, str],
    recent_limit: int = 10,
) -> PlayerProfile:
    """All-time stats for one player plus their most recent games."""
    games = list(games)
    rankings, completed_ids = _flatten(games)
    counted = countable_records(records, completed_ids)
    sizes = players_per_game(rankings)
    stats = compute_player_stats(player_id, rankings, counted, sizes)

    per_game: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for record in counted:
        if record.game_id is None:
            continue
        if record.payee_id == player_id:
            per_game[record.game_id] += record.amount
        if record.payer_id == player_id:
            per_game[record.game_id] -= record.amount

    recent: list[RecentGame] = []
    for details in completed_games(games):
        position: Optional[int] = next(
            (r.position for r in details.rankings if r.player_id == player_id), None
        )
        if position is None:
            continue
        game = details.game
        recent.append(
            RecentGame(
                game_id=game.id,
                session_id=game.session_id,
                session_name=session_names.get(game.session_id, "Unknown Session"),
                position=position,
                total_players=sizes.get(game.id, len(details.rankings)),
                net_result=per_game[game.id],
                completed_at=game.completed_at,
            )
        )
    recent.sort(
        key=lambda g: g.completed_at.timestamp() if g.completed_at else 0.0,
        reverse=True,
    )

    return PlayerProfile(
        **stats.model_dump(),
        sessions_joined=sessions_joined,
        recent_games=recent[:recent_limit],
    )
