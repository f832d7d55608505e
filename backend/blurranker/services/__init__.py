"""Service layer: game lifecycle, sessions, ledger reads and projections."""

from blurranker.services.authorization import AuthorizationGuard
from blurranker.services.game_service import GameService
from blurranker.services.ledger_service import LedgerService
from blurranker.services.projection import Projection, ProjectionSet, ProjectionSync
from blurranker.services.session_service import SessionService
from blurranker.services.settlement import settle, validate_ranking
from blurranker.services.simplification import net_balances, simplify_debts

__all__ = [
    "AuthorizationGuard",
    "GameService",
    "LedgerService",
    "SessionService",
    "Projection",
    "ProjectionSet",
    "ProjectionSync",
    "settle",
    "validate_ranking",
    "net_balances",
    "simplify_debts",
]
