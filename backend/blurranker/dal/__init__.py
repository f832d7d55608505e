"""Data Access Layer -- MongoDB repository classes, units of work and change feed."""

from blurranker.dal.change_feed import ChangeFeed, Subscription
from blurranker.dal.confirmations_dal import ConfirmationDAL
from blurranker.dal.database import (
    close_mongo_connection,
    connect_to_mongo,
    ensure_indexes,
    get_database,
)
from blurranker.dal.debts_dal import DebtDAL
from blurranker.dal.games_dal import GameDAL
from blurranker.dal.memberships_dal import MembershipDAL
from blurranker.dal.rankings_dal import RankingDAL
from blurranker.dal.sessions_dal import SessionDAL
from blurranker.dal.storage import Storage
from blurranker.dal.unit_of_work import (
    CompensatingUnit,
    TransactionUnit,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    # Connection management
    "connect_to_mongo",
    "close_mongo_connection",
    "ensure_indexes",
    "get_database",
    # DAL classes
    "SessionDAL",
    "MembershipDAL",
    "GameDAL",
    "RankingDAL",
    "ConfirmationDAL",
    "DebtDAL",
    "Storage",
    # Units of work
    "UnitOfWork",
    "CompensatingUnit",
    "TransactionUnit",
    "UnitOfWorkFactory",
    # Change feed
    "ChangeFeed",
    "Subscription",
]
