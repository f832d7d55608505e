"""Bundle of every DAL plus the unit-of-work factory for one database."""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from blurranker.dal.change_feed import ChangeFeed
from blurranker.dal.confirmations_dal import ConfirmationDAL
from blurranker.dal.debts_dal import DebtDAL
from blurranker.dal.games_dal import GameDAL
from blurranker.dal.memberships_dal import MembershipDAL
from blurranker.dal.rankings_dal import RankingDAL
from blurranker.dal.sessions_dal import SessionDAL
from blurranker.dal.unit_of_work import UnitOfWorkFactory


class Storage:
    """The storage collaborator handed to every service."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        feed: Optional[ChangeFeed] = None,
        use_transactions: Optional[bool] = None,
    ) -> None:
        self.db = db
        self.feed = feed
        self.sessions = SessionDAL(db)
        self.memberships = MembershipDAL(db)
        self.games = GameDAL(db)
        self.rankings = RankingDAL(db)
        self.confirmations = ConfirmationDAL(db)
        self.debts = DebtDAL(db)
        self.unit_of_work = UnitOfWorkFactory(db, feed, use_transactions)
