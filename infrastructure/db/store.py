from __future__ import annotations

from typing import ContextManager

from domain.repositories import PokerStore

from .claim_repository import SqlClaimRequestRepository
from .database import Database
from .game_repository import SqlGameRepository
from .group_repository import SqlGroupRepository
from .payout_repository import SqlPayoutAckRepository
from .user_directory import SqlUserDirectory


class SqlPokerStore(PokerStore):
    """All repositories of one database, sharing its transaction boundary."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.groups = SqlGroupRepository(db)
        self.games = SqlGameRepository(db)
        self.claims = SqlClaimRequestRepository(db)
        self.payouts = SqlPayoutAckRepository(db)
        self.users = SqlUserDirectory(db)

    def transaction(self) -> ContextManager[object]:
        return self.db.transaction()
