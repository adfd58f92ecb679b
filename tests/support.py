import os
import shutil
import tempfile
import unittest

from application.games import create_game, update_game_session
from application.groups import create_group
from domain.models import Game, GameSession, Group
from infrastructure.db.database_sqlite import SqliteDatabase
from infrastructure.db.store import SqlPokerStore


class StoreTestCase(unittest.TestCase):
    """Runs each test against a fresh SQLite file."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, True)
        self.db = SqliteDatabase(os.path.join(self.tmpdir, "poker.db"))
        self.store = SqlPokerStore(self.db)

    def make_group(self, owner_id: str = "owner", owner_name: str = "Olivia", name: str = "Friday Night") -> Group:
        return create_group(name, None, owner_id, owner_name, self.store).unwrap()

    def make_game(self, group: Group, game_date: str = "2024-03-01") -> Game:
        return create_game(
            group.id, game_date, None, group.created_by, "Olivia", self.store
        ).unwrap()

    def record(self, game: Game, player_name: str, buy_in: float, end_amount: float, user_id=None) -> GameSession:
        return update_game_session(
            game.id, user_id, player_name, buy_in, end_amount, game.created_by, self.store
        ).unwrap()

    def reload_group(self, group: Group) -> Group:
        return self.store.groups.get_group(group.id)

    def reload_game(self, game: Game) -> Game:
        return self.store.games.get_game(game.id)
