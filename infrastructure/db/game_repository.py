from __future__ import annotations

import time
from typing import Dict, Iterable, List, Optional, Sequence

from domain.models import Game, GameSession, GameStatus, SessionRole, new_id, normalize_name
from domain.repositories import GameRepository

from .database import Database

GAME_COLUMNS = "id, group_id, date, notes, created_by, created_at, status"
SESSION_COLUMNS = "id, game_id, player_name, buy_in, end_amount, profit, user_id, role"


class SqlGameRepository(GameRepository):
    """
    SQL implementation of `GameRepository` over `games` and `game_sessions`.

    Sessions keep their insertion order through the `seq` column. The
    unique indexes on `game_sessions` enforce one session per identity per
    game; violating them raises `Conflict`.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _to_session(row: Sequence) -> GameSession:
        return GameSession(
            id=str(row[0]),
            player_name=row[2],
            buy_in=float(row[3] or 0),
            end_amount=float(row[4] or 0),
            user_id=str(row[6]) if row[6] else None,
            role=SessionRole(row[7]) if row[7] else None,
        )

    def _load_sessions(self, game_ids: List[str]) -> Dict[str, List[GameSession]]:
        sessions: Dict[str, List[GameSession]] = {game_id: [] for game_id in game_ids}
        if not game_ids:
            return sessions
        marks = ", ".join("?" for _ in game_ids)
        rows = self._db.query(
            f"SELECT {SESSION_COLUMNS} FROM game_sessions "
            f"WHERE game_id IN ({marks}) ORDER BY seq",
            game_ids,
        )
        for row in rows:
            sessions[str(row[1])].append(self._to_session(row))
        return sessions

    def _to_domain(self, rows: List[Sequence]) -> List[Game]:
        sessions = self._load_sessions([str(row[0]) for row in rows])
        return [
            Game(
                id=str(row[0]),
                group_id=str(row[1]),
                date=row[2],
                notes=row[3] or None,
                created_by=str(row[4]),
                created_at=row[5],
                status=GameStatus(row[6]),
                sessions=sessions[str(row[0])],
            )
            for row in rows
        ]

    def get_game(self, game_id: str) -> Optional[Game]:
        rows = self._db.query(f"SELECT {GAME_COLUMNS} FROM games WHERE id = ?", (game_id,))
        if not rows:
            return None
        return self._to_domain(rows)[0]

    def list_games_for_group(self, group_id: str) -> List[Game]:
        return self.list_games_for_groups([group_id])

    def list_games_for_groups(self, group_ids: Iterable[str]) -> List[Game]:
        group_ids = list(group_ids)
        if not group_ids:
            return []
        marks = ", ".join("?" for _ in group_ids)
        rows = self._db.query(
            f"SELECT {GAME_COLUMNS} FROM games WHERE group_id IN ({marks}) "
            "ORDER BY date DESC, created_at DESC",
            group_ids,
        )
        return self._to_domain(rows)

    def add_game(self, game: Game) -> None:
        with self._db.transaction():
            self._db.execute(
                f"INSERT INTO games ({GAME_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    game.id,
                    game.group_id,
                    game.date,
                    game.notes,
                    game.created_by,
                    game.created_at,
                    game.status.value,
                ),
            )
            for session in game.sessions:
                self.add_session(game.id, session)

    def update_status(self, game_id: str, status: GameStatus) -> None:
        self._db.execute("UPDATE games SET status = ? WHERE id = ?", (status.value, game_id))

    def delete_game(self, game_id: str) -> None:
        self._db.execute("DELETE FROM games WHERE id = ?", (game_id,))

    def add_session(self, game_id: str, session: GameSession) -> None:
        if session.id is None:
            session.id = new_id()
        self._db.execute(
            f"INSERT INTO game_sessions ({SESSION_COLUMNS}, name_key, seq) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                session.id,
                game_id,
                session.player_name,
                session.buy_in,
                session.end_amount,
                session.profit,
                session.user_id,
                session.role.value if session.role else None,
                normalize_name(session.player_name),
                time.time_ns(),
            ),
        )

    def update_session(self, session: GameSession) -> None:
        self._db.execute(
            """
            UPDATE game_sessions
            SET player_name = ?, name_key = ?, buy_in = ?, end_amount = ?, profit = ?,
                user_id = ?, role = ?
            WHERE id = ?
            """,
            (
                session.player_name,
                normalize_name(session.player_name),
                session.buy_in,
                session.end_amount,
                session.profit,
                session.user_id,
                session.role.value if session.role else None,
                session.id,
            ),
        )

    def delete_session(self, session_id: str) -> None:
        self._db.execute("DELETE FROM game_sessions WHERE id = ?", (session_id,))

    def delete_sessions(self, game_id: str) -> None:
        self._db.execute("DELETE FROM game_sessions WHERE game_id = ?", (game_id,))
