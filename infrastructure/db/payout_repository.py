from __future__ import annotations

from typing import Optional

from domain.models import PayoutAck
from domain.repositories import PayoutAckRepository

from .database import Database


class SqlPayoutAckRepository(PayoutAckRepository):
    """
    Payout acknowledgements keyed by (game_id, user_id).

    Stored next to the games so every device sees the same annotation; the
    data stays advisory and is never reconciled against real payments.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def get(self, game_id: str, user_id: str) -> Optional[PayoutAck]:
        row = self._db.query_one(
            """
            SELECT game_id, user_id, completed_at, method, handle, confirmed
            FROM payout_acks
            WHERE game_id = ? AND user_id = ?
            """,
            (game_id, user_id),
        )
        if not row:
            return None
        return PayoutAck(
            game_id=str(row[0]),
            user_id=str(row[1]),
            completed_at=row[2],
            method=row[3] or None,
            handle=row[4] or None,
            confirmed=bool(row[5]),
        )

    def save(self, ack: PayoutAck) -> None:
        self._db.execute(
            """
            INSERT INTO payout_acks (game_id, user_id, completed_at, method, handle, confirmed)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (game_id, user_id)
            DO UPDATE SET completed_at = excluded.completed_at,
                          method = excluded.method,
                          handle = excluded.handle,
                          confirmed = excluded.confirmed
            """,
            (ack.game_id, ack.user_id, ack.completed_at, ack.method, ack.handle, ack.confirmed),
        )

    def reset_confirmations(self, game_id: str) -> int:
        return self._db.execute(
            "UPDATE payout_acks SET confirmed = ? WHERE game_id = ? AND confirmed = ?",
            (False, game_id, True),
        )

    def delete_for_game(self, game_id: str) -> None:
        self._db.execute("DELETE FROM payout_acks WHERE game_id = ?", (game_id,))
