from __future__ import annotations

from typing import List, Optional, Sequence

from domain.models import ClaimRequest, ClaimStatus, normalize_name
from domain.repositories import ClaimRequestRepository

from .database import Database

CLAIM_COLUMNS = "id, group_id, guest_name, requester_id, requester_email, status, created_at"


class SqlClaimRequestRepository(ClaimRequestRepository):
    """
    Claim requests, unique per (group, guest name key, requester).

    `guest_name_key` holds `normalize_name(guest_name)` so lookups fold case
    the same way the application does, whatever the database collation.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _to_domain(row: Sequence) -> ClaimRequest:
        return ClaimRequest(
            id=str(row[0]),
            group_id=str(row[1]),
            guest_name=row[2],
            requester_id=str(row[3]),
            requester_email=row[4] or None,
            status=ClaimStatus(row[5]),
            created_at=row[6],
        )

    def get(self, request_id: str) -> Optional[ClaimRequest]:
        row = self._db.query_one(
            f"SELECT {CLAIM_COLUMNS} FROM claim_requests WHERE id = ?", (request_id,)
        )
        return self._to_domain(row) if row else None

    def find(self, group_id: str, guest_name: str, requester_id: str) -> Optional[ClaimRequest]:
        row = self._db.query_one(
            f"""
            SELECT {CLAIM_COLUMNS}
            FROM claim_requests
            WHERE group_id = ? AND guest_name_key = ? AND requester_id = ?
            """,
            (group_id, normalize_name(guest_name), requester_id),
        )
        return self._to_domain(row) if row else None

    def list_for_group(self, group_id: str) -> List[ClaimRequest]:
        rows = self._db.query(
            f"SELECT {CLAIM_COLUMNS} FROM claim_requests WHERE group_id = ? ORDER BY created_at",
            (group_id,),
        )
        return [self._to_domain(row) for row in rows]

    def add(self, request: ClaimRequest) -> None:
        self._db.execute(
            f"INSERT INTO claim_requests ({CLAIM_COLUMNS}, guest_name_key) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                request.id,
                request.group_id,
                request.guest_name,
                request.requester_id,
                request.requester_email,
                request.status.value,
                request.created_at,
                normalize_name(request.guest_name),
            ),
        )

    def update(self, request: ClaimRequest) -> None:
        self._db.execute(
            """
            UPDATE claim_requests
            SET guest_name = ?, guest_name_key = ?, requester_email = ?, status = ?, created_at = ?
            WHERE id = ?
            """,
            (
                request.guest_name,
                normalize_name(request.guest_name),
                request.requester_email,
                request.status.value,
                request.created_at,
                request.id,
            ),
        )

    def delete(self, request_id: str) -> None:
        self._db.execute("DELETE FROM claim_requests WHERE id = ?", (request_id,))

    def delete_for_group(self, group_id: str) -> None:
        self._db.execute("DELETE FROM claim_requests WHERE group_id = ?", (group_id,))
