from __future__ import annotations

from domain.errors import NotFound
from domain.models import UserProfile
from domain.repositories import UserDirectory

from .database import Database


class SqlUserDirectory(UserDirectory):
    """
    Local copy of the identity provider's profiles in the `users` table.

    The chat interface registers every caller it sees, so lookups for
    registered players resolve without a round trip to the provider.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def register_user(self, profile: UserProfile) -> None:
        self._db.execute(
            """
            INSERT INTO users (id, display_name, email)
            VALUES (?, ?, ?)
            ON CONFLICT (id)
            DO UPDATE SET display_name = excluded.display_name,
                          email = COALESCE(excluded.email, users.email)
            """,
            (profile.id, profile.display_name, profile.email),
        )

    def resolve(self, user_id: str) -> UserProfile:
        row = self._db.query_one(
            "SELECT id, display_name, email FROM users WHERE id = ?", (user_id,)
        )
        if not row:
            raise NotFound(f"Unknown user {user_id}.")
        return UserProfile(id=str(row[0]), display_name=row[1], email=row[2] or None)
