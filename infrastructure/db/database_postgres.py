from __future__ import annotations

import psycopg2

from .database import Database

POSTGRES_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        display_name TEXT NOT NULL,
        email TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS groups (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL,
        invite_code TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS group_members (
        group_id TEXT NOT NULL REFERENCES groups (id),
        user_id TEXT NOT NULL,
        user_name TEXT NOT NULL,
        name_key TEXT NOT NULL,
        joined_at TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member',
        seq BIGINT NOT NULL,
        PRIMARY KEY (group_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS games (
        id TEXT PRIMARY KEY,
        group_id TEXT NOT NULL REFERENCES groups (id),
        date TEXT NOT NULL,
        notes TEXT,
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'open'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS game_sessions (
        id TEXT PRIMARY KEY,
        game_id TEXT NOT NULL REFERENCES games (id),
        player_name TEXT NOT NULL,
        name_key TEXT NOT NULL,
        buy_in DOUBLE PRECISION NOT NULL DEFAULT 0,
        end_amount DOUBLE PRECISION NOT NULL DEFAULT 0,
        profit DOUBLE PRECISION NOT NULL DEFAULT 0,
        user_id TEXT,
        role TEXT,
        seq BIGINT NOT NULL
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS game_sessions_user
    ON game_sessions (game_id, user_id)
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS game_sessions_unregistered_name
    ON game_sessions (game_id, name_key)
    WHERE user_id IS NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS claim_requests (
        id TEXT PRIMARY KEY,
        group_id TEXT NOT NULL REFERENCES groups (id),
        guest_name TEXT NOT NULL,
        guest_name_key TEXT NOT NULL,
        requester_id TEXT NOT NULL,
        requester_email TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS claim_requests_tuple
    ON claim_requests (group_id, guest_name_key, requester_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS payout_acks (
        game_id TEXT NOT NULL REFERENCES games (id),
        user_id TEXT NOT NULL,
        completed_at TEXT NOT NULL,
        method TEXT,
        handle TEXT,
        confirmed BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (game_id, user_id)
    )
    """,
)


class PostgresDatabase(Database):
    """
    Postgres backend over psycopg2.

    `db_params` are passed straight to `psycopg2.connect`; `timeout` becomes
    the libpq `connect_timeout` and the server-side `statement_timeout`.
    """

    placeholder = "%s"
    driver_error = (psycopg2.Error,)
    integrity_error = (psycopg2.IntegrityError,)
    schema = POSTGRES_SCHEMA

    def __init__(self, db_params: dict, timeout: float = 5.0) -> None:
        super().__init__(timeout)
        self._db_params = db_params
        self.ensure_schema()

    def _get_connection(self):
        return psycopg2.connect(
            connect_timeout=max(1, int(self._timeout)),
            options=f"-c statement_timeout={int(self._timeout * 1000)}",
            **self._db_params,
        )
