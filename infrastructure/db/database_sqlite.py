from __future__ import annotations

import sqlite3

from .database import Database

SQLITE_SCHEMA = (
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
        group_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        user_name TEXT NOT NULL,
        name_key TEXT NOT NULL,
        joined_at TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member',
        seq INTEGER NOT NULL,
        PRIMARY KEY (group_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS games (
        id TEXT PRIMARY KEY,
        group_id TEXT NOT NULL,
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
        game_id TEXT NOT NULL,
        player_name TEXT NOT NULL,
        name_key TEXT NOT NULL,
        buy_in REAL NOT NULL DEFAULT 0,
        end_amount REAL NOT NULL DEFAULT 0,
        profit REAL NOT NULL DEFAULT 0,
        user_id TEXT,
        role TEXT,
        seq INTEGER NOT NULL
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
        group_id TEXT NOT NULL,
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
        game_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        completed_at TEXT NOT NULL,
        method TEXT,
        handle TEXT,
        confirmed INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (game_id, user_id)
    )
    """,
)


class SqliteDatabase(Database):
    """
    SQLite backend. Self-initialising: the schema is created if needed.

    `timeout` is passed to sqlite as the busy timeout, so a locked database
    fails the call instead of blocking indefinitely.
    """

    driver_error = (sqlite3.Error,)
    integrity_error = (sqlite3.IntegrityError,)
    schema = SQLITE_SCHEMA

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        super().__init__(timeout)
        self._db_path = db_path
        self.ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=self._timeout)
