from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from infrastructure.db.store import SqlPokerStore

BACKENDS = ("sqlite", "postgres")

_PG_ENV = {
    "host": "PGHOST",
    "port": "PGPORT",
    "dbname": "PGDATABASE",
    "user": "PGUSER",
    "password": "PGPASSWORD",
}


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: Optional[str] = None
    db_backend: str = "sqlite"
    db_path: str = "poker.db"
    db_params: Dict[str, str] = field(default_factory=dict)
    db_timeout_seconds: float = 5.0
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings from the environment, after loading a `.env` file if present.

    Raises `ValueError` for values that cannot be used.
    """

    if environ is None:
        load_dotenv()
        environ = os.environ

    backend = environ.get("DB_BACKEND", "sqlite").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"DB_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}.")

    raw_timeout = environ.get("DB_TIMEOUT_SECONDS", "5")
    try:
        timeout = float(raw_timeout)
    except ValueError:
        raise ValueError(f"DB_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}.") from None
    if timeout <= 0:
        raise ValueError("DB_TIMEOUT_SECONDS must be positive.")

    return Settings(
        telegram_bot_token=environ.get("TELEGRAM_BOT_TOKEN") or None,
        db_backend=backend,
        db_path=environ.get("DB_PATH", "poker.db"),
        db_params={key: environ[name] for key, name in _PG_ENV.items() if environ.get(name)},
        db_timeout_seconds=timeout,
        log_level=environ.get("LOG_LEVEL", "INFO").upper(),
    )


def build_store(settings: Settings) -> SqlPokerStore:
    if settings.db_backend == "postgres":
        from infrastructure.db.database_postgres import PostgresDatabase

        return SqlPokerStore(PostgresDatabase(settings.db_params, timeout=settings.db_timeout_seconds))

    from infrastructure.db.database_sqlite import SqliteDatabase

    return SqlPokerStore(SqliteDatabase(settings.db_path, timeout=settings.db_timeout_seconds))
