from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Sequence, Tuple

from domain.errors import Conflict, StorageFailure

LOGGER = logging.getLogger(__name__)


class Database:
    """
    Thin connection manager shared by the SQLite and Postgres backends.

    Repositories write their SQL with `?` placeholders; subclasses set
    `placeholder` when their driver expects something else. Outside a
    transaction every statement runs on its own short-lived connection.
    Inside `transaction()` every statement issued from the same thread
    reuses one connection, which is committed on success and rolled back
    on any exception.
    """

    placeholder = "?"
    driver_error: Tuple[type, ...] = ()
    integrity_error: Tuple[type, ...] = ()
    schema: Sequence[str] = ()

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout
        self._local = threading.local()

    def _get_connection(self) -> Any:
        raise NotImplementedError

    def _prepare(self, sql: str) -> str:
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    def ensure_schema(self) -> None:
        with self.transaction():
            for statement in self.schema:
                self.execute(statement)

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "connection", None) is not None

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        current = getattr(self._local, "connection", None)
        if current is not None:
            yield current
            return

        try:
            conn = self._get_connection()
        except self.driver_error as exc:
            raise StorageFailure(f"Could not connect to the database: {exc}") from exc

        self._local.connection = conn
        try:
            yield conn
            conn.commit()
        except self.driver_error as exc:
            conn.rollback()
            LOGGER.error("Transaction failed, rolled back: %s", exc)
            raise StorageFailure(str(exc)) from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._local.connection = None
            conn.close()

    def _run(self, sql: str, params: Sequence[Any]) -> Tuple[List[tuple], int]:
        with self.transaction() as conn:
            cur = conn.cursor()
            try:
                cur.execute(self._prepare(sql), tuple(params))
            except self.integrity_error as exc:
                raise Conflict(str(exc)) from exc
            except self.driver_error as exc:
                raise StorageFailure(str(exc)) from exc
            rows = cur.fetchall() if cur.description else []
            return rows, cur.rowcount

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        rows, _ = self._run(sql, params)
        return rows

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Any:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the number of rows it touched."""

        _, rowcount = self._run(sql, params)
        return rowcount
