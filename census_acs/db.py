"""Query execution service. ALL database access goes through `Database`.

One DuckDB connection is opened per `Database` and handed to every query
function explicitly. Each query runs on a cursor duplicated from that
connection inside a small worker pool so the caller can stop waiting after
`query_timeout_ms`. A timed-out query that has not started yet is cancelled
before it reaches the engine; one that is running is interrupted so the
engine drops the abandoned work too. Nothing is retried.
"""

from __future__ import annotations

import concurrent.futures
import threading
from typing import Any, Sequence, TypeVar

import duckdb
from pydantic import BaseModel

from census_acs.config import Settings
from census_acs.utils import Timer, logger

M = TypeVar("M", bound=BaseModel)


class QueryError(Exception):
    """A query failed; surfaced once to the caller, never retried."""


class QueryTimeoutError(QueryError):
    pass


class QueryExecutionError(QueryError):
    pass


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class Database:
    def __init__(self, con: duckdb.DuckDBPyConnection, settings: Settings):
        self._con = con
        self.settings = settings
        self._pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=settings.query_workers, thread_name_prefix="census-acs-query"
        )

    @classmethod
    def open(cls, settings: Settings) -> Database:
        """Open an in-memory engine with both catalogs attached read-only."""
        con = duckdb.connect(
            ":memory:",
            config={"memory_limit": settings.db_memory_limit, "threads": settings.db_threads},
        )
        try:
            # extensions first: attached catalogs may carry GEOMETRY columns
            for ext in settings.extensions:
                con.execute(f"INSTALL {ext}")
                con.execute(f"LOAD {ext}")
            con.execute(f"ATTACH {_quote(str(settings.json_db_path))} AS json_db (READ_ONLY)")
            con.execute(f"ATTACH {_quote(str(settings.pct_db_path))} AS pct_db (READ_ONLY)")
        except duckdb.Error as e:
            con.close()
            raise QueryExecutionError(f"could not open census databases: {e}") from e

        logger.info(
            "database_open",
            extra={"db_path": str(settings.db_path), "extensions": list(settings.extensions)},
        )
        return cls(con, settings)

    def close(self) -> None:
        self._pool.shutdown(wait=True)
        self._con.close()
        logger.info("database_closed")

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ── execution ──

    @staticmethod
    def _execute(
        cur: duckdb.DuckDBPyConnection, sql: str, params: Sequence[Any], abandoned: threading.Event
    ) -> list[dict]:
        try:
            if abandoned.is_set():
                return []
            cur.execute(sql, list(params))
            columns = [d[0] for d in cur.description]
            return [dict(zip(columns, row)) for row in cur.fetchall()]
        finally:
            cur.close()

    def fetch(self, sql: str, params: Sequence[Any] | None = None) -> list[dict]:
        """Execute SQL and return list of dicts."""
        timeout = self.settings.query_timeout_s
        cur = self._con.cursor()
        abandoned = threading.Event()
        with Timer() as t:
            future = self._pool.submit(self._execute, cur, sql, params or [], abandoned)
            try:
                rows = future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                # still queued: drop it; already running: stop it in the engine
                abandoned.set()
                if future.cancel():
                    cur.close()
                else:
                    cur.interrupt()
                logger.warning(
                    "query_timeout", extra={"timeout_ms": self.settings.query_timeout_ms}
                )
                raise QueryTimeoutError(
                    f"Query timeout after {self.settings.query_timeout_ms} ms"
                ) from None
            except duckdb.Error as e:
                logger.error("query_failed", extra={"error": str(e)})
                raise QueryExecutionError(str(e)) from e
        logger.debug("query_done", extra={"rows": len(rows), "elapsed_ms": t.elapsed_ms})
        return rows

    def fetch_one(self, sql: str, params: Sequence[Any] | None = None) -> dict | None:
        """Execute SQL and return the first row, if any."""
        rows = self.fetch(sql, params)
        return rows[0] if rows else None

    def fetch_as(self, model: type[M], sql: str, params: Sequence[Any] | None = None) -> list[M]:
        """Execute SQL and decode every row into `model`."""
        return [model.model_validate(row) for row in self.fetch(sql, params)]

    def count(self, sql: str, params: Sequence[Any] | None = None) -> int:
        """Execute a single-value COUNT query."""
        row = self.fetch_one(sql, params)
        if not row:
            return 0
        (value,) = row.values()
        return int(value or 0)
