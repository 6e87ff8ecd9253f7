from __future__ import annotations

import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from moviemate.config import (
    DATABASE_URL,
    DB_MAX_OVERFLOW,
    DB_POOL_RECYCLE_S,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT_S,
    DB_STATEMENT_TIMEOUT_MS,
    LOG_DB_SLOW_QUERY_MS,
)


_ENGINE: Engine | None = None
_logger = logging.getLogger("db")


def _connect_args() -> dict:
    if DB_STATEMENT_TIMEOUT_MS <= 0:
        return {}
    return {"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"}


def install_query_logging(engine: Engine) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = conn.info.pop("query_start_time", None)
        if start is None:
            return
        duration_ms = (time.perf_counter() - start) * 1000
        # LOG_DB_SLOW_QUERY_MS <= 0 logs all queries.
        if LOG_DB_SLOW_QUERY_MS <= 0 or duration_ms >= LOG_DB_SLOW_QUERY_MS:
            _logger.info(
                "db_query",
                extra={
                    "duration_ms": round(duration_ms, 2),
                    "statement": statement.strip()[:500],
                    "executemany": executemany,
                    "slow": duration_ms >= LOG_DB_SLOW_QUERY_MS,
                },
            )


def get_engine() -> Engine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = create_engine(
            DATABASE_URL,
            pool_pre_ping=True,
            pool_size=DB_POOL_SIZE,
            max_overflow=DB_MAX_OVERFLOW,
            pool_timeout=DB_POOL_TIMEOUT_S,
            pool_recycle=DB_POOL_RECYCLE_S or -1,
            connect_args=_connect_args(),
        )
        install_query_logging(_ENGINE)
    return _ENGINE
