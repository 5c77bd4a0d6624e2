"""
Database retry utilities for handling transient database errors.

Lock contention and deadlocks are retried with exponential backoff; every other
error (including the domain errors in api.errors) propagates immediately.

SQLite errors:
- "database is locked" - concurrent write contention
- "SQLITE_BUSY" / "SQLITE_LOCKED" - database busy states

PostgreSQL errors:
- Deadlocks (40P01)
- Serialization failures (40001)
- Connection drops and lock timeouts
"""

import asyncio
import logging
import random
import time
from typing import Callable, Optional, TypeVar

from config import DB_MAX_RETRIES, DB_RETRY_BASE_DELAY, DB_RETRY_MAX_DELAY, SLOW_QUERY_THRESHOLD

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = DB_MAX_RETRIES
DEFAULT_BASE_DELAY = DB_RETRY_BASE_DELAY
DEFAULT_MAX_DELAY = DB_RETRY_MAX_DELAY
DEFAULT_EXPONENTIAL_BASE = 2

RETRYABLE_PATTERNS = (
    # SQLite
    "database is locked",
    "database table is locked",
    "sqlite_busy",
    "sqlite_locked",
    # PostgreSQL
    "deadlock detected",
    "could not serialize access",
    "could not obtain lock",
    "connection refused",
    "connection reset",
    "server closed the connection unexpectedly",
    "canceling statement due to lock timeout",
    "lock timeout",
)


class DatabaseRetryableError(Exception):
    """Raised when a database operation fails after all retries exhausted."""

    pass


def is_retryable_database_error(exc: Exception) -> bool:
    """Check if an exception is a transient database error worth retrying."""
    error_str = str(exc).lower()

    if any(pattern in error_str for pattern in RETRYABLE_PATTERNS):
        return True

    # asyncpg and psycopg expose SQLSTATE codes
    if getattr(exc, "sqlstate", None) in ("40P01", "40001"):
        return True

    # The databases library wraps driver exceptions
    if exc.__cause__ is not None:
        return is_retryable_database_error(exc.__cause__)

    return False


async def execute_with_retry(
    func: Callable,
    *args,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    **kwargs,
) -> T:
    """
    Execute an async function, retrying transient database errors.

    Uses exponential backoff with +/-25% jitter.

    Raises:
        DatabaseRetryableError: If all retries are exhausted
        Other exceptions: Non-retryable errors are re-raised immediately
    """
    last_exception: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_database_error(e):
                raise

            last_exception = e

            if attempt < max_retries:
                delay = min(base_delay * (DEFAULT_EXPONENTIAL_BASE**attempt), max_delay)
                jitter = delay * 0.25 * (2 * random.random() - 1)
                delay = max(0.01, delay + jitter)

                logger.warning(
                    f"Database error (attempt {attempt + 1}/{max_retries + 1}), retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database error after {max_retries + 1} attempts, giving up: {e}")

    raise DatabaseRetryableError(f"Database operation failed after {max_retries + 1} attempts: {last_exception}")


def _log_if_slow(query, started: float) -> None:
    elapsed = time.monotonic() - started
    if elapsed >= SLOW_QUERY_THRESHOLD:
        logger.warning(f"Slow query ({elapsed:.2f}s): {str(query)[:500]}")


# =============================================================================
# Database Operation Wrappers
# =============================================================================


async def fetch_one_with_retry(query, max_retries: int = DEFAULT_MAX_RETRIES):
    """Execute a fetch_one query with retry logic. Returns a row or None."""
    from api.database import database

    async def _fetch():
        started = time.monotonic()
        result = await database.fetch_one(query)
        _log_if_slow(query, started)
        return result

    return await execute_with_retry(_fetch, max_retries=max_retries)


async def fetch_all_with_retry(query, max_retries: int = DEFAULT_MAX_RETRIES):
    """Execute a fetch_all query with retry logic. Returns a list of rows."""
    from api.database import database

    async def _fetch():
        started = time.monotonic()
        result = await database.fetch_all(query)
        _log_if_slow(query, started)
        return result

    return await execute_with_retry(_fetch, max_retries=max_retries)


async def fetch_val_with_retry(query, max_retries: int = DEFAULT_MAX_RETRIES):
    """Execute a fetch_val query with retry logic. Returns a scalar or None."""
    from api.database import database

    async def _fetch():
        started = time.monotonic()
        result = await database.fetch_val(query)
        _log_if_slow(query, started)
        return result

    return await execute_with_retry(_fetch, max_retries=max_retries)


async def db_execute_with_retry(query, values=None, max_retries: int = DEFAULT_MAX_RETRIES):
    """
    Execute a database write query with retry logic.

    Returns:
        The query result (typically row ID for inserts)
    """
    from api.database import database

    async def _execute():
        started = time.monotonic()
        if values is not None:
            result = await database.execute(query, values)
        else:
            result = await database.execute(query)
        _log_if_slow(query, started)
        return result

    return await execute_with_retry(_execute, max_retries=max_retries)
