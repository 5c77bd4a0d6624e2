"""Tests for database retry functionality."""

import sqlite3
from unittest.mock import AsyncMock, patch

import pytest

from api.db_retry import DatabaseRetryableError, execute_with_retry, is_retryable_database_error
from api.errors import NotFoundError


class TestIsRetryableDatabaseError:
    """Tests for is_retryable_database_error function."""

    def test_database_is_locked_message(self):
        """Should detect 'database is locked' message."""
        assert is_retryable_database_error(sqlite3.OperationalError("database is locked")) is True

    def test_sqlite_busy_message(self):
        assert is_retryable_database_error(Exception("SQLITE_BUSY: some other text")) is True

    def test_postgres_deadlock(self):
        assert is_retryable_database_error(Exception("deadlock detected")) is True

    def test_sqlstate_serialization_failure(self):
        exc = Exception("serialization")
        exc.sqlstate = "40001"
        assert is_retryable_database_error(exc) is True

    def test_case_insensitive(self):
        assert is_retryable_database_error(Exception("DATABASE IS LOCKED")) is True

    def test_wrapped_cause(self):
        outer = RuntimeError("query failed")
        outer.__cause__ = sqlite3.OperationalError("database is locked")
        assert is_retryable_database_error(outer) is True

    def test_other_sqlite_error(self):
        """Should return False for other SQLite errors."""
        assert is_retryable_database_error(sqlite3.OperationalError("no such table: sections")) is False

    def test_domain_errors_not_retryable(self):
        assert is_retryable_database_error(NotFoundError("Section 1 not found")) is False


class TestExecuteWithRetry:
    """Tests for execute_with_retry function."""

    @pytest.mark.asyncio
    async def test_success_on_first_try(self):
        """Should return result immediately on success."""
        func = AsyncMock(return_value="ok")
        assert await execute_with_retry(func, "a", key="b") == "ok"
        func.assert_awaited_once_with("a", key="b")

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[sqlite3.OperationalError("database is locked"), "ok"])
        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await execute_with_retry(func, max_retries=3) == "ok"
        assert func.await_count == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        func = AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))
        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(DatabaseRetryableError):
                await execute_with_retry(func, max_retries=2)
        assert func.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        func = AsyncMock(side_effect=NotFoundError("gone"))
        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(NotFoundError):
                await execute_with_retry(func, max_retries=3)
        assert func.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delay_capped(self):
        func = AsyncMock(side_effect=[Exception("database is locked")] * 4 + ["ok"])
        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await execute_with_retry(func, max_retries=5, base_delay=1.0, max_delay=2.0)
        delays = [call.args[0] for call in sleep.await_args_list]
        assert all(delay <= 2.0 * 1.25 for delay in delays)
