"""Tests for domain errors and error helpers."""

import sqlite3

import pytest

from api.errors import ConflictError, NotFoundError, ServiceError, ValidationError, is_unique_violation, truncate_string


class TestServiceErrors:
    """Status codes and response bodies of the domain errors."""

    @pytest.mark.parametrize(
        "error_class,status_code",
        [(ValidationError, 400), (NotFoundError, 404), (ConflictError, 409)],
    )
    def test_status_codes(self, error_class, status_code):
        error = error_class("boom")
        assert isinstance(error, ServiceError)
        assert error.status_code == status_code

    def test_to_dict_full(self):
        error = NotFoundError("Section 5 not found", field="section_id", resource_type="section", resource_id=5)
        assert error.to_dict() == {
            "detail": "Section 5 not found",
            "field": "section_id",
            "resource_type": "section",
            "resource_id": 5,
        }

    def test_to_dict_minimal(self):
        assert ValidationError("bad").to_dict() == {"detail": "bad"}

    def test_resource_id_zero_kept(self):
        assert ValidationError("bad", resource_id=0).to_dict()["resource_id"] == 0

    def test_str_is_message(self):
        assert str(ConflictError("already there")) == "already there"


class TestTruncateString:
    """Tests for truncate_string."""

    def test_none_passes_through(self):
        assert truncate_string(None, 10) is None

    def test_short_unchanged(self):
        assert truncate_string("short", 10) == "short"

    def test_long_truncated_with_suffix(self):
        result = truncate_string("a" * 20, 10)
        assert result == "aaaaaaa..."
        assert len(result) == 10

    def test_tiny_limit_skips_suffix(self):
        assert truncate_string("abcdef", 2) == "ab"


class TestIsUniqueViolation:
    """Tests for is_unique_violation."""

    def test_sqlite_message(self):
        exc = sqlite3.IntegrityError("UNIQUE constraint failed: section_videos.section_id, section_videos.video_id")
        assert is_unique_violation(exc) is True

    def test_postgres_message(self):
        exc = Exception('duplicate key value violates unique constraint "uq_section_video"')
        assert is_unique_violation(exc) is True

    def test_sqlstate(self):
        exc = Exception("integrity error")
        exc.sqlstate = "23505"
        assert is_unique_violation(exc) is True

    def test_wrapped_cause(self):
        try:
            try:
                raise sqlite3.IntegrityError("UNIQUE constraint failed: x")
            except sqlite3.IntegrityError as inner:
                raise RuntimeError("write failed") from inner
        except RuntimeError as outer:
            assert is_unique_violation(outer) is True

    def test_other_errors(self):
        assert is_unique_violation(sqlite3.IntegrityError("NOT NULL constraint failed: sections.title")) is False
        assert is_unique_violation(ValueError("nope")) is False
