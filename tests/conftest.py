"""
Pytest fixtures for Showcase tests.
Provides a test database, test clients, and sample videos.

Tests run against a throwaway SQLite file. The database URL is set in the
environment before any project module is imported, so the shared
`api.database.database` instance points at it.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import sqlalchemy as sa
from databases import Database

# Set up the test environment BEFORE importing config
_test_temp_dir = tempfile.mkdtemp()
TEST_DB_PATH = Path(_test_temp_dir) / "showcase_test.db"
os.environ["SHOWCASE_TEST_MODE"] = "1"
os.environ["SHOWCASE_DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SHOWCASE_AUDIT_LOG_ENABLED"] = "false"
os.environ["SHOWCASE_RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("SHOWCASE_ADMIN_API_SECRET", None)

from api.database import database, metadata, section_videos, sections, videos  # noqa: E402
from config import DATABASE_URL  # noqa: E402

_BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def sync_engine():
    """Synchronous engine on the test database, for schema setup and seeding."""
    engine = sa.create_engine(DATABASE_URL)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def test_tables(sync_engine):
    """Fresh tables for every test."""
    metadata.create_all(sync_engine)
    yield
    metadata.drop_all(sync_engine)


@pytest.fixture(scope="function")
async def test_database() -> AsyncGenerator[Database, None]:
    """Connect the shared database for service-level tests."""
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture(scope="function")
def insert_video(sync_engine):
    """
    Factory inserting a video row and returning its id.

    Each call gets a later created_at than the one before, so "newest first"
    ordering is deterministic.
    """
    counter = {"n": 0}

    def _insert(
        title: str = "Test Video",
        url: str = "https://cdn.example.com/videos/raw.mp4",
        optimized_url: str = "",
        thumbnail_url: str = "https://cdn.example.com/thumbs/thumb.jpg",
        duration: float = 125.0,
        is_used: bool = False,
    ) -> int:
        counter["n"] += 1
        with sync_engine.begin() as conn:
            result = conn.execute(
                videos.insert().values(
                    title=title,
                    description="",
                    url=url,
                    optimized_url=optimized_url,
                    thumbnail_url=thumbnail_url,
                    duration=duration,
                    is_used=is_used,
                    created_at=_BASE_TIME + timedelta(minutes=counter["n"]),
                )
            )
            return result.inserted_primary_key[0]

    return _insert


@pytest.fixture(scope="function")
def delete_video_row(sync_engine):
    """Delete a video out-of-band, the way the upload pipeline would."""

    def _delete(video_id: int) -> None:
        with sync_engine.begin() as conn:
            conn.execute(videos.delete().where(videos.c.id == video_id))

    return _delete


@pytest.fixture(scope="function")
def video_is_used(sync_engine):
    """Read a video's is_used flag straight from the database."""

    def _read(video_id: int) -> bool:
        with sync_engine.connect() as conn:
            return bool(conn.execute(sa.select(videos.c.is_used).where(videos.c.id == video_id)).scalar())

    return _read


@pytest.fixture(scope="function")
def insert_section(sync_engine):
    """Factory inserting a section row directly and returning its id. Appends by default."""

    def _insert(title: str = "Test Section", position=None, visible: bool = True, layout_type: str = "card") -> int:
        with sync_engine.begin() as conn:
            if position is None:
                position = conn.execute(sa.select(sa.func.count()).select_from(sections)).scalar()
            result = conn.execute(
                sections.insert().values(title=title, position=position, visible=visible, layout_type=layout_type)
            )
            return result.inserted_primary_key[0]

    return _insert


@pytest.fixture(scope="function")
def insert_ref(sync_engine):
    """Factory placing a video in a section directly and returning the ref id. Appends by default."""

    def _insert(section_id: int, video_id: int, position=None, title: str = "") -> int:
        with sync_engine.begin() as conn:
            if position is None:
                position = conn.execute(
                    sa.select(sa.func.count())
                    .select_from(section_videos)
                    .where(section_videos.c.section_id == section_id)
                ).scalar()
            result = conn.execute(
                section_videos.insert().values(section_id=section_id, video_id=video_id, position=position, title=title)
            )
            return result.inserted_primary_key[0]

    return _insert


@pytest.fixture(scope="function")
def section_store(test_database):
    """A SectionStore wired to the connected test database."""
    from api.section_store import SectionStore

    return SectionStore()


# ============================================================================
# Test Client Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def admin_client():
    """
    Create a test client for the admin API.
    The app manages its own database connection through its lifespan.
    """
    from fastapi.testclient import TestClient

    from api.admin import app

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture(scope="function")
def public_client():
    """
    Create a test client for the public API.
    The app manages its own database connection through its lifespan.
    """
    from fastapi.testclient import TestClient

    from api.public import app

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
