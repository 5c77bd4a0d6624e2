"""
Read access to videos plus the is_used flag.

Videos are created and removed by the upload pipeline; this store never
inserts or deletes them.
"""

import logging
from typing import Iterable, List, Optional

import sqlalchemy as sa

from api.database import videos
from api.db_retry import db_execute_with_retry, fetch_all_with_retry, fetch_one_with_retry, fetch_val_with_retry
from api.errors import NotFoundError
from api.models import Video

logger = logging.getLogger(__name__)


def _filter_videos(query, is_used: Optional[bool], search: Optional[str]):
    if is_used is not None:
        query = query.where(videos.c.is_used == is_used)
    if search:
        search_term = f"%{search}%"
        query = query.where(sa.or_(videos.c.title.ilike(search_term), videos.c.description.ilike(search_term)))
    return query


class VideoStore:
    async def find_by_id(self, video_id: int) -> Video:
        """Fetch a video. Raises NotFoundError if it does not exist."""
        row = await fetch_one_with_retry(videos.select().where(videos.c.id == video_id))
        if row is None:
            raise NotFoundError(
                f"Video {video_id} not found",
                field="video_id",
                resource_type="video",
                resource_id=video_id,
            )
        return Video.from_row(row)

    async def get(self, video_id: int) -> Optional[Video]:
        """Like find_by_id, but returns None for a missing video."""
        row = await fetch_one_with_retry(videos.select().where(videos.c.id == video_id))
        return Video.from_row(row) if row is not None else None

    async def find_many_by_id(self, video_ids: Iterable[int]) -> List[Video]:
        """Fetch every existing video among video_ids; missing ids are skipped."""
        ids = sorted(set(video_ids))
        if not ids:
            return []
        rows = await fetch_all_with_retry(videos.select().where(videos.c.id.in_(ids)))
        return [Video.from_row(row) for row in rows]

    async def set_used(self, video_id: int, is_used: bool) -> None:
        """Set the is_used flag. A missing video is silently ignored."""
        await db_execute_with_retry(videos.update().where(videos.c.id == video_id).values(is_used=is_used))

    async def list_videos(
        self,
        is_used: Optional[bool] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Video]:
        """List videos newest first, optionally filtered by usage or a title/description match."""
        query = _filter_videos(videos.select(), is_used, search)
        query = query.order_by(videos.c.created_at.desc(), videos.c.id.desc())
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        rows = await fetch_all_with_retry(query)
        return [Video.from_row(row) for row in rows]

    async def count_videos(self, is_used: Optional[bool] = None, search: Optional[str] = None) -> int:
        """Number of videos list_videos would return without paging."""
        query = _filter_videos(sa.select(sa.func.count()).select_from(videos), is_used, search)
        return await fetch_val_with_retry(query) or 0

    async def list_unused(
        self, search: Optional[str] = None, limit: Optional[int] = None, offset: int = 0
    ) -> List[Video]:
        """Videos no section currently shows."""
        return await self.list_videos(is_used=False, search=search, limit=limit, offset=offset)
