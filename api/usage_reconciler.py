"""
Keeps videos.is_used in step with section membership.

is_used is a materialized view of "at least one section references this
video". It is always recomputed by scanning section references, never kept as
a counter, so a missed update can be repaired by a rescan instead of drifting.

Callers:
- SectionOrderingService.remove_video (single removal)
- SectionStore.delete_section (once per reference in the deleted section)
- POST /api/videos/reconcile-usage and `showcase reconcile-usage` (full rescan)

Adding a video sets the flag directly and reordering never changes
membership, so neither path comes through here.
"""

import logging
from typing import Optional

import sqlalchemy as sa

from api.database import section_videos, videos
from api.db_retry import db_execute_with_retry, fetch_all_with_retry

logger = logging.getLogger(__name__)


class UsageReconciler:
    def __init__(self, section_store, video_store):
        self.section_store = section_store
        self.video_store = video_store

    async def on_video_removed_from_section(self, video_id: int, excluded_section_id: Optional[int]) -> bool:
        """
        Re-derive is_used after a reference to video_id left a section.

        Returns the resulting flag. A video that no longer exists is left alone
        and reported as unused.
        """
        video = await self.video_store.get(video_id)
        if video is None:
            logger.info(f"Video {video_id} no longer exists, skipping usage reconcile")
            return False

        other_sections = await self.section_store.find_sections_referencing(
            video_id, exclude_section_id=excluded_section_id
        )
        if other_sections:
            logger.debug(f"Video {video_id} still used by sections {other_sections}")
            return True

        if video.is_used:
            await self.video_store.set_used(video_id, False)
            logger.info(f"Video {video_id} no longer used by any section")
        return False

    async def reconcile_all(self) -> int:
        """
        Recompute is_used for every video from the section references.

        Returns the number of videos whose flag changed.
        """
        referenced_rows = await fetch_all_with_retry(sa.select(section_videos.c.video_id).distinct())
        referenced = {row["video_id"] for row in referenced_rows}

        rows = await fetch_all_with_retry(sa.select(videos.c.id, videos.c.is_used))
        changed = 0
        for row in rows:
            should_be_used = row["id"] in referenced
            if bool(row["is_used"]) != should_be_used:
                await db_execute_with_retry(
                    videos.update().where(videos.c.id == row["id"]).values(is_used=should_be_used)
                )
                changed += 1

        if changed:
            logger.warning(f"Usage reconcile corrected is_used on {changed} video(s)")
        else:
            logger.info("Usage reconcile found no drift")
        return changed
