"""
Public view of the homepage sections.

Only visible sections are shown, and within them only videos that still exist
and have something to play. A section with nothing playable is left out. Bad
references are skipped rather than reported so one broken video never takes
the homepage down.
"""

import logging
from typing import List, Optional

from api.schemas import PublicSection, PublicVideo, VideoSettingsSchema
from api.section_store import SectionStore, get_section_store
from config import UNTITLED_VIDEO_TITLE

logger = logging.getLogger(__name__)


async def list_visible_sections_with_playable_videos(
    section_store: Optional[SectionStore] = None,
) -> List[PublicSection]:
    """Visible sections in display order, each holding only its playable videos."""
    section_store = section_store or get_section_store()
    sections = await section_store.list_sections(visible_only=True)

    video_ids = {ref.video_id for section in sections for ref in section.videos}
    videos_by_id = {video.id: video for video in await section_store.video_store.find_many_by_id(video_ids)}

    result = []
    for section in sections:
        public_videos = []
        for ref in section.videos:
            video = videos_by_id.get(ref.video_id)
            if video is None:
                logger.debug(f"Section {section.id}: skipping ref {ref.id}, video {ref.video_id} not found")
                continue
            if not video.playable_url:
                logger.debug(f"Section {section.id}: skipping ref {ref.id}, video {ref.video_id} has no URL")
                continue

            public_videos.append(
                PublicVideo(
                    id=video.id,
                    title=ref.title or video.title or UNTITLED_VIDEO_TITLE,
                    description=ref.description,
                    url=video.playable_url,
                    thumbnail_url=video.thumbnail_url,
                    duration=video.duration_formatted,
                    settings=VideoSettingsSchema(**ref.settings.to_columns()),
                )
            )

        if not public_videos:
            logger.debug(f"Section {section.id} has no playable videos, leaving it out")
            continue

        result.append(
            PublicSection(
                id=section.id,
                title=section.title,
                description=section.description,
                layout_type=section.layout_type,
                grid_config=section.grid_config,
                slider_config=section.slider_config,
                background_color=section.background_color,
                text_color=section.text_color,
                padding=section.padding,
                max_width=section.max_width,
                videos=public_videos,
            )
        )

    return result
