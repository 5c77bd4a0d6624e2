"""
Persistence for homepage sections and the videos placed in them.

A SectionStore owns the rows in `sections` and `section_videos`. Ordering
algorithms live in SectionOrderingService and usage bookkeeping in
UsageReconciler; the store wires both up so that deleting a section can run
its cascade (reconcile usage for every placed video, delete, compact order).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import sqlalchemy as sa

from api.database import database, section_videos, sections
from api.db_retry import db_execute_with_retry, fetch_all_with_retry, fetch_one_with_retry, fetch_val_with_retry
from api.enums import LayoutType
from api.errors import NotFoundError, ValidationError
from api.models import (
    DEFAULT_GRID_CONFIG,
    DEFAULT_PADDING,
    DEFAULT_SLIDER_CONFIG,
    Section,
    VideoRef,
    VideoSettings,
)
from api.section_ordering import SectionOrderingService
from api.usage_reconciler import UsageReconciler
from api.video_store import VideoStore
from config import MAX_SECTION_DESCRIPTION_LENGTH, MAX_SECTION_TITLE_LENGTH

logger = logging.getLogger(__name__)

# Fields a partial update may touch; anything else in the payload is ignored
EDITABLE_FIELDS = (
    "title",
    "description",
    "layout_type",
    "visible",
    "order",
    "grid_config",
    "slider_config",
    "background_color",
    "text_color",
    "padding",
    "max_width",
)

_JSON_FIELDS = ("grid_config", "slider_config", "padding")
_STRING_FIELDS = ("background_color", "text_color", "max_width")


def validate_section_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize section fields.

    With partial=False (create) the title is required and missing optional
    fields are left for the caller to default. Returns a new dict holding only
    the recognized keys.

    Raises:
        ValidationError: naming the first offending field
    """
    cleaned: Dict[str, Any] = {}

    if "title" in fields or not partial:
        title = fields.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title is required", field="title")
        title = title.strip()
        if len(title) > MAX_SECTION_TITLE_LENGTH:
            raise ValidationError(
                f"Title must be at most {MAX_SECTION_TITLE_LENGTH} characters", field="title"
            )
        cleaned["title"] = title

    if fields.get("description") is not None:
        description = fields["description"]
        if not isinstance(description, str):
            raise ValidationError("Description must be a string", field="description")
        description = description.strip()
        if len(description) > MAX_SECTION_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description must be at most {MAX_SECTION_DESCRIPTION_LENGTH} characters",
                field="description",
            )
        cleaned["description"] = description

    if fields.get("layout_type") is not None:
        layout_type = fields["layout_type"]
        if isinstance(layout_type, LayoutType):
            layout_type = layout_type.value
        if layout_type not in LayoutType.values():
            raise ValidationError(
                f"Invalid layout type '{layout_type}'. Must be one of: {', '.join(LayoutType.values())}",
                field="layout_type",
            )
        cleaned["layout_type"] = layout_type

    if fields.get("visible") is not None:
        if not isinstance(fields["visible"], bool):
            raise ValidationError("Visible must be a boolean", field="visible")
        cleaned["visible"] = fields["visible"]

    if fields.get("order") is not None:
        order = fields["order"]
        if isinstance(order, bool) or not isinstance(order, int) or order < 0:
            raise ValidationError("Order must be a non-negative integer", field="order")
        cleaned["order"] = order

    for name in _JSON_FIELDS:
        if fields.get(name) is not None:
            if not isinstance(fields[name], dict):
                raise ValidationError(f"{name} must be an object", field=name)
            cleaned[name] = dict(fields[name])

    for name in _STRING_FIELDS:
        if fields.get(name) is not None:
            if not isinstance(fields[name], str):
                raise ValidationError(f"{name} must be a string", field=name)
            cleaned[name] = fields[name]

    return cleaned


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SectionStore:
    def __init__(self, video_store: Optional[VideoStore] = None):
        self.video_store = video_store or VideoStore()
        self.reconciler = UsageReconciler(self, self.video_store)
        self.ordering = SectionOrderingService(self, self.video_store, self.reconciler)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    async def next_order(self) -> int:
        """1 + the highest section order, or 0 when there are no sections."""
        highest = await fetch_val_with_retry(sa.select(sa.func.max(sections.c.position)))
        return 0 if highest is None else highest + 1

    async def create_section(self, fields: Mapping[str, Any]) -> Section:
        """
        Create a section.

        Without an explicit order the section goes last. An explicit order may
        be anywhere from 0 to next_order(); sections at or after it move down
        one place.
        """
        cleaned = validate_section_fields(fields)
        next_order = await self.next_order()
        order = cleaned.pop("order", None)
        if order is None:
            order = next_order
        elif order > next_order:
            raise ValidationError(
                f"Order {order} is out of range, the next free position is {next_order}",
                field="order",
            )

        now = _utcnow()
        async with database.transaction():
            if order < next_order:
                await database.execute(
                    sections.update()
                    .where(sections.c.position >= order)
                    .values(position=sections.c.position + 1)
                )
            section_id = await database.execute(
                sections.insert().values(
                    title=cleaned["title"],
                    description=cleaned.get("description", ""),
                    layout_type=cleaned.get("layout_type", LayoutType.CARD.value),
                    grid_config=cleaned.get("grid_config", dict(DEFAULT_GRID_CONFIG)),
                    slider_config=cleaned.get("slider_config", dict(DEFAULT_SLIDER_CONFIG)),
                    position=order,
                    visible=cleaned.get("visible", True),
                    background_color=cleaned.get("background_color", "#ffffff"),
                    text_color=cleaned.get("text_color", "#000000"),
                    padding=cleaned.get("padding", dict(DEFAULT_PADDING)),
                    max_width=cleaned.get("max_width", "1200px"),
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(f"Created section {section_id} '{cleaned['title']}' at position {order}")
        return await self.get_section(section_id)

    async def list_sections(self, visible_only: bool = False) -> List[Section]:
        """Sections in display order, each with its videos in display order."""
        query = sections.select()
        if visible_only:
            query = query.where(sections.c.visible == True)  # noqa: E712
        query = query.order_by(sections.c.position, sections.c.id)
        rows = await fetch_all_with_retry(query)
        if not rows:
            return []

        refs_by_section: Dict[int, List[VideoRef]] = {row["id"]: [] for row in rows}
        ref_rows = await fetch_all_with_retry(
            section_videos.select()
            .where(section_videos.c.section_id.in_(list(refs_by_section)))
            .order_by(section_videos.c.section_id, section_videos.c.position, section_videos.c.id)
        )
        for ref_row in ref_rows:
            refs_by_section[ref_row["section_id"]].append(VideoRef.from_row(ref_row))

        return [Section.from_row(row, refs_by_section[row["id"]]) for row in rows]

    async def get_section(self, section_id: int) -> Section:
        """Fetch one section with its videos. Raises NotFoundError if absent."""
        row = await self._get_section_row(section_id)
        if row is None:
            raise NotFoundError(
                f"Section {section_id} not found",
                field="section_id",
                resource_type="section",
                resource_id=section_id,
            )
        return Section.from_row(row, await self.get_video_refs(section_id))

    async def section_exists(self, section_id: int) -> bool:
        return await self._get_section_row(section_id) is not None

    async def section_positions(self) -> List[Tuple[int, int]]:
        """(id, position) for every section by current order, ties broken by id."""
        rows = await fetch_all_with_retry(
            sa.select(sections.c.id, sections.c.position).order_by(sections.c.position, sections.c.id)
        )
        return [(row["id"], row["position"]) for row in rows]

    async def ordered_section_ids(self) -> List[int]:
        """All section ids by current order, ties broken by id."""
        return [section_id for section_id, _ in await self.section_positions()]

    async def set_section_positions(self, positions: Mapping[int, int]) -> None:
        """
        Write section positions inside the caller's transaction.

        Statements here are not retried individually; a failed statement aborts
        the whole transaction on PostgreSQL.
        """
        for section_id, position in positions.items():
            await database.execute(sections.update().where(sections.c.id == section_id).values(position=position))

    async def update_section_fields(self, section_id: int, partial: Mapping[str, Any]) -> Section:
        """
        Apply a partial update.

        Only EDITABLE_FIELDS are considered; unknown keys are ignored. A new
        order moves the section and closes the gap it leaves behind.
        """
        if not await self.section_exists(section_id):
            raise NotFoundError(
                f"Section {section_id} not found",
                field="section_id",
                resource_type="section",
                resource_id=section_id,
            )

        allowed = {key: value for key, value in partial.items() if key in EDITABLE_FIELDS}
        cleaned = validate_section_fields(allowed, partial=True)
        new_order = cleaned.pop("order", None)

        cleaned["updated_at"] = _utcnow()
        await db_execute_with_retry(sections.update().where(sections.c.id == section_id).values(**cleaned))

        if new_order is not None:
            await self.ordering.move_section(section_id, new_order)

        return await self.get_section(section_id)

    async def touch(self, section_id: int) -> None:
        await db_execute_with_retry(
            sections.update().where(sections.c.id == section_id).values(updated_at=_utcnow())
        )

    async def delete_section(self, section_id: int) -> Section:
        """
        Delete a section and everything placed in it.

        Steps run in this order: usage is reconciled for each placed video
        (ignoring this section), the section and its references are deleted,
        then the remaining sections are compacted to 0..n-1. Returns the
        deleted section as it was.
        """
        section = await self.get_section(section_id)

        for ref in section.videos:
            await self.reconciler.on_video_removed_from_section(ref.video_id, section_id)

        # Explicit reference delete; SQLite only cascades with the foreign_keys pragma
        async with database.transaction():
            await database.execute(section_videos.delete().where(section_videos.c.section_id == section_id))
            await database.execute(sections.delete().where(sections.c.id == section_id))

        await self.ordering.compact_section_order()
        logger.info(f"Deleted section {section_id} with {section.video_count} video(s)")
        return section

    async def find_sections_referencing(
        self, video_id: int, exclude_section_id: Optional[int] = None
    ) -> List[int]:
        """Ids of sections that place video_id, optionally ignoring one section."""
        query = sa.select(section_videos.c.section_id).where(section_videos.c.video_id == video_id)
        if exclude_section_id is not None:
            query = query.where(section_videos.c.section_id != exclude_section_id)
        rows = await fetch_all_with_retry(query.distinct())
        return sorted(row["section_id"] for row in rows)

    # ------------------------------------------------------------------
    # Videos placed in a section
    # ------------------------------------------------------------------

    async def get_video_refs(self, section_id: int) -> List[VideoRef]:
        rows = await fetch_all_with_retry(
            section_videos.select()
            .where(section_videos.c.section_id == section_id)
            .order_by(section_videos.c.position, section_videos.c.id)
        )
        return [VideoRef.from_row(row) for row in rows]

    async def get_video_ref(self, section_id: int, ref_id: int) -> VideoRef:
        """Fetch one reference within a section. Raises NotFoundError if absent."""
        row = await fetch_one_with_retry(
            section_videos.select().where(
                sa.and_(section_videos.c.id == ref_id, section_videos.c.section_id == section_id)
            )
        )
        if row is None:
            raise NotFoundError(
                f"Video reference {ref_id} not found in section {section_id}",
                field="ref_id",
                resource_type="section_video",
                resource_id=ref_id,
            )
        return VideoRef.from_row(row)

    async def insert_video_ref(
        self,
        section_id: int,
        video_id: int,
        order: int,
        title: str = "",
        description: str = "",
        settings: Optional[VideoSettings] = None,
    ) -> int:
        """Insert a reference row and return its id."""
        settings = settings or VideoSettings()
        return await db_execute_with_retry(
            section_videos.insert().values(
                section_id=section_id,
                video_id=video_id,
                title=title,
                description=description,
                position=order,
                added_at=_utcnow(),
                **settings.to_columns(),
            )
        )

    # The writes below run inside transactions opened by SectionOrderingService

    async def update_video_ref(self, ref_id: int, values: Mapping[str, Any]) -> None:
        if values:
            await database.execute(section_videos.update().where(section_videos.c.id == ref_id).values(**values))

    async def delete_video_ref(self, ref_id: int) -> None:
        await database.execute(section_videos.delete().where(section_videos.c.id == ref_id))

    async def set_video_positions(self, positions: Mapping[int, int]) -> None:
        """Write reference positions keyed by reference id."""
        for ref_id, position in positions.items():
            await database.execute(
                section_videos.update().where(section_videos.c.id == ref_id).values(position=position)
            )

    async def _get_section_row(self, section_id: int):
        return await fetch_one_with_retry(sections.select().where(sections.c.id == section_id))


_section_store: Optional[SectionStore] = None


def get_section_store() -> SectionStore:
    """Get the process-wide SectionStore."""
    global _section_store
    if _section_store is None:
        _section_store = SectionStore()
    return _section_store
