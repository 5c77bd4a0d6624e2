"""
Ordering of sections and of the videos inside each section.

Section orders are kept dense (0..m-1) after every create, delete, bulk reorder
or move. Video orders inside a section are dense after add, remove and move;
a partial bulk video reorder keeps the orders of the refs it does not mention.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from api.database import database
from api.errors import ConflictError, NotFoundError, ValidationError, is_unique_violation
from api.models import Section, VideoRef, VideoSettings
from config import MAX_VIDEO_REF_DESCRIPTION_LENGTH, MAX_VIDEO_REF_TITLE_LENGTH

logger = logging.getLogger(__name__)

ReorderItem = Union[int, Mapping[str, Any]]


def _dense_positions(refs: Sequence[VideoRef]) -> Dict[int, int]:
    """Positions that change when refs are renumbered 0..n-1 in the given order."""
    return {ref.id: index for index, ref in enumerate(refs) if ref.order != index}


def _clean_ref_text(patch: Mapping[str, Any]) -> Dict[str, str]:
    values = {}
    for name, limit in (("title", MAX_VIDEO_REF_TITLE_LENGTH), ("description", MAX_VIDEO_REF_DESCRIPTION_LENGTH)):
        value = patch.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{name.capitalize()} must be a string", field=name)
        value = value.strip()
        if len(value) > limit:
            raise ValidationError(f"{name.capitalize()} must be at most {limit} characters", field=name)
        values[name] = value
    return values


class SectionOrderingService:
    def __init__(self, section_store, video_store, reconciler):
        self.section_store = section_store
        self.video_store = video_store
        self.reconciler = reconciler

    # ------------------------------------------------------------------
    # Section order
    # ------------------------------------------------------------------

    async def reorder_sections(self, section_ids: Sequence[int]) -> List[Section]:
        """
        Give the section at index i of section_ids order i.

        Every id must exist and appear once, otherwise nothing is written.
        Sections not mentioned follow the listed ones, in their current order.
        """
        ids = list(section_ids)
        if not ids:
            raise ValidationError("At least one section id is required", field="sections")

        seen = set()
        for section_id in ids:
            if section_id in seen:
                raise ValidationError(
                    f"Section {section_id} appears more than once",
                    field="sections",
                    resource_type="section",
                    resource_id=section_id,
                )
            seen.add(section_id)

        existing = await self.section_store.ordered_section_ids()
        for section_id in ids:
            if section_id not in existing:
                raise ValidationError(
                    f"Section {section_id} does not exist",
                    field="sections",
                    resource_type="section",
                    resource_id=section_id,
                )

        ids.extend(sid for sid in existing if sid not in seen)
        async with database.transaction():
            await self.section_store.set_section_positions({sid: index for index, sid in enumerate(ids)})

        logger.info(f"Reordered {len(seen)} section(s)")
        return await self.section_store.list_sections()

    async def compact_section_order(self) -> int:
        """Renumber sections 0..m-1 by current order, ties broken by id. Returns rows changed."""
        positions = await self.section_store.section_positions()
        changes = {
            section_id: index for index, (section_id, position) in enumerate(positions) if position != index
        }
        if changes:
            async with database.transaction():
                await self.section_store.set_section_positions(changes)
            logger.debug(f"Compacted section order, {len(changes)} section(s) moved")
        return len(changes)

    async def move_section(self, section_id: int, new_order: int) -> None:
        """Move one section to new_order (clamped to the end) and renumber the rest."""
        ids = await self.section_store.ordered_section_ids()
        if section_id not in ids:
            raise NotFoundError(
                f"Section {section_id} not found",
                field="section_id",
                resource_type="section",
                resource_id=section_id,
            )

        ids.remove(section_id)
        ids.insert(max(0, min(new_order, len(ids))), section_id)
        async with database.transaction():
            await self.section_store.set_section_positions({sid: index for index, sid in enumerate(ids)})
        logger.info(f"Moved section {section_id} to position {ids.index(section_id)}")

    # ------------------------------------------------------------------
    # Videos in a section
    # ------------------------------------------------------------------

    async def add_video(
        self,
        section_id: int,
        video_id: int,
        title: str = "",
        description: str = "",
        settings: Optional[Mapping[str, Any]] = None,
    ) -> Section:
        """
        Append a video to a section and mark it used.

        Raises:
            NotFoundError: section or video does not exist
            ConflictError: the section already shows this video
        """
        section = await self.section_store.get_section(section_id)
        await self.video_store.find_by_id(video_id)

        if any(ref.video_id == video_id for ref in section.videos):
            raise ConflictError(
                f"Video {video_id} is already in section {section_id}",
                field="video_id",
                resource_type="video",
                resource_id=video_id,
            )

        text = _clean_ref_text({"title": title, "description": description})
        next_order = max(ref.order for ref in section.videos) + 1 if section.videos else 0

        try:
            ref_id = await self.section_store.insert_video_ref(
                section_id,
                video_id,
                next_order,
                title=text.get("title", ""),
                description=text.get("description", ""),
                settings=VideoSettings().merged(dict(settings or {})),
            )
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError(
                    f"Video {video_id} is already in section {section_id}",
                    field="video_id",
                    resource_type="video",
                    resource_id=video_id,
                ) from e
            raise

        await self.section_store.touch(section_id)
        await self.video_store.set_used(video_id, True)
        logger.info(f"Added video {video_id} to section {section_id} as ref {ref_id} at position {next_order}")
        return await self.section_store.get_section(section_id)

    async def remove_video(self, section_id: int, ref_id: int) -> Section:
        """Remove a ref, close the gap it leaves and re-derive the video's usage."""
        section = await self.section_store.get_section(section_id)
        ref = await self.section_store.get_video_ref(section_id, ref_id)

        remaining = [other for other in section.videos if other.id != ref_id]
        async with database.transaction():
            await self.section_store.delete_video_ref(ref_id)
            await self.section_store.set_video_positions(_dense_positions(remaining))
        await self.section_store.touch(section_id)

        await self.reconciler.on_video_removed_from_section(ref.video_id, section_id)
        logger.info(f"Removed ref {ref_id} (video {ref.video_id}) from section {section_id}")
        return await self.section_store.get_section(section_id)

    async def reorder_videos(self, section_id: int, items: Sequence[ReorderItem]) -> Section:
        """
        Apply new orders to refs in a section.

        Each item is either a ref id (its order becomes its index in items) or a
        mapping with "id" and an optional "order". Refs not mentioned keep their
        old order. The result is sorted by order, stable on previous position.
        """
        if not await self.section_store.section_exists(section_id):
            raise ValidationError(
                f"Section {section_id} does not exist",
                field="section_id",
                resource_type="section",
                resource_id=section_id,
            )

        refs = await self.section_store.get_video_refs(section_id)
        known = {ref.id for ref in refs}

        new_orders: Dict[int, int] = {}
        for index, item in enumerate(items):
            if isinstance(item, Mapping):
                ref_id = item.get("id")
                order = item.get("order")
                if order is None:
                    order = index
            else:
                ref_id, order = item, index

            if isinstance(ref_id, bool) or not isinstance(ref_id, int):
                raise ValidationError(f"Invalid video reference id {ref_id!r}", field="videos")
            if isinstance(order, bool) or not isinstance(order, int) or order < 0:
                raise ValidationError(
                    f"Order for video reference {ref_id} must be a non-negative integer", field="videos"
                )
            if ref_id not in known:
                raise ValidationError(
                    f"Video reference {ref_id} is not in section {section_id}",
                    field="videos",
                    resource_type="section_video",
                    resource_id=ref_id,
                )
            if ref_id in new_orders:
                raise ValidationError(
                    f"Video reference {ref_id} appears more than once",
                    field="videos",
                    resource_type="section_video",
                    resource_id=ref_id,
                )
            new_orders[ref_id] = order

        current = {ref.id: ref.order for ref in refs}
        changes = {ref_id: order for ref_id, order in new_orders.items() if order != current[ref_id]}
        if changes:
            async with database.transaction():
                await self.section_store.set_video_positions(changes)
            await self.section_store.touch(section_id)

        logger.info(f"Reordered {len(new_orders)} video(s) in section {section_id}")
        section = await self.section_store.get_section(section_id)
        previous = {ref.id: index for index, ref in enumerate(refs)}
        section.videos.sort(key=lambda ref: (ref.order, previous.get(ref.id, len(previous))))
        return section

    async def update_video(self, section_id: int, ref_id: int, patch: Mapping[str, Any]) -> Section:
        """
        Patch a ref's title, description, settings or order.

        Omitted fields keep their value and settings keys are merged into the
        existing settings. A new order moves the ref and renumbers the section.
        """
        section = await self.section_store.get_section(section_id)
        ref = await self.section_store.get_video_ref(section_id, ref_id)

        values: Dict[str, Any] = _clean_ref_text(patch)
        if patch.get("settings") is not None:
            if not isinstance(patch["settings"], Mapping):
                raise ValidationError("Settings must be an object", field="settings")
            values.update(ref.settings.merged(dict(patch["settings"])).to_columns())

        new_order = patch.get("order")
        if new_order is not None and (isinstance(new_order, bool) or not isinstance(new_order, int) or new_order < 0):
            raise ValidationError("Order must be a non-negative integer", field="order")

        async with database.transaction():
            await self.section_store.update_video_ref(ref_id, values)
            if new_order is not None:
                ordered = [other for other in section.videos if other.id != ref_id]
                ordered.insert(min(new_order, len(ordered)), ref)
                await self.section_store.set_video_positions(_dense_positions(ordered))
        await self.section_store.touch(section_id)

        logger.info(f"Updated ref {ref_id} in section {section_id}")
        return await self.section_store.get_section(section_id)
