"""
Domain records shared by the section stores and services.

Rows come back from the databases library as mappings; these dataclasses give
the rest of the code named fields (notably `order`, stored as `position`).
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

DEFAULT_GRID_CONFIG = {"columns": 3, "gap": 16}
DEFAULT_SLIDER_CONFIG = {
    "autoplay": True,
    "delay": 5000,
    "loop": True,
    "showNavigation": True,
    "showPagination": True,
}
DEFAULT_PADDING = {"top": 40, "bottom": 40, "left": 0, "right": 0}


def format_duration(seconds: Optional[float]) -> str:
    """Render a duration as M:SS, or H:MM:SS from one hour up."""
    if not seconds:
        return "0:00"
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass
class Video:
    """A video owned by the upload pipeline. Only is_used is ours to change."""

    id: int
    title: str
    url: str = ""
    optimized_url: str = ""
    thumbnail_url: str = ""
    duration: float = 0.0
    is_used: bool = False
    created_at: Optional[datetime] = None

    @property
    def playable_url(self) -> str:
        return self.optimized_url or self.url or ""

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.duration)

    @classmethod
    def from_row(cls, row) -> "Video":
        return cls(
            id=row["id"],
            title=row["title"] or "",
            url=row["url"] or "",
            optimized_url=row["optimized_url"] or "",
            thumbnail_url=row["thumbnail_url"] or "",
            duration=row["duration"] or 0.0,
            is_used=bool(row["is_used"]),
            created_at=row["created_at"],
        )


@dataclass
class VideoSettings:
    """Player settings for one placement of a video."""

    autoplay: bool = False
    loop: bool = False
    muted: bool = True
    controls: bool = True
    plays_inline: bool = True

    def merged(self, patch: Optional[Dict[str, Any]]) -> "VideoSettings":
        """Return a copy with the supplied keys overriding ours; unknown keys are ignored."""
        values = asdict(self)
        for key, value in (patch or {}).items():
            if key in values and value is not None:
                values[key] = bool(value)
        return VideoSettings(**values)

    def to_columns(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass
class VideoRef:
    """A video placed in a section. `id` is the reference's local identity."""

    id: int
    section_id: int
    video_id: int
    title: str = ""
    description: str = ""
    order: int = 0
    settings: VideoSettings = field(default_factory=VideoSettings)

    @classmethod
    def from_row(cls, row) -> "VideoRef":
        return cls(
            id=row["id"],
            section_id=row["section_id"],
            video_id=row["video_id"],
            title=row["title"] or "",
            description=row["description"] or "",
            order=row["position"],
            settings=VideoSettings(
                autoplay=bool(row["autoplay"]),
                loop=bool(row["loop"]),
                muted=bool(row["muted"]),
                controls=bool(row["controls"]),
                plays_inline=bool(row["plays_inline"]),
            ),
        )


@dataclass
class Section:
    id: int
    title: str
    description: str = ""
    layout_type: str = "card"
    grid_config: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_GRID_CONFIG))
    slider_config: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SLIDER_CONFIG))
    order: int = 0
    visible: bool = True
    background_color: str = "#ffffff"
    text_color: str = "#000000"
    padding: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_PADDING))
    max_width: str = "1200px"
    videos: List[VideoRef] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def video_count(self) -> int:
        return len(self.videos)

    @classmethod
    def from_row(cls, row, videos: Optional[List[VideoRef]] = None) -> "Section":
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            layout_type=row["layout_type"],
            grid_config=row["grid_config"] if row["grid_config"] is not None else dict(DEFAULT_GRID_CONFIG),
            slider_config=row["slider_config"] if row["slider_config"] is not None else dict(DEFAULT_SLIDER_CONFIG),
            order=row["position"],
            visible=bool(row["visible"]),
            background_color=row["background_color"] or "",
            text_color=row["text_color"] or "",
            padding=row["padding"] if row["padding"] is not None else dict(DEFAULT_PADDING),
            max_width=row["max_width"] or "",
            videos=sorted(videos or [], key=lambda ref: (ref.order, ref.id)),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
