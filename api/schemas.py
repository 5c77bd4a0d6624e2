from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from api.enums import LayoutType
from config import (
    MAX_SECTION_DESCRIPTION_LENGTH,
    MAX_SECTION_TITLE_LENGTH,
    MAX_VIDEO_REF_DESCRIPTION_LENGTH,
    MAX_VIDEO_REF_TITLE_LENGTH,
)

# Maximum items per bulk reorder request
MAX_REORDER_ITEMS = 500


# ============ Video Settings ============


class VideoSettingsSchema(BaseModel):
    """Player settings for a video placed in a section."""

    autoplay: bool = False
    loop: bool = False
    muted: bool = True
    controls: bool = True
    plays_inline: bool = True


class VideoSettingsPatch(BaseModel):
    """Partial player settings; omitted keys keep their current value."""

    autoplay: Optional[bool] = None
    loop: Optional[bool] = None
    muted: Optional[bool] = None
    controls: Optional[bool] = None
    plays_inline: Optional[bool] = None


# ============ Section Models ============


class SectionCreate(BaseModel):
    """Request to create a homepage section."""

    title: str = Field(..., min_length=1, max_length=MAX_SECTION_TITLE_LENGTH)
    description: str = Field(default="", max_length=MAX_SECTION_DESCRIPTION_LENGTH)
    layout_type: LayoutType = LayoutType.CARD
    order: Optional[int] = Field(default=None, ge=0, description="Insert at this position (default: last)")
    visible: bool = True
    grid_config: Optional[Dict[str, Any]] = None
    slider_config: Optional[Dict[str, Any]] = None
    background_color: Optional[str] = Field(default=None, max_length=50)
    text_color: Optional[str] = Field(default=None, max_length=50)
    padding: Optional[Dict[str, Any]] = None
    max_width: Optional[str] = Field(default=None, max_length=50)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip()


class SectionUpdate(BaseModel):
    """Partial section update. Only fields present in the request are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=MAX_SECTION_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=MAX_SECTION_DESCRIPTION_LENGTH)
    layout_type: Optional[LayoutType] = None
    order: Optional[int] = Field(default=None, ge=0)
    visible: Optional[bool] = None
    grid_config: Optional[Dict[str, Any]] = None
    slider_config: Optional[Dict[str, Any]] = None
    background_color: Optional[str] = Field(default=None, max_length=50)
    text_color: Optional[str] = Field(default=None, max_length=50)
    padding: Optional[Dict[str, Any]] = None
    max_width: Optional[str] = Field(default=None, max_length=50)

    def to_fields(self) -> Dict[str, Any]:
        """Fields the client actually sent, with enums unwrapped."""
        fields = self.model_dump(exclude_unset=True)
        if isinstance(fields.get("layout_type"), LayoutType):
            fields["layout_type"] = fields["layout_type"].value
        return fields


class SectionReorderItem(BaseModel):
    id: int


class SectionReorderRequest(BaseModel):
    """Sections in their new order; position in the list becomes the order."""

    sections: List[SectionReorderItem] = Field(..., min_length=1, max_length=MAX_REORDER_ITEMS)


# ============ Section Video Models ============


class SectionVideoAdd(BaseModel):
    """Request to place a video in a section."""

    video_id: int
    title: str = Field(default="", max_length=MAX_VIDEO_REF_TITLE_LENGTH)
    description: str = Field(default="", max_length=MAX_VIDEO_REF_DESCRIPTION_LENGTH)
    settings: Optional[VideoSettingsPatch] = None


class SectionVideoUpdate(BaseModel):
    """Partial update of a placed video."""

    title: Optional[str] = Field(default=None, max_length=MAX_VIDEO_REF_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=MAX_VIDEO_REF_DESCRIPTION_LENGTH)
    order: Optional[int] = Field(default=None, ge=0)
    settings: Optional[VideoSettingsPatch] = None


class VideoReorderItem(BaseModel):
    id: int
    order: Optional[int] = Field(default=None, ge=0, description="New order (default: index in the list)")


class VideoReorderRequest(BaseModel):
    """New orders for refs in one section. Refs not listed keep their order."""

    videos: List[VideoReorderItem] = Field(..., min_length=1, max_length=MAX_REORDER_ITEMS)


# ============ Responses ============


class VideoSummary(BaseModel):
    """Resolved video shown next to a placement in admin listings."""

    id: int
    title: str
    url: str = ""
    optimized_url: str = ""
    playable_url: str = ""
    thumbnail_url: str = ""
    duration: float = 0.0
    duration_formatted: str = "0:00"
    is_used: bool = False
    created_at: Optional[datetime] = None


class SectionVideoResponse(BaseModel):
    id: int
    video_id: int
    title: str = ""
    description: str = ""
    order: int
    settings: VideoSettingsSchema
    video: Optional[VideoSummary] = None  # None when the video no longer exists


class SectionResponse(BaseModel):
    id: int
    title: str
    description: str = ""
    layout_type: str
    grid_config: Dict[str, Any]
    slider_config: Dict[str, Any]
    order: int
    visible: bool
    background_color: str
    text_color: str
    padding: Dict[str, Any]
    max_width: str
    videos: List[SectionVideoResponse] = []
    video_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VideoListResponse(BaseModel):
    videos: List[VideoSummary]
    count: int
    total: int
    limit: int
    offset: int


class UsageReconcileResponse(BaseModel):
    status: str
    changed: int


class DeleteResponse(BaseModel):
    status: str
    id: int


# ============ Public Models ============


class PublicVideo(BaseModel):
    """A playable video as shown on the public homepage."""

    id: int
    title: str
    description: str = ""
    url: str
    thumbnail_url: str = ""
    duration: str = "0:00"
    settings: VideoSettingsSchema


class PublicSection(BaseModel):
    id: int
    title: str
    description: str = ""
    layout_type: str
    grid_config: Dict[str, Any]
    slider_config: Dict[str, Any]
    background_color: str
    text_color: str
    padding: Dict[str, Any]
    max_width: str
    videos: List[PublicVideo]


class PublicSectionsResponse(BaseModel):
    sections: List[PublicSection]
    count: int
