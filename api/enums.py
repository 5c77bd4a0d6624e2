"""
Centralized enums for values stored in the database.
Using str-based enums for database compatibility.
"""

from enum import Enum


class LayoutType(str, Enum):
    """How a homepage section lays out its videos."""

    CARD = "card"
    FULL_VIDEO = "full-video"
    SLIDER = "slider"
    GRID = "grid"
    MASONRY = "masonry"
    REELS = "reels"

    @classmethod
    def values(cls) -> list:
        return [member.value for member in cls]
