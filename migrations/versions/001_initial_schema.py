"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the videos, sections and section_videos tables.
For existing databases, use 'alembic stamp 001' to mark as current.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables for the Showcase database."""
    # Videos table (rows owned by the upload pipeline)
    op.create_table(
        "videos",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("url", sa.String(1000), nullable=False, server_default=""),
        sa.Column("optimized_url", sa.String(1000), nullable=False, server_default=""),
        sa.Column("thumbnail_url", sa.String(1000), nullable=False, server_default=""),
        sa.Column("duration", sa.Float, server_default="0"),
        sa.Column("is_used", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_videos_is_used", "videos", ["is_used"])

    # Sections table
    op.create_table(
        "sections",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=False, server_default=""),
        sa.Column("layout_type", sa.String(20), nullable=False, server_default="card"),
        sa.Column("grid_config", sa.JSON, nullable=True),
        sa.Column("slider_config", sa.JSON, nullable=True),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("visible", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("background_color", sa.String(50), nullable=False, server_default="#ffffff"),
        sa.Column("text_color", sa.String(50), nullable=False, server_default="#000000"),
        sa.Column("padding", sa.JSON, nullable=True),
        sa.Column("max_width", sa.String(50), nullable=False, server_default="1200px"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "layout_type IN ('card', 'full-video', 'slider', 'grid', 'masonry', 'reels')",
            name="ck_sections_layout_type",
        ),
    )
    op.create_index("ix_sections_position", "sections", ["position"])
    op.create_index("ix_sections_visible", "sections", ["visible"])
    op.create_index("ix_sections_layout_type", "sections", ["layout_type"])

    # Videos placed in sections
    op.create_table(
        "section_videos",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "section_id",
            sa.Integer,
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("video_id", sa.Integer, nullable=False),  # no FK, dangling refs are tolerated
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("autoplay", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("loop", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("muted", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("controls", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("plays_inline", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("added_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("section_id", "video_id", name="uq_section_video"),
    )
    op.create_index("ix_section_videos_section_id", "section_videos", ["section_id"])
    op.create_index("ix_section_videos_video_id", "section_videos", ["video_id"])
    op.create_index("ix_section_videos_section_position", "section_videos", ["section_id", "position"])


def downgrade() -> None:
    """Drop all Showcase tables."""
    op.drop_index("ix_section_videos_section_position", table_name="section_videos")
    op.drop_index("ix_section_videos_video_id", table_name="section_videos")
    op.drop_index("ix_section_videos_section_id", table_name="section_videos")
    op.drop_table("section_videos")
    op.drop_index("ix_sections_layout_type", table_name="sections")
    op.drop_index("ix_sections_visible", table_name="sections")
    op.drop_index("ix_sections_position", table_name="sections")
    op.drop_table("sections")
    op.drop_index("ix_videos_is_used", table_name="videos")
    op.drop_table("videos")
