from datetime import datetime, timezone

import sqlalchemy as sa
from databases import Database

from config import DATABASE_URL

# Create database instance - works with PostgreSQL or SQLite
# PostgreSQL is the default and recommended database
database = Database(DATABASE_URL)
metadata = sa.MetaData()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Videos are created and deleted by the upload pipeline. The section
# subsystem only reads them and maintains is_used.
videos = sa.Table(
    "videos",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("description", sa.Text, default=""),
    sa.Column("url", sa.String(1000), nullable=False, default=""),  # raw upload URL
    sa.Column("optimized_url", sa.String(1000), nullable=False, default=""),  # transcoded variant, may be empty
    sa.Column("thumbnail_url", sa.String(1000), nullable=False, default=""),
    sa.Column("duration", sa.Float, default=0),  # seconds
    sa.Column("is_used", sa.Boolean, nullable=False, default=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=_utcnow),
    sa.Index("ix_videos_is_used", "is_used"),
)

# Homepage sections
#
# ORDERING SEMANTICS:
# -------------------
# position is zero-based and, across all rows, always forms 0..n-1 after any
# create, delete, bulk reorder or move. Not UNIQUE: bulk reorders rewrite
# positions row by row and pass through duplicate states.
sections = sa.Table(
    "sections",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("title", sa.String(100), nullable=False),
    sa.Column("description", sa.String(500), nullable=False, default=""),
    sa.Column(
        "layout_type",
        sa.String(20),
        sa.CheckConstraint(
            "layout_type IN ('card', 'full-video', 'slider', 'grid', 'masonry', 'reels')",
            name="ck_sections_layout_type",
        ),
        nullable=False,
        default="card",
    ),
    sa.Column("grid_config", sa.JSON, nullable=True),
    sa.Column("slider_config", sa.JSON, nullable=True),
    sa.Column("position", sa.Integer, nullable=False, default=0),
    sa.Column("visible", sa.Boolean, nullable=False, default=True),
    # Presentation pass-through
    sa.Column("background_color", sa.String(50), nullable=False, default="#ffffff"),
    sa.Column("text_color", sa.String(50), nullable=False, default="#000000"),
    sa.Column("padding", sa.JSON, nullable=True),
    sa.Column("max_width", sa.String(50), nullable=False, default="1200px"),
    sa.Column("created_at", sa.DateTime(timezone=True), default=_utcnow),
    sa.Column("updated_at", sa.DateTime(timezone=True), default=_utcnow),
    sa.Index("ix_sections_position", "position"),
    sa.Index("ix_sections_visible", "visible"),
    sa.Index("ix_sections_layout_type", "layout_type"),
)

# Videos placed in a section (the section's own references, never shared)
#
# - id is the reference's local identity; admin calls address refs by it
# - video_id has no foreign key: a video deleted out-of-band leaves a
#   dangling reference that the public read skips
# - position follows the same 0..n-1 rule as sections.position, per section
section_videos = sa.Table(
    "section_videos",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column(
        "section_id",
        sa.Integer,
        sa.ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("video_id", sa.Integer, nullable=False),
    sa.Column("title", sa.String(255), nullable=False, default=""),
    sa.Column("description", sa.Text, nullable=False, default=""),
    sa.Column("position", sa.Integer, nullable=False, default=0),
    # Player settings
    sa.Column("autoplay", sa.Boolean, nullable=False, default=False),
    sa.Column("loop", sa.Boolean, nullable=False, default=False),
    sa.Column("muted", sa.Boolean, nullable=False, default=True),
    sa.Column("controls", sa.Boolean, nullable=False, default=True),
    sa.Column("plays_inline", sa.Boolean, nullable=False, default=True),
    sa.Column("added_at", sa.DateTime(timezone=True), default=_utcnow),
    sa.UniqueConstraint("section_id", "video_id", name="uq_section_video"),
    sa.Index("ix_section_videos_section_id", "section_id"),
    sa.Index("ix_section_videos_video_id", "video_id"),
    # Composite index for ordered retrieval: WHERE section_id = ? ORDER BY position
    sa.Index("ix_section_videos_section_position", "section_id", "position"),
)


def create_tables():
    """
    Create all tables directly from metadata.

    Production deployments run the Alembic migrations instead; this is used by
    tests and local SQLite setups.
    """
    engine = sa.create_engine(DATABASE_URL)
    metadata.create_all(engine)
    engine.dispose()


async def configure_database():
    """
    Configure database-specific settings after connection.
    For PostgreSQL, this is a no-op since FK constraints are always enforced.
    """
    pass
