"""
Admin API - manages homepage sections and the videos placed in them.
Runs on port 9001 (not exposed externally).
"""

import hmac
import logging
from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter

from api.audit import AuditAction, log_audit
from api.common import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    check_health,
    ensure_utc,
    get_real_ip,
    get_request_id,
    register_error_handlers,
)
from api.database import configure_database, database
from api.models import Section, Video
from api.schemas import (
    DeleteResponse,
    SectionCreate,
    SectionReorderRequest,
    SectionResponse,
    SectionUpdate,
    SectionVideoAdd,
    SectionVideoResponse,
    SectionVideoUpdate,
    UsageReconcileResponse,
    VideoListResponse,
    VideoReorderRequest,
    VideoSettingsSchema,
    VideoSummary,
)
from api.section_store import get_section_store
from config import (
    ADMIN_API_SECRET,
    ADMIN_CORS_ALLOWED_ORIGINS,
    ADMIN_PORT,
    RATE_LIMIT_ADMIN_DEFAULT,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_STORAGE_URL,
)

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security.admin_auth")

# Initialize rate limiter for admin API
limiter = Limiter(
    key_func=get_real_ip,
    storage_uri=RATE_LIMIT_STORAGE_URL if RATE_LIMIT_ENABLED else None,
    enabled=RATE_LIMIT_ENABLED,
)


class AdminAuthMiddleware:
    """
    Require the X-Admin-Secret header on /api/* when SHOWCASE_ADMIN_API_SECRET is set.

    With no secret configured every request is allowed. /health and CORS
    preflight requests are never checked.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if not ADMIN_API_SECRET or not path.startswith("/api") or scope.get("method") == "OPTIONS":
            await self.app(scope, receive, send)
            return

        client = scope.get("client")
        client_ip = client[0] if client else "unknown"
        headers = dict(scope.get("headers", []))
        admin_secret = headers.get(b"x-admin-secret", b"").decode("utf-8", errors="ignore")

        if not admin_secret:
            security_logger.warning(
                "Admin API auth failed: no credentials",
                extra={"event": "auth_failure", "reason": "no_credentials", "path": path, "client_ip": client_ip},
            )
            response = JSONResponse(status_code=401, content={"detail": "Authentication required"})
            await response(scope, receive, send)
            return

        if not hmac.compare_digest(admin_secret.encode("utf-8"), ADMIN_API_SECRET.encode("utf-8")):
            security_logger.warning(
                "Admin API auth failed: invalid secret header",
                extra={"event": "auth_failure", "reason": "invalid_secret", "path": path, "client_ip": client_ip},
            )
            response = JSONResponse(status_code=403, content={"detail": "Invalid admin secret"})
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    # Warn about in-memory rate limiting limitations
    if RATE_LIMIT_ENABLED and RATE_LIMIT_STORAGE_URL == "memory://":
        logger.warning(
            "Rate limiting is using in-memory storage. "
            "For production deployments with multiple instances, configure Redis: "
            "SHOWCASE_RATE_LIMIT_STORAGE_URL=redis://localhost:6379"
        )
    await database.connect()
    await configure_database()
    yield
    await database.disconnect()


app = FastAPI(title="Showcase Admin", description="Homepage section management API", lifespan=lifespan)

# Register rate limiter with the app
app.state.limiter = limiter
register_error_handlers(app)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(AdminAuthMiddleware)

# Allow CORS for admin UI (internal-only, not exposed externally)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ADMIN_CORS_ALLOWED_ORIGINS,
    allow_credentials=True if ADMIN_CORS_ALLOWED_ORIGINS != ["*"] else False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


def _audit(request: Request, action: AuditAction, **kwargs) -> None:
    log_audit(
        action,
        client_ip=get_real_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=get_request_id(request),
        **kwargs,
    )


def _video_summary(video: Video) -> VideoSummary:
    return VideoSummary(
        id=video.id,
        title=video.title,
        url=video.url,
        optimized_url=video.optimized_url,
        playable_url=video.playable_url,
        thumbnail_url=video.thumbnail_url,
        duration=video.duration,
        duration_formatted=video.duration_formatted,
        is_used=video.is_used,
        created_at=ensure_utc(video.created_at),
    )


def _video_list_response(found: List[Video], total: int, limit: int, offset: int) -> VideoListResponse:
    return VideoListResponse(
        videos=[_video_summary(video) for video in found],
        count=len(found),
        total=total,
        limit=limit,
        offset=offset,
    )


def _section_response(section: Section, videos_by_id: Dict[int, Video]) -> SectionResponse:
    refs = []
    for ref in section.videos:
        video = videos_by_id.get(ref.video_id)
        refs.append(
            SectionVideoResponse(
                id=ref.id,
                video_id=ref.video_id,
                title=ref.title,
                description=ref.description,
                order=ref.order,
                settings=VideoSettingsSchema(**ref.settings.to_columns()),
                video=_video_summary(video) if video is not None else None,
            )
        )

    return SectionResponse(
        id=section.id,
        title=section.title,
        description=section.description,
        layout_type=section.layout_type,
        grid_config=section.grid_config,
        slider_config=section.slider_config,
        order=section.order,
        visible=section.visible,
        background_color=section.background_color,
        text_color=section.text_color,
        padding=section.padding,
        max_width=section.max_width,
        videos=refs,
        video_count=section.video_count,
        created_at=ensure_utc(section.created_at),
        updated_at=ensure_utc(section.updated_at),
    )


async def _section_responses(sections: Iterable[Section]) -> List[SectionResponse]:
    """Build responses with every placed video resolved in one query."""
    sections = list(sections)
    video_ids = {ref.video_id for section in sections for ref in section.videos}
    found = await get_section_store().video_store.find_many_by_id(video_ids)
    videos_by_id = {video.id: video for video in found}
    return [_section_response(section, videos_by_id) for section in sections]


async def _single_section_response(section: Section) -> SectionResponse:
    return (await _section_responses([section]))[0]


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns 503 if the database is unreachable.
    """
    result = await check_health()
    return JSONResponse(
        status_code=result["status_code"],
        content={
            "status": "healthy" if result["healthy"] else "unhealthy",
            "checks": result["checks"],
        },
    )


# ============ Sections ============


@app.get("/api/sections")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def list_sections(request: Request) -> List[SectionResponse]:
    """List every section (visible or not) in display order."""
    sections = await get_section_store().list_sections()
    return await _section_responses(sections)


@app.post("/api/sections", status_code=201)
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def create_section(request: Request, data: SectionCreate) -> SectionResponse:
    """Create a section. Without an order it is appended after the last one."""
    fields = data.model_dump(exclude_none=True)
    fields["layout_type"] = data.layout_type.value
    section = await get_section_store().create_section(fields)

    _audit(
        request,
        AuditAction.SECTION_CREATE,
        resource_type="section",
        resource_id=section.id,
        resource_name=section.title,
        details={"layout_type": section.layout_type, "order": section.order},
    )
    return await _single_section_response(section)


# Declared before the /{section_id} routes so "reorder" is not parsed as an id
@app.put("/api/sections/reorder")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def reorder_sections(request: Request, data: SectionReorderRequest) -> List[SectionResponse]:
    """Give each listed section the order of its position in the request."""
    section_ids = [item.id for item in data.sections]
    sections = await get_section_store().ordering.reorder_sections(section_ids)

    _audit(
        request,
        AuditAction.SECTION_REORDER,
        resource_type="section",
        details={"section_ids": section_ids},
    )
    return await _section_responses(sections)


@app.get("/api/sections/{section_id}")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def get_section(request: Request, section_id: int) -> SectionResponse:
    section = await get_section_store().get_section(section_id)
    return await _single_section_response(section)


@app.put("/api/sections/{section_id}")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def update_section(request: Request, section_id: int, data: SectionUpdate) -> SectionResponse:
    """Update only the fields present in the request body."""
    fields = data.to_fields()
    section = await get_section_store().update_section_fields(section_id, fields)

    _audit(
        request,
        AuditAction.SECTION_UPDATE,
        resource_type="section",
        resource_id=section_id,
        resource_name=section.title,
        details={"fields": sorted(fields)},
    )
    return await _single_section_response(section)


@app.delete("/api/sections/{section_id}")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def delete_section(request: Request, section_id: int) -> DeleteResponse:
    """Delete a section, release its videos and close the gap in section order."""
    section = await get_section_store().delete_section(section_id)

    _audit(
        request,
        AuditAction.SECTION_DELETE,
        resource_type="section",
        resource_id=section_id,
        resource_name=section.title,
        details={"video_ids": [ref.video_id for ref in section.videos]},
    )
    return DeleteResponse(status="ok", id=section_id)


# ============ Videos in a section ============


@app.post("/api/sections/{section_id}/videos", status_code=201)
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def add_section_video(request: Request, section_id: int, data: SectionVideoAdd) -> SectionResponse:
    """Append a video to a section. 409 if the section already shows it."""
    settings = data.settings.model_dump(exclude_none=True) if data.settings else None
    section = await get_section_store().ordering.add_video(
        section_id,
        data.video_id,
        title=data.title,
        description=data.description,
        settings=settings,
    )

    _audit(
        request,
        AuditAction.SECTION_VIDEO_ADD,
        resource_type="section",
        resource_id=section_id,
        resource_name=section.title,
        details={"video_id": data.video_id},
    )
    return await _single_section_response(section)


@app.put("/api/sections/{section_id}/reorder-videos")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def reorder_section_videos(request: Request, section_id: int, data: VideoReorderRequest) -> SectionResponse:
    """Apply new orders to videos in a section. Unlisted videos keep their order."""
    items = [item.model_dump(exclude_none=True) for item in data.videos]
    section = await get_section_store().ordering.reorder_videos(section_id, items)

    _audit(
        request,
        AuditAction.SECTION_VIDEO_REORDER,
        resource_type="section",
        resource_id=section_id,
        resource_name=section.title,
        details={"videos": items},
    )
    return await _single_section_response(section)


@app.put("/api/sections/{section_id}/videos/{ref_id}")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def update_section_video(
    request: Request, section_id: int, ref_id: int, data: SectionVideoUpdate
) -> SectionResponse:
    """Update title, description, settings or order of a placed video."""
    patch = data.model_dump(exclude_unset=True)
    if data.settings is not None:
        patch["settings"] = data.settings.model_dump(exclude_none=True)
    section = await get_section_store().ordering.update_video(section_id, ref_id, patch)

    _audit(
        request,
        AuditAction.SECTION_VIDEO_UPDATE,
        resource_type="section_video",
        resource_id=ref_id,
        resource_name=section.title,
        details={"section_id": section_id, "fields": sorted(patch)},
    )
    return await _single_section_response(section)


@app.delete("/api/sections/{section_id}/videos/{ref_id}")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def remove_section_video(request: Request, section_id: int, ref_id: int) -> SectionResponse:
    """Remove a placed video and renumber the rest of the section."""
    section = await get_section_store().ordering.remove_video(section_id, ref_id)

    _audit(
        request,
        AuditAction.SECTION_VIDEO_REMOVE,
        resource_type="section_video",
        resource_id=ref_id,
        resource_name=section.title,
        details={"section_id": section_id},
    )
    return await _single_section_response(section)


# ============ Videos ============


@app.get("/api/videos")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def list_videos(
    request: Request,
    is_used: Optional[bool] = Query(default=None, description="Filter on whether any section shows the video"),
    search: Optional[str] = Query(default=None, max_length=200, description="Match title or description"),
    limit: int = Query(default=100, ge=1, le=500, description="Max items per page"),
    offset: int = Query(default=0, ge=0, description="Number of items to skip"),
) -> VideoListResponse:
    store = get_section_store().video_store
    found = await store.list_videos(is_used=is_used, search=search, limit=limit, offset=offset)
    total = await store.count_videos(is_used=is_used, search=search)
    return _video_list_response(found, total, limit, offset)


@app.get("/api/videos/unused")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def list_unused_videos(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=200, description="Match title or description"),
    limit: int = Query(default=100, ge=1, le=500, description="Max items per page"),
    offset: int = Query(default=0, ge=0, description="Number of items to skip"),
) -> VideoListResponse:
    """Videos no section currently shows."""
    store = get_section_store().video_store
    found = await store.list_unused(search=search, limit=limit, offset=offset)
    total = await store.count_videos(is_used=False, search=search)
    return _video_list_response(found, total, limit, offset)


@app.post("/api/videos/reconcile-usage")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def reconcile_video_usage(request: Request) -> UsageReconcileResponse:
    """Recompute is_used for every video from the section contents."""
    changed = await get_section_store().reconciler.reconcile_all()

    _audit(
        request,
        AuditAction.VIDEO_USAGE_RECONCILE,
        resource_type="video",
        details={"changed": changed},
    )
    return UsageReconcileResponse(status="ok", changed=changed)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=ADMIN_PORT)
