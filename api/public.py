"""
Public API - serves the homepage sections.
Runs on port 9000.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter

from api.common import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    check_health,
    get_real_ip,
    register_error_handlers,
)
from api.database import configure_database, database
from api.presentation import list_visible_sections_with_playable_videos
from api.schemas import PublicSectionsResponse
from config import (
    CORS_ALLOWED_ORIGINS,
    PUBLIC_PORT,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_PUBLIC_DEFAULT,
    RATE_LIMIT_PUBLIC_SECTIONS,
    RATE_LIMIT_STORAGE_URL,
)

logger = logging.getLogger(__name__)

# Initialize rate limiter
# Uses in-memory storage by default, can be configured to use Redis
limiter = Limiter(
    key_func=get_real_ip,
    default_limits=[RATE_LIMIT_PUBLIC_DEFAULT],
    storage_uri=RATE_LIMIT_STORAGE_URL if RATE_LIMIT_ENABLED else None,
    enabled=RATE_LIMIT_ENABLED,
)


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


app = FastAPI(title="Showcase", description="Homepage video sections", lifespan=lifespan)

# Register rate limiter with the app
app.state.limiter = limiter
register_error_handlers(app)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)

# If CORS_ALLOWED_ORIGINS is empty, allow same-origin only (no CORS headers)
# Note: allow_credentials=True requires specific origins, not wildcards
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS if CORS_ALLOWED_ORIGINS else [],
    allow_credentials=bool(CORS_ALLOWED_ORIGINS),
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["Content-Type"],
    expose_headers=["X-Request-ID"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    result = await check_health()
    return JSONResponse(
        status_code=result["status_code"],
        content={
            "status": "healthy" if result["healthy"] else "unhealthy",
            "checks": result["checks"],
        },
    )


@app.get("/api/sections")
@limiter.limit(RATE_LIMIT_PUBLIC_SECTIONS)
async def list_sections(request: Request) -> PublicSectionsResponse:
    """
    Sections for the homepage, in display order.

    Hidden sections are left out, as are videos that no longer exist or have
    nothing to play. A section with no playable videos is left out entirely.
    """
    sections = await list_visible_sections_with_playable_videos()
    return PublicSectionsResponse(sections=sections, count=len(sections))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PUBLIC_PORT)
