import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from travelweb import __version__
from travelweb.api.deps import get_settings
from travelweb.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
    except Exception as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    logger.info(
        "Rules loaded from %s (storage backend: %s, data dir: %s)",
        settings.rules_path,
        rules.storage.backend,
        settings.data_dir,
    )
    yield


app = FastAPI(
    title="Travelweb Engagement API",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from travelweb.api.routes import (  # noqa: E402
    admin_external_videos,
    external_video_ingest,
)

app.include_router(
    external_video_ingest.router,
    prefix="/api/analytics",
    tags=["External Video Ingestion"],
)
app.include_router(
    admin_external_videos.router,
    prefix="/api/analytics",
    tags=["External Video Analytics"],
)


# CORS (the tracker posts from the public site)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "engagement"}
