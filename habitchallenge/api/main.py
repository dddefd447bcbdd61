"""
habitchallenge.api.main — FastAPI application entry point
==========================================================

Run with::

    uvicorn habitchallenge.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from habitchallenge.api.deps import get_engine  # noqa: E402
from habitchallenge.api.errors import register_error_handlers  # noqa: E402
from habitchallenge.api.routes.challenge_logs import router as challenge_logs_router  # noqa: E402
from habitchallenge.api.routes.challenges import router as challenges_router  # noqa: E402
from habitchallenge.api.routes.notifications import router as notifications_router  # noqa: E402
from habitchallenge.api.routes.users import router as users_router  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("Habit Challenge API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Habit Challenge API shutting down")


app = FastAPI(
    title="Habit Challenge API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Mount routers
app.include_router(challenges_router, prefix="/api")
app.include_router(challenge_logs_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(users_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
