"""
ascend.api.main — FastAPI application entry point
==================================================

Read-only view of leaderboards, member XP, level roles and settings.
Every write goes through the bot's slash commands.

Run with::

    uvicorn ascend.api.main:app --port 8000

or ``ascend-api``, which reads ``dashboard_port`` from ``config.yaml``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from ascend import __version__  # noqa: E402
from ascend.api.deps import get_engine  # noqa: E402
from ascend.api.routes.public import router as public_router  # noqa: E402
from ascend.errors import StorageError  # noqa: E402

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
    engine = app.dependency_overrides.get(get_engine, get_engine)()
    logger.info("Ascend API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Ascend API shutting down")


app = FastAPI(
    title="Ascend API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(public_router, prefix="/api")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


@app.get("/api/health")
def health():
    return {"status": "ok"}


def main() -> None:
    """Serve the API on the configured ``dashboard_port``."""
    import uvicorn

    from ascend.config import load_config

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    cfg = load_config(os.getenv("ASCEND_CONFIG", "config.yaml"))
    uvicorn.run(app, host=os.getenv("API_HOST", "127.0.0.1"), port=cfg.dashboard_port)


if __name__ == "__main__":
    main()
