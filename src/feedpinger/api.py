"""
FastAPI application for the feed notifier.

This module provides:
1. Trigger endpoint for running a notification pass (cron target)
2. Admin endpoints for reading/replacing the stored site configurations
3. Health check endpoints

Endpoints:
- GET /: Service info
- GET /health: Key-value store status
- POST /run: Trigger a run (background by default, inline with wait=true)
- GET /sites: Stored site configurations (HTTP Basic)
- PUT /sites: Replace stored site configurations (HTTP Basic)

Usage:
    # Run with uvicorn
    uvicorn feedpinger.api:app --reload

    # Or use the main.py entrypoint
    python -m feedpinger.main serve
"""

import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field

from feedpinger import __version__
from feedpinger.config import ConfigError, Settings, SiteConfig, dump_site_configs, get_settings
from feedpinger.db import close_db_pool, get_db_pool, get_kv_store
from feedpinger.db.connection import check_db_health
from feedpinger.db.kv_store import KeyValueStore
from feedpinger.db.sites import get_stored_site_configs, set_stored_site_configs
from feedpinger.graph.orchestrator import generate_run_id, run_notifier

logger = structlog.get_logger()


# ========================================
# LIFESPAN MANAGEMENT
# ========================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup (postgres backend), close it on shutdown."""
    logger.info("Starting API server")
    if get_settings().store_backend == "postgres":
        try:
            await get_db_pool()
            logger.info("Database pool initialized")
        except Exception as e:
            logger.error("Failed to initialize database", error=str(e))
    yield

    logger.info("Shutting down API server")
    await close_db_pool()


app = FastAPI(
    title="feedpinger",
    description="Notifies IndexNow, Ping-O-Matic and WebSub hubs about new feed posts",
    version=__version__,
    lifespan=lifespan,
)


# ========================================
# PYDANTIC MODELS
# ========================================


class HealthResponse(BaseModel):
    status: str = Field(description="Overall health status: healthy or unhealthy")
    store_backend: str = Field(description="Configured key-value store backend")
    store: bool = Field(description="Key-value store reachable")
    timestamp: datetime = Field(description="Current server time")


class RunRequest(BaseModel):
    wait: bool = Field(
        default=False,
        description="Run inline and return the summary instead of running in the background",
    )


class RunResponse(BaseModel):
    status: str = Field(description="Run status: started, completed, or failed")
    run_id: str = Field(description="Unique run identifier")
    message: str = Field(description="Human-readable status message")
    summary: dict | None = Field(default=None, description="Run summary if completed")


class SitesUpdateResponse(BaseModel):
    message: str
    site_count: int


# ========================================
# DEPENDENCIES
# ========================================

basic_auth = HTTPBasic(auto_error=False)

UNAUTHORIZED_HEADERS = {"WWW-Authenticate": 'Basic realm="Admin"'}


def require_admin(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(basic_auth)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """
    HTTP Basic gate for the admin endpoints.

    500 if the server has no admin credentials configured, 401 otherwise
    when the credentials are missing or wrong.
    """
    if not settings.admin_configured:
        logger.error("ADMIN_USERNAME or ADMIN_PASSWORD is not set for Basic Auth")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error: Admin credentials not set.",
        )

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers=UNAUTHORIZED_HEADERS,
        )

    username_ok = secrets.compare_digest(
        credentials.username.encode(), settings.admin_username.encode()
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode(), settings.admin_password.get_secret_value().encode()
    )
    if not (username_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers=UNAUTHORIZED_HEADERS,
        )

    return credentials.username


async def get_store(settings: Annotated[Settings, Depends(get_settings)]) -> KeyValueStore:
    return await get_kv_store(settings)


# ========================================
# ENDPOINTS
# ========================================


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": "feedpinger",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(settings: Annotated[Settings, Depends(get_settings)]):
    store_ok = True if settings.store_backend == "memory" else await check_db_health()

    return HealthResponse(
        status="healthy" if store_ok else "unhealthy",
        store_backend=settings.store_backend,
        store=store_ok,
        timestamp=datetime.now(timezone.utc),
    )


async def _run_in_background(settings: Settings, run_id: str) -> None:
    try:
        await run_notifier(settings, run_id=run_id)
    except Exception:
        logger.exception("Background run failed", run_id=run_id)


@app.post("/run", response_model=RunResponse, tags=["Notifier"])
async def trigger_run(
    background_tasks: BackgroundTasks,
    settings: Annotated[Settings, Depends(get_settings)],
    request: RunRequest | None = None,
):
    """
    Trigger a notification pass over every configured site.

    By default this answers immediately and runs in the background, which is
    what a cron caller wants. Pass {"wait": true} to get the run summary.
    """
    request = request or RunRequest()
    run_id = generate_run_id()

    logger.info("Run triggered via API", run_id=run_id, wait=request.wait)

    if not request.wait:
        background_tasks.add_task(_run_in_background, settings, run_id)
        return RunResponse(
            status="started",
            run_id=run_id,
            message="Feed checker running, check logs for details",
        )

    try:
        summary = await run_notifier(settings, run_id=run_id)
    except Exception as e:
        logger.error("Run failed", error=str(e), run_id=run_id)
        return RunResponse(status="failed", run_id=run_id, message=f"Run failed: {e}")

    return RunResponse(
        status="completed",
        run_id=run_id,
        message=(
            f"Processed {summary['site_count']} sites: {summary['completed']} completed, "
            f"{summary['skipped']} skipped, {summary['failed']} failed."
        ),
        summary=dict(summary),
    )


@app.get("/sites", tags=["Admin"])
async def get_sites(
    _: Annotated[str, Depends(require_admin)],
    store: Annotated[KeyValueStore, Depends(get_store)],
) -> list[dict]:
    try:
        configs = await get_stored_site_configs(store)
    except ConfigError as e:
        logger.error("Stored site configuration is invalid", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))
    return dump_site_configs(configs)


@app.put("/sites", response_model=SitesUpdateResponse, tags=["Admin"])
async def put_sites(
    configs: list[SiteConfig],
    _: Annotated[str, Depends(require_admin)],
    store: Annotated[KeyValueStore, Depends(get_store)],
):
    """Replace the stored site configurations with the posted JSON array."""
    ids = [config.id for config in configs]
    if len(ids) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Site ids must be unique")

    await set_stored_site_configs(store, configs)
    return SitesUpdateResponse(message="Configuration saved successfully", site_count=len(configs))
