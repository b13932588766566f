"""
FastAPI server for the hub.

Provides:
- Health check and last-build status
- Manual rebuild trigger
- Widget endpoint merging several hubs' feeds through the feed cache
- The built site itself, served as static files
"""

from datetime import datetime, timezone
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, BackgroundTasks, Query
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .builder import run_build
from .config import get_settings
from .db import get_database
from .logging_conf import get_logger, setup_logging
from .widget import WidgetFeedClient, parse_hub_list

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"


class BuildResponse(BaseModel):
    status: str
    message: str


# Summary of the most recent build run by this process
last_build: Optional[dict] = None


async def build_and_remember() -> None:
    """Run a build and keep its summary for /status."""
    global last_build
    result = await run_build()
    last_build = result.summary()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("server_starting")

    get_database()

    yield

    logger.info("server_stopped")


app = FastAPI(
    title="Subnet Hub",
    description="Federated feed hub: build status, widget feed and the built site",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/status")
async def build_status():
    """Summary of the last build run by this server."""
    return {"last_build": last_build}


@app.post("/build", response_model=BuildResponse)
async def trigger_build(background_tasks: BackgroundTasks):
    """Trigger a manual rebuild."""

    async def build_in_background():
        try:
            await build_and_remember()
            logger.info("manual_build_completed", **(last_build or {}))
        except Exception as e:
            logger.error("manual_build_failed", error=str(e))

    background_tasks.add_task(build_in_background)

    return BuildResponse(
        status="started",
        message="Hub build started in background",
    )


@app.get("/widget")
async def widget_feed(
    hubs: str = Query(..., description="Comma-separated hub URLs"),
    count: int = Query(5, ge=1, le=100),
):
    """Merged entries from several hubs, newest first."""
    hub_list = parse_hub_list(hubs)
    if not hub_list:
        raise HTTPException(status_code=400, detail="No hubs given")

    feed = await WidgetFeedClient(get_database()).fetch_all(hub_list)
    return feed.to_dict(count=count)


# Registered last so the API routes above take precedence.
app.mount(
    "/",
    StaticFiles(directory=get_settings().output_dir, html=True, check_dir=False),
    name="site",
)


def run_server(host: str = "0.0.0.0", port: Optional[int] = None):
    """
    Run the FastAPI server.

    Args:
        host: Host to bind to
        port: Port to bind to (defaults to settings.port)
    """
    import uvicorn

    port = port or get_settings().port

    logger.info("starting_server", host=host, port=port)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )
