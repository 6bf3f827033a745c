"""
FastAPI application entry point for the meterlink ingestion service.

Startup loads settings, installs structured JSON logging, initializes the
database engine and (unless disabled) creates or upgrades the schema in
place. The recent-events log is created once and stored on app.state.

Run with ``uvicorn meterlink.api.main:app``.

CHANGELOG:
- 2026-10-17: Register health/debug router, recent-events log on app.state
- 2026-10-16: Register consumption router
- 2026-10-15: Register readings router
- 2026-10-14: Initial creation
"""

import json
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI

from meterlink.api.consumption import router as consumption_router
from meterlink.api.health import router as health_router
from meterlink.api.readings import router as readings_router
from meterlink.api.webhooks import router as webhooks_router
from meterlink.config import get_settings
from meterlink.db.session import dispose_engine, init_engine, init_schema
from meterlink.services.events import EventLog

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger.

    Args:
        level: Root log level name.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: engine and schema on startup, disposal on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    engine = init_engine(settings.database_url)
    if settings.auto_create_schema:
        await init_schema(engine)
    app.state.events = EventLog(settings.recent_events)

    logger.info(
        "meterlink ready: database=%s cache=%s timezone=%s",
        engine.url.render_as_string(hide_password=True),
        "enabled" if settings.redis_url else "disabled",
        settings.ui_timezone,
    )
    yield
    await dispose_engine()
    logger.info("meterlink shutting down")


app = FastAPI(
    title="meterlink",
    description="LoRaWAN meter uplink ingestion and time-series API.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(readings_router)
app.include_router(consumption_router)
