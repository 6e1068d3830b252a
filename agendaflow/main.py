"""FastAPI application entry point: wires everything together.

Usage:
    python -m agendaflow.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from agendaflow.api import register_error_handlers, router
from agendaflow.audit import audit_on_event
from agendaflow.config import settings
from agendaflow.db.engine import db_lifespan
from agendaflow.events import emit, start_event_system, stop_event_system, subscribe, unsubscribe
from agendaflow.schemas.events import EventType, SystemEvent

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting AgendaFlow (env=%s)", settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()

        # 3. Audit logging, always active (global subscriber)
        subscribe(audit_on_event)
        logger.info("Audit logging subscriber registered")

        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            data={"environment": settings.environment},
            source_module="main",
        ))

        try:
            yield
        finally:
            logger.info("Shutting down AgendaFlow...")
            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))
            await stop_event_system()
            unsubscribe(audit_on_event)

    logger.info("AgendaFlow shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="AgendaFlow API",
    description="Availability and appointment booking engine",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)
register_error_handlers(app)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "agendaflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
