"""
CivicFlow - Civic Issue to Tender Workflow Engine

Main application entry point with FastAPI and APScheduler.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

# asyncpg on Windows needs the selector event loop
if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from civicflow.api import api_router
from civicflow.api.admin import set_scheduler
from civicflow.api.health import router as health_router
from civicflow.config import settings
from civicflow.errors import WorkflowError
from civicflow.scheduler import deliver_notifications_job

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

# Initialize scheduler
scheduler = AsyncIOScheduler()


def setup_scheduler():
    """Configure scheduled jobs."""
    # Deliver outbox notifications
    scheduler.add_job(
        deliver_notifications_job,
        trigger=IntervalTrigger(seconds=settings.notification_interval_seconds),
        id="deliver_notifications",
        name="Deliver Notifications",
        replace_existing=True,
    )

    logger.info("Scheduler jobs configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting CivicFlow application...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Notification transport: {settings.notification_transport}")
    logger.info(f"Sibling bid policy: {settings.sibling_bid_policy}")

    setup_scheduler()
    scheduler.start()
    logger.info("Scheduler started")

    # Share scheduler with admin API for pause/resume
    set_scheduler(scheduler)

    yield

    # Shutdown
    logger.info("Shutting down CivicFlow application...")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


# Create FastAPI application
app = FastAPI(
    title="CivicFlow",
    description="Civic issue, tender and contractor work workflow engine",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if not settings.is_production else [settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Map workflow failures to JSON with their stable code."""
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include health routes at root (for load balancer healthchecks)
app.include_router(health_router, tags=["Health"])

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Return API info."""
    return {
        "service": "CivicFlow",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if not settings.is_production else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "civicflow.main:app",
        host="0.0.0.0",
        port=8080,
        reload=not settings.is_production,
    )
