"""Main FastAPI application - callback endpoint plus the probe scheduler."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import init_db, close_db
from .routers import distributed_router, notifications_router
from .services.notifier import notification_service
from .services.scheduler import scheduler_service
from .services.status import status_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting Uptime Core")

    await init_db()
    logger.info("Database initialized")

    scheduler_service.start()

    yield

    # Shutdown
    scheduler_service.stop()
    # Let in-flight check inserts and alert emails finish
    await status_service.drain()
    await notification_service.drain()

    await close_db()
    logger.info("Shutdown complete")


def create_app(start_background: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    ``start_background=False`` skips the lifespan (database init and
    scheduler), which lets tests mount the routers on their own.
    """
    app = FastAPI(
        title="Uptime Core",
        description="Probe dispatch, status tracking, and alerting",
        version="1.0.0",
        lifespan=lifespan if start_background else None,
    )

    app.include_router(distributed_router)
    app.include_router(notifications_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
