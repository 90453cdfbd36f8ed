"""
WasteWatch API application.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from wastewatch.config.settings import Settings, get_settings
from wastewatch.database.connection import Database
from wastewatch.middleware.error_handler import error_handler_middleware, setup_error_handlers
from wastewatch.middleware.request_id import RequestIDMiddleware
from wastewatch.models.base import MessageResponse, UTCDatetime
from wastewatch.routers import (
    auth_router,
    dashboard_router,
    realtime_router,
    reports_router,
    waste_detection_router,
)
from wastewatch.services.event_broadcaster import EventBroadcaster
from wastewatch.services.image_storage import ImageStorage
from wastewatch.services.waste_detection_service import RoboflowClient

logger = logging.getLogger("wastewatch.main")


class HealthResponse(MessageResponse):
    timestamp: UTCDatetime


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database at startup and release every client at shutdown."""
    settings: Settings = app.state.settings

    database = Database.from_settings(settings)
    app.state.database = database
    if settings.database_auto_create:
        await database.create_tables()
    logger.info(
        f"Database ready at {settings.postgres_host}:{settings.postgres_port}/"
        f"{settings.postgres_database}"
    )

    try:
        yield
    finally:
        await app.state.roboflow_client.close()
        await database.dispose()
        logger.info("Database connections closed")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application with its process-wide collaborators."""
    settings = settings or get_settings()

    app = FastAPI(
        title="WasteWatch API",
        description="Community waste reporting: geotagged reports, triage and resolution",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.broadcaster = EventBroadcaster()
    app.state.image_storage = ImageStorage.from_settings(settings)
    app.state.roboflow_client = RoboflowClient.from_settings(settings)

    # Request logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        path = request.url.path
        method = request.method

        # Static files are too verbose to log
        skip_logging = path.startswith(settings.upload_url_prefix)

        if not skip_logging:
            logger.info(f"🔔 {method} {path}")

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            status_code = response.status_code

            if status_code < 400:
                status_str = f"✅ {status_code}"
            elif status_code < 500:
                status_str = f"⚠️ {status_code}"
            else:
                status_str = f"❌ {status_code}"

            if not skip_logging:
                logger.info(f"🏁 {method} {path} - {status_str} - {process_time:.3f}s")
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(f"💥 {method} {path} - Exception: {e} - {process_time:.4f}s")
            raise

    app.middleware("http")(error_handler_middleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    setup_error_handlers(app)

    app.include_router(auth_router.router)
    app.include_router(reports_router.router)
    app.include_router(dashboard_router.router)
    app.include_router(waste_detection_router.router)
    app.include_router(realtime_router.router)

    storage: ImageStorage = app.state.image_storage
    storage.ensure_directory()
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=storage.upload_dir),
        name="uploads",
    )

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        return HealthResponse(message="Server is running", timestamp=datetime.now(timezone.utc))

    return app


app = create_app()
