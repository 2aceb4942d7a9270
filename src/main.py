"""recipeSnap FastAPI application entry point.

Wires the storage, vision and record-store providers into the ingestion
pipeline, loads configuration from ``.env`` and ``config/config.yaml``,
configures structured logging, and mounts the API routes and the queue
WebSocket.

Also exposes ``build_services`` / ``build_pipeline`` for the CLI, which
runs the same pipeline without the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_queue
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.storage_provider import IStorageProvider
from src.pipeline.orchestrator import PipelineServices, RecipeIngestionPipeline
from src.providers.record_store.airtable_provider import AirtableRecordStore
from src.providers.storage.bunny_provider import BunnyStorageProvider
from src.providers.storage.inline_provider import InlineStorageProvider
from src.providers.vision.openai_vision_provider import OpenAIVisionProvider
from src.utils.concurrency import TaskSerializer
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component construction
# ---------------------------------------------------------------------------


def _build_storage(app_settings: Settings, http_client: httpx.AsyncClient) -> IStorageProvider:
    if app_settings.uses_inline_storage:
        return InlineStorageProvider()
    return BunnyStorageProvider(settings=app_settings, http_client=http_client)


def build_services(app_settings: Settings, http_client: httpx.AsyncClient) -> PipelineServices:
    """Construct the three collaborators from settings.

    Providers are always constructed; ones lacking credentials report
    ``is_available() == False`` and keep the pipeline in the
    "not configured" state until settings are fixed.
    """
    return PipelineServices(
        storage=_build_storage(app_settings, http_client),
        vision=OpenAIVisionProvider(settings=app_settings),
        record_store=AirtableRecordStore(settings=app_settings, http_client=http_client),
    )


def build_pipeline(
    app_settings: Settings,
    http_client: httpx.AsyncClient,
) -> RecipeIngestionPipeline:
    """Build an ingestion pipeline with its own serializer and state store."""
    return RecipeIngestionPipeline(
        services=build_services(app_settings, http_client),
        serializer=TaskSerializer(delay_ms=app_settings.rate_limit_delay_ms),
    )


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Create the shared HTTP client and pipeline on startup, close them on shutdown."""
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    pipeline = build_pipeline(settings, http_client)

    application.state.settings = settings
    application.state.config = config
    application.state.http_client = http_client
    application.state.pipeline = pipeline

    missing = settings.missing_credentials()
    _logger.info(
        "app_startup",
        version=config.get("app", {}).get("version", "0.1.0"),
        environment=settings.app_env,
        rate_limit_delay_ms=pipeline.serializer.delay_ms,
        configured=not missing,
        missing=missing,
        **pipeline.services.provider_names(),
    )

    yield

    if pipeline.is_processing:
        _logger.warning("app_shutdown_with_pending_items", pending=len(pipeline.store))
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="recipeSnap API",
        version="0.1.0",
        description=(
            "Upload photos of plated dishes; each one is stored, analysed by a "
            "vision model into a structured recipe, and saved to Airtable."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/queue")
    async def ws_queue(websocket: WebSocket) -> None:
        await websocket_queue(websocket)

    return application


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
