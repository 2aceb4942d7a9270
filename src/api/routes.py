"""FastAPI routes for the recipeSnap ingestion queue.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/recipes/batch                 POST    Upload images → queue items
# /api/v1/recipes                       GET     List stored recipes
# /api/v1/recipes/{record_id}           GET     Fetch one stored recipe
# /api/v1/queue                         GET     Queue snapshot
# /api/v1/queue/completed               DELETE  Clear complete/error items
# /api/v1/queue/notifications/next      GET     Latest unviewed completion
# /api/v1/queue/{item_id}/viewed        POST    Mark a completion as shown
# /api/v1/settings/rate-limit           GET/PUT Read / change call spacing
# /api/v1/services/check                POST    Probe storage, vision, records
# /api/v1/health                        GET     Health + configuration state
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile

from src.api.schemas import (
    BatchSubmitResponse,
    ClearQueueResponse,
    HealthResponse,
    NotificationResponse,
    QueueResponse,
    RateLimitSettings,
    RejectedFile,
    ServiceCheckResponse,
    ServiceCheckResult,
)
from src.config.loader import upload_limits
from src.models.queue import ImageUpload, QueueItem
from src.models.recipe import Recipe
from src.pipeline.orchestrator import RecipeIngestionPipeline
from src.utils.errors import ConfigurationError
from src.utils.image_utils import detect_content_type, downscale_if_oversized
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> RecipeIngestionPipeline:
    return request.app.state.pipeline


def _get_config(request: Request) -> dict[str, Any]:
    return getattr(request.app.state, "config", {}) or {}


PipelineDep = Annotated[RecipeIngestionPipeline, Depends(_get_pipeline)]
ConfigDep = Annotated[dict[str, Any], Depends(_get_config)]


async def _read_limited(file: UploadFile, max_size: int) -> bytes | None:
    """Read *file* in chunks; ``None`` once it grows past *max_size*."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------


@router.post(
    "/recipes/batch",
    response_model=BatchSubmitResponse,
    summary="Upload dish photos for ingestion",
)
async def submit_batch(
    files: list[UploadFile],
    pipeline: PipelineDep,
    config: ConfigDep,
) -> BatchSubmitResponse:
    """Queue every valid image; invalid files are reported, not queued."""
    missing = pipeline.services.missing()
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Configuration is incomplete; missing: {', '.join(missing)}",
        )

    max_size, max_dim = upload_limits(config)
    uploads: list[ImageUpload] = []
    rejected: list[RejectedFile] = []

    for file in files:
        name = file.filename or "unknown"
        data = await _read_limited(file, max_size)
        if data is None:
            rejected.append(
                RejectedFile(
                    file_name=name,
                    reason=f"File too large: >{max_size // (1024 * 1024)} MB",
                )
            )
            continue
        if not data:
            rejected.append(RejectedFile(file_name=name, reason="File is empty"))
            continue

        # Pillow decoding is CPU-bound; keep it off the event loop.
        content_type = await asyncio.to_thread(detect_content_type, data)
        if content_type is None:
            rejected.append(
                RejectedFile(
                    file_name=name,
                    reason="Unsupported file type; allowed: JPEG, PNG, WEBP, GIF",
                )
            )
            continue

        data, resized_type = await asyncio.to_thread(downscale_if_oversized, data, max_dim)
        uploads.append(
            ImageUpload(filename=name, content_type=resized_type or content_type, data=data)
        )

    if not uploads:
        raise HTTPException(
            status_code=400,
            detail="No supported images in upload: "
            + "; ".join(f"{r.file_name}: {r.reason}" for r in rejected),
        )

    try:
        items = await pipeline.submit_batch(uploads)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc

    _logger.info("batch_accepted", accepted=len(items), rejected=len(rejected))
    return BatchSubmitResponse(items=items, rejected=rejected)


@router.get("/recipes", response_model=list[Recipe], summary="List stored recipes")
async def list_recipes(pipeline: PipelineDep) -> list[Recipe]:
    record_store = pipeline.services.record_store
    if record_store is None:
        raise HTTPException(status_code=400, detail="Record store is not configured")
    return await pipeline.serializer.run(record_store.list_recipes)


@router.get(
    "/recipes/{record_id}",
    response_model=Recipe,
    summary="Fetch one stored recipe",
)
async def get_recipe(record_id: str, pipeline: PipelineDep) -> Recipe:
    record_store = pipeline.services.record_store
    if record_store is None:
        raise HTTPException(status_code=400, detail="Record store is not configured")
    recipe = await pipeline.serializer.run(lambda: record_store.get_recipe(record_id))
    if recipe is None:
        raise HTTPException(status_code=404, detail=f"Recipe {record_id} not found")
    return recipe


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


@router.get("/queue", response_model=QueueResponse, summary="Queue snapshot")
async def get_queue(pipeline: PipelineDep) -> QueueResponse:
    return QueueResponse(
        items=pipeline.store.list_items(),
        is_processing=pipeline.is_processing,
        pending_calls=pipeline.serializer.pending,
    )


@router.delete(
    "/queue/completed",
    response_model=ClearQueueResponse,
    summary="Remove complete and failed items",
)
async def clear_completed(pipeline: PipelineDep) -> ClearQueueResponse:
    return ClearQueueResponse(removed=pipeline.clear_completed())


@router.get(
    "/queue/notifications/next",
    response_model=NotificationResponse,
    summary="Most recent completion not yet shown",
)
async def next_notification(pipeline: PipelineDep) -> NotificationResponse:
    return NotificationResponse(item=pipeline.store.latest_unviewed_completion())


@router.post(
    "/queue/{item_id}/viewed",
    response_model=QueueItem,
    summary="Mark a completed item as shown",
)
async def mark_viewed(item_id: str, pipeline: PipelineDep) -> QueueItem:
    item = await pipeline.store.mark_viewed(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Queue item {item_id} not found")
    return item


# ---------------------------------------------------------------------------
# Settings & services
# ---------------------------------------------------------------------------


@router.get("/settings/rate-limit", response_model=RateLimitSettings)
async def get_rate_limit(pipeline: PipelineDep) -> RateLimitSettings:
    return RateLimitSettings(delay_ms=pipeline.serializer.delay_ms)


@router.put("/settings/rate-limit", response_model=RateLimitSettings)
async def set_rate_limit(body: RateLimitSettings, pipeline: PipelineDep) -> RateLimitSettings:
    pipeline.set_delay(body.delay_ms)
    return RateLimitSettings(delay_ms=pipeline.serializer.delay_ms)


@router.post(
    "/services/check",
    response_model=ServiceCheckResponse,
    summary="Probe every configured collaborator",
)
async def check_services(pipeline: PipelineDep) -> ServiceCheckResponse:
    checks = await pipeline.check_services()
    results = [
        ServiceCheckResult(
            service=check.service, provider=check.provider, ok=check.ok, error=check.error
        )
        for check in checks
    ]
    return ServiceCheckResponse(all_ok=all(r.ok for r in results), results=results)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(pipeline: PipelineDep, config: ConfigDep) -> HealthResponse:
    """Report whether the pipeline can accept batches; never calls out."""
    missing = pipeline.services.missing()
    return HealthResponse(
        status="healthy" if not missing else "unconfigured",
        version=str(config.get("app", {}).get("version", "0.1.0")),
        configured=not missing,
        missing=missing,
        providers=pipeline.services.provider_names(),
    )
