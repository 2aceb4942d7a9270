"""Pydantic v2 request and response schemas for the recipeSnap API.

Queue items and recipes are returned as the domain models themselves
(:class:`QueueItem` excludes nothing sensitive and is already frozen);
the schemas here only wrap them with listing metadata or describe
settings and health payloads.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.models.queue import QueueItem


class RejectedFile(BaseModel):
    file_name: str
    reason: str


class BatchSubmitResponse(BaseModel):
    """Items created for one uploaded batch, in submission order."""

    items: list[QueueItem]
    # Files dropped at ingress (unsupported type, too large, empty).
    rejected: list[RejectedFile] = Field(default_factory=list)


class QueueResponse(BaseModel):
    """Snapshot of the whole queue."""

    items: list[QueueItem]
    is_processing: bool
    pending_calls: int = 0


class ClearQueueResponse(BaseModel):
    removed: int


class NotificationResponse(BaseModel):
    """The most recent unviewed completion, if any."""

    item: QueueItem | None = None


class RateLimitSettings(BaseModel):
    """Minimum spacing between outbound provider calls."""

    delay_ms: int = Field(..., ge=0, le=600_000)


class ServiceCheckResult(BaseModel):
    service: str
    provider: str | None = None
    ok: bool
    error: str | None = None


class ServiceCheckResponse(BaseModel):
    all_ok: bool
    results: list[ServiceCheckResult]


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    configured: bool
    missing: list[str] = Field(default_factory=list)
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None

