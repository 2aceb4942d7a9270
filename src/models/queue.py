"""Queue item models for the ingestion pipeline.

Architecture note:
    A :class:`QueueItem` is the status record for one submitted image.  It
    is frozen; the item state store (src/pipeline/queue_store.py) replaces
    the stored value with ``model_copy(update={...})`` on every change, so
    any snapshot handed to a listener or an API response can never change
    underneath its reader.

    The raw image bytes are NOT part of the item.  They travel separately
    as an :class:`ImageUpload` held by the orchestrator until the item has
    been processed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.models.recipe import Recipe


class ItemStatus(str, Enum):  # noqa: UP042
    """Per-item state machine.

        queued → uploading → analyzing → storing → complete
                     └───────────┴───────────┴──→ error

    ``complete`` and ``error`` are terminal.
    """

    QUEUED = "queued"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    STORING = "storing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETE, ItemStatus.ERROR)


# Legal forward moves.  Staying in the same status is always allowed for
# non-terminal items (progress / image_url updates within a stage).
ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.QUEUED: frozenset({ItemStatus.UPLOADING}),
    ItemStatus.UPLOADING: frozenset({ItemStatus.ANALYZING, ItemStatus.ERROR}),
    ItemStatus.ANALYZING: frozenset({ItemStatus.STORING, ItemStatus.ERROR}),
    ItemStatus.STORING: frozenset({ItemStatus.COMPLETE, ItemStatus.ERROR}),
    ItemStatus.COMPLETE: frozenset(),
    ItemStatus.ERROR: frozenset(),
}


class ImageUpload(BaseModel):
    """A file-like input submitted for ingestion."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str = "application/octet-stream"
    # Excluded from dumps and reprs so logs and API payloads stay small.
    data: bytes = Field(repr=False, exclude=True)

    @property
    def size(self) -> int:
        return len(self.data)


class QueueItem(BaseModel):
    """Pipeline status of one submitted image."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    file_name: str
    status: ItemStatus = ItemStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    # Set when the upload stage succeeds; never overwritten afterwards.
    image_url: str | None = None
    # Parsed recipe after analysis, replaced by the persisted version.
    record: Recipe | None = None
    # Only set when status is ERROR.
    error: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    viewed: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
