"""Ordered store of per-item pipeline state with listener notification.

The store is the single source of truth for what the queue looks like.
The orchestrator is its only writer; presentation layers (the WebSocket
handler, the CLI progress printer) read snapshots and register listeners
that are called with every updated :class:`QueueItem`.

# ─── HOW UPDATES ARE CHECKED ───────────────────────────────────────────
#
#   orchestrator ──update(id, status=..., progress=...)──→ ItemStateStore
#                                                              │
#                          validate against the current item ──┤
#                          (transition table, progress, url)   │
#                                                              ▼
#                                  replace item ──→ notify listeners
#
#   - Items are frozen; every change stores a new model_copy().
#   - A rejected update raises PipelineError and leaves the item untouched.
#   - Listener errors are caught and logged so a dropped WebSocket can
#     never stall the pipeline.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from src.models.queue import ALLOWED_TRANSITIONS, ItemStatus, QueueItem
from src.utils.errors import PipelineError
from src.utils.logging import get_logger

_UPDATABLE_FIELDS = frozenset({"status", "progress", "image_url", "record", "error"})


class ItemStateStore:
    """FIFO-ordered collection of :class:`QueueItem` records keyed by id."""

    def __init__(self) -> None:
        # dicts keep insertion order, which is submission order.
        self._items: dict[str, QueueItem] = {}
        self._listeners: list[Callable] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, item_id: str) -> QueueItem | None:
        return self._items.get(item_id)

    def list_items(self) -> list[QueueItem]:
        """Return a snapshot of every item in submission order."""
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def latest_unviewed_completion(self) -> QueueItem | None:
        """Return the most recently completed item whose recipe has not been shown yet.

        Items complete in submission order, so the last match in store
        order is the most recent one.
        """
        for item in reversed(self._items.values()):
            if item.status is ItemStatus.COMPLETE and item.record is not None and not item.viewed:
                return item
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_items(self, items: Iterable[QueueItem]) -> list[QueueItem]:
        """Append new ``queued`` items in the given order."""
        added: list[QueueItem] = []
        for item in items:
            if item.id in self._items:
                raise PipelineError(f"Queue item {item.id} already exists")
            if item.status is not ItemStatus.QUEUED:
                raise PipelineError(f"New queue items must be queued, got {item.status.value}")
            self._items[item.id] = item
            added.append(item)
        self._logger.debug("queue_items_added", count=len(added), total=len(self._items))
        return added

    async def update(self, item_id: str, **changes: Any) -> QueueItem:
        """Apply *changes* to one item and notify listeners.

        Accepted keys: ``status``, ``progress``, ``image_url``, ``record``,
        ``error``.

        Raises
        ------
        PipelineError
            If the item is unknown or terminal, the status move is not in
            the transition table, progress would decrease or leave 0-100,
            ``image_url`` is already set, or a terminal item would end up
            without exactly one of ``record`` / ``error``.
        """
        current = self._items.get(item_id)
        if current is None:
            raise PipelineError(f"Unknown queue item {item_id}")

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise PipelineError(f"Cannot update queue item fields: {', '.join(sorted(unknown))}")

        updated = current.model_copy(update=changes)
        self._check_update(current, updated)

        self._items[item_id] = updated
        self._logger.debug(
            "queue_item_updated",
            item_id=item_id,
            status=updated.status.value,
            progress=updated.progress,
        )
        await self._notify_listeners(updated)
        return updated

    async def mark_viewed(self, item_id: str) -> QueueItem | None:
        """Flag a completed item as shown; returns ``None`` for unknown ids."""
        current = self._items.get(item_id)
        if current is None:
            return None
        if current.viewed:
            return current
        updated = current.model_copy(update={"viewed": True})
        self._items[item_id] = updated
        await self._notify_listeners(updated)
        return updated

    def clear_terminal(self) -> int:
        """Drop every ``complete`` / ``error`` item; in-flight items keep their order."""
        before = len(self._items)
        self._items = {
            item_id: item for item_id, item in self._items.items() if not item.is_terminal
        }
        removed = before - len(self._items)
        self._logger.info("queue_cleared", removed=removed, remaining=len(self._items))
        return removed

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, callback: Callable) -> None:
        """Register a sync or async callable receiving each updated :class:`QueueItem`."""
        if callback not in self._listeners:
            self._listeners.append(callback)
            self._logger.debug("listener_registered", total_listeners=len(self._listeners))

    def unregister_listener(self, callback: Callable) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)
            self._logger.debug("listener_unregistered", remaining_listeners=len(self._listeners))

    async def _notify_listeners(self, item: QueueItem) -> None:
        # Copy: a listener may unregister itself while being called.
        for callback in list(self._listeners):
            try:
                result = callback(item)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    item_id=item.id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    @staticmethod
    def _check_update(current: QueueItem, updated: QueueItem) -> None:
        if current.is_terminal:
            raise PipelineError(
                f"Queue item {current.id} is already {current.status.value}"
            )

        if updated.status is not current.status and (
            updated.status not in ALLOWED_TRANSITIONS[current.status]
        ):
            raise PipelineError(
                f"Illegal transition {current.status.value} -> {updated.status.value}"
            )

        if not 0 <= updated.progress <= 100:
            raise PipelineError(f"Progress must be within 0-100, got {updated.progress}")
        if updated.progress < current.progress:
            raise PipelineError(
                f"Progress cannot decrease ({current.progress} -> {updated.progress})"
            )

        if current.image_url is not None and updated.image_url != current.image_url:
            raise PipelineError(f"Image URL of queue item {current.id} is already set")

        if updated.status is ItemStatus.COMPLETE and (
            updated.record is None or updated.error is not None
        ):
            raise PipelineError("A completed item needs a record and no error")
        if updated.status is ItemStatus.ERROR and (
            not updated.error or updated.record is not None
        ):
            raise PipelineError("A failed item needs an error message and no record")
