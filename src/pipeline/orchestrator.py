"""Orchestrator for the three-stage recipe ingestion pipeline.

Every submitted image becomes one :class:`QueueItem` and goes through the
same stages, strictly in submission order:

    upload (storage) → analyze (vision model + extractor) → store (record store)

ARCHITECTURE NOTE:
    Batches are drained by a single worker task looping over a deque of
    item ids.  Submitting while the worker is running only appends to the
    deque, so the global order of outbound calls always equals submission
    order.

    Each outbound call is funnelled through the shared
    :class:`TaskSerializer`, which spaces calls by the configured rate
    limit delay.  The orchestrator itself never sleeps.

    Every state change goes through :class:`ItemStateStore`, which checks
    the transition table and notifies listeners (WebSocket, CLI).

    A failure in any stage moves that one item to ``error`` and the worker
    continues with the next item.  Nothing is retried; re-submitting the
    file creates a new item.

    Progress checkpoints per item:
        10 uploading, 40 image stored, 50 analyzing, 70 recipe parsed,
        80 storing, 100 complete or error
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, TypeVar

import structlog

from src.interfaces.record_store_provider import IRecordStoreProvider
from src.interfaces.storage_provider import IStorageProvider
from src.interfaces.vision_provider import IVisionProvider
from src.models.queue import ImageUpload, ItemStatus, QueueItem
from src.models.recipe import Recipe
from src.pipeline.queue_store import ItemStateStore
from src.services.recipe_extractor import extract_recipe
from src.utils.concurrency import TaskSerializer
from src.utils.errors import (
    ConfigurationError,
    PipelineError,
    RecipeSnapError,
    StorageError,
)
from src.utils.logging import get_logger, item_log_context

_T = TypeVar("_T")

PROGRESS_UPLOADING = 10
PROGRESS_UPLOADED = 40
PROGRESS_ANALYZING = 50
PROGRESS_PARSED = 70
PROGRESS_STORING = 80
PROGRESS_DONE = 100


@dataclass(frozen=True)
class PipelineServices:
    """The three external collaborators, any of which may be unset."""

    storage: IStorageProvider | None = None
    vision: IVisionProvider | None = None
    record_store: IRecordStoreProvider | None = None

    def missing(self) -> list[str]:
        """Names of collaborators that are unset or report themselves unavailable."""
        bound = {
            "storage": self.storage,
            "vision": self.vision,
            "record_store": self.record_store,
        }
        return [
            name for name, provider in bound.items()
            if provider is None or not provider.is_available()
        ]

    @property
    def is_configured(self) -> bool:
        return not self.missing()

    def provider_names(self) -> dict[str, str | None]:
        return {
            "storage": self.storage.get_provider_name() if self.storage else None,
            "vision": self.vision.get_provider_name() if self.vision else None,
            "record_store": (
                self.record_store.get_provider_name() if self.record_store else None
            ),
        }


@dataclass(frozen=True)
class ServiceCheck:
    """Outcome of one collaborator probe from :meth:`RecipeIngestionPipeline.check_services`."""

    service: str
    provider: str | None
    ok: bool
    error: str | None = None


class RecipeIngestionPipeline:
    """Drains submitted images through upload, analysis and persistence.

    Parameters
    ----------
    services:
        Collaborator bundle.  Read when each item is dequeued, so
        :meth:`reconfigure` affects only items that have not started.
    serializer:
        Shared outbound-call executor.  A default one with the standard
        delay is created when omitted.
    store:
        Item state store observed by the presentation layers.
    extractor:
        Text → :class:`Recipe` parser, injectable for tests.
    """

    def __init__(
        self,
        services: PipelineServices,
        serializer: TaskSerializer | None = None,
        store: ItemStateStore | None = None,
        extractor: Callable[[str], Recipe] = extract_recipe,
    ) -> None:
        self._services = services
        self._serializer = serializer or TaskSerializer()
        self._store = store or ItemStateStore()
        self._extractor = extractor
        self._pending: deque[str] = deque()
        # Image bytes are held only until their item has been processed.
        self._files: dict[str, ImageUpload] = {}
        self._worker: asyncio.Task[None] | None = None
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def store(self) -> ItemStateStore:
        return self._store

    @property
    def serializer(self) -> TaskSerializer:
        return self._serializer

    @property
    def services(self) -> PipelineServices:
        return self._services

    @property
    def is_processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit_batch(
        self,
        files: Sequence[ImageUpload],
        config_ready: bool | None = None,
    ) -> list[QueueItem]:
        """Queue one item per file and make sure the drain worker is running.

        ``config_ready`` lets the caller veto the batch; when omitted, the
        batch is accepted only if every collaborator is bound and available.

        Raises
        ------
        ConfigurationError
            If configuration is not ready.  No items are created.
        """
        if config_ready is None:
            missing = self._services.missing()
            if missing:
                raise ConfigurationError(
                    f"Configuration is incomplete; missing: {', '.join(missing)}"
                )
        elif not config_ready:
            raise ConfigurationError("Configuration is incomplete")

        items = [QueueItem(file_name=upload.filename) for upload in files]
        self._store.add_items(items)
        for item, upload in zip(items, files):
            self._files[item.id] = upload
            self._pending.append(item.id)

        self._logger.info(
            "batch_submitted",
            count=len(items),
            pending=len(self._pending),
            worker_running=self.is_processing,
        )

        if items and not self.is_processing:
            self._worker = asyncio.get_running_loop().create_task(self._drain())
        return items

    async def join(self) -> None:
        """Wait until every submitted item has reached a terminal state."""
        while self._worker is not None and not self._worker.done():
            await self._worker

    def reconfigure(self, services: PipelineServices) -> None:
        """Swap collaborators for items that have not been dequeued yet."""
        self._services = services
        self._logger.info("pipeline_reconfigured", **services.provider_names())

    def set_delay(self, delay_ms: int) -> None:
        self._serializer.set_delay(delay_ms)

    def clear_completed(self) -> int:
        return self._store.clear_terminal()

    async def check_services(self) -> list[ServiceCheck]:
        """Probe every bound collaborator through the serializer.

        Storage runs ``test_connection``, the record store
        ``validate_config`` and the vision provider
        ``validate_credentials``.  Unbound collaborators are reported as
        failed without any call being made.
        """
        services = self._services
        checks: list[ServiceCheck] = []

        if services.storage is None:
            checks.append(ServiceCheck("storage", None, ok=False, error="Not configured"))
        else:
            ok, error = await self._probe(services.storage.test_connection)
            checks.append(
                ServiceCheck(
                    "storage",
                    services.storage.get_provider_name(),
                    ok=bool(ok),
                    error=error or (None if ok else "Connection test failed"),
                )
            )

        if services.record_store is None:
            checks.append(ServiceCheck("record_store", None, ok=False, error="Not configured"))
        else:
            validation, error = await self._probe(services.record_store.validate_config)
            ok = bool(validation and validation.valid)
            checks.append(
                ServiceCheck(
                    "record_store",
                    services.record_store.get_provider_name(),
                    ok=ok,
                    error=error or (None if ok else getattr(validation, "error", None)),
                )
            )

        if services.vision is None:
            checks.append(ServiceCheck("vision", None, ok=False, error="Not configured"))
        else:
            ok, error = await self._probe(services.vision.validate_credentials)
            checks.append(
                ServiceCheck(
                    "vision",
                    services.vision.get_provider_name(),
                    ok=bool(ok),
                    error=error or (None if ok else "Credentials were rejected"),
                )
            )

        self._logger.info(
            "services_checked",
            results={check.service: check.ok for check in checks},
        )
        return checks

    # ------------------------------------------------------------------
    # Drain worker
    # ------------------------------------------------------------------

    async def _drain(self) -> None:
        self._logger.debug("drain_worker_started", pending=len(self._pending))
        while self._pending:
            item_id = self._pending.popleft()
            upload = self._files.pop(item_id, None)
            if upload is None or self._store.get(item_id) is None:
                continue
            await self._process_item(item_id, upload, self._services)
        self._logger.debug("drain_worker_idle")

    async def _process_item(
        self,
        item_id: str,
        upload: ImageUpload,
        services: PipelineServices,
    ) -> None:
        with item_log_context(item_id, upload.filename):
            self._logger.info("item_processing_start", bytes=upload.size)
            try:
                await self._run_stages(item_id, upload, services)
            except RecipeSnapError as exc:
                await self._fail(item_id, str(exc))
            except Exception as exc:
                await self._fail(item_id, f"Unexpected error: {exc}")

    async def _run_stages(
        self,
        item_id: str,
        upload: ImageUpload,
        services: PipelineServices,
    ) -> None:
        # Stage 1: upload
        await self._store.update(
            item_id, status=ItemStatus.UPLOADING, progress=PROGRESS_UPLOADING
        )
        storage = self._require(services.storage, "Storage")
        result = await self._serializer.run(
            lambda: storage.upload(upload.data, upload.content_type, upload.filename)
        )
        if not result.success or not result.url:
            raise StorageError(
                message=result.error or "Upload failed",
                provider_name=storage.get_provider_name(),
            )
        image_url = result.url
        await self._store.update(item_id, image_url=image_url, progress=PROGRESS_UPLOADED)
        self._logger.info("item_uploaded", provider=storage.get_provider_name())

        # Stage 2: analyze
        await self._store.update(
            item_id, status=ItemStatus.ANALYZING, progress=PROGRESS_ANALYZING
        )
        vision = self._require(services.vision, "Vision")
        text = await self._serializer.run(lambda: vision.analyze(image_url))
        recipe = self._extractor(text).model_copy(
            update={
                "image_url": image_url,
                "created_at": datetime.now(tz=timezone.utc),  # noqa: UP017
            }
        )
        await self._store.update(item_id, record=recipe, progress=PROGRESS_PARSED)
        self._logger.info("item_analyzed", recipe=recipe.name, category=recipe.category.value)

        # Stage 3: persist
        await self._store.update(item_id, status=ItemStatus.STORING, progress=PROGRESS_STORING)
        record_store = self._require(services.record_store, "Record store")
        stored = await self._serializer.run(lambda: record_store.persist(recipe))
        await self._store.update(
            item_id, status=ItemStatus.COMPLETE, progress=PROGRESS_DONE, record=stored
        )
        self._logger.info("item_complete", persisted_id=stored.persisted_id)

    async def _fail(self, item_id: str, message: str) -> None:
        self._logger.warning("item_failed", error=message)
        try:
            await self._store.update(
                item_id,
                status=ItemStatus.ERROR,
                progress=PROGRESS_DONE,
                error=message,
                record=None,
            )
        except PipelineError as exc:
            # The item is already terminal or was never moved out of queued.
            self._logger.error("item_fail_rejected", error=str(exc), original_error=message)

    async def _probe(
        self, probe: Callable[[], Awaitable[_T]]
    ) -> tuple[_T | None, str | None]:
        try:
            return await self._serializer.run(probe), None
        except Exception as exc:
            return None, str(exc)

    @staticmethod
    def _require(provider: _T | None, label: str) -> _T:
        if provider is None:
            raise ConfigurationError(f"{label} service is not configured")
        return provider
