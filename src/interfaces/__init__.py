"""Public interface definitions for the pipeline's external collaborators.

Every external service is reached only through the abstract base classes
in this package.  Concrete adapters live in ``src/providers/`` and are
assembled into a :class:`src.pipeline.orchestrator.PipelineServices`
bundle in ``src/main.py`` (or by the CLI), so unit tests can inject mocks
and a storage backend can be swapped without touching the pipeline.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IStorageProvider       →  BunnyStorageProvider, InlineStorageProvider
    IVisionProvider        →  OpenAIVisionProvider
    IRecordStoreProvider   →  AirtableRecordStore
"""

from src.interfaces.record_store_provider import ConfigValidation, IRecordStoreProvider
from src.interfaces.storage_provider import IStorageProvider, UploadResult
from src.interfaces.vision_provider import IVisionProvider

__all__ = [
    "ConfigValidation",
    "IRecordStoreProvider",
    "IStorageProvider",
    "IVisionProvider",
    "UploadResult",
]
