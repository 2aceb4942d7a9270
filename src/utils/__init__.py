"""Utility modules for recipeSnap.

- **errors** -- Exception hierarchy rooted at RecipeSnapError; configuration
  and transport failures are separate branches so the orchestrator can
  report them distinctly.
- **concurrency** -- the shared TaskSerializer that spaces and orders every
  outbound provider call.
- **logging** -- structlog setup with console output in development and
  JSON in production.
- **image_utils** (not re-exported here) -- Pillow-based content sniffing
  and downscaling used at ingress.
"""

from src.utils.concurrency import TaskSerializer
from src.utils.errors import (
    ConfigurationError,
    PipelineError,
    RecipeSnapError,
    RecordStoreError,
    StorageError,
    TaskCancelledError,
    TransportError,
    VisionError,
)
from src.utils.logging import configure_logging, get_logger, item_log_context

__all__ = [
    "ConfigurationError",
    "PipelineError",
    "RecipeSnapError",
    "RecordStoreError",
    "StorageError",
    "TaskCancelledError",
    "TaskSerializer",
    "TransportError",
    "VisionError",
    "configure_logging",
    "get_logger",
    "item_log_context",
]
