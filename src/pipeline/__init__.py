"""Pipeline orchestration components for the recipeSnap ingestion queue."""

from src.pipeline.orchestrator import PipelineServices, RecipeIngestionPipeline
from src.pipeline.queue_store import ItemStateStore

__all__ = [
    "ItemStateStore",
    "PipelineServices",
    "RecipeIngestionPipeline",
]
