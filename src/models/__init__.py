"""recipeSnap domain models - re-exports all public model classes.

The models are organized by domain concern:
    - recipe.py - the structured recipe parsed from a vision response
    - queue.py  - per-image queue items, their status machine, and uploads
"""

from __future__ import annotations

from src.models.queue import ALLOWED_TRANSITIONS, ImageUpload, ItemStatus, QueueItem
from src.models.recipe import (
    UNNAMED_RECIPE,
    DifficultyLevel,
    Ingredient,
    Recipe,
    RecipeCategory,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DifficultyLevel",
    "ImageUpload",
    "Ingredient",
    "ItemStatus",
    "QueueItem",
    "Recipe",
    "RecipeCategory",
    "UNNAMED_RECIPE",
]
