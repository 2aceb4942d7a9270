"""Recipe models produced by the vision analysis stage.

Defines the Pydantic v2 models for a parsed recipe and its ingredients.
All models are frozen: the extractor builds a :class:`Recipe` once from a
single model response, and every later stage (image URL merge,
persistence) produces a new value via ``model_copy(update={...})``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

UNNAMED_RECIPE = "Unnamed Recipe"


class RecipeCategory(str, Enum):  # noqa: UP042
    """Fixed set of categories the vision prompt asks the model to choose from."""

    APPETIZER = "Appetizer"
    MAIN_COURSE = "Main Course"
    SIDE_DISH = "Side Dish"
    DESSERT = "Dessert"
    BEVERAGE = "Beverage"
    SNACK = "Snack"
    SALAD = "Salad"
    BREAKFAST = "Breakfast"
    OTHER = "Other"  # catch-all for anything unrecognised


class DifficultyLevel(str, Enum):  # noqa: UP042
    """How demanding the recipe is to prepare."""

    EASY = "Easy"
    MEDIUM = "Medium"
    ADVANCED = "Advanced"


class Ingredient(BaseModel):
    """One line of the ingredient list, e.g. ``Flour (200, g)``.

    ``quantity`` and ``unit`` are kept as free text: models write "1/2",
    "a pinch", "2-3" and so on, none of which survive numeric parsing.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    quantity: str | None = None
    unit: str | None = None


class Recipe(BaseModel):
    """A structured recipe parsed from one vision-model response.

    ``image_url``, ``persisted_id`` and ``created_at`` are never set by the
    parser; the orchestrator merges the first two stages' outputs in and the
    record store assigns ``persisted_id``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default=UNNAMED_RECIPE, min_length=1)
    category: RecipeCategory = RecipeCategory.OTHER
    # Dietary flags such as "Gluten-Free"; de-duplicated, order preserved.
    flags: list[str] = Field(default_factory=list)
    ingredients: list[Ingredient] = Field(default_factory=list)
    # Instruction text only -- numbering is implied by list position.
    steps: list[str] = Field(default_factory=list)
    prep_minutes: int = Field(default=0, ge=0)
    cook_minutes: int = Field(default=0, ge=0)
    total_minutes: int = Field(default=0, ge=0)
    servings: int = Field(default=0, ge=0)
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    description: str = ""

    image_url: str | None = None
    persisted_id: str | None = None
    created_at: datetime | None = None
