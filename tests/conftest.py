"""Shared pytest fixtures for the recipeSnap test suite."""

from __future__ import annotations

import io
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from src.config.settings import Settings
from src.interfaces.record_store_provider import ConfigValidation, IRecordStoreProvider
from src.interfaces.storage_provider import IStorageProvider, UploadResult
from src.interfaces.vision_provider import IVisionProvider
from src.models.queue import ImageUpload
from src.models.recipe import Recipe
from src.pipeline.orchestrator import PipelineServices

SAMPLE_RECIPE_TEXT = """Recipe Name: Lemon Herb Chicken
Recipe Category: Main Course
Dietary Flags: Gluten-Free, Dairy-Free

Ingredients List:
- Chicken thighs (4, pieces)
- Lemon (1 whole)
- Fresh thyme

Preparation Steps:
1. Marinate the chicken with lemon and thyme.
2. Roast at 200C for 35 minutes.

Preparation Time: 15 minutes
Cook Time: 35
Total Time: 50
Servings: 4
Difficulty Level: Easy

Short Visual Description: Golden chicken thighs with charred lemon halves.
"""


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def make_image_bytes(
    width: int = 64,
    height: int = 48,
    fmt: str = "JPEG",
    color: tuple[int, int, int] = (200, 120, 40),
) -> bytes:
    """Create a small solid-colour image in memory."""
    img = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_upload(name: str = "dish.jpg") -> ImageUpload:
    return ImageUpload(filename=name, content_type="image/jpeg", data=make_image_bytes())


@pytest.fixture
def sample_recipe_text() -> str:
    return SAMPLE_RECIPE_TEXT


@pytest.fixture
def image_bytes() -> bytes:
    return make_image_bytes()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from any local .env file."""
    defaults: dict[str, Any] = {
        "storage_backend": "bunny",
        "bunny_storage_access_key": "bunny-key",
        "bunny_storage_name": "recipe-zone",
        "bunny_storage_region": "de",
        "bunny_pull_zone_url": "",
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_vision_model": "gpt-4o",
        "airtable_api_key": "pat-test",
        "airtable_base_id": "appABCDEFGHIJKLMN",
        "airtable_table_name": "Recipes",
        "rate_limit_delay_ms": 0,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


def make_mock_storage() -> MagicMock:
    storage = MagicMock(spec=IStorageProvider)
    storage.upload = AsyncMock(
        side_effect=lambda data, content_type, name: UploadResult(
            success=True, url=f"https://cdn.test/recipes/{name}"
        )
    )
    storage.test_connection = AsyncMock(return_value=True)
    storage.get_provider_name.return_value = "mock-storage"
    storage.is_available.return_value = True
    return storage


def make_mock_vision(text: str = SAMPLE_RECIPE_TEXT) -> MagicMock:
    vision = MagicMock(spec=IVisionProvider)
    vision.analyze = AsyncMock(return_value=text)
    vision.validate_credentials = AsyncMock(return_value=True)
    vision.get_provider_name.return_value = "mock-vision"
    vision.is_available.return_value = True
    return vision


def make_mock_record_store() -> MagicMock:
    record_store = MagicMock(spec=IRecordStoreProvider)
    counter = {"n": 0}

    async def _persist(recipe: Recipe) -> Recipe:
        counter["n"] += 1
        return recipe.model_copy(update={"persisted_id": f"rec{counter['n']:03d}"})

    record_store.persist = AsyncMock(side_effect=_persist)
    record_store.validate_config = AsyncMock(return_value=ConfigValidation(valid=True))
    record_store.list_recipes = AsyncMock(return_value=[])
    record_store.get_recipe = AsyncMock(return_value=None)
    record_store.get_provider_name.return_value = "mock-records"
    record_store.is_available.return_value = True
    return record_store


@pytest.fixture
def mock_storage() -> MagicMock:
    return make_mock_storage()


@pytest.fixture
def mock_vision() -> MagicMock:
    return make_mock_vision()


@pytest.fixture
def mock_record_store() -> MagicMock:
    return make_mock_record_store()


@pytest.fixture
def mock_services(
    mock_storage: MagicMock,
    mock_vision: MagicMock,
    mock_record_store: MagicMock,
) -> PipelineServices:
    return PipelineServices(
        storage=mock_storage,
        vision=mock_vision,
        record_store=mock_record_store,
    )
