"""Unit tests for the Airtable record store."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import make_settings
from src.models.recipe import DifficultyLevel, Ingredient, Recipe, RecipeCategory
from src.providers.record_store.airtable_provider import (
    AirtableRecordStore,
    format_ingredient,
    is_valid_base_id,
    record_to_recipe,
    recipe_to_fields,
)
from src.utils.errors import RecordStoreError

_TABLE_URL = "https://api.airtable.com/v0/appABCDEFGHIJKLMN/Recipes"


def _store(handler, **overrides) -> AirtableRecordStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AirtableRecordStore(make_settings(**overrides), client)


def _recipe() -> Recipe:
    return Recipe(
        name="Lemon Herb Chicken",
        category=RecipeCategory.MAIN_COURSE,
        flags=["Gluten-Free", "Dairy-Free"],
        ingredients=[
            Ingredient(name="Chicken thighs", quantity="4", unit="pieces"),
            Ingredient(name="Fresh thyme"),
        ],
        steps=["Marinate.", "Roast."],
        prep_minutes=15,
        cook_minutes=35,
        total_minutes=50,
        servings=4,
        difficulty=DifficultyLevel.EASY,
        description="Golden chicken.",
        image_url="https://cdn.test/recipes/dish.jpg",
        created_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),  # noqa: UP017
    )


class TestHelpers:
    @pytest.mark.parametrize(
        ("base_id", "valid"),
        [
            ("appABCDEFGHIJKLMN", True),
            ("app12345678901234567", True),
            ("appSHORT", False),
            ("tblABCDEFGHIJKLMN", False),
            ("", False),
        ],
    )
    def test_base_id(self, base_id: str, valid: bool) -> None:
        assert is_valid_base_id(base_id) is valid

    def test_format_ingredient(self) -> None:
        assert format_ingredient(Ingredient(name="Flour", quantity="200", unit="g")) == "Flour (200 g)"
        assert format_ingredient(Ingredient(name="Eggs", quantity="3")) == "Eggs (3)"
        assert format_ingredient(Ingredient(name="Basil")) == "Basil"

    def test_recipe_to_fields(self) -> None:
        fields = recipe_to_fields(_recipe())
        assert fields["Recipe Name"] == "Lemon Herb Chicken"
        assert fields["Recipe Category"] == "Main Course"
        assert fields["Dietary Flags"] == "Gluten-Free, Dairy-Free"
        assert fields["Ingredients"] == "Chicken thighs (4 pieces)\nFresh thyme"
        assert fields["Preparation Steps"] == "1. Marinate.\n2. Roast."
        assert fields["Preparation Time"] == 15
        assert fields["Servings"] == 4
        assert fields["Difficulty Level"] == "Easy"
        assert fields["Image URL"] == "https://cdn.test/recipes/dish.jpg"
        assert fields["Created"] == "2026-01-02T03:04:05+00:00"

    def test_record_reads_back_as_equivalent_recipe(self) -> None:
        original = _recipe()
        restored = record_to_recipe({"id": "rec1", "fields": recipe_to_fields(original)})
        assert restored == original.model_copy(update={"persisted_id": "rec1"})

    def test_sparse_record_uses_defaults(self) -> None:
        recipe = record_to_recipe({"id": "rec9", "fields": {"Created": "not a date"}})
        assert recipe.name == "Unnamed Recipe"
        assert recipe.category is RecipeCategory.OTHER
        assert recipe.difficulty is DifficultyLevel.MEDIUM
        assert recipe.created_at is None
        assert recipe.image_url is None
        assert recipe.persisted_id == "rec9"


class TestPersist:
    @pytest.mark.asyncio
    async def test_posts_fields_and_returns_id(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "recNEW", "fields": {}})

        stored = await _store(handler).persist(_recipe())

        assert stored.persisted_id == "recNEW"
        assert stored.name == "Lemon Herb Chicken"
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == _TABLE_URL
        assert request.headers["Authorization"] == "Bearer pat-test"
        body = json.loads(request.content)
        assert body["fields"]["Recipe Name"] == "Lemon Herb Chicken"

    @pytest.mark.asyncio
    async def test_table_name_is_url_quoted(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "rec1"})

        await _store(handler, airtable_table_name="My Recipes").persist(_recipe())
        assert captured[0].url.raw_path == b"/v0/appABCDEFGHIJKLMN/My%20Recipes"

    @pytest.mark.asyncio
    async def test_api_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                422,
                json={"error": {"type": "UNKNOWN_FIELD_NAME", "message": "Unknown field name: Servings"}},
            )

        with pytest.raises(RecordStoreError) as exc_info:
            await _store(handler).persist(_recipe())
        assert exc_info.value.message == "Airtable API error: Unknown field name: Servings"
        assert exc_info.value.provider_name == "airtable"

    @pytest.mark.asyncio
    async def test_string_error_code(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "NOT_FOUND"})

        with pytest.raises(RecordStoreError, match="NOT_FOUND"):
            await _store(handler).persist(_recipe())

    @pytest.mark.asyncio
    async def test_non_object_error_body_uses_reason_phrase(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json=["oops"])

        with pytest.raises(RecordStoreError) as exc_info:
            await _store(handler).persist(_recipe())
        assert exc_info.value.message == "Airtable API error: Internal Server Error"

    @pytest.mark.asyncio
    async def test_missing_id_raises(self) -> None:
        with pytest.raises(RecordStoreError, match="record id"):
            await _store(lambda r: httpx.Response(200, json={})).persist(_recipe())

    @pytest.mark.asyncio
    async def test_network_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(RecordStoreError, match="request failed"):
            await _store(handler).persist(_recipe())


class TestRead:
    @pytest.mark.asyncio
    async def test_list_follows_offset(self) -> None:
        pages = {
            None: {"records": [{"id": "rec1", "fields": {"Recipe Name": "Soup"}}], "offset": "itr2"},
            "itr2": {"records": [{"id": "rec2", "fields": {"Recipe Name": "Stew"}}]},
        }
        seen_offsets: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            offset = request.url.params.get("offset")
            seen_offsets.append(offset)
            return httpx.Response(200, json=pages[offset])

        recipes = await _store(handler).list_recipes()

        assert [r.name for r in recipes] == ["Soup", "Stew"]
        assert [r.persisted_id for r in recipes] == ["rec1", "rec2"]
        assert seen_offsets == [None, "itr2"]

    @pytest.mark.asyncio
    async def test_get_recipe(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == f"{_TABLE_URL}/rec42"
            return httpx.Response(200, json={"id": "rec42", "fields": {"Recipe Name": "Pie"}})

        recipe = await _store(handler).get_recipe("rec42")
        assert recipe is not None
        assert recipe.name == "Pie"

    @pytest.mark.asyncio
    async def test_get_missing_recipe(self) -> None:
        assert await _store(lambda r: httpx.Response(404)).get_recipe("recX") is None

    @pytest.mark.asyncio
    async def test_get_recipe_error(self) -> None:
        with pytest.raises(RecordStoreError):
            await _store(lambda r: httpx.Response(500)).get_recipe("recX")


class TestValidateConfig:
    @pytest.mark.asyncio
    async def test_valid(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["maxRecords"] == "1"
            return httpx.Response(200, json={"records": []})

        result = await _store(handler).validate_config()
        assert result.valid is True
        assert result.error is None

    @pytest.mark.asyncio
    async def test_bad_base_id_checked_locally(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        result = await _store(handler, airtable_base_id="base123").validate_config()
        assert result.valid is False
        assert "base ID" in result.error
        assert calls == []

    @pytest.mark.asyncio
    async def test_missing_key(self) -> None:
        result = await _store(lambda r: httpx.Response(200), airtable_api_key="").validate_config()
        assert result.valid is False
        assert result.error == "Airtable API key is missing"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_token_rejected(self, status: int) -> None:
        result = await _store(lambda r: httpx.Response(status)).validate_config()
        assert result.valid is False
        assert "data.records:write" in result.error

    @pytest.mark.asyncio
    async def test_table_not_found(self) -> None:
        result = await _store(lambda r: httpx.Response(404)).validate_config()
        assert result.error == "Airtable base or table not found"

    def test_provider_metadata(self) -> None:
        store = _store(lambda r: httpx.Response(200))
        assert store.get_provider_name() == "airtable"
        assert store.is_available() is True
        assert _store(lambda r: httpx.Response(200), airtable_table_name="").is_available() is False
