"""Airtable record store implementing IRecordStoreProvider.

Each recipe becomes one row in a user-owned Airtable table.  List-valued
fields are flattened to text on the way in (one ingredient or numbered
step per line) and parsed back with the same helpers the vision-text
extractor uses, so a row written by :meth:`persist` reads back as an
equivalent :class:`Recipe`.

Expected columns::

    Recipe Name, Recipe Category, Dietary Flags, Ingredients,
    Preparation Steps, Preparation Time, Cook Time, Total Time, Servings,
    Difficulty Level, Short Visual Description, Image URL, Created
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from src.config.settings import Settings
from src.interfaces.record_store_provider import ConfigValidation, IRecordStoreProvider
from src.models.recipe import UNNAMED_RECIPE, Ingredient, Recipe
from src.services.recipe_extractor import (
    parse_category,
    parse_difficulty,
    parse_flags,
    parse_ingredient_line,
    parse_int,
    parse_step_lines,
)
from src.utils.errors import RecordStoreError
from src.utils.logging import get_logger

_API_ROOT = "https://api.airtable.com/v0"
_BASE_ID_PATTERN = re.compile(r"^app[a-zA-Z0-9]{14,17}$")
_DATETIME = TypeAdapter(datetime)


def is_valid_base_id(base_id: str) -> bool:
    """Airtable base ids look like ``app`` followed by 14-17 alphanumerics."""
    return bool(_BASE_ID_PATTERN.match(base_id or ""))


def format_ingredient(ingredient: Ingredient) -> str:
    """``Flour (200 g)``, ``Eggs (3)`` or just ``Basil``."""
    amount = " ".join(part for part in (ingredient.quantity, ingredient.unit) if part)
    return f"{ingredient.name} ({amount})" if amount else ingredient.name


def recipe_to_fields(recipe: Recipe) -> dict[str, Any]:
    """Map a :class:`Recipe` onto the table's column names."""
    created = recipe.created_at or datetime.now(tz=timezone.utc)  # noqa: UP017
    return {
        "Recipe Name": recipe.name,
        "Recipe Category": recipe.category.value,
        "Dietary Flags": ", ".join(recipe.flags),
        "Ingredients": "\n".join(format_ingredient(i) for i in recipe.ingredients),
        "Preparation Steps": "\n".join(
            f"{number}. {step}" for number, step in enumerate(recipe.steps, start=1)
        ),
        "Preparation Time": recipe.prep_minutes,
        "Cook Time": recipe.cook_minutes,
        "Total Time": recipe.total_minutes,
        "Servings": recipe.servings,
        "Difficulty Level": recipe.difficulty.value,
        "Short Visual Description": recipe.description,
        "Image URL": recipe.image_url or "",
        "Created": created.isoformat(),
    }


def record_to_recipe(record: dict[str, Any]) -> Recipe:
    """Rebuild a :class:`Recipe` from one Airtable record payload."""
    fields: dict[str, Any] = record.get("fields") or {}

    ingredients = [
        ingredient
        for line in str(fields.get("Ingredients") or "").splitlines()
        if (ingredient := parse_ingredient_line(line)) is not None
    ]

    created_at: datetime | None = None
    if fields.get("Created"):
        try:
            created_at = _DATETIME.validate_python(fields["Created"])
        except ValidationError:
            created_at = None

    return Recipe(
        name=str(fields.get("Recipe Name") or "").strip() or UNNAMED_RECIPE,
        category=parse_category(str(fields.get("Recipe Category") or "")),
        flags=parse_flags(str(fields.get("Dietary Flags") or "")),
        ingredients=ingredients,
        steps=parse_step_lines(str(fields.get("Preparation Steps") or "")),
        prep_minutes=parse_int(str(fields.get("Preparation Time") or "")),
        cook_minutes=parse_int(str(fields.get("Cook Time") or "")),
        total_minutes=parse_int(str(fields.get("Total Time") or "")),
        servings=parse_int(str(fields.get("Servings") or "")),
        difficulty=parse_difficulty(str(fields.get("Difficulty Level") or "")),
        description=str(fields.get("Short Visual Description") or ""),
        image_url=fields.get("Image URL") or None,
        persisted_id=record.get("id"),
        created_at=created_at,
    )


class AirtableRecordStore(IRecordStoreProvider):
    """Record store backed by the Airtable REST API.

    The ``httpx.AsyncClient`` is injected for testability.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._http = http_client
        self._api_key = settings.airtable_api_key
        self._base_id = settings.airtable_base_id.strip()
        self._table = settings.airtable_table_name.strip()
        self._table_url = f"{_API_ROOT}/{self._base_id}/{quote(self._table, safe='')}"
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IRecordStoreProvider implementation
    # ------------------------------------------------------------------

    async def validate_config(self) -> ConfigValidation:
        if not self._api_key:
            return ConfigValidation(valid=False, error="Airtable API key is missing")
        if not is_valid_base_id(self._base_id):
            return ConfigValidation(
                valid=False,
                error="Airtable base ID must look like 'app' followed by 14-17 letters or digits",
            )
        if not self._table:
            return ConfigValidation(valid=False, error="Airtable table name is missing")

        try:
            response = await self._http.get(
                self._table_url, headers=self._headers(), params={"maxRecords": 1}
            )
        except httpx.HTTPError as exc:
            return ConfigValidation(valid=False, error=f"Could not reach Airtable: {exc}")

        if response.status_code in (401, 403):
            return ConfigValidation(
                valid=False,
                error="Airtable rejected the token; it needs data.records:read and "
                "data.records:write access to this base",
            )
        if response.status_code == 404:
            return ConfigValidation(valid=False, error="Airtable base or table not found")
        if response.status_code >= 400:
            return ConfigValidation(valid=False, error=self._error_message(response))
        return ConfigValidation(valid=True)

    async def persist(self, recipe: Recipe) -> Recipe:
        payload = {"fields": recipe_to_fields(recipe)}
        data = await self._request("POST", self._table_url, json=payload)
        record_id = data.get("id")
        if not record_id:
            raise RecordStoreError(
                message="Airtable response did not include a record id",
                provider_name=self.get_provider_name(),
            )
        self._logger.info("airtable_record_created", record_id=record_id, recipe=recipe.name)
        return recipe.model_copy(update={"persisted_id": record_id})

    async def list_recipes(self) -> list[Recipe]:
        recipes: list[Recipe] = []
        params: dict[str, str] = {}
        while True:
            data = await self._request("GET", self._table_url, params=params)
            recipes.extend(record_to_recipe(r) for r in data.get("records", []))
            offset = data.get("offset")
            if not offset:
                break
            params = {"offset": offset}
        self._logger.debug("airtable_records_listed", count=len(recipes))
        return recipes

    async def get_recipe(self, record_id: str) -> Recipe | None:
        url = f"{self._table_url}/{quote(record_id, safe='')}"
        try:
            response = await self._http.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            raise RecordStoreError(
                message=f"Airtable request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise RecordStoreError(
                message=self._error_message(response),
                provider_name=self.get_provider_name(),
            )
        return record_to_recipe(response.json())

    def get_provider_name(self) -> str:
        return "airtable"

    def is_available(self) -> bool:
        return bool(self._api_key and self._base_id and self._table)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            self._logger.warning("airtable_request_failed", method=method, error=str(exc))
            raise RecordStoreError(
                message=f"Airtable request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code >= 400:
            message = self._error_message(response)
            self._logger.warning(
                "airtable_api_error", method=method, status=response.status_code, error=message
            )
            raise RecordStoreError(message=message, provider_name=self.get_provider_name())
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Airtable errors come as ``{"error": {"message": ...}}`` or ``{"error": "CODE"}``."""
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        detail = body.get("error") if isinstance(body, dict) else None
        if isinstance(detail, dict):
            detail = detail.get("message") or detail.get("type")
        return f"Airtable API error: {detail or response.reason_phrase or response.status_code}"
