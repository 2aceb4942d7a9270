"""Abstract base class for recipe record stores.

The record store is the last pipeline stage: it receives the parsed
:class:`Recipe` (already carrying its image URL) and returns the stored
version with a store-assigned ``persisted_id``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from src.models.recipe import Recipe


@dataclass(frozen=True)
class ConfigValidation:
    """Result of :meth:`IRecordStoreProvider.validate_config`.

    Attributes
    ----------
    valid:
        ``True`` if the store can be written to with the current settings.
    error:
        Why the configuration was rejected.  ``None`` when valid.
    """

    valid: bool
    error: str | None = None


# Concrete implementation: AirtableRecordStore
# Located in: src/providers/record_store/
class IRecordStoreProvider(ABC):
    """Contract for services that persist recipes."""

    @abstractmethod
    async def validate_config(self) -> ConfigValidation:
        """Check credentials and table settings before first use.

        Never raises; problems are reported through ``ConfigValidation``.
        """

    @abstractmethod
    async def persist(self, recipe: Recipe) -> Recipe:
        """Store *recipe* and return a copy with ``persisted_id`` set.

        Raises
        ------
        src.utils.errors.RecordStoreError
            If the store rejects the record or cannot be reached.
        """

    @abstractmethod
    async def list_recipes(self) -> list[Recipe]:
        """Return every stored recipe.

        Raises
        ------
        src.utils.errors.RecordStoreError
            If the store cannot be read.
        """

    @abstractmethod
    async def get_recipe(self, record_id: str) -> Recipe | None:
        """Return one stored recipe, or ``None`` if *record_id* does not exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"airtable"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials and table settings are present."""
