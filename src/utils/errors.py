"""Custom exception hierarchy for recipeSnap.

All application exceptions inherit from :class:`RecipeSnapError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "bunny", "openai", "airtable") caused the failure.

The hierarchy follows the two failure families an ingestion item can hit:

    RecipeSnapError  (base -- catch-all for any recipeSnap error)
    +-- ConfigurationError   (a required collaborator or credential is unset)
    +-- TransportError       (a collaborator reported failure or was unreachable)
    |   +-- StorageError     (stage 1: image upload)
    |   +-- VisionError      (stage 2: vision-model analysis)
    |   +-- RecordStoreError (stage 3: recipe persistence)
    +-- PipelineError        (queue state invariant violated)
    +-- TaskCancelledError   (a serialized call cancelled itself)

Parsing problems in model output are deliberately absent: the recipe
extractor substitutes defaults instead of raising.
"""


class RecipeSnapError(Exception):
    """Base exception for all recipeSnap errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[airtable] Airtable API error: INVALID_PERMISSIONS``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(RecipeSnapError):
    """Raised when a required collaborator or credential is missing at call time."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Transport errors -- one subclass per pipeline stage
# ---------------------------------------------------------------------------

class TransportError(RecipeSnapError):
    """Raised when a collaborator returns a non-success result or the call fails.

    The orchestrator catches this per item; it never aborts a batch.
    """

    def __init__(
        self,
        message: str = "External service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(TransportError):
    """Raised when the image upload to object storage fails."""

    def __init__(
        self,
        message: str = "Failed to upload image",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VisionError(TransportError):
    """Raised when the vision model call fails or returns no content."""

    def __init__(
        self,
        message: str = "Failed to analyze image",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RecordStoreError(TransportError):
    """Raised when persisting or reading a recipe record fails."""

    def __init__(
        self,
        message: str = "Failed to store recipe",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Queue state errors
# ---------------------------------------------------------------------------

class PipelineError(RecipeSnapError):
    """Raised when an item update would break a queue invariant.

    Examples: an illegal status transition, progress moving backwards, or
    overwriting an already-set image URL.  These indicate a programming
    error in the writer, not a provider failure.
    """

    def __init__(
        self,
        message: str = "Invalid queue item update",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TaskCancelledError(RecipeSnapError):
    """Raised on a serialized call's future when the call itself was cancelled.

    Only the call is affected; the serializer goes on with the next one.
    """

    def __init__(
        self,
        message: str = "Serialized call was cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
