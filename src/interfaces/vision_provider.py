"""Abstract base class for vision-model providers.

A vision provider looks at a dish photo and answers with free text in the
labelled recipe layout.  The prompt that frames the request belongs to
the provider; the pipeline only ever sees the raw answer, which it hands
to :func:`src.services.recipe_extractor.extract_recipe`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIVisionProvider
# Located in: src/providers/vision/
class IVisionProvider(ABC):
    """Contract for services that describe a dish photo as recipe text."""

    @abstractmethod
    async def analyze(self, image_url: str) -> str:
        """Analyse the image at *image_url* and return the model's raw text.

        Raises
        ------
        src.utils.errors.VisionError
            If the API call fails or the model returns no content.
        """

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight API call to confirm the credentials work."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are present (without calling the API)."""
