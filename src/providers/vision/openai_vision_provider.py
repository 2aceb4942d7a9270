"""OpenAI-compatible vision provider adapter.

Wraps the ``openai`` async client to implement :class:`IVisionProvider`.
The provider owns the recipe prompt: a single user message with the
prompt as a text part and the dish photo as an ``image_url`` part.  When a
custom ``openai_base_url`` is configured the client points at that URL, so
any OpenAI-compatible vision endpoint works.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.vision_provider import IVisionProvider
from src.utils.errors import VisionError

logger = structlog.get_logger(logger_name=__name__)

_MAX_TOKENS = 2000

RECIPE_PROMPT = """You are an expert culinary AI specializing in gluten-free, soy-free, and dairy-free recipes.
Examine the attached image of the final plated dish. Based solely on what you see, accurately infer and generate structured recipe metadata with these fields:

Recipe Name:
Recipe Category: [Appetizer, Main Course, Side Dish, Dessert, Beverage, Snack, Salad, Breakfast, Other]
Dietary Flags: Gluten-Free, Dairy-Free, Soy-Free

Ingredients List:
- Ingredient 1 (quantity, measurement)
- Ingredient 2 (quantity, measurement)
- ...

Preparation Steps:
1. Step-by-step instructions.
2. Continue numbered steps as needed.

Preparation Time: [minutes]
Cook Time: [minutes]
Total Time: [minutes]
Servings: [number]
Difficulty Level: [Easy, Medium, Advanced]

Short Visual Description: [Brief appearance description]

Provide ONLY this structured format with no extra commentary."""


class OpenAIVisionProvider(IVisionProvider):
    """Vision provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o`` unless ``openai_vision_model`` says otherwise.
    """

    def __init__(self, settings: Settings, prompt: str = RECIPE_PROMPT) -> None:
        self._api_key = settings.openai_api_key
        self._prompt = prompt
        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.http_timeout_seconds * 2, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        # The SDK refuses to build a client without a key.
        self._client = openai.AsyncOpenAI(**client_kwargs) if self._api_key else None
        self._model = settings.openai_vision_model or "gpt-4o"
        self._provider_label = (
            "openai-compatible" if settings.openai_base_url else "openai"
        )

    # ------------------------------------------------------------------
    # IVisionProvider implementation
    # ------------------------------------------------------------------

    async def analyze(self, image_url: str) -> str:
        """Ask the model for the labelled recipe text describing *image_url*."""
        if self._client is None:
            raise VisionError(
                message="OpenAI API key is not configured",
                provider_name=self.get_provider_name(),
            )
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": self._prompt},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    }
                ],
                max_tokens=_MAX_TOKENS,
            )
        except openai.APITimeoutError as exc:
            raise VisionError(
                message=f"{self._provider_label} vision request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise VisionError(
                message=f"{self._provider_label} vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise VisionError(
                message=f"{self._provider_label} vision returned empty response",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "openai_vision_analyze",
            model=self._model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def validate_credentials(self) -> bool:
        """List models to confirm the key is accepted without paying for inference."""
        if self._client is None:
            return False
        try:
            await self._client.models.list()
            return True
        except openai.APIError:
            return False

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        return bool(self._api_key)
