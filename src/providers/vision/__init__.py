"""Vision model adapters implementing IVisionProvider."""

from src.providers.vision.openai_vision_provider import RECIPE_PROMPT, OpenAIVisionProvider

__all__ = ["OpenAIVisionProvider", "RECIPE_PROMPT"]
