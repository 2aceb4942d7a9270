"""Unit tests for the OpenAI-compatible vision provider."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from conftest import SAMPLE_RECIPE_TEXT, make_settings
from src.providers.vision.openai_vision_provider import RECIPE_PROMPT, OpenAIVisionProvider
from src.utils.errors import VisionError

_CLIENT_PATH = "src.providers.vision.openai_vision_provider.openai.AsyncOpenAI"


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=321)
    return response


def _mock_client(response: MagicMock | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    client.models.list = AsyncMock(return_value=MagicMock())
    return client


class TestConstruction:
    def test_default_provider_name(self) -> None:
        with patch(_CLIENT_PATH) as client_cls:
            provider = OpenAIVisionProvider(make_settings())
        assert provider.get_provider_name() == "openai"
        assert provider.is_available() is True
        kwargs = client_cls.call_args.kwargs
        assert kwargs["api_key"] == "sk-test"
        assert "base_url" not in kwargs

    def test_custom_base_url(self) -> None:
        settings = make_settings(openai_base_url="http://localhost:11434/v1")
        with patch(_CLIENT_PATH) as client_cls:
            provider = OpenAIVisionProvider(settings)
        assert provider.get_provider_name() == "openai-compatible"
        assert client_cls.call_args.kwargs["base_url"] == "http://localhost:11434/v1"

    def test_no_key_builds_no_client(self) -> None:
        with patch(_CLIENT_PATH) as client_cls:
            provider = OpenAIVisionProvider(make_settings(openai_api_key=""))
        client_cls.assert_not_called()
        assert provider.is_available() is False


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_sends_prompt_and_image(self) -> None:
        client = _mock_client(response=_completion(SAMPLE_RECIPE_TEXT))
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings(openai_vision_model="gpt-4o-mini"))
            text = await provider.analyze("https://cdn.test/recipes/dish.jpg")

        assert text == SAMPLE_RECIPE_TEXT
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 2000
        content = kwargs["messages"][0]["content"]
        assert kwargs["messages"][0]["role"] == "user"
        assert content[0] == {"type": "text", "text": RECIPE_PROMPT}
        assert content[1] == {
            "type": "image_url",
            "image_url": {"url": "https://cdn.test/recipes/dish.jpg"},
        }

    @pytest.mark.asyncio
    async def test_custom_prompt(self) -> None:
        client = _mock_client(response=_completion("Recipe Name: Toast"))
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings(), prompt="Describe the dish.")
            await provider.analyze("https://cdn.test/a.jpg")
        content = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["text"] == "Describe the dish."

    @pytest.mark.asyncio
    async def test_empty_response_raises(self) -> None:
        client = _mock_client(response=_completion(""))
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings())
            with pytest.raises(VisionError, match="empty response"):
                await provider.analyze("https://cdn.test/a.jpg")

    @pytest.mark.asyncio
    async def test_no_choices_raises(self) -> None:
        response = _completion(None)
        response.choices = []
        client = _mock_client(response=response)
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings())
            with pytest.raises(VisionError):
                await provider.analyze("https://cdn.test/a.jpg")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        error = openai.APIError(message="model overloaded", request=MagicMock(), body=None)
        client = _mock_client(error=error)
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings())
            with pytest.raises(VisionError) as exc_info:
                await provider.analyze("https://cdn.test/a.jpg")

        assert exc_info.value.provider_name == "openai"
        assert "model overloaded" in exc_info.value.message
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self) -> None:
        client = _mock_client(error=openai.APITimeoutError(request=MagicMock()))
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings())
            with pytest.raises(VisionError, match="timed out"):
                await provider.analyze("https://cdn.test/a.jpg")

    @pytest.mark.asyncio
    async def test_missing_key_raises(self) -> None:
        provider = OpenAIVisionProvider(make_settings(openai_api_key=""))
        with pytest.raises(VisionError, match="not configured"):
            await provider.analyze("https://cdn.test/a.jpg")


class TestValidateCredentials:
    @pytest.mark.asyncio
    async def test_accepted(self) -> None:
        client = _mock_client()
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings())
            assert await provider.validate_credentials() is True
        client.models.list.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rejected(self) -> None:
        client = _mock_client()
        client.models.list = AsyncMock(
            side_effect=openai.APIError(message="invalid key", request=MagicMock(), body=None)
        )
        with patch(_CLIENT_PATH, return_value=client):
            provider = OpenAIVisionProvider(make_settings())
            assert await provider.validate_credentials() is False

    @pytest.mark.asyncio
    async def test_no_key(self) -> None:
        provider = OpenAIVisionProvider(make_settings(openai_api_key=""))
        assert await provider.validate_credentials() is False
