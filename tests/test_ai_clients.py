"""
Tests for the AI model catalog and image generation clients.
"""

import base64
import json
from types import SimpleNamespace

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from animation_engine.ai.client import (
    PlaceholderImageClient,
    ProviderImageClient,
    UnsupportedModelError,
    get_image_client,
)
from animation_engine.ai.google_ai import GoogleAIError, GoogleAIService
from animation_engine.ai.models import (
    AIProvider,
    get_all_models,
    get_model_by_id,
    get_models_by_provider,
)
from animation_engine.ai.openai_image import OpenAIImageError, OpenAIImageService, size_for
from animation_engine.pipeline.types import ImageUsageMode
from animation_engine.utils.retry import is_retryable_error


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def openai_response(image: bytes):
    return SimpleNamespace(data=[SimpleNamespace(b64_json=b64(image), url=None)])


# =============================================================================
# Model catalog
# =============================================================================

class TestModelCatalog:

    def test_catalog_ids(self):
        assert [m.id for m in get_all_models()] == [
            "dall-e-3",
            "gpt-image-1",
            "imagen-4.0-generate-001",
            "gemini-2.5-flash-image",
        ]

    def test_capabilities(self):
        assert get_model_by_id("dall-e-3").capabilities.supported_modes == [ImageUsageMode.NONE]
        assert get_model_by_id("gpt-image-1").supports_mode(ImageUsageMode.EDIT)
        assert not get_model_by_id("imagen-4.0-generate-001").supports_mode(ImageUsageMode.EDIT)

    def test_lookup_helpers(self):
        assert get_model_by_id("unknown") is None
        assert {m.id for m in get_models_by_provider(AIProvider.GOOGLE)} == {
            "imagen-4.0-generate-001",
            "gemini-2.5-flash-image",
        }

    def test_catalog_is_a_copy(self):
        get_all_models().clear()

        assert len(get_all_models()) == 4


# =============================================================================
# OpenAI
# =============================================================================

class TestOpenAIImageService:

    def test_size_mapping(self):
        assert size_for("dall-e-3", "16:9") == "1792x1024"
        assert size_for("gpt-image-1", "9:16") == "1024x1536"
        assert size_for("gpt-image-1", None) == "1024x1024"

    @pytest.mark.asyncio
    async def test_generate_dalle(self):
        client = MagicMock()
        client.images.generate = AsyncMock(return_value=openai_response(b"dalle-image"))

        image = await OpenAIImageService(client=client).generate_image("dall-e-3", "a cat", "1:1")

        assert image == b"dalle-image"
        kwargs = client.images.generate.await_args.kwargs
        assert kwargs["model"] == "dall-e-3"
        assert kwargs["response_format"] == "b64_json"
        assert kwargs["size"] == "1024x1024"

    @pytest.mark.asyncio
    async def test_edit_sends_every_image(self):
        client = MagicMock()
        client.images.edit = AsyncMock(return_value=openai_response(b"edited"))

        image = await OpenAIImageService(client=client).edit_image(
            "gpt-image-1", [b"one", b"two"], "make it blue", "3:2"
        )

        assert image == b"edited"
        kwargs = client.images.edit.await_args.kwargs
        assert [f[1] for f in kwargs["image"]] == [b"one", b"two"]
        assert kwargs["size"] == "1536x1024"

    @pytest.mark.asyncio
    async def test_empty_response(self):
        client = MagicMock()
        client.images.generate = AsyncMock(return_value=SimpleNamespace(data=[]))

        with pytest.raises(OpenAIImageError):
            await OpenAIImageService(client=client).generate_image("gpt-image-1", "a cat")

    @pytest.mark.asyncio
    async def test_edit_requires_images(self):
        with pytest.raises(ValueError):
            await OpenAIImageService(client=MagicMock()).edit_image("gpt-image-1", [], "prompt")


# =============================================================================
# Google AI
# =============================================================================

class TestGoogleAIService:

    @pytest.mark.asyncio
    async def test_gemini_inline_references(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["key"] = request.headers["x-goog-api-key"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [
                    {"text": "here you go"},
                    {"inlineData": {"mimeType": "image/png", "data": b64(b"gemini-image")}},
                ]}}],
            })

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            service = GoogleAIService(api_key="test-key", base_url="https://ai.example.com/v1beta", client=http)
            image = await service.generate_with_gemini(
                "gemini-2.5-flash-image", "Image 1 in space", [b"selfie"], "1:1"
            )

        assert image == b"gemini-image"
        assert captured["url"] == "https://ai.example.com/v1beta/models/gemini-2.5-flash-image:generateContent"
        assert captured["key"] == "test-key"
        parts = captured["body"]["contents"][0]["parts"]
        assert parts[0] == {"text": "Image 1 in space"}
        assert parts[1]["inline_data"]["data"] == b64(b"selfie")
        assert captured["body"]["generationConfig"]["imageConfig"] == {"aspectRatio": "1:1"}

    @pytest.mark.asyncio
    async def test_imagen_predict(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("models/imagen-4.0-generate-001:predict")
            return httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": b64(b"imagen")}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            service = GoogleAIService(api_key="k", client=http)
            image = await service.generate_with_imagen("imagen-4.0-generate-001", "a lighthouse")

        assert image == b"imagen"

    @pytest.mark.asyncio
    async def test_error_status_is_classified(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            429, json={"error": {"message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"}}
        ))

        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(GoogleAIError) as exc_info:
                await GoogleAIService(api_key="k", client=http).generate_with_gemini("gemini-2.5-flash-image", "x")

        assert exc_info.value.status == 429
        assert is_retryable_error(exc_info.value) is True

    @pytest.mark.asyncio
    async def test_response_without_image(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            200, json={"candidates": [{"content": {"parts": [{"text": "no image"}]}}]}
        ))

        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(GoogleAIError, match="No image data"):
                await GoogleAIService(api_key="k", client=http).generate_with_gemini("gemini-2.5-flash-image", "x")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        with pytest.raises(GoogleAIError) as exc_info:
            await GoogleAIService(api_key="").generate_with_imagen("imagen-4.0-generate-001", "x")

        assert exc_info.value.status == 401
        assert is_retryable_error(exc_info.value) is False


# =============================================================================
# Image clients
# =============================================================================

class TestProviderImageClient:

    @pytest.fixture
    def services(self):
        openai_service = MagicMock()
        openai_service.generate_image = AsyncMock(return_value=b"openai-gen")
        openai_service.edit_image = AsyncMock(return_value=b"openai-edit")
        google_service = MagicMock()
        google_service.generate_with_gemini = AsyncMock(return_value=b"gemini")
        google_service.generate_with_imagen = AsyncMock(return_value=b"imagen")
        return openai_service, google_service

    @pytest.mark.asyncio
    async def test_openai_generate(self, services):
        openai_service, google_service = services
        client = ProviderImageClient(openai_service, google_service)

        assert await client.generate("dall-e-3", "prompt") == b"openai-gen"
        openai_service.generate_image.assert_awaited_once_with("dall-e-3", "prompt", None)

    @pytest.mark.asyncio
    async def test_openai_reference_goes_through_edit(self, services):
        openai_service, google_service = services
        client = ProviderImageClient(openai_service, google_service)

        assert await client.generate("gpt-image-1", "prompt", [b"ref"], "1:1") == b"openai-edit"
        openai_service.edit_image.assert_awaited_once_with("gpt-image-1", [b"ref"], "prompt", "1:1")

    @pytest.mark.asyncio
    async def test_google_routing(self, services):
        openai_service, google_service = services
        client = ProviderImageClient(openai_service, google_service)

        assert await client.generate("imagen-4.0-generate-001", "p") == b"imagen"
        assert await client.edit("gemini-2.5-flash-image", "p", [b"src"]) == b"gemini"
        google_service.generate_with_gemini.assert_awaited_once_with("gemini-2.5-flash-image", "p", [b"src"], None)

    @pytest.mark.asyncio
    async def test_imagen_refuses_reference_images(self, services):
        openai_service, google_service = services
        client = ProviderImageClient(openai_service, google_service)

        with pytest.raises(UnsupportedModelError, match="images de référence"):
            await client.generate("imagen-4.0-generate-001", "p", [b"selfie"])

        google_service.generate_with_imagen.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_model(self, services):
        client = ProviderImageClient(*services)

        with pytest.raises(UnsupportedModelError):
            await client.generate("mystery", "p")


class TestPlaceholderImageClient:

    @pytest.mark.asyncio
    async def test_returns_png(self):
        image = await PlaceholderImageClient(dimension=64).generate("dall-e-3", "prompt", aspect_ratio="1:1")

        assert image[:8] == b"\x89PNG\r\n\x1a\n"

    @pytest.mark.asyncio
    async def test_edit_returns_png(self):
        image = await PlaceholderImageClient(dimension=64).edit("gpt-image-1", "prompt", [b"src"])

        assert image[:8] == b"\x89PNG\r\n\x1a\n"


class TestGetImageClient:

    def test_console_mode(self):
        assert isinstance(get_image_client(console_mode=True), PlaceholderImageClient)

    def test_no_provider_configured(self):
        with patch("animation_engine.ai.client.settings") as mock_settings:
            mock_settings.AI_CONSOLE_MODE = False
            mock_settings.OPENAI_API_KEY = ""
            mock_settings.GOOGLE_API_KEY = ""
            mock_settings.DEFAULT_IMAGE_SIZE = 1024

            assert isinstance(get_image_client(), PlaceholderImageClient)

    def test_live_provider(self):
        with patch("animation_engine.ai.client.settings") as mock_settings:
            mock_settings.AI_CONSOLE_MODE = False
            mock_settings.OPENAI_API_KEY = "sk-test"
            mock_settings.GOOGLE_API_KEY = ""

            assert isinstance(get_image_client(), ProviderImageClient)
