"""
OpenAI Image Service - DALL-E 3 (text-to-image) and GPT Image 1 (generate/edit).

SDK errors (openai.APIStatusError and friends) propagate unchanged: they carry
`status_code`, which the retry classifier reads.
"""

import base64
import logging
import time
from typing import Dict, List, Optional, Sequence

import httpx
from openai import AsyncOpenAI

from animation_engine.config import settings

logger = logging.getLogger(__name__)

GPT_IMAGE_SIZES: Dict[str, str] = {
    "1:1": "1024x1024",
    "2:3": "1024x1536",
    "9:16": "1024x1536",
    "3:2": "1536x1024",
    "16:9": "1536x1024",
}

DALLE3_SIZES: Dict[str, str] = {
    "1:1": "1024x1024",
    "2:3": "1024x1792",
    "9:16": "1024x1792",
    "3:2": "1792x1024",
    "16:9": "1792x1024",
}

DEFAULT_SIZE = "1024x1024"


class OpenAIImageError(Exception):
    """OpenAI returned a response the service cannot use."""

    def __init__(self, message: str, status: Optional[int] = None, code: str = "unknown_error", type: str = "api_error"):
        super().__init__(message)
        self.status = status
        self.code = code
        self.type = type


def get_openai_client() -> AsyncOpenAI:
    """Get the OpenAI client."""
    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY)


def size_for(model_id: str, aspect_ratio: Optional[str]) -> str:
    sizes = DALLE3_SIZES if model_id == "dall-e-3" else GPT_IMAGE_SIZES
    if not aspect_ratio:
        return DEFAULT_SIZE
    return sizes.get(aspect_ratio, DEFAULT_SIZE)


class OpenAIImageService:
    """Image generation and editing through the OpenAI Images API."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    async def generate_image(
        self,
        model_id: str,
        prompt: str,
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        size = size_for(model_id, aspect_ratio)
        logger.info(
            f"Starting OpenAI generation: model={model_id}, size={size}, prompt_length={len(prompt)}"
        )
        start = time.monotonic()

        kwargs = {"model": model_id, "prompt": prompt, "size": size, "n": 1}
        if model_id == "dall-e-3":
            kwargs.update({"quality": "standard", "style": "vivid", "response_format": "b64_json"})

        response = await self.client.images.generate(**kwargs)
        image = await self._extract_image(response, "generate_image")

        logger.info(
            f"OpenAI generation done: model={model_id}, bytes={len(image)}, "
            f"duration={int((time.monotonic() - start) * 1000)}ms"
        )
        return image

    async def edit_image(
        self,
        model_id: str,
        images: Sequence[bytes],
        prompt: str,
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        if not images:
            raise ValueError("edit_image requires at least one input image")

        size = size_for(model_id, aspect_ratio)
        logger.info(
            f"Starting OpenAI edit: model={model_id}, size={size}, images={len(images)}, "
            f"prompt_length={len(prompt)}"
        )
        start = time.monotonic()

        files: List[tuple] = [
            (f"image_{index}.png", image, "image/png")
            for index, image in enumerate(images)
        ]

        response = await self.client.images.edit(
            model=model_id,
            image=files,
            prompt=prompt,
            size=size,
            n=1,
        )
        image = await self._extract_image(response, "edit_image")

        logger.info(
            f"OpenAI edit done: model={model_id}, bytes={len(image)}, "
            f"duration={int((time.monotonic() - start) * 1000)}ms"
        )
        return image

    async def _extract_image(self, response, operation: str) -> bytes:
        data = getattr(response, "data", None) or []
        if not data:
            raise OpenAIImageError(f"No image data returned from OpenAI ({operation})")

        item = data[0]
        if getattr(item, "b64_json", None):
            return base64.b64decode(item.b64_json)
        if getattr(item, "url", None):
            return await download_image_url(item.url)

        raise OpenAIImageError(f"No image data returned from OpenAI ({operation})")


async def download_image_url(url: str) -> bytes:
    """Download a provider-hosted result image."""
    async with httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT_SECONDS) as client:
        response = await client.get(url)
        if response.status_code != 200:
            raise OpenAIImageError(
                f"Failed to download image: {response.status_code}",
                status=response.status_code,
            )
        return response.content
