"""
Image Generation Client - the "generate" and "edit" capabilities used by AI blocks.

Live calls are routed by the model catalog's provider. Console mode renders
placeholder images locally and logs the prompt instead of calling a provider.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from animation_engine.ai.google_ai import GoogleAIService
from animation_engine.ai.models import AIProvider, get_model_by_id
from animation_engine.ai.openai_image import OpenAIImageService
from animation_engine.config import settings
from animation_engine.pipeline.imaging import placeholder_image

logger = logging.getLogger(__name__)


class UnsupportedModelError(Exception):
    """The requested model is not in the catalog, or cannot take the given inputs."""

    def __init__(self, model_id: str, message: Optional[str] = None):
        super().__init__(message or f"Unsupported model: {model_id}")
        self.model_id = model_id


class ImageGenerationClient(ABC):
    """Abstract base class for image generation backends."""

    @abstractmethod
    async def generate(
        self,
        model_id: str,
        prompt: str,
        reference_images: Sequence[bytes] = (),
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        """Create a new image from a prompt, optionally guided by reference images."""
        pass

    @abstractmethod
    async def edit(
        self,
        model_id: str,
        prompt: str,
        images: Sequence[bytes],
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        """Transform the given images according to a prompt."""
        pass


class ProviderImageClient(ImageGenerationClient):
    """Dispatch to OpenAI or Google depending on the model's provider."""

    def __init__(
        self,
        openai_service: Optional[OpenAIImageService] = None,
        google_service: Optional[GoogleAIService] = None,
    ):
        self.openai = openai_service or OpenAIImageService()
        self.google = google_service or GoogleAIService()

    def _provider_for(self, model_id: str) -> AIProvider:
        model = get_model_by_id(model_id)
        if model is None:
            raise UnsupportedModelError(model_id)
        return model.provider

    async def generate(
        self,
        model_id: str,
        prompt: str,
        reference_images: Sequence[bytes] = (),
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        provider = self._provider_for(model_id)

        if provider == AIProvider.OPENAI:
            if reference_images:
                # The generations endpoint takes no images; references go through edits
                return await self.openai.edit_image(model_id, reference_images, prompt, aspect_ratio)
            return await self.openai.generate_image(model_id, prompt, aspect_ratio)

        if model_id.startswith("imagen"):
            if reference_images:
                # The predict endpoint takes no image input
                raise UnsupportedModelError(
                    model_id,
                    f"{model_id} ne prend pas d'images de référence "
                    f"({len(reference_images)} fournie(s))",
                )
            return await self.google.generate_with_imagen(model_id, prompt, aspect_ratio)

        return await self.google.generate_with_gemini(model_id, prompt, reference_images, aspect_ratio)

    async def edit(
        self,
        model_id: str,
        prompt: str,
        images: Sequence[bytes],
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        provider = self._provider_for(model_id)

        if provider == AIProvider.OPENAI:
            return await self.openai.edit_image(model_id, images, prompt, aspect_ratio)

        # Gemini edits by taking the source images as inline parts
        return await self.google.generate_with_gemini(model_id, prompt, images, aspect_ratio)


class PlaceholderImageClient(ImageGenerationClient):
    """
    Placeholder client for development/testing.

    Logs prompts and returns flat-colour images instead of calling providers.
    """

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension or settings.DEFAULT_IMAGE_SIZE

    async def generate(
        self,
        model_id: str,
        prompt: str,
        reference_images: Sequence[bytes] = (),
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        logger.info(
            f"\n{'='*60}\n"
            f"IMAGE GENERATE (Console Mode)\n"
            f"{'='*60}\n"
            f"Model: {model_id}\n"
            f"References: {len(reference_images)}\n"
            f"Prompt: {prompt}\n"
            f"{'='*60}\n"
        )
        return placeholder_image(aspect_ratio, self.dimension, seed=f"{model_id}:{prompt}")

    async def edit(
        self,
        model_id: str,
        prompt: str,
        images: Sequence[bytes],
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        logger.info(
            f"\n{'='*60}\n"
            f"IMAGE EDIT (Console Mode)\n"
            f"{'='*60}\n"
            f"Model: {model_id}\n"
            f"Images: {len(images)}\n"
            f"Prompt: {prompt}\n"
            f"{'='*60}\n"
        )
        return placeholder_image(aspect_ratio, self.dimension, seed=f"edit:{model_id}:{prompt}")


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def get_image_client(console_mode: Optional[bool] = None) -> ImageGenerationClient:
    """
    Get the appropriate image client based on configuration.

    Priority:
    1. Console mode (for development)
    2. Live providers (if any provider key is set)
    3. Console fallback
    """
    if console_mode is None:
        console_mode = settings.AI_CONSOLE_MODE

    if console_mode:
        logger.info("Using placeholder image client (console mode)")
        return PlaceholderImageClient()

    if settings.OPENAI_API_KEY or settings.GOOGLE_API_KEY:
        logger.info("Using provider image client")
        return ProviderImageClient()

    logger.warning("No AI provider configured, using placeholder image client")
    return PlaceholderImageClient()
