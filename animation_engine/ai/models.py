"""
AI model catalog.

Models declare a fixed set of supported image usage modes:
- none: text-to-image only, no image input
- reference: input images guide a newly generated image
- edit: input images are transformed directly
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from animation_engine.pipeline.types import ImageUsageMode


class AIProvider(str, Enum):
    OPENAI = "openai"
    GOOGLE = "google"


class AIModelCapabilities(BaseModel):
    supported_modes: List[ImageUsageMode]
    supports_edit: bool = False
    max_size: int = 1024


class AIModel(BaseModel):
    """An image model the pipeline can call."""
    id: str
    name: str
    description: str = ""
    provider: AIProvider
    capabilities: AIModelCapabilities

    def supports_mode(self, mode: ImageUsageMode) -> bool:
        return mode in self.capabilities.supported_modes


AI_MODELS: List[AIModel] = [
    AIModel(
        id="dall-e-3",
        name="DALL-E 3",
        description="Génération d'images créatives à partir de texte uniquement.",
        provider=AIProvider.OPENAI,
        capabilities=AIModelCapabilities(
            supported_modes=[ImageUsageMode.NONE],
            supports_edit=False,
            max_size=1024,
        ),
    ),
    AIModel(
        id="gpt-image-1",
        name="GPT Image Edit",
        description="Modification et transformation d'images, référence de style ou édition directe.",
        provider=AIProvider.OPENAI,
        capabilities=AIModelCapabilities(
            supported_modes=[ImageUsageMode.NONE, ImageUsageMode.REFERENCE, ImageUsageMode.EDIT],
            supports_edit=True,
            max_size=1536,
        ),
    ),
    AIModel(
        id="imagen-4.0-generate-001",
        name="Imagen 4.0",
        description="Génération d'images photoréalistes.",
        provider=AIProvider.GOOGLE,
        capabilities=AIModelCapabilities(
            supported_modes=[ImageUsageMode.NONE, ImageUsageMode.REFERENCE],
            supports_edit=False,
            max_size=1024,
        ),
    ),
    AIModel(
        id="gemini-2.5-flash-image",
        name="Gemini 2.5 Flash Image",
        description="Génération et retouche d'images avec images de référence multiples.",
        provider=AIProvider.GOOGLE,
        capabilities=AIModelCapabilities(
            supported_modes=[ImageUsageMode.NONE, ImageUsageMode.REFERENCE, ImageUsageMode.EDIT],
            supports_edit=True,
            max_size=1024,
        ),
    ),
]


def get_all_models() -> List[AIModel]:
    return list(AI_MODELS)


def get_model_by_id(model_id: str) -> Optional[AIModel]:
    return next((m for m in AI_MODELS if m.id == model_id), None)


def get_models_by_provider(provider: AIProvider) -> List[AIModel]:
    return [m for m in AI_MODELS if m.provider == provider]
