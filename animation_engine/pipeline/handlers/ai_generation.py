"""
AI Generation Handler

Renders the block's prompt, resolves its reference images and calls the
image client:
- image_usage_mode none/unset: generate from the prompt alone
- reference: generate guided by the reference images
- edit: transform the reference images

Each provider call is raced against the AI call deadline and retried on
transient failures. The produced image is recorded under the block id so
later blocks can use it as a source.
"""

import logging
from typing import List

from animation_engine.ai.client import UnsupportedModelError
from animation_engine.ai.models import get_model_by_id
from animation_engine.pipeline.context import render_prompt
from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode
from animation_engine.pipeline.handlers.base import BaseBlockHandler, PipelineServices, RunContext
from animation_engine.pipeline.references import resolve_reference_images
from animation_engine.pipeline.types import (
    BlockResult,
    ImageSource,
    ImageUsageMode,
    PipelineBlock,
    PipelineBlockConfig,
    ReferenceImageConfig,
)
from animation_engine.utils.retry import OperationTimeoutError, with_retry, with_timeout

logger = logging.getLogger(__name__)

LEGACY_IMAGE_NAME = "image"


def reference_descriptors(config: PipelineBlockConfig) -> List[ReferenceImageConfig]:
    """
    Reference descriptors of an AI block.

    Blocks configured with a single image source (no reference_images list)
    get one descriptor named "image".
    """
    if config.reference_images:
        return list(config.reference_images)

    if config.image_source is None:
        return []

    return [ReferenceImageConfig(
        name=LEGACY_IMAGE_NAME,
        source=config.image_source,
        order=1,
        url=config.image_url,
        source_block_id=config.source_block_id,
    )]


class AIGenerationHandler(BaseBlockHandler):
    """Handler for ai-generation blocks."""

    async def execute(
        self,
        block: PipelineBlock,
        state: RunContext,
        services: PipelineServices,
    ) -> BlockResult:
        config = block.config

        if not config.model_id:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                "Aucun modèle IA sélectionné",
                block_id=block.id,
            )
        if not config.prompt_template:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                "Template de prompt vide",
                block_id=block.id,
            )

        model = get_model_by_id(config.model_id)
        if model is None:
            raise PipelineError(
                PipelineErrorCode.UNSUPPORTED_MODEL,
                f"Modèle non supporté: {config.model_id}",
                block_id=block.id,
            )

        mode = config.image_usage_mode or ImageUsageMode.NONE
        descriptors = reference_descriptors(config) if mode != ImageUsageMode.NONE else []

        if any(d.source == ImageSource.SELFIE for d in descriptors):
            await state.get_selfie(services)

        reference_images = await resolve_reference_images(
            descriptors,
            state.run,
            state.block_outputs,
            services.fetcher,
            retry_options=services.fetch_retry_options,
            selfie_buffer=state.selfie_buffer,
        )

        prompt = render_prompt(config.prompt_template, state.context, descriptors)
        images = [img.buffer for img in reference_images]
        aspect_ratio = config.aspect_ratio.value if config.aspect_ratio else None

        if mode == ImageUsageMode.EDIT and not images:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                "Le mode édition nécessite au moins une image source",
                block_id=block.id,
            )
        if mode == ImageUsageMode.REFERENCE and not images:
            logger.warning(f"Block {block.id}: reference mode without images, generating from prompt only")

        client = services.image_client
        timeout_ms = services.ai_timeout_ms
        timeout_message = f"Timeout de génération IA dépassé ({timeout_ms // 1000}s)"

        async def call_provider() -> bytes:
            if mode == ImageUsageMode.EDIT:
                return await client.edit(model.id, prompt, images, aspect_ratio)
            return await client.generate(model.id, prompt, images, aspect_ratio)

        logger.info(
            f"Block {block.id}: {mode.value} with {model.id}, "
            f"{len(images)} image(s), prompt_length={len(prompt)}"
        )

        try:
            output = await with_retry(
                lambda: with_timeout(call_provider, timeout_ms, timeout_message),
                services.ai_retry_options,
            )
        except PipelineError:
            raise
        except UnsupportedModelError as e:
            raise PipelineError(
                PipelineErrorCode.UNSUPPORTED_MODEL, str(e), block_id=block.id
            ) from e
        except (OperationTimeoutError, TimeoutError) as e:
            raise PipelineError(
                PipelineErrorCode.TIMEOUT, str(e) or timeout_message, block_id=block.id
            ) from e
        except Exception as e:
            logger.error(f"Block {block.id}: AI generation failed with {model.id}: {e}")
            raise PipelineError(
                PipelineErrorCode.API_ERROR,
                f"Erreur de l'API IA ({model.name}): {e}",
                block_id=block.id,
            ) from e

        state.block_outputs[block.id] = output
        state.working_image = output
        state.final_prompt = prompt

        logger.info(f"Block {block.id}: generated {len(output)} bytes")
        return self.success(block, output)
