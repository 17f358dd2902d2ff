"""
Crop & Resize Handler

Center-crops the working image to a format and scales it to a target
dimension. Local and deterministic, so never retried.
"""

import logging

from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode
from animation_engine.pipeline.handlers.base import BaseBlockHandler, PipelineServices, RunContext
from animation_engine.pipeline.imaging import crop_resize
from animation_engine.pipeline.types import BlockResult, CropFormat, PipelineBlock

logger = logging.getLogger(__name__)


class CropResizeHandler(BaseBlockHandler):
    """Handler for crop-resize blocks."""

    async def execute(
        self,
        block: PipelineBlock,
        state: RunContext,
        services: PipelineServices,
    ) -> BlockResult:
        config = block.config
        crop_format = config.format

        if crop_format is None:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                "Format de recadrage manquant",
                block_id=block.id,
            )
        if crop_format != CropFormat.ORIGINAL and not config.dimensions:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                f"Dimension manquante pour le format '{crop_format.value}'",
                block_id=block.id,
            )

        image = await state.current_image(services)
        if image is None:
            logger.warning(f"Block {block.id}: no working image, crop-resize skipped")
            return self.skipped(block)

        try:
            state.working_image = crop_resize(image, crop_format, config.dimensions)
        except OSError as e:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                f"Image illisible pour le recadrage: {e}",
                block_id=block.id,
            ) from e

        logger.info(
            f"Block {block.id}: cropped to {crop_format.value} "
            f"({config.dimensions or 'source'}px), {len(state.working_image)} bytes"
        )
        return self.success(block, state.working_image)
