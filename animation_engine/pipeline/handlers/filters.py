"""Filters Handler - applies named image filters to the working image, in order."""

import logging

from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode
from animation_engine.pipeline.handlers.base import BaseBlockHandler, PipelineServices, RunContext
from animation_engine.pipeline.imaging import FILTERS, apply_filters
from animation_engine.pipeline.types import BlockResult, PipelineBlock

logger = logging.getLogger(__name__)


class FiltersHandler(BaseBlockHandler):

    async def execute(
        self,
        block: PipelineBlock,
        state: RunContext,
        services: PipelineServices,
    ) -> BlockResult:
        filters = block.config.filters or []

        unknown = [name for name in filters if name not in FILTERS]
        if unknown:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                f"Filtre(s) inconnu(s): {', '.join(unknown)}",
                block_id=block.id,
            )

        image = await state.current_image(services)
        if image is None:
            logger.warning(f"Block {block.id}: no working image, filters skipped")
            return self.skipped(block)

        if not filters:
            return self.success(block, image)

        try:
            state.working_image = apply_filters(image, filters)
        except OSError as e:
            raise PipelineError(
                PipelineErrorCode.INVALID_CONFIG,
                f"Image illisible pour les filtres: {e}",
                block_id=block.id,
            ) from e
        logger.info(f"Block {block.id}: applied filters {filters}")
        return self.success(block, state.working_image)
