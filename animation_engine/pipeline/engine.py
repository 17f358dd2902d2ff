"""
Pipeline Block Executor - Runs an animation pipeline for one generation run.

A run ends completed or failed.

Blocks execute one at a time in ascending `order` (list position breaks
ties), since later blocks may consume the output of earlier ones. The first
failure halts the run: no later block executes and no image is returned.
"""

import logging
import time
from typing import List, Optional, Sequence

from animation_engine.ai.client import ImageGenerationClient
from animation_engine.config import settings
from animation_engine.pipeline.context import build_execution_context
from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode
from animation_engine.pipeline.handlers import get_handler
from animation_engine.pipeline.handlers.base import PipelineServices, RunContext
from animation_engine.pipeline.types import (
    BlockResult,
    GenerationRun,
    InputCollection,
    PipelineBlock,
    PipelineErrorInfo,
    PipelineResult,
    RunState,
)
from animation_engine.storage.fetch import BinaryFetcher
from animation_engine.utils.retry import RetryOptions

logger = logging.getLogger(__name__)


def order_blocks(blocks: Sequence[PipelineBlock]) -> List[PipelineBlock]:
    """Blocks in execution order. sorted() is stable, so equal orders keep list position."""
    return sorted(blocks, key=lambda b: b.order)


class PipelineExecutor:
    """
    Executes pipeline blocks for generation runs.

    One executor may serve many concurrent runs: all per-run state lives in
    a RunContext created by execute().
    """

    def __init__(
        self,
        fetcher: BinaryFetcher,
        image_client: ImageGenerationClient,
        retry_options: Optional[RetryOptions] = None,
        fetch_retry_options: Optional[RetryOptions] = None,
        ai_timeout_ms: Optional[int] = None,
        pipeline_timeout_ms: Optional[int] = None,
    ):
        self.services = PipelineServices(
            fetcher=fetcher,
            image_client=image_client,
            ai_retry_options=retry_options or RetryOptions(
                max_retries=settings.AI_MAX_RETRIES,
                base_delay_ms=settings.AI_RETRY_BASE_DELAY_MS,
                max_delay_ms=settings.AI_RETRY_MAX_DELAY_MS,
            ),
            fetch_retry_options=fetch_retry_options or RetryOptions(
                max_retries=settings.FETCH_MAX_RETRIES,
            ),
            ai_timeout_ms=ai_timeout_ms or settings.AI_CALL_TIMEOUT_MS,
        )
        self.pipeline_timeout_ms = pipeline_timeout_ms or settings.PIPELINE_TIMEOUT_MS

    async def execute(
        self,
        run: GenerationRun,
        blocks: Sequence[PipelineBlock],
        input_collection: Optional[InputCollection] = None,
    ) -> PipelineResult:
        """Execute every block of the pipeline for one run."""
        start = time.monotonic()
        state = RunContext(
            run=run,
            context=build_execution_context(run.participant_data),
            input_collection=input_collection,
        )
        block_results: List[BlockResult] = []
        ordered = order_blocks(blocks)

        logger.info(f"Generation {run.id}: executing {len(ordered)} block(s)")

        current: Optional[PipelineBlock] = None
        try:
            for index, block in enumerate(ordered):
                current = block
                self._check_deadline(start, block)

                logger.info(
                    f"Generation {run.id}: block {index + 1}/{len(ordered)} "
                    f"{block.block_name.value} ({block.id})"
                )
                handler = get_handler(block.block_name)
                block_results.append(await handler.execute(block, state, self.services))

            current = None
            # A run with no image block still returns the participant's selfie
            if await state.current_image(self.services) is None:
                raise PipelineError(
                    PipelineErrorCode.INVALID_CONFIG,
                    "Le pipeline n'a produit aucune image",
                )

        except PipelineError as e:
            return self._failed(run, state, block_results, e, current, start)

        except Exception as e:
            logger.exception(f"Generation {run.id}: unexpected error in block {current.id if current else '-'}")
            error = PipelineError(
                PipelineErrorCode.API_ERROR,
                f"Erreur inattendue: {e}",
                block_id=current.id if current else None,
            )
            return self._failed(run, state, block_results, error, current, start)

        elapsed = _elapsed_ms(start)
        logger.info(
            f"Generation {run.id}: completed in {elapsed}ms, "
            f"final image {len(state.working_image)} bytes"
        )
        return PipelineResult(
            generation_id=run.id,
            state=RunState.COMPLETED,
            final_image=state.working_image,
            final_prompt=state.final_prompt,
            block_results=block_results,
            block_outputs=dict(state.block_outputs),
            context=dict(state.context),
            execution_time_ms=elapsed,
        )

    def _check_deadline(self, start: float, block: PipelineBlock) -> None:
        if _elapsed_ms(start) > self.pipeline_timeout_ms:
            raise PipelineError(
                PipelineErrorCode.TIMEOUT,
                f"Timeout de génération dépassé ({self.pipeline_timeout_ms // 1000}s)",
                block_id=block.id,
            )

    def _failed(
        self,
        run: GenerationRun,
        state: RunContext,
        block_results: List[BlockResult],
        error: PipelineError,
        block: Optional[PipelineBlock],
        start: float,
    ) -> PipelineResult:
        block_id = error.block_id or (block.id if block else None)
        if block is not None and not any(r.block_id == block.id for r in block_results):
            block_results.append(BlockResult(
                block_id=block.id,
                block_name=block.block_name,
                success=False,
                error=error.message,
            ))

        logger.error(f"Generation {run.id}: failed with {error.code.value} at block {block_id}: {error.message}")
        return PipelineResult(
            generation_id=run.id,
            state=RunState.FAILED,
            final_prompt=state.final_prompt,
            block_results=block_results,
            block_outputs=dict(state.block_outputs),
            context=dict(state.context),
            error=PipelineErrorInfo(code=error.code.value, message=error.message, block_id=block_id),
            execution_time_ms=_elapsed_ms(start),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
