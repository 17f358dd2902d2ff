"""
Generation Orchestrator - validates, executes and records one generation run.

Status transitions reported to the store:
    pending -> processing -> completed (result url, final prompt)
                          -> failed (code + message)
"""

import logging

from animation_engine.generations.store import GenerationStore, ResultUploader
from animation_engine.pipeline.engine import PipelineExecutor
from animation_engine.pipeline.errors import PipelineErrorCode
from animation_engine.pipeline.types import (
    GenerationRun,
    GenerationStatus,
    PipelineDefinition,
    PipelineErrorInfo,
    PipelineResult,
    RunState,
)
from animation_engine.pipeline.validator import validate_pipeline_logic

logger = logging.getLogger(__name__)


async def run_pipeline_for_generation(
    run: GenerationRun,
    definition: PipelineDefinition,
    executor: PipelineExecutor,
    store: GenerationStore,
    uploader: ResultUploader,
) -> PipelineResult:
    """
    Run an animation's pipeline for one participant submission.

    A definition the validator rejects fails the run without executing any
    block. Warning and info verdicts are logged and the run proceeds.
    """
    verdict = validate_pipeline_logic(definition.pipeline, definition.input_collection)
    if verdict.is_blocking:
        logger.warning(f"Generation {run.id}: pipeline rejected by validator: {verdict.message}")
        await store.update_error(run.id, PipelineErrorCode.INVALID_CONFIG.value, verdict.message)
        return PipelineResult(
            generation_id=run.id,
            state=RunState.FAILED,
            error=PipelineErrorInfo(
                code=PipelineErrorCode.INVALID_CONFIG.value,
                message=verdict.message,
            ),
        )
    if verdict.message:
        logger.info(f"Generation {run.id}: validator {verdict.type.value}: {verdict.message}")

    await store.update_status(run.id, GenerationStatus.PROCESSING)

    try:
        result = await executor.execute(run, definition.pipeline, definition.input_collection)

        if not result.success:
            await store.update_error(run.id, result.error.code, result.error.message)
            return result

        result_url = await uploader.upload_result(result.final_image, run.id)
        await store.update_result(run.id, result_url, result.final_prompt)
        logger.info(f"Generation {run.id}: result stored at {result_url}")
        return result

    except Exception as e:
        logger.exception(f"Generation {run.id}: unexpected orchestration error")
        message = f"Erreur inattendue: {e}"
        await store.update_error(run.id, PipelineErrorCode.API_ERROR.value, message)
        return PipelineResult(
            generation_id=run.id,
            state=RunState.FAILED,
            error=PipelineErrorInfo(code=PipelineErrorCode.API_ERROR.value, message=message),
        )
