"""
Base Block Handler - Abstract base class for pipeline block handlers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from animation_engine.ai.client import ImageGenerationClient
from animation_engine.pipeline.context import ExecutionContext
from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode
from animation_engine.pipeline.references import fetch_with_retry
from animation_engine.pipeline.types import (
    BlockResult,
    GenerationRun,
    InputCollection,
    ParticipantData,
    PipelineBlock,
)
from animation_engine.storage.fetch import BinaryFetcher
from animation_engine.utils.retry import RetryOptions


@dataclass
class PipelineServices:
    """External collaborators shared by every block of a run (read-only)."""
    fetcher: BinaryFetcher
    image_client: ImageGenerationClient
    ai_retry_options: RetryOptions
    fetch_retry_options: RetryOptions
    ai_timeout_ms: int


@dataclass
class RunContext:
    """
    Mutable state of one generation run.

    Created per run and never shared between runs. `block_outputs` is only
    appended to, keyed by the id of the AI block that produced the image.
    """
    run: GenerationRun
    context: ExecutionContext
    input_collection: Optional[InputCollection] = None
    block_outputs: Dict[str, bytes] = field(default_factory=dict)
    working_image: Optional[bytes] = None
    final_prompt: Optional[str] = None
    selfie_buffer: Optional[bytes] = None

    @property
    def participant_data(self) -> ParticipantData:
        return self.run.participant_data

    async def get_selfie(self, services: PipelineServices) -> Optional[bytes]:
        """The participant's selfie, downloaded at most once per run."""
        if self.selfie_buffer is None and self.run.selfie_url:
            try:
                self.selfie_buffer = await fetch_with_retry(
                    services.fetcher, self.run.selfie_url, services.fetch_retry_options
                )
            except Exception as e:
                raise PipelineError(
                    PipelineErrorCode.REFERENCE_IMAGE_NOT_FOUND,
                    f"Impossible de télécharger le selfie: {e}",
                ) from e
        return self.selfie_buffer

    async def current_image(self, services: PipelineServices) -> Optional[bytes]:
        """The working image; before any image block ran, the selfie if there is one."""
        if self.working_image is None:
            self.working_image = await self.get_selfie(services)
        return self.working_image


class BaseBlockHandler(ABC):
    """
    Abstract base class for block handlers.

    Each block name has one handler that knows how to run its block against
    the run state. Classified failures are raised as PipelineError.
    """

    @abstractmethod
    async def execute(
        self,
        block: PipelineBlock,
        state: RunContext,
        services: PipelineServices,
    ) -> BlockResult:
        """Run the block, updating the run state in place."""
        pass

    def success(self, block: PipelineBlock, output: Optional[bytes] = None) -> BlockResult:
        return BlockResult(
            block_id=block.id,
            block_name=block.block_name,
            success=True,
            output_size=len(output) if output is not None else None,
        )

    def skipped(self, block: PipelineBlock) -> BlockResult:
        return BlockResult(
            block_id=block.id,
            block_name=block.block_name,
            success=True,
            skipped=True,
        )
