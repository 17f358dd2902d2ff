"""Quiz Scoring Handler - scores answers and exposes the winning profile to later prompts."""

import logging

from animation_engine.pipeline.handlers.base import BaseBlockHandler, PipelineServices, RunContext
from animation_engine.pipeline.scoring import (
    enrich_context_with_scoring_result,
    execute_quiz_scoring_block,
)
from animation_engine.pipeline.types import BlockResult, PipelineBlock

logger = logging.getLogger(__name__)


class QuizScoringHandler(BaseBlockHandler):

    async def execute(
        self,
        block: PipelineBlock,
        state: RunContext,
        services: PipelineServices,
    ) -> BlockResult:
        choice_questions = state.input_collection.choice_questions() if state.input_collection else None
        result = execute_quiz_scoring_block(block, state.participant_data, choice_questions)

        if result is None:
            return self.skipped(block)

        enrich_context_with_scoring_result(state.context, result)
        logger.info(
            f"Block {block.id}: profile '{result.winner_profile.key}' won "
            f"for '{result.block_name}' with scores {result.scores}"
        )
        return self.success(block)
