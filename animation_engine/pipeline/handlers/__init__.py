"""
Block Handlers - Block-specific processing.

Each handler implements execute(block, state, services) and raises
PipelineError for classified failures.
"""

from typing import TYPE_CHECKING
from animation_engine.pipeline.types import BlockName

if TYPE_CHECKING:
    from animation_engine.pipeline.handlers.base import BaseBlockHandler


def get_handler(block_name: BlockName) -> "BaseBlockHandler":
    """Get the appropriate handler for a block name."""
    from animation_engine.pipeline.handlers.crop_resize import CropResizeHandler
    from animation_engine.pipeline.handlers.ai_generation import AIGenerationHandler
    from animation_engine.pipeline.handlers.quiz_scoring import QuizScoringHandler
    from animation_engine.pipeline.handlers.filters import FiltersHandler

    handlers = {
        BlockName.CROP_RESIZE: CropResizeHandler(),
        BlockName.AI_GENERATION: AIGenerationHandler(),
        BlockName.QUIZ_SCORING: QuizScoringHandler(),
        BlockName.FILTERS: FiltersHandler(),
    }

    handler = handlers.get(block_name)
    if not handler:
        raise ValueError(f"No handler for block name: {block_name}")

    return handler
