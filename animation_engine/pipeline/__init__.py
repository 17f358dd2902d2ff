"""
Animation Pipeline Module - Block-based image generation engine.

A pipeline is an ordered list of blocks run once per participant submission:
1. crop-resize - center-crop and scale the working image
2. quiz-scoring - pick a profile from quiz answers and expose it to prompts
3. ai-generation - render a prompt and generate or edit an image
4. filters - local image filters on the working image

Entry points live in submodules so importing the data types stays cheap:
- engine.PipelineExecutor - executes a pipeline for one generation run
- orchestrator.run_pipeline_for_generation - validate, execute, record status
- validator.validate_pipeline_logic - pre-execution configuration check
"""

from animation_engine.pipeline.types import (
    BlockName,
    BlockType,
    GenerationRun,
    ParticipantData,
    PipelineBlock,
    PipelineDefinition,
    PipelineResult,
    ValidationResult,
)
from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode

__all__ = [
    "BlockName",
    "BlockType",
    "GenerationRun",
    "ParticipantData",
    "PipelineBlock",
    "PipelineDefinition",
    "PipelineResult",
    "ValidationResult",
    "PipelineError",
    "PipelineErrorCode",
]
