"""
Quiz Scoring - maps selected quiz answers to a winning profile.

Each selected question votes for at most one profile: the one mapped to the
option the participant picked. Missing answers and unmapped option texts are
ignored. The profile with the most votes wins; ties go to the alphabetically
smallest profile key.
"""

import json
import logging
from typing import Dict, List, Optional, Sequence

from animation_engine.pipeline.context import ExecutionContext
from animation_engine.pipeline.types import (
    InputElement,
    ParticipantData,
    PipelineBlock,
    QuizScoringResult,
)

logger = logging.getLogger(__name__)

MIN_PROFILES = 2


def execute_quiz_scoring_block(
    block: PipelineBlock,
    participant_data: ParticipantData,
    choice_questions: Optional[Sequence[InputElement]] = None,
) -> Optional[QuizScoringResult]:
    """
    Score a participant's answers for one quiz-scoring block.

    Returns None for an unconfigured or degenerate block (no scoring config,
    no selected questions, or fewer than two profiles) so the pipeline can skip it.
    When choice_questions is non-empty, selected ids outside it cast no vote.
    """
    config = block.config.quiz_scoring
    if config is None:
        logger.warning(f"Quiz scoring block {block.id} has no scoring config, skipping")
        return None

    if not config.selected_question_ids:
        logger.warning(f"Quiz scoring block {block.id} has no selected questions, skipping")
        return None

    if len(config.profiles) < MIN_PROFILES:
        logger.warning(
            f"Quiz scoring block {block.id} defines {len(config.profiles)} profile(s), "
            f"at least {MIN_PROFILES} required, skipping"
        )
        return None

    known_questions = {q.id for q in choice_questions or []}
    answers_by_element = {a.element_id: a for a in participant_data.answers}
    mappings_by_element = {m.element_id: m for m in config.question_mappings}

    scores: Dict[str, int] = {profile.key: 0 for profile in config.profiles}

    for element_id in config.selected_question_ids:
        if known_questions and element_id not in known_questions:
            logger.warning(f"Selected question {element_id} is not a configured choice question, ignored")
            continue

        answer = answers_by_element.get(element_id)
        if answer is None:
            continue

        question_mapping = mappings_by_element.get(element_id)
        if question_mapping is None:
            continue

        answer_text = "" if answer.value is None else str(answer.value)
        option = next(
            (m for m in question_mapping.option_mappings if m.option_text == answer_text),
            None,
        )
        if option is None:
            logger.debug(f"Answer to {element_id} matches no configured option, ignored")
            continue

        if option.profile_key in scores:
            scores[option.profile_key] += 1

    winner_key = _pick_winner(scores)
    winner = next(p for p in config.profiles if p.key == winner_key)

    logger.info(
        f"Quiz scoring block {block.id} ({config.name}): winner={winner_key}, scores={scores}"
    )

    return QuizScoringResult(
        block_name=config.name,
        winner_profile=winner,
        scores=scores,
    )


def _pick_winner(scores: Dict[str, int]) -> str:
    """Highest tally wins; ties resolve to the smallest key alphabetically."""
    ranked: List[str] = sorted(scores)
    return max(ranked, key=lambda key: scores[key])


def enrich_context_with_scoring_result(
    context: ExecutionContext,
    result: QuizScoringResult,
) -> ExecutionContext:
    """
    Add the five <blockName>_profile_* variables of a scoring result.

    The context is updated in place and returned. Results of other scoring
    blocks stay intact because each uses its own prefix.
    """
    prefix = result.block_name
    profile = result.winner_profile

    context[f"{prefix}_profile_key"] = profile.key
    context[f"{prefix}_profile_name"] = profile.name
    context[f"{prefix}_profile_description"] = profile.description
    context[f"{prefix}_profile_image_style"] = profile.image_style
    context[f"{prefix}_profile_scores"] = json.dumps(
        result.scores, separators=(",", ":"), ensure_ascii=False
    )

    return context
