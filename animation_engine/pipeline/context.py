"""
Execution context and prompt templating.

The execution context is a flat mapping of variable name to string value built
from a participant submission. Prompt templates reference it with {variable}
tokens. Image tokens ({selfie}, {logo}...) are resolved in a separate pass that
runs first, so unmatched tokens survive for the variable pass.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from animation_engine.pipeline.types import (
    BaseFieldsConfig,
    BlockName,
    InputCollection,
    InputElementType,
    ParticipantData,
    PipelineBlock,
    ReferenceImageConfig,
)

logger = logging.getLogger(__name__)

ExecutionContext = Dict[str, str]

VARIABLE_PATTERN = re.compile(r"\{(\w+)\}")

PROFILE_VARIABLE_SUFFIXES = (
    "profile_key",
    "profile_name",
    "profile_description",
    "profile_image_style",
    "profile_scores",
)


def _stringify(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_execution_context(participant_data: ParticipantData) -> ExecutionContext:
    """
    Build prompt variables from a participant submission.

    Always defines nom, prenom and email (empty when absent). Each answer adds
    question<N>, numbered by its position among the submitted non-selfie
    answers, and answer_<elementId>.
    """
    context: ExecutionContext = {
        "nom": participant_data.nom or "",
        "prenom": participant_data.prenom or "",
        "email": participant_data.email or "",
    }

    index = 0
    for answer in participant_data.answers:
        if answer.type == InputElementType.SELFIE:
            continue
        index += 1
        value = _stringify(answer.value)
        context[f"question{index}"] = value
        context[f"answer_{answer.element_id}"] = value

    return context


def replace_variables(text: str, context: ExecutionContext) -> str:
    """Replace every {variable} token; unknown variables become empty strings."""

    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in context:
            return context[key]
        logger.warning(f"Unknown variable '{key}' in prompt, replaced with empty string")
        return ""

    return VARIABLE_PATTERN.sub(substitute, text)


def replace_image_variables(
    text: str,
    reference_images: Optional[Sequence[ReferenceImageConfig]],
) -> str:
    """
    Replace tokens naming a reference image with its positional label.

    Names match case-insensitively. Labels are "Image <k>" where k is the
    1-based rank of the image by ascending order. Other tokens are untouched.
    """
    if not reference_images:
        return text

    ranked = sorted(reference_images, key=lambda img: img.order)
    labels = {img.name.lower(): f"Image {rank}" for rank, img in enumerate(ranked, start=1)}

    def substitute(match: "re.Match[str]") -> str:
        return labels.get(match.group(1).lower(), match.group(0))

    return VARIABLE_PATTERN.sub(substitute, text)


def render_prompt(
    template: str,
    context: ExecutionContext,
    reference_images: Optional[Sequence[ReferenceImageConfig]] = None,
) -> str:
    """Two-pass render: image labels first, then context variables."""
    return replace_variables(replace_image_variables(template, reference_images), context)


def get_available_variables(
    base_fields: Optional[BaseFieldsConfig] = None,
    input_collection: Optional[InputCollection] = None,
    pipeline: Optional[Iterable[PipelineBlock]] = None,
) -> List[str]:
    """
    List the {tokens} a prompt author can use for an animation.

    Questions are numbered over the configured input elements sorted by order,
    skipping selfie elements. build_execution_context() numbers over the
    submitted answers instead; the two agree as long as participants answer
    every non-selfie element in configured order.
    """
    variables: List[str] = []

    if base_fields is not None:
        if base_fields.name.enabled:
            variables.append("{nom}")
        if base_fields.first_name.enabled:
            variables.append("{prenom}")
        if base_fields.email.enabled:
            variables.append("{email}")

    if input_collection is not None:
        elements = sorted(input_collection.elements, key=lambda el: el.order)
        questions = [el for el in elements if el.type != InputElementType.SELFIE]
        variables.extend(f"{{question{i}}}" for i in range(1, len(questions) + 1))

    for block in pipeline or []:
        scoring = block.config.quiz_scoring
        if block.block_name == BlockName.QUIZ_SCORING and scoring is not None:
            variables.extend(f"{{{scoring.name}_{suffix}}}" for suffix in PROFILE_VARIABLE_SUFFIXES)

    return variables
