"""
Pipeline Configuration Validator.

Pure pre-execution check over the full block list. Verdicts:
- valid: nothing to report
- warning: runs, but is likely a configuration mistake (no AI block)
- info: non-blocking note (a text-only model discards a previous AI output)
- error: the pipeline must not run

The first rule that triggers decides the verdict.
"""

from typing import Dict, List, Optional, Sequence

from animation_engine.ai.models import get_model_by_id
from animation_engine.pipeline.types import (
    BlockType,
    ImageSource,
    ImageUsageMode,
    InputCollection,
    PipelineBlock,
    ReferenceImageConfig,
    ValidationResult,
    ValidationVerdict,
)

MODE_LABELS = {
    ImageUsageMode.NONE: "Pas d'image",
    ImageUsageMode.REFERENCE: "Référence de style",
    ImageUsageMode.EDIT: "Édition directe",
}


def _error(message: str) -> ValidationResult:
    return ValidationResult(type=ValidationVerdict.ERROR, message=message)


def _check_source_block(
    label: str,
    block: PipelineBlock,
    source_block_id: Optional[str],
    blocks_by_id: Dict[str, PipelineBlock],
) -> Optional[ValidationResult]:
    if not source_block_id:
        return _error(
            f"Le bloc '{label}' est configuré pour utiliser une image générée, "
            f"mais aucun bloc source n'est sélectionné."
        )

    source_block = blocks_by_id.get(source_block_id)
    if source_block is None:
        return _error(f"Le bloc '{label}' référence un bloc IA source qui n'existe pas.")

    # Equal order counts as "after": a block cannot depend on itself or a sibling
    if source_block.order >= block.order:
        return _error(
            f"Le bloc '{label}' référence un bloc IA source situé après lui dans le pipeline."
        )

    return None


def _check_reference_image(
    label: str,
    block: PipelineBlock,
    reference: ReferenceImageConfig,
    has_selfie: bool,
    blocks_by_id: Dict[str, PipelineBlock],
) -> Optional[ValidationResult]:
    if reference.source == ImageSource.SELFIE and not has_selfie:
        return _error(
            f"L'image de référence '{reference.name}' du bloc '{label}' utilise un selfie, "
            f"mais aucun selfie n'est collecté."
        )

    if reference.source in (ImageSource.URL, ImageSource.UPLOAD) and not reference.url:
        return _error(
            f"L'image de référence '{reference.name}' du bloc '{label}' n'a pas d'URL."
        )

    if reference.source == ImageSource.AI_BLOCK_OUTPUT:
        return _check_source_block(label, block, reference.source_block_id, blocks_by_id)

    return None


def validate_pipeline_logic(
    pipeline: Sequence[PipelineBlock],
    input_collection: Optional[InputCollection] = None,
) -> ValidationResult:
    """Check pipeline coherence and block dependencies before execution."""
    ai_blocks: List[PipelineBlock] = [b for b in pipeline if b.type == BlockType.AI_GENERATION]
    if not ai_blocks:
        return ValidationResult(
            type=ValidationVerdict.WARNING,
            message=(
                "Aucun bloc IA dans le pipeline. Les participants recevront leur image "
                "traitée uniquement (crop + filtres), sans génération IA."
            ),
        )

    has_selfie = input_collection.has_selfie() if input_collection else False
    blocks_by_id = {b.id: b for b in pipeline}

    for block in ai_blocks:
        config = block.config
        model = get_model_by_id(config.model_id) if config.model_id else None
        label = model.name if model else (config.model_id or block.id)
        mode = config.image_usage_mode
        source = config.image_source

        if model is not None and mode is not None and not model.supports_mode(mode):
            return _error(
                f"Le modèle '{model.name}' ne supporte pas le mode '{MODE_LABELS[mode]}'."
            )

        if mode is not None and mode != ImageUsageMode.NONE and not source and not config.reference_images:
            return _error(
                f"Le bloc '{label}' utilise le mode '{MODE_LABELS[mode]}' "
                f"mais aucune source d'image n'est configurée."
            )

        if source == ImageSource.SELFIE and not has_selfie:
            return _error(
                f"Le bloc '{label}' est configuré pour utiliser un selfie, "
                f"mais aucun selfie n'est collecté."
            )

        if source == ImageSource.URL and not config.image_url:
            return _error(
                f"Le bloc '{label}' est configuré pour utiliser une URL, "
                f"mais aucune URL n'est fournie."
            )

        if source == ImageSource.AI_BLOCK_OUTPUT:
            problem = _check_source_block(label, block, config.source_block_id, blocks_by_id)
            if problem:
                return problem

        for reference in config.reference_images or []:
            problem = _check_reference_image(label, block, reference, has_selfie, blocks_by_id)
            if problem:
                return problem

        text_only = model is not None and model.capabilities.supported_modes == [ImageUsageMode.NONE]
        if text_only and any(b.order < block.order for b in ai_blocks):
            return ValidationResult(
                type=ValidationVerdict.INFO,
                message=(
                    f"{model.name} va générer une nouvelle image à partir de zéro. "
                    f"L'image générée par le bloc précédent sera ignorée."
                ),
            )

    return ValidationResult(type=ValidationVerdict.VALID)
