"""
Reference Image Resolver - loads the images an AI block works from.

Sources:
- selfie: the participant's selfie; its absence is a hard failure
- upload / url: fetched from the descriptor's URL
- ai-block-output: the in-memory output of an earlier block in the same run

Results are ordered by ascending `order`, which is also the numbering used
for "Image <k>" labels in prompts. Any failure aborts the whole resolution.
"""

import logging
from typing import Dict, List, Optional, Sequence

from animation_engine.config import settings
from animation_engine.pipeline.errors import PipelineError, PipelineErrorCode
from animation_engine.pipeline.types import (
    GenerationRun,
    ImageSource,
    ReferenceImageConfig,
    ResolvedReferenceImage,
)
from animation_engine.storage.fetch import BinaryFetcher
from animation_engine.utils.retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)


async def fetch_with_retry(
    fetcher: BinaryFetcher,
    url: str,
    retry_options: Optional[RetryOptions] = None,
) -> bytes:
    """Fetch a URL through the retry policy used for reference downloads."""
    options = retry_options or RetryOptions(max_retries=settings.FETCH_MAX_RETRIES)
    return await with_retry(lambda: fetcher.fetch(url), options)


async def resolve_reference_images(
    descriptors: Optional[Sequence[ReferenceImageConfig]],
    generation_run: GenerationRun,
    block_outputs: Dict[str, bytes],
    fetcher: BinaryFetcher,
    retry_options: Optional[RetryOptions] = None,
    selfie_buffer: Optional[bytes] = None,
) -> List[ResolvedReferenceImage]:
    """
    Resolve reference image descriptors into in-memory buffers.

    `selfie_buffer` lets the caller pass a selfie it already downloaded for
    this run instead of fetching it again.
    """
    if not descriptors:
        return []

    resolved: List[ResolvedReferenceImage] = []

    for descriptor in sorted(descriptors, key=lambda d: d.order):
        buffer = await _resolve_one(
            descriptor, generation_run, block_outputs, fetcher, retry_options, selfie_buffer
        )
        resolved.append(ResolvedReferenceImage(
            name=descriptor.name,
            source=descriptor.source,
            buffer=buffer,
            size_bytes=len(buffer),
        ))

    logger.info(
        f"Resolved {len(resolved)} reference image(s) for generation {generation_run.id}: "
        + ", ".join(f"{img.name}={img.size_bytes}B" for img in resolved)
    )
    return resolved


async def _resolve_one(
    descriptor: ReferenceImageConfig,
    generation_run: GenerationRun,
    block_outputs: Dict[str, bytes],
    fetcher: BinaryFetcher,
    retry_options: Optional[RetryOptions],
    selfie_buffer: Optional[bytes],
) -> bytes:
    source = descriptor.source

    if source == ImageSource.SELFIE:
        if selfie_buffer is not None:
            return selfie_buffer
        if not generation_run.selfie_url:
            raise PipelineError(
                PipelineErrorCode.SELFIE_REQUIRED_MISSING,
                f"Selfie requis pour l'image de référence '{descriptor.name}' mais absent",
            )
        return await _fetch_reference(
            descriptor, generation_run.selfie_url, fetcher, retry_options
        )

    if source in (ImageSource.UPLOAD, ImageSource.URL):
        if not descriptor.url:
            raise PipelineError(
                PipelineErrorCode.REFERENCE_IMAGE_NOT_FOUND,
                f"URL manquante pour l'image de référence '{descriptor.name}'",
            )
        return await _fetch_reference(descriptor, descriptor.url, fetcher, retry_options)

    if source == ImageSource.AI_BLOCK_OUTPUT:
        buffer = block_outputs.get(descriptor.source_block_id or "")
        if buffer is None:
            raise PipelineError(
                PipelineErrorCode.REFERENCE_IMAGE_NOT_FOUND,
                f"Image du bloc '{descriptor.source_block_id}' introuvable "
                f"pour l'image de référence '{descriptor.name}'",
            )
        return buffer

    raise PipelineError(
        PipelineErrorCode.INVALID_CONFIG,
        f"Source d'image inconnue: {source}",
    )


async def _fetch_reference(
    descriptor: ReferenceImageConfig,
    url: str,
    fetcher: BinaryFetcher,
    retry_options: Optional[RetryOptions],
) -> bytes:
    try:
        return await fetch_with_retry(fetcher, url, retry_options)
    except Exception as e:
        logger.error(f"Failed to fetch reference image '{descriptor.name}' from {url}: {e}")
        raise PipelineError(
            PipelineErrorCode.REFERENCE_IMAGE_NOT_FOUND,
            f"Impossible de télécharger l'image de référence '{descriptor.name}': {e}",
        ) from e
