"""
Google AI Studio Service - Gemini image generation and Imagen via REST.

- gemini-2.5-flash-image: text prompt plus any number of inline reference
  images, in order; returns the first image part of the first candidate
- imagen-4.0-generate-001: text-to-image through the predict endpoint
"""

import base64
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from animation_engine.config import settings

logger = logging.getLogger(__name__)


class GoogleAIError(Exception):
    """Google AI API returned an error or an unusable response."""

    def __init__(self, message: str, status: Optional[int] = None, code: str = "unknown_error"):
        super().__init__(message)
        self.status = status
        self.code = code


def _error_from_response(response: httpx.Response, operation: str) -> GoogleAIError:
    message = f"Google AI {operation} failed"
    code = "unknown_error"
    try:
        error = response.json().get("error", {})
        message = error.get("message") or message
        code = str(error.get("status") or error.get("code") or code)
    except ValueError:
        pass

    logger.error(f"Google AI API error: {operation} {response.status_code} - {message}")
    return GoogleAIError(message, status=response.status_code, code=code)


class GoogleAIService:
    """Image generation through the Google AI Studio REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.base_url = (base_url or settings.GOOGLE_AI_BASE_URL).rstrip("/")
        self._client = client
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate_with_gemini(
        self,
        model_id: str,
        prompt: str,
        reference_images: Sequence[bytes] = (),
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        for image in reference_images:
            parts.append({
                "inline_data": {
                    "mime_type": "image/png",
                    "data": base64.b64encode(image).decode("ascii"),
                }
            })

        generation_config: Dict[str, Any] = {"responseModalities": ["TEXT", "IMAGE"]}
        if aspect_ratio:
            generation_config["imageConfig"] = {"aspectRatio": aspect_ratio}

        logger.info(
            f"Starting Gemini generation: model={model_id}, references={len(reference_images)}, "
            f"aspect_ratio={aspect_ratio}, prompt_length={len(prompt)}"
        )
        start = time.monotonic()

        data = await self._post(
            f"models/{model_id}:generateContent",
            {"contents": [{"parts": parts}], "generationConfig": generation_config},
            "generateContent",
        )

        candidates = data.get("candidates") or []
        response_parts = (candidates[0].get("content") or {}).get("parts") if candidates else None
        if not isinstance(response_parts, list):
            raise GoogleAIError("Invalid response structure from Gemini")

        image_part = next(
            (
                p for p in response_parts
                if str((p.get("inlineData") or {}).get("mimeType", "")).startswith("image/")
            ),
            None,
        )
        if image_part is None or not image_part["inlineData"].get("data"):
            raise GoogleAIError("No image data returned from Gemini")

        image = base64.b64decode(image_part["inlineData"]["data"])
        logger.info(
            f"Gemini generation done: bytes={len(image)}, "
            f"duration={int((time.monotonic() - start) * 1000)}ms"
        )
        return image

    async def generate_with_imagen(
        self,
        model_id: str,
        prompt: str,
        aspect_ratio: Optional[str] = None,
    ) -> bytes:
        parameters: Dict[str, Any] = {"sampleCount": 1}
        if aspect_ratio:
            parameters["aspectRatio"] = aspect_ratio

        logger.info(f"Starting Imagen generation: model={model_id}, prompt_length={len(prompt)}")
        data = await self._post(
            f"models/{model_id}:predict",
            {"instances": [{"prompt": prompt}], "parameters": parameters},
            "predict",
        )

        predictions = data.get("predictions") or []
        encoded = predictions[0].get("bytesBase64Encoded") if predictions else None
        if not encoded:
            raise GoogleAIError("No image data returned from Imagen")
        return base64.b64decode(encoded)

    async def _post(self, path: str, payload: Dict[str, Any], operation: str) -> Dict[str, Any]:
        if not self.is_configured():
            raise GoogleAIError("GOOGLE_API_KEY is not configured", status=401, code="unauthenticated")

        url = f"{self.base_url}/{path}"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        if self._client is not None:
            response = await self._client.post(url, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=headers, json=payload)

        if response.status_code != 200:
            raise _error_from_response(response, operation)

        return response.json()
