"""Error taxonomy surfaced to the generation store for failed runs."""

from enum import Enum
from typing import Optional


class PipelineErrorCode(str, Enum):
    """Stable failure codes of a generation run."""
    TIMEOUT = "TIMEOUT"
    API_ERROR = "API_ERROR"
    UNSUPPORTED_MODEL = "UNSUPPORTED_MODEL"
    INVALID_CONFIG = "INVALID_CONFIG"
    REFERENCE_IMAGE_NOT_FOUND = "REFERENCE_IMAGE_NOT_FOUND"
    SELFIE_REQUIRED_MISSING = "SELFIE_REQUIRED_MISSING"


class PipelineError(Exception):
    """A classified failure that halts the current run."""

    def __init__(
        self,
        code: PipelineErrorCode,
        message: str,
        block_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.block_id = block_id

    def __repr__(self) -> str:
        return f"PipelineError(code={self.code.value!r}, message={self.message!r})"
