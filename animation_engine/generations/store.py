"""
Generation Store - status sink and result upload collaborators.

The engine reports run transitions (processing, completed, failed) and hands
the final image to a result uploader. Real persistence lives outside this
package; the in-memory implementations back development and tests.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from animation_engine.pipeline.types import GenerationRun, GenerationStatus

logger = logging.getLogger(__name__)


@dataclass
class StatusTransition:
    """A recorded status change of a generation run."""
    status: GenerationStatus
    at: datetime
    error: Optional[str] = None


@dataclass
class GenerationRecord:
    """What the in-memory store knows about one run."""
    generation_id: str
    status: GenerationStatus = GenerationStatus.PENDING
    history: List[StatusTransition] = field(default_factory=list)
    result_url: Optional[str] = None
    final_prompt: Optional[str] = None
    error: Optional[str] = None
    completed_at: Optional[datetime] = None


class GenerationStore(ABC):
    """Abstract base class for generation status sinks."""

    @abstractmethod
    async def update_status(
        self,
        generation_id: str,
        status: GenerationStatus,
        error: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    async def update_result(
        self,
        generation_id: str,
        result_url: str,
        final_prompt: Optional[str] = None,
    ) -> None:
        """Mark a run completed with its result location."""
        pass

    @abstractmethod
    async def update_error(
        self,
        generation_id: str,
        error_code: str,
        error_message: str,
    ) -> None:
        """Mark a run failed with a taxonomy code and message."""
        pass


class ResultUploader(ABC):
    """Abstract base class for final image storage."""

    @abstractmethod
    async def upload_result(self, image: bytes, generation_id: str) -> str:
        """Store the final image and return its URL."""
        pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryGenerationStore(GenerationStore):
    """Keeps every status transition per generation id."""

    def __init__(self):
        self.records: Dict[str, GenerationRecord] = {}

    def register(self, run: GenerationRun) -> GenerationRecord:
        record = GenerationRecord(generation_id=run.id, status=run.status)
        record.history.append(StatusTransition(status=run.status, at=_now()))
        self.records[run.id] = record
        return record

    def get(self, generation_id: str) -> Optional[GenerationRecord]:
        return self.records.get(generation_id)

    def statuses(self, generation_id: str) -> List[GenerationStatus]:
        record = self.records.get(generation_id)
        return [t.status for t in record.history] if record else []

    def _record(self, generation_id: str) -> GenerationRecord:
        if generation_id not in self.records:
            self.records[generation_id] = GenerationRecord(generation_id=generation_id)
        return self.records[generation_id]

    def _transition(
        self,
        generation_id: str,
        status: GenerationStatus,
        error: Optional[str] = None,
    ) -> GenerationRecord:
        record = self._record(generation_id)
        record.status = status
        record.history.append(StatusTransition(status=status, at=_now(), error=error))
        if error:
            record.error = error
        logger.info(f"Generation {generation_id} status updated: {status.value}")
        return record

    async def update_status(
        self,
        generation_id: str,
        status: GenerationStatus,
        error: Optional[str] = None,
    ) -> None:
        self._transition(generation_id, status, error)

    async def update_result(
        self,
        generation_id: str,
        result_url: str,
        final_prompt: Optional[str] = None,
    ) -> None:
        record = self._transition(generation_id, GenerationStatus.COMPLETED)
        record.result_url = result_url
        record.final_prompt = final_prompt
        record.completed_at = _now()

    async def update_error(
        self,
        generation_id: str,
        error_code: str,
        error_message: str,
    ) -> None:
        error = json.dumps({"code": error_code, "message": error_message}, ensure_ascii=False)
        self._transition(generation_id, GenerationStatus.FAILED, error)
        logger.error(f"Generation {generation_id} failed: {error_code} - {error_message}")


class InMemoryResultUploader(ResultUploader):
    """Keeps uploaded results in memory under memory:// URLs."""

    def __init__(self):
        self.results: Dict[str, bytes] = {}

    async def upload_result(self, image: bytes, generation_id: str) -> str:
        url = f"memory://results/{generation_id}.png"
        self.results[url] = image
        logger.info(f"Stored result for generation {generation_id}: {len(image)} bytes")
        return url
