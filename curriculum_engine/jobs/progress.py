"""Document progress checkpoints for pipeline stages."""

from __future__ import annotations

import logging

from curriculum_engine.jobs.models import ProcessingStatus
from curriculum_engine.storage.documents_repo import DocumentsRepository

logger = logging.getLogger(__name__)

EXTRACTION_STARTED = 20
TEXT_EXTRACTED = 40
SECTIONS_REQUESTED = 60
SECTIONS_STORED = 80
MAPPING = 85
ANALYTICS = 90
COMPLETE = 100


class DocumentProgressTracker:
  """Writes fixed progress checkpoints for one job attempt.

  The first write of an attempt sets the baseline, so a fresh attempt may
  restart below the previous attempt's progress. Later writes never go below
  the highest value already written in this attempt.
  """

  def __init__(self, documents_repo: DocumentsRepository, document_id: str) -> None:
    self._documents_repo = documents_repo
    self._document_id = document_id
    self._current: int | None = None

  @property
  def current(self) -> int | None:
    return self._current

  async def advance(self, progress: int, *, status: ProcessingStatus | None = None) -> int:
    """Record a checkpoint, clamped to be non-decreasing within the attempt."""
    if not 0 <= progress <= COMPLETE:
      raise ValueError(f"Progress must be between 0 and {COMPLETE}, got {progress}")
    value = progress if self._current is None else max(self._current, progress)
    await self._documents_repo.update_processing(self._document_id, status=status, progress=value)
    self._current = value
    logger.debug("Document %s progress=%s status=%s", self._document_id, value, status)
    return value

  def mark(self, progress: int) -> None:
    """Record a checkpoint that was persisted by another write."""
    self._current = progress if self._current is None else max(self._current, progress)
