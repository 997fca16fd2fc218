"""Stage handler registry used by the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from curriculum_engine.core.errors import UnsupportedJobTypeError
from curriculum_engine.jobs.models import DocumentRecord, JobRecord
from curriculum_engine.jobs.progress import DocumentProgressTracker


@dataclass
class StageContext:
  """Per-job state shared by the stages of one attempt."""

  job: JobRecord
  document: DocumentRecord
  progress: DocumentProgressTracker
  in_full_pipeline: bool = False


class StageHandler(Protocol):
  """Processor contract for one job type."""

  async def run(self, context: StageContext) -> None:
    """Execute the stage; exceptions become job failures."""


class StageRegistry:
  """Registry mapping job types to stage handlers."""

  def __init__(self, handlers: dict[str, StageHandler]) -> None:
    self._handlers = handlers

  def resolve(self, job_type: str) -> StageHandler:
    """Resolve the handler for a job type."""
    handler = self._handlers.get(job_type)
    if handler is None:
      raise UnsupportedJobTypeError(f"Unsupported job type: {job_type}")
    return handler
