"""Claim-and-execute loop for curriculum processing jobs."""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Literal

from curriculum_engine.core.errors import DocumentNotFoundError, NonRetryableJobError
from curriculum_engine.jobs import progress as checkpoints
from curriculum_engine.jobs.dispatch import StageContext, StageRegistry
from curriculum_engine.jobs.models import DocumentRecord, DocumentStatus, JobRecord
from curriculum_engine.jobs.progress import DocumentProgressTracker
from curriculum_engine.notifications.service import NotificationService
from curriculum_engine.storage.documents_repo import DocumentsRepository
from curriculum_engine.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

OutcomeStatus = Literal["completed", "requeued", "failed", "lost"]
MAX_ERROR_CHARS = 2000


@dataclass(frozen=True)
class JobOutcome:
  job_id: str
  status: OutcomeStatus
  error: str | None = None


@dataclass(frozen=True)
class DispatchSummary:
  """Counts reported for one dispatch invocation."""

  processed: int
  failed: int
  total: int

  def to_dict(self) -> dict[str, int]:
    return {"processed": self.processed, "failed": self.failed, "total": self.total}


def _error_message(exc: BaseException) -> str:
  message = str(exc).strip() or type(exc).__name__
  return message[:MAX_ERROR_CHARS]


class JobDispatcher:
  """Claims a bounded batch of jobs and runs each one in isolation.

  A job that raises is requeued while attempts remain, unless the error is a
  NonRetryableJobError. Otherwise the job and its document are failed. One
  job's failure never affects the others in the batch.
  """

  def __init__(
    self,
    *,
    jobs_repo: JobsRepository,
    documents_repo: DocumentsRepository,
    registry: StageRegistry,
    notifications: NotificationService,
    lease_seconds: int = 300,
    heartbeat_seconds: float = 60,
    retry_backoff_seconds: float = 30,
    clock: Callable[[], datetime.datetime] | None = None,
  ) -> None:
    self._jobs_repo = jobs_repo
    self._documents_repo = documents_repo
    self._registry = registry
    self._notifications = notifications
    self._lease_seconds = lease_seconds
    self._heartbeat_seconds = heartbeat_seconds
    self._retry_backoff_seconds = retry_backoff_seconds
    self._clock = clock or (lambda: datetime.datetime.now(datetime.UTC))

  async def dispatch(self, max_jobs: int) -> DispatchSummary:
    """Claim up to max_jobs jobs, run them concurrently, and report counts."""
    await self._fail_abandoned_jobs()
    jobs = await self._jobs_repo.claim_batch(max_jobs, lease_seconds=self._lease_seconds)
    if not jobs:
      return DispatchSummary(processed=0, failed=0, total=0)

    logger.info("Claimed %d curriculum job(s): %s", len(jobs), ", ".join(job.id for job in jobs))
    results = await asyncio.gather(*(self.run_job(job) for job in jobs), return_exceptions=True)

    processed = 0
    for job, result in zip(jobs, results, strict=True):
      if isinstance(result, BaseException):
        logger.error("Job %s crashed outside stage handling", job.id, exc_info=result)
        continue
      if result.status == "completed":
        processed += 1
    return DispatchSummary(processed=processed, failed=len(jobs) - processed, total=len(jobs))

  async def run_job(self, job: JobRecord) -> JobOutcome:
    """Execute one claimed job and record its outcome."""
    document: DocumentRecord | None = None
    try:
      document = await self._documents_repo.get_document(job.curriculum_document_id)
      if document is None:
        raise DocumentNotFoundError(f"Curriculum document {job.curriculum_document_id} not found")
      handler = self._registry.resolve(job.job_type)
      context = StageContext(job=job, document=document, progress=DocumentProgressTracker(self._documents_repo, document.id))
      logger.info("Running job %s type=%s document=%s attempt=%d/%d", job.id, job.job_type, document.id, job.attempts, job.max_attempts)
      async with self._heartbeat(job):
        await handler.run(context)
    except Exception as exc:  # noqa: BLE001
      return await self._record_failure(job, document, exc)
    return await self._record_success(job, document)

  async def get_status(self, document_id: str) -> DocumentStatus | None:
    """Return the document's processing state plus its most recent job."""
    document = await self._documents_repo.get_document(document_id)
    if document is None:
      return None
    latest = await self._jobs_repo.latest_for_document(document_id)
    return DocumentStatus(
      processing_status=document.processing_status,
      processing_progress=document.processing_progress,
      processing_error=document.processing_error,
      latest_job_status=latest.status if latest else None,
      latest_job_error=latest.error_message if latest else None,
    )

  async def count_pending(self) -> int:
    return await self._jobs_repo.count_pending()

  async def _record_success(self, job: JobRecord, document: DocumentRecord) -> JobOutcome:
    completed = await self._jobs_repo.complete_job(job.id)
    if completed is None:
      logger.warning("Job %s lost its claim before completion; leaving state to the new holder", job.id)
      return JobOutcome(job_id=job.id, status="lost")
    if job.drives_document:
      await self._documents_repo.update_processing(document.id, status="completed", progress=checkpoints.COMPLETE, clear_error=True)
      await self._notifications.notify_document_processed(document, completed)
    logger.info("Job %s completed", job.id)
    return JobOutcome(job_id=job.id, status="completed")

  async def _record_failure(self, job: JobRecord, document: DocumentRecord | None, exc: Exception) -> JobOutcome:
    message = _error_message(exc)
    terminal = isinstance(exc, NonRetryableJobError) or not job.attempts_remaining
    if terminal:
      logger.error("Job %s failed permanently after attempt %d/%d: %s", job.id, job.attempts, job.max_attempts, message, exc_info=exc)
      await self._jobs_repo.fail_job(job.id, error_message=message)
      if document is not None and job.drives_document:
        await self._documents_repo.update_processing(document.id, status="failed", error=message)
      return JobOutcome(job_id=job.id, status="failed", error=message)

    available_at = self._retry_at(job.attempts)
    logger.warning("Job %s attempt %d/%d failed; requeued (available_at=%s): %s", job.id, job.attempts, job.max_attempts, available_at, message)
    await self._jobs_repo.requeue_job(job.id, error_message=message, available_at=available_at)
    if document is not None and job.drives_document:
      await self._documents_repo.update_processing(document.id, error=f"Attempt {job.attempts} of {job.max_attempts} failed: {message}")
    return JobOutcome(job_id=job.id, status="requeued", error=message)

  def _retry_at(self, attempts: int) -> datetime.datetime | None:
    if self._retry_backoff_seconds <= 0:
      return None
    delay = self._retry_backoff_seconds * (2 ** max(attempts - 1, 0))
    return self._clock() + datetime.timedelta(seconds=delay)

  async def _fail_abandoned_jobs(self) -> None:
    for job in await self._jobs_repo.expire_stale():
      logger.warning("Job %s abandoned in %s after %d attempt(s); marking failed", job.id, job.job_type, job.attempts)
      if job.drives_document:
        await self._documents_repo.update_processing(job.curriculum_document_id, status="failed", error=job.error_message or "Processing was interrupted")

  @contextlib.asynccontextmanager
  async def _heartbeat(self, job: JobRecord) -> AsyncIterator[None]:
    if self._heartbeat_seconds <= 0:
      yield
      return
    task = asyncio.create_task(self._renew_lease_periodically(job.id))
    try:
      yield
    finally:
      task.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await task

  async def _renew_lease_periodically(self, job_id: str) -> None:
    while True:
      await asyncio.sleep(self._heartbeat_seconds)
      try:
        renewed = await self._jobs_repo.renew_lease(job_id, lease_seconds=self._lease_seconds)
      except Exception:  # noqa: BLE001
        logger.warning("Lease renewal failed for job %s", job_id, exc_info=True)
        continue
      if not renewed:
        logger.warning("Job %s is no longer processing; stopping lease renewal", job_id)
        return
