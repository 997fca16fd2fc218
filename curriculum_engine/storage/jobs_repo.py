"""Storage interfaces for curriculum processing jobs."""

from __future__ import annotations

import datetime
from typing import Protocol

from curriculum_engine.jobs.models import JobRecord


class JobsRepository(Protocol):
  """Repository contract for job persistence. Jobs are never deleted."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def claim_batch(self, max_jobs: int, *, lease_seconds: int) -> list[JobRecord]:
    """Atomically claim up to max_jobs claimable jobs by (priority, created_at) and mark them processing."""

  async def expire_stale(self) -> list[JobRecord]:
    """Fail jobs whose lease lapsed or attempts ran out, returning the jobs that were failed."""

  async def renew_lease(self, job_id: str, *, lease_seconds: int) -> bool:
    """Extend the claim lease of a processing job."""

  async def complete_job(self, job_id: str) -> JobRecord | None:
    """Mark a processing job completed."""

  async def requeue_job(self, job_id: str, *, error_message: str, available_at: datetime.datetime | None) -> JobRecord | None:
    """Return a processing job to pending for a later attempt."""

  async def fail_job(self, job_id: str, *, error_message: str) -> JobRecord | None:
    """Mark a job terminally failed."""

  async def latest_for_document(self, document_id: str) -> JobRecord | None:
    """Return the most recently created job for a document."""

  async def count_pending(self) -> int:
    """Count pending jobs across all documents."""
