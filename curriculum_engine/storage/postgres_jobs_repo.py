"""Postgres-backed repository for curriculum processing jobs using SQLAlchemy."""

from __future__ import annotations

import datetime

from sqlalchemy import and_, func, or_, select, update

from curriculum_engine.core.database import get_session_factory
from curriculum_engine.jobs.models import JobRecord
from curriculum_engine.schema.jobs import ProcessingJob
from curriculum_engine.storage.jobs_repo import JobsRepository


def _now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


class PostgresJobsRepository(JobsRepository):
  """Persist processing jobs to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(job_record_to_model(record))
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(ProcessingJob, job_id)
      if row is None:
        return None
      return _model_to_record(row)

  async def claim_batch(self, max_jobs: int, *, lease_seconds: int) -> list[JobRecord]:
    if max_jobs <= 0:
      return []
    now = _now()
    claimable = or_(
      and_(ProcessingJob.status == "pending", or_(ProcessingJob.available_at.is_(None), ProcessingJob.available_at <= now)),
      and_(ProcessingJob.status == "processing", ProcessingJob.lease_expires_at < now),
    )
    candidates = (
      select(ProcessingJob.id)
      .where(claimable, ProcessingJob.attempts < ProcessingJob.max_attempts)
      .order_by(ProcessingJob.priority.asc(), ProcessingJob.created_at.asc())
      .limit(max_jobs)
      .with_for_update(skip_locked=True)
      .scalar_subquery()
    )
    stmt = (
      update(ProcessingJob)
      .where(ProcessingJob.id.in_(candidates))
      .values(status="processing", attempts=ProcessingJob.attempts + 1, started_at=now, lease_expires_at=now + datetime.timedelta(seconds=lease_seconds), available_at=None)
      .returning(ProcessingJob)
      .execution_options(synchronize_session=False)
    )
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).scalars().all()
      await session.commit()
    records = [_model_to_record(row) for row in rows]
    # RETURNING order is unspecified; restore claim order for callers.
    records.sort(key=lambda record: (record.priority, record.created_at))
    return records

  async def expire_stale(self) -> list[JobRecord]:
    now = _now()
    lease_lapsed = and_(ProcessingJob.status == "processing", ProcessingJob.lease_expires_at < now)
    stmt = (
      update(ProcessingJob)
      .where(ProcessingJob.status.in_(("pending", "processing")), ProcessingJob.attempts >= ProcessingJob.max_attempts, or_(ProcessingJob.status == "pending", lease_lapsed))
      .values(status="failed", completed_at=now, lease_expires_at=None, error_message=func.coalesce(ProcessingJob.error_message, "Job abandoned after exhausting attempts"))
      .returning(ProcessingJob)
      .execution_options(synchronize_session=False)
    )
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).scalars().all()
      await session.commit()
    return [_model_to_record(row) for row in rows]

  async def renew_lease(self, job_id: str, *, lease_seconds: int) -> bool:
    stmt = (
      update(ProcessingJob)
      .where(ProcessingJob.id == job_id, ProcessingJob.status == "processing")
      .values(lease_expires_at=_now() + datetime.timedelta(seconds=lease_seconds))
      .execution_options(synchronize_session=False)
    )
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      await session.commit()
      return bool(result.rowcount)

  async def complete_job(self, job_id: str) -> JobRecord | None:
    return await self._transition(job_id, status="completed", completed_at=_now(), lease_expires_at=None)

  async def requeue_job(self, job_id: str, *, error_message: str, available_at: datetime.datetime | None) -> JobRecord | None:
    return await self._transition(job_id, status="pending", error_message=error_message, available_at=available_at, lease_expires_at=None)

  async def fail_job(self, job_id: str, *, error_message: str) -> JobRecord | None:
    return await self._transition(job_id, status="failed", error_message=error_message, completed_at=_now(), lease_expires_at=None)

  async def latest_for_document(self, document_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      stmt = select(ProcessingJob).where(ProcessingJob.curriculum_document_id == document_id).order_by(ProcessingJob.created_at.desc()).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return _model_to_record(row)

  async def count_pending(self) -> int:
    async with self._session_factory() as session:
      total = await session.scalar(select(func.count()).select_from(ProcessingJob).where(ProcessingJob.status == "pending"))
      return int(total or 0)

  async def _transition(self, job_id: str, **values: object) -> JobRecord | None:
    # Only processing jobs may leave the processing state.
    stmt = update(ProcessingJob).where(ProcessingJob.id == job_id, ProcessingJob.status == "processing").values(**values).returning(ProcessingJob).execution_options(synchronize_session=False)
    async with self._session_factory() as session:
      row = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      if row is None:
        return None
      return _model_to_record(row)


def job_record_to_model(record: JobRecord) -> ProcessingJob:
  return ProcessingJob(
    id=record.id,
    curriculum_document_id=record.curriculum_document_id,
    job_type=record.job_type,
    status=record.status,
    priority=record.priority,
    attempts=record.attempts,
    max_attempts=record.max_attempts,
    error_message=record.error_message,
    created_at=record.created_at,
    started_at=record.started_at,
    completed_at=record.completed_at,
    lease_expires_at=record.lease_expires_at,
    available_at=record.available_at,
  )


def _model_to_record(row: ProcessingJob) -> JobRecord:
  return JobRecord(
    id=row.id,
    curriculum_document_id=row.curriculum_document_id,
    job_type=row.job_type,  # type: ignore[arg-type]
    status=row.status,  # type: ignore[arg-type]
    priority=int(row.priority),
    attempts=int(row.attempts),
    max_attempts=int(row.max_attempts),
    created_at=row.created_at,
    started_at=row.started_at,
    completed_at=row.completed_at,
    error_message=row.error_message,
    lease_expires_at=row.lease_expires_at,
    available_at=row.available_at,
  )
