"""Unit tests for claiming, retrying, and finalizing curriculum jobs."""

from __future__ import annotations

import datetime
from unittest.mock import AsyncMock

import pytest
from fakes import FlakyStage, InMemoryDocumentsRepo, InMemoryInAppRepo, InMemoryJobsRepo, make_document, make_job, utcnow

from curriculum_engine.core.errors import NonRetryableJobError, RetryableJobError
from curriculum_engine.jobs.dispatch import StageContext, StageRegistry
from curriculum_engine.jobs.dispatcher import JobDispatcher
from curriculum_engine.notifications.service import NotificationService, completion_dedup_key


class Harness:
  def __init__(self, handlers: dict, *, retry_backoff_seconds: float = 0, jobs: InMemoryJobsRepo | None = None) -> None:
    self.jobs = jobs or InMemoryJobsRepo()
    self.documents = InMemoryDocumentsRepo(self.jobs)
    self.notifications = InMemoryInAppRepo()
    self.documents.add(make_document())
    self.dispatcher = JobDispatcher(
      jobs_repo=self.jobs,
      documents_repo=self.documents,
      registry=StageRegistry(handlers),
      notifications=NotificationService(in_app_repo=self.notifications),
      lease_seconds=300,
      heartbeat_seconds=0,
      retry_backoff_seconds=retry_backoff_seconds,
    )

  @property
  def document(self):
    return self.documents.documents["doc-1"]


@pytest.mark.anyio
async def test_dispatch_claims_at_most_max_jobs_in_priority_order() -> None:
  stage = FlakyStage()
  harness = Harness({"full_pipeline": stage})
  priorities = [5, 1, 9, 3, 1, 7, 2]
  for index, priority in enumerate(priorities):
    await harness.jobs.create_job(make_job(f"job-{index}", priority=priority, created_offset=index))

  summary = await harness.dispatcher.dispatch(5)

  assert summary.to_dict() == {"processed": 5, "failed": 0, "total": 5}
  assert stage.runs == 5
  pending = sorted(job.id for job in harness.jobs.jobs.values() if job.status == "pending")
  assert pending == ["job-2", "job-5"]
  assert await harness.dispatcher.count_pending() == 2


@pytest.mark.anyio
async def test_empty_queue_reports_zero_counts() -> None:
  harness = Harness({"full_pipeline": FlakyStage()})
  summary = await harness.dispatcher.dispatch(5)
  assert summary.to_dict() == {"processed": 0, "failed": 0, "total": 0}


@pytest.mark.anyio
async def test_successful_job_completes_document_and_notifies_once() -> None:
  harness = Harness({"full_pipeline": FlakyStage()})
  await harness.jobs.create_job(make_job("job-1"))

  await harness.dispatcher.dispatch(1)

  job = harness.jobs.jobs["job-1"]
  assert job.status == "completed"
  assert job.completed_at is not None
  assert job.lease_expires_at is None
  assert harness.document.processing_status == "completed"
  assert harness.document.processing_progress == 100
  entry = harness.notifications.entries[completion_dedup_key("doc-1", "job-1")]
  assert entry.user_id == "teacher-1"
  assert entry.data["curriculum_id"] == "doc-1"

  service = NotificationService(in_app_repo=harness.notifications)
  assert not await service.notify_document_processed(harness.document, job)
  assert len(harness.notifications.entries) == 1


@pytest.mark.anyio
async def test_first_failure_requeues_with_error_recorded() -> None:
  harness = Harness({"full_pipeline": FlakyStage([RetryableJobError("provider timeout")])})
  await harness.jobs.create_job(make_job("job-1", max_attempts=3))

  summary = await harness.dispatcher.dispatch(5)

  job = harness.jobs.jobs["job-1"]
  assert summary.to_dict() == {"processed": 0, "failed": 1, "total": 1}
  assert job.status == "pending"
  assert job.attempts == 1
  assert job.error_message == "provider timeout"
  assert harness.document.processing_error == "Attempt 1 of 3 failed: provider timeout"
  assert harness.document.processing_status != "failed"


@pytest.mark.anyio
async def test_job_fails_terminally_after_max_attempts() -> None:
  stage = FlakyStage([RetryableJobError("boom")] * 3)
  harness = Harness({"full_pipeline": stage})
  await harness.jobs.create_job(make_job("job-1", max_attempts=3))

  for _ in range(3):
    await harness.dispatcher.dispatch(5)

  job = harness.jobs.jobs["job-1"]
  assert stage.runs == 3
  assert job.status == "failed"
  assert job.attempts == 3
  assert harness.document.processing_status == "failed"
  assert harness.document.processing_error == "boom"
  assert (await harness.dispatcher.dispatch(5)).total == 0


@pytest.mark.anyio
async def test_requeued_job_waits_for_backoff() -> None:
  harness = Harness({"full_pipeline": FlakyStage([RetryableJobError("flaky")])}, retry_backoff_seconds=30)
  await harness.jobs.create_job(make_job("job-1"))

  before = utcnow()
  await harness.dispatcher.dispatch(1)

  job = harness.jobs.jobs["job-1"]
  assert job.available_at is not None
  assert job.available_at >= before + datetime.timedelta(seconds=30)
  assert (await harness.dispatcher.dispatch(1)).total == 0


@pytest.mark.anyio
async def test_non_retryable_error_fails_immediately() -> None:
  harness = Harness({"full_pipeline": FlakyStage([NonRetryableJobError("Extraction produced no text")])})
  await harness.jobs.create_job(make_job("job-1", max_attempts=3))

  await harness.dispatcher.dispatch(1)

  assert harness.jobs.jobs["job-1"].status == "failed"
  assert harness.jobs.jobs["job-1"].attempts == 1
  assert harness.document.processing_status == "failed"


@pytest.mark.anyio
async def test_unknown_job_type_fails_without_retry() -> None:
  harness = Harness({})
  await harness.jobs.create_job(make_job("job-1"))

  await harness.dispatcher.dispatch(1)

  assert harness.jobs.jobs["job-1"].status == "failed"
  assert harness.jobs.jobs["job-1"].error_message == "Unsupported job type: full_pipeline"


@pytest.mark.anyio
async def test_missing_document_fails_job() -> None:
  harness = Harness({"full_pipeline": FlakyStage()})
  await harness.jobs.create_job(make_job("job-1", document_id="doc-missing"))

  summary = await harness.dispatcher.dispatch(1)

  assert summary.failed == 1
  assert harness.jobs.jobs["job-1"].status == "failed"
  assert "doc-missing" in (harness.jobs.jobs["job-1"].error_message or "")


@pytest.mark.anyio
async def test_one_failure_does_not_affect_other_jobs() -> None:
  class FailsForOneDocument:
    async def run(self, context: StageContext) -> None:
      if context.job.id == "job-bad":
        raise NonRetryableJobError("bad")

  harness = Harness({"full_pipeline": FailsForOneDocument()})
  await harness.jobs.create_job(make_job("job-bad"))
  await harness.jobs.create_job(make_job("job-good", created_offset=1))

  summary = await harness.dispatcher.dispatch(5)

  assert summary.to_dict() == {"processed": 1, "failed": 1, "total": 2}
  assert harness.jobs.jobs["job-good"].status == "completed"
  assert harness.jobs.jobs["job-bad"].status == "failed"


@pytest.mark.anyio
async def test_follow_up_failure_leaves_document_status_alone() -> None:
  harness = Harness({"generate_embeddings": FlakyStage([NonRetryableJobError("endpoint down")])})
  harness.document.processing_status = "completed"
  await harness.jobs.create_job(make_job("job-1", job_type="generate_embeddings"))

  await harness.dispatcher.dispatch(1)

  assert harness.jobs.jobs["job-1"].status == "failed"
  assert harness.document.processing_status == "completed"
  assert harness.document.processing_error is None


@pytest.mark.anyio
async def test_job_with_expired_lease_is_reclaimed() -> None:
  harness = Harness({"full_pipeline": FlakyStage()})
  crashed = make_job("job-1", attempts=1)
  crashed.status = "processing"
  crashed.lease_expires_at = utcnow() - datetime.timedelta(seconds=1)
  await harness.jobs.create_job(crashed)

  summary = await harness.dispatcher.dispatch(1)

  assert summary.processed == 1
  assert harness.jobs.jobs["job-1"].attempts == 2
  assert harness.jobs.jobs["job-1"].status == "completed"


@pytest.mark.anyio
async def test_abandoned_job_without_attempts_left_fails_document() -> None:
  harness = Harness({"full_pipeline": FlakyStage()})
  crashed = make_job("job-1", attempts=3, max_attempts=3)
  crashed.status = "processing"
  crashed.lease_expires_at = utcnow() - datetime.timedelta(seconds=1)
  await harness.jobs.create_job(crashed)

  summary = await harness.dispatcher.dispatch(1)

  assert summary.total == 0
  assert harness.jobs.jobs["job-1"].status == "failed"
  assert harness.document.processing_status == "failed"
  assert harness.document.processing_error == "Job abandoned after exhausting attempts"


@pytest.mark.anyio
async def test_job_that_lost_its_claim_is_not_finalized() -> None:
  class LosesClaim:
    def __init__(self, jobs: InMemoryJobsRepo) -> None:
      self.jobs = jobs

    async def run(self, context: StageContext) -> None:
      self.jobs.jobs[context.job.id].status = "pending"

  jobs = InMemoryJobsRepo()
  harness = Harness({"full_pipeline": LosesClaim(jobs)}, jobs=jobs)
  await harness.jobs.create_job(make_job("job-1"))

  job = (await harness.jobs.claim_batch(1, lease_seconds=300))[0]
  outcome = await harness.dispatcher.run_job(job)

  assert outcome.status == "lost"
  assert harness.document.processing_status != "completed"
  assert not harness.notifications.entries


@pytest.mark.anyio
async def test_status_reports_document_and_latest_job() -> None:
  harness = Harness({"full_pipeline": FlakyStage([RetryableJobError("flaky")])})
  await harness.jobs.create_job(make_job("job-old", created_offset=0))
  await harness.jobs.create_job(make_job("job-new", created_offset=10))

  await harness.dispatcher.dispatch(1)
  status = await harness.dispatcher.get_status("doc-1")

  assert status is not None
  assert status.latest_job_status == "pending"
  assert status.processing_error == "Attempt 1 of 3 failed: flaky"
  assert await harness.dispatcher.get_status("doc-missing") is None


@pytest.mark.anyio
async def test_document_read_failure_requeues_the_job() -> None:
  stage = FlakyStage()
  harness = Harness({"full_pipeline": stage})
  await harness.jobs.create_job(make_job("job-1"))
  harness.documents.get_document = AsyncMock(side_effect=ConnectionError("database unavailable"))

  summary = await harness.dispatcher.dispatch(1)

  assert summary.to_dict() == {"processed": 0, "failed": 1, "total": 1}
  job = harness.jobs.jobs["job-1"]
  assert job.status == "pending"
  assert job.attempts == 1
  assert "database unavailable" in job.error_message
  assert stage.runs == 0
