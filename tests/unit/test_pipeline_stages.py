"""Unit tests for the extraction, mapping, analytics, and full pipeline stages."""

from __future__ import annotations

import datetime

import pytest
from fakes import (
  FakeTextGenerator,
  InMemoryAnalyticsRepo,
  InMemoryCourseworkRepo,
  InMemoryDocumentsRepo,
  InMemoryInAppRepo,
  InMemoryJobsRepo,
  InMemoryObjectStorage,
  make_document,
  make_job,
)

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.coordination.rate_limiter import RateLimiter, RatePolicy
from curriculum_engine.coordination.response_cache import ResponseCache
from curriculum_engine.jobs.dispatch import StageRegistry
from curriculum_engine.jobs.dispatcher import JobDispatcher
from curriculum_engine.jobs.models import ProgressRow, Section
from curriculum_engine.notifications.service import NotificationService
from curriculum_engine.pipeline.analytics import CalculateAnalyticsStage, concept_mastery, parse_insights, summarize_progress
from curriculum_engine.pipeline.extraction import ExtractSectionsStage
from curriculum_engine.pipeline.full import FullPipelineStage
from curriculum_engine.pipeline.mapping import MapActivitiesStage
from curriculum_engine.services.extraction_service import PlainTextExtractor

CURRICULUM_TEXT = """# Unit 1: Ratios
Ratios compare quantities.
## Equivalent Ratios
## Unit Rates
# Unit 2: Percents
"""
FIXED_NOW = datetime.datetime(2026, 3, 1, tzinfo=datetime.UTC)


def _gateway(generator: FakeTextGenerator | None = None) -> AIGateway:
  limiter = RateLimiter(default_policy=RatePolicy(min_interval_seconds=0, max_burst=100, window_seconds=60))
  return AIGateway(generator, rate_limiter=limiter, cache=ResponseCache(ttl_seconds=60, max_entries=8), max_retries=0)


class Pipeline:
  def __init__(self, *, storage: InMemoryObjectStorage | None = None, generator: FakeTextGenerator | None = None, coursework: InMemoryCourseworkRepo | None = None, enqueue_embeddings: bool = False) -> None:
    self.jobs = InMemoryJobsRepo()
    self.documents = InMemoryDocumentsRepo(self.jobs)
    self.analytics = InMemoryAnalyticsRepo()
    self.coursework = coursework or InMemoryCourseworkRepo()
    self.notifications = InMemoryInAppRepo()
    gateway = _gateway(generator)
    extract = ExtractSectionsStage(
      documents_repo=self.documents,
      storage=storage,
      extractor=PlainTextExtractor(),
      gateway=gateway,
      prompt_chars=5000,
      enqueue_embeddings=enqueue_embeddings,
      follow_up_max_attempts=3,
    )
    analytics = CalculateAnalyticsStage(coursework_repo=self.coursework, analytics_repo=self.analytics, gateway=gateway, clock=lambda: FIXED_NOW)
    self.dispatcher = JobDispatcher(
      jobs_repo=self.jobs,
      documents_repo=self.documents,
      registry=StageRegistry({"extract_sections": extract, "calculate_analytics": analytics, "full_pipeline": FullPipelineStage([extract, MapActivitiesStage(), analytics])}),
      notifications=NotificationService(in_app_repo=self.notifications),
      heartbeat_seconds=0,
      retry_backoff_seconds=0,
    )


@pytest.mark.anyio
async def test_full_pipeline_without_ai_uses_heading_sections_and_completes() -> None:
  pipeline = Pipeline()
  pipeline.documents.add(make_document(extracted_text=CURRICULUM_TEXT))
  await pipeline.jobs.create_job(make_job("job-1"))

  summary = await pipeline.dispatcher.dispatch(5)

  document = pipeline.documents.documents["doc-1"]
  assert summary.to_dict() == {"processed": 1, "failed": 0, "total": 1}
  assert document.processing_status == "completed"
  assert document.processing_progress == 100
  assert [section.title for section in document.sections] == ["Unit 1: Ratios", "Equivalent Ratios", "Unit Rates", "Unit 2: Percents"]
  assert pipeline.documents.progress_log["doc-1"] == [20, 60, 80, 85, 90, 100]
  assert len(pipeline.analytics.records) == 4
  assert len(pipeline.notifications.entries) == 1


@pytest.mark.anyio
async def test_extraction_downloads_text_when_missing() -> None:
  storage = InMemoryObjectStorage({"curriculum/doc-1.txt": (CURRICULUM_TEXT.encode(), "text/plain; charset=utf-8")})
  pipeline = Pipeline(storage=storage)
  pipeline.documents.add(make_document())
  await pipeline.jobs.create_job(make_job("job-1", job_type="extract_sections"))

  await pipeline.dispatcher.dispatch(1)

  document = pipeline.documents.documents["doc-1"]
  assert document.extracted_text == CURRICULUM_TEXT.strip()
  assert pipeline.documents.progress_log["doc-1"][:3] == [20, 40, 60]
  assert len(document.sections) == 4
  assert document.processing_status == "completed"


@pytest.mark.anyio
async def test_missing_source_file_fails_without_retry() -> None:
  pipeline = Pipeline(storage=InMemoryObjectStorage())
  pipeline.documents.add(make_document())
  await pipeline.jobs.create_job(make_job("job-1", max_attempts=3))

  await pipeline.dispatcher.dispatch(1)

  assert pipeline.jobs.jobs["job-1"].status == "failed"
  assert pipeline.jobs.jobs["job-1"].attempts == 1
  assert "File not found in storage" in (pipeline.documents.documents["doc-1"].processing_error or "")


@pytest.mark.anyio
async def test_unsupported_file_type_fails_without_retry() -> None:
  storage = InMemoryObjectStorage({"curriculum/doc-1.txt": (b"\x00\x01", "application/octet-stream")})
  pipeline = Pipeline(storage=storage)
  pipeline.documents.add(make_document())
  await pipeline.jobs.create_job(make_job("job-1"))

  await pipeline.dispatcher.dispatch(1)

  assert pipeline.jobs.jobs["job-1"].status == "failed"
  assert "not supported" in (pipeline.jobs.jobs["job-1"].error_message or "")


@pytest.mark.anyio
async def test_ai_sections_are_stored_and_embeddings_follow_up_is_queued() -> None:
  generator = FakeTextGenerator(['[{"id": "ratios", "title": "Ratios", "pageNumber": 1, "concepts": ["ratio"], "description": "Comparing quantities"}]'])
  pipeline = Pipeline(generator=generator, enqueue_embeddings=True)
  pipeline.documents.add(make_document(extracted_text=CURRICULUM_TEXT))
  await pipeline.jobs.create_job(make_job("job-1", job_type="extract_sections"))

  await pipeline.dispatcher.dispatch(1)

  document = pipeline.documents.documents["doc-1"]
  assert [section.id for section in document.sections] == ["ratios"]
  follow_ups = [job for job in pipeline.jobs.jobs.values() if job.job_type == "generate_embeddings"]
  assert len(follow_ups) == 1
  assert follow_ups[0].status == "pending"
  assert follow_ups[0].priority == 10


@pytest.mark.anyio
async def test_document_without_headings_or_ai_completes_with_no_sections() -> None:
  pipeline = Pipeline(enqueue_embeddings=True)
  pipeline.documents.add(make_document(extracted_text="Only prose, no headings."))
  await pipeline.jobs.create_job(make_job("job-1"))

  await pipeline.dispatcher.dispatch(1)

  document = pipeline.documents.documents["doc-1"]
  assert document.sections == []
  assert document.processing_status == "completed"
  assert not pipeline.analytics.records
  assert not any(job.job_type == "generate_embeddings" for job in pipeline.jobs.jobs.values())


@pytest.mark.anyio
async def test_analytics_aggregates_mapped_progress() -> None:
  rows = [
    ProgressRow(student_id="s1", activity_id="a1", status="completed", score=80, time_spent=120, responses={"answer": "A ratio compares two quantities"}),
    ProgressRow(student_id="s2", activity_id="a1", status="in_progress", score=None, time_spent=60, responses={"answer": "ratio is a fraction"}),
    ProgressRow(student_id="s3", activity_id="other", status="completed", score=10, time_spent=5, responses={}),
  ]
  coursework = InMemoryCourseworkRepo(mappings={("doc-1", "ratios"): ["a1"]}, progress=rows, enrollments=30)
  pipeline = Pipeline(coursework=coursework)
  pipeline.documents.add(make_document(sections=[Section(id="ratios", title="Ratios", location="page 1", concepts=["Ratio", "Percent"])]))
  await pipeline.jobs.create_job(make_job("job-1", job_type="calculate_analytics"))

  await pipeline.dispatcher.dispatch(1)

  record = pipeline.analytics.records[("doc-1", "ratios")]
  assert record.total_students == 30
  assert record.students_attempted == 2
  assert record.students_completed == 1
  assert record.average_score == 80
  assert record.average_time_spent == 90
  assert record.concept_mastery == {"Ratio": 50.0, "Percent": 0.0}
  assert record.common_misconceptions == []
  assert record.last_calculated_at == FIXED_NOW


@pytest.mark.anyio
async def test_unmapped_sections_trigger_auto_mapping() -> None:
  coursework = InMemoryCourseworkRepo()
  pipeline = Pipeline(coursework=coursework)
  pipeline.documents.add(make_document(sections=[Section(id="s1", title="One", location="page 1")]))
  await pipeline.jobs.create_job(make_job("job-1", job_type="calculate_analytics"))

  await pipeline.dispatcher.dispatch(1)

  assert coursework.auto_map_calls == [("doc-1", "s1")]
  assert pipeline.analytics.records[("doc-1", "s1")].students_attempted == 0


def test_summarize_progress_handles_empty_rows() -> None:
  summary = summarize_progress([])
  assert summary.students_attempted == 0
  assert summary.average_score == 0.0


def test_concept_mastery_is_zero_without_mentions() -> None:
  assert concept_mastery(["Slope"], []) == {"Slope": 0.0}


def test_parse_insights_filters_malformed_entries() -> None:
  misconceptions, insights = parse_insights('{"common_misconceptions": [{"concept": "ratio"}, "junk"], "strong_concepts": ["rates", ""], "suggestions": "not a list"}')
  assert misconceptions == [{"concept": "ratio"}]
  assert insights == {"strong_concepts": ["rates"], "weak_concepts": [], "suggestions": []}
