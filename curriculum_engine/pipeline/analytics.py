"""The calculate_analytics stage."""

from __future__ import annotations

import datetime
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.ai.json_parser import parse_json_with_fallback
from curriculum_engine.ai.providers.base import GenerationConfig
from curriculum_engine.core.errors import GenerationError
from curriculum_engine.jobs import progress as checkpoints
from curriculum_engine.jobs.dispatch import StageContext
from curriculum_engine.jobs.models import AnalyticsRecord, DocumentRecord, ProgressRow, Section
from curriculum_engine.storage.analytics_repo import AnalyticsRepository, CourseworkRepository

logger = logging.getLogger(__name__)

AUTO_MAPPING_THRESHOLD = 0.7
RESPONSE_SAMPLE_SIZE = 10

INSIGHTS_PROMPT = """Analyze student performance data for this curriculum section and identify:
1. Common misconceptions students have
2. Concepts students understand well
3. Concepts students struggle with
4. Suggestions for improvement

Section: {title}
Concepts: {concepts}
Total Students: {total_students}
Students Attempted: {attempted}
Students Completed: {completed}
Average Score: {average_score:.1f}%

Student Responses/Feedback (sample):
{responses}

Return a JSON object with:
{{
  "common_misconceptions": [{{"concept": "...", "description": "...", "frequency": 0-100}}],
  "strong_concepts": ["concept1", "concept2"],
  "weak_concepts": ["concept1", "concept2"],
  "suggestions": ["suggestion1", "suggestion2"]
}}"""


@dataclass(frozen=True)
class ProgressSummary:
  students_attempted: int
  students_completed: int
  average_score: float
  average_time_spent: float


def summarize_progress(rows: list[ProgressRow]) -> ProgressSummary:
  """Aggregate attempted/completed counts and averages for one section."""
  completed_rows = [row for row in rows if row.status == "completed"]
  scored = [row.score for row in completed_rows if row.score is not None]
  times = [row.time_spent for row in rows if row.time_spent]
  return ProgressSummary(
    students_attempted=len({row.student_id for row in rows}),
    students_completed=len(completed_rows),
    average_score=sum(scored) / len(scored) if scored else 0.0,
    average_time_spent=sum(times) / len(times) if times else 0.0,
  )


def concept_mastery(concepts: list[str], rows: list[ProgressRow]) -> dict[str, float]:
  """Percent of concept-mentioning progress rows that are completed.

  A row mentions a concept when the concept appears, case-insensitively, in
  the serialized responses.
  """
  serialized = [(row, json.dumps(row.responses or {}, default=str).lower()) for row in rows]
  mastery: dict[str, float] = {}
  for concept in concepts:
    needle = concept.lower()
    relevant = [row for row, text in serialized if needle in text]
    completed = [row for row in relevant if row.status == "completed"]
    mastery[concept] = (len(completed) / len(relevant)) * 100 if relevant else 0.0
  return mastery


def _string_list(value: Any) -> list[str]:
  if not isinstance(value, list):
    return []
  return [str(item) for item in value if isinstance(item, str | int | float) and str(item).strip()]


def parse_insights(raw: str) -> tuple[list[Any], dict[str, Any]]:
  """Split an insights response into (misconceptions, performance insights)."""
  payload = parse_json_with_fallback(raw)
  if not isinstance(payload, dict):
    raise ValueError("Insights response is not an object")
  misconceptions = payload.get("common_misconceptions")
  return (
    [item for item in misconceptions if isinstance(item, dict)] if isinstance(misconceptions, list) else [],
    {"strong_concepts": _string_list(payload.get("strong_concepts")), "weak_concepts": _string_list(payload.get("weak_concepts")), "suggestions": _string_list(payload.get("suggestions"))},
  )


class CalculateAnalyticsStage:
  """Recompute and upsert one analytics record per section."""

  def __init__(self, *, coursework_repo: CourseworkRepository, analytics_repo: AnalyticsRepository, gateway: AIGateway, clock: Callable[[], datetime.datetime] | None = None) -> None:
    self._coursework_repo = coursework_repo
    self._analytics_repo = analytics_repo
    self._gateway = gateway
    self._clock = clock or (lambda: datetime.datetime.now(datetime.UTC))

  async def run(self, context: StageContext) -> None:
    document = context.document
    await context.progress.advance(checkpoints.ANALYTICS, status="analyzing")
    if not document.sections:
      logger.info("Document %s has no sections; skipping analytics", document.id)
      return

    total_students = await self._coursework_repo.count_enrollments(document.course_id)
    for section in document.sections:
      record = await self._section_record(document, section, total_students)
      await self._analytics_repo.upsert(record)
    logger.info("Analytics recalculated for document %s (%d sections)", document.id, len(document.sections))

  async def _section_record(self, document: DocumentRecord, section: Section, total_students: int) -> AnalyticsRecord:
    activity_ids = await self._coursework_repo.list_mapped_activity_ids(document.id, section.id)
    if not activity_ids:
      activity_ids = await self._coursework_repo.auto_map_activities(document_id=document.id, section_id=section.id, course_id=document.course_id, threshold=AUTO_MAPPING_THRESHOLD)
    rows = await self._coursework_repo.list_progress(activity_ids)
    summary = summarize_progress(rows)

    misconceptions: list[Any] = []
    insights: dict[str, Any] = {}
    if rows:
      misconceptions, insights = await self._insights(document, section, rows, summary, total_students)

    return AnalyticsRecord(
      curriculum_document_id=document.id,
      section_id=section.id,
      course_id=document.course_id,
      total_students=total_students,
      students_attempted=summary.students_attempted,
      students_completed=summary.students_completed,
      average_score=summary.average_score,
      average_time_spent=summary.average_time_spent,
      common_misconceptions=misconceptions,
      performance_insights=insights,
      concept_mastery=concept_mastery(section.concepts, rows),
      last_calculated_at=self._clock(),
    )

  async def _insights(self, document: DocumentRecord, section: Section, rows: list[ProgressRow], summary: ProgressSummary, total_students: int) -> tuple[list[Any], dict[str, Any]]:
    """Best-effort AI summary; any failure yields empty insights."""
    if not self._gateway.available:
      return [], {}
    prompt = INSIGHTS_PROMPT.format(
      title=section.title,
      concepts=", ".join(section.concepts),
      total_students=total_students,
      attempted=summary.students_attempted,
      completed=summary.students_completed,
      average_score=summary.average_score,
      responses="\n".join(json.dumps(row.responses or {}, default=str) for row in rows[:RESPONSE_SAMPLE_SIZE]),
    )
    try:
      raw = await self._gateway.generate(prompt, operation="section-insights", actor=f"document:{document.id}:{section.id}", config=GenerationConfig(response_format="json"), max_retries=0)
      return parse_insights(raw)
    except (GenerationError, ValueError) as exc:
      logger.warning("Insights unavailable for document=%s section=%s: %s", document.id, section.id, exc)
      return [], {}
