"""Postgres-backed repositories for section analytics and course progress reads."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError

from curriculum_engine.core.database import get_session_factory
from curriculum_engine.jobs.models import AnalyticsRecord, ProgressRow
from curriculum_engine.schema.coursework import Activity, Enrollment, StudentProgress
from curriculum_engine.schema.documents import ActivityCurriculumMapping, CurriculumAnalytics
from curriculum_engine.storage.analytics_repo import AnalyticsRepository, CourseworkRepository

logger = logging.getLogger(__name__)


class PostgresCourseworkRepository(CourseworkRepository):
  """Read course progress and derive activity mappings in Postgres."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def list_mapped_activity_ids(self, document_id: str, section_id: str) -> list[str]:
    async with self._session_factory() as session:
      stmt = select(ActivityCurriculumMapping.activity_id).where(ActivityCurriculumMapping.curriculum_document_id == document_id, ActivityCurriculumMapping.section_id == section_id)
      rows = (await session.execute(stmt)).scalars().all()
      return sorted({str(row) for row in rows})

  async def auto_map_activities(self, *, document_id: str, section_id: str, course_id: str, threshold: float) -> list[str]:
    async with self._session_factory() as session:
      activity_ids = (await session.execute(select(Activity.id).where(Activity.course_id == course_id))).scalars().all()
      for activity_id in activity_ids:
        # The similarity function compares activity and section embeddings and writes mapping rows itself.
        try:
          async with session.begin_nested():
            await session.execute(select(func.update_activity_curriculum_mappings(activity_id, document_id, threshold)))
        except DBAPIError as exc:
          logger.warning("Auto-mapping failed for activity=%s document=%s: %s", activity_id, document_id, exc)
      await session.commit()
    return await self.list_mapped_activity_ids(document_id, section_id)

  async def list_progress(self, activity_ids: list[str]) -> list[ProgressRow]:
    if not activity_ids:
      return []
    async with self._session_factory() as session:
      stmt = select(StudentProgress).where(StudentProgress.activity_id.in_(activity_ids))
      rows = (await session.execute(stmt)).scalars().all()
      return [ProgressRow(student_id=row.student_id, activity_id=row.activity_id, status=row.status, score=row.score, time_spent=row.time_spent, responses=row.responses) for row in rows]

  async def count_enrollments(self, course_id: str) -> int:
    async with self._session_factory() as session:
      total = await session.scalar(select(func.count()).select_from(Enrollment).where(Enrollment.course_id == course_id))
      return int(total or 0)


class PostgresAnalyticsRepository(AnalyticsRepository):
  """Upsert per-section analytics keyed by (document, section)."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def upsert(self, record: AnalyticsRecord) -> None:
    values = {
      "curriculum_document_id": record.curriculum_document_id,
      "section_id": record.section_id,
      "course_id": record.course_id,
      "total_students": record.total_students,
      "students_attempted": record.students_attempted,
      "students_completed": record.students_completed,
      "average_score": record.average_score,
      "average_time_spent": record.average_time_spent,
      "common_misconceptions": record.common_misconceptions,
      "performance_insights": record.performance_insights,
      "concept_mastery": record.concept_mastery,
      "last_calculated_at": record.last_calculated_at,
    }
    stmt = insert(CurriculumAnalytics).values(**values)
    # Records are recomputed wholesale, so every column is replaced on conflict.
    stmt = stmt.on_conflict_do_update(constraint="ux_curriculum_analytics_document_section", set_={key: stmt.excluded[key] for key in values if key not in {"curriculum_document_id", "section_id"}})
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

  async def list_for_document(self, document_id: str) -> list[AnalyticsRecord]:
    async with self._session_factory() as session:
      stmt = select(CurriculumAnalytics).where(CurriculumAnalytics.curriculum_document_id == document_id).order_by(CurriculumAnalytics.section_id.asc())
      rows = (await session.execute(stmt)).scalars().all()
      return [
        AnalyticsRecord(
          curriculum_document_id=row.curriculum_document_id,
          section_id=row.section_id,
          course_id=row.course_id,
          total_students=int(row.total_students),
          students_attempted=int(row.students_attempted),
          students_completed=int(row.students_completed),
          average_score=row.average_score,
          average_time_spent=row.average_time_spent,
          common_misconceptions=list(row.common_misconceptions or []),
          performance_insights=dict(row.performance_insights or {}),
          concept_mastery=dict(row.concept_mastery or {}),
          last_calculated_at=row.last_calculated_at,
        )
        for row in rows
      ]
