"""Postgres-backed repository for misconception analysis results."""

from __future__ import annotations

import datetime

from sqlalchemy import exists, or_, select
from sqlalchemy.dialects.postgresql import insert

from curriculum_engine.core.database import get_session_factory
from curriculum_engine.schema.coursework import Profile
from curriculum_engine.schema.misconceptions import CommonStruggle, ConceptMastery, ReviewAnalytics, StudentMisconception
from curriculum_engine.storage.misconceptions_repo import MisconceptionsRepository, ReviewAnalysis

_UNDERSTOOD_MASTERY_LEVEL = 0.8


class PostgresMisconceptionsRepository(MisconceptionsRepository):
  """Persist analysis output in one transaction per analysis."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def has_analysis(self, *, student_id: str, activity_id: str, node_id: str) -> bool:
    misconception_exists = exists().where(StudentMisconception.student_id == student_id, StudentMisconception.activity_id == activity_id, StudentMisconception.node_id == node_id)
    # Analyses that found nothing still leave an analytics row behind.
    analytics_exists = exists().where(ReviewAnalytics.student_id == student_id, ReviewAnalytics.activity_id == activity_id, ReviewAnalytics.node_id == node_id, ReviewAnalytics.node_type == "review")
    async with self._session_factory() as session:
      return bool(await session.scalar(select(or_(misconception_exists, analytics_exists))))

  async def save_analysis(self, analysis: ReviewAnalysis) -> int:
    now = datetime.datetime.now(datetime.UTC)
    async with self._session_factory() as session:
      for entry in analysis.misconceptions:
        session.add(
          StudentMisconception(
            student_id=analysis.student_id,
            activity_id=analysis.activity_id,
            node_id=analysis.node_id,
            concept=entry.concept,
            misconception_type=entry.misconception,
            severity=entry.severity,
            evidence={"response": entry.evidence, "correct_understanding": entry.correct_understanding},
            ai_analysis=analysis.ai_analysis,
          )
        )
      for concept in sorted({entry.concept for entry in analysis.misconceptions}):
        struggle = insert(CommonStruggle).values(activity_id=analysis.activity_id, concept=concept, student_count=1, last_seen_at=now)
        struggle = struggle.on_conflict_do_update(constraint="ux_common_struggles_activity_concept", set_={"student_count": CommonStruggle.student_count + 1, "last_seen_at": now})
        await session.execute(struggle)
      for concept in analysis.understood_concepts:
        mastery = insert(ConceptMastery).values(student_id=analysis.student_id, concept=concept, mastery_level=_UNDERSTOOD_MASTERY_LEVEL, evidence_count=1, last_assessed_at=now)
        mastery = mastery.on_conflict_do_update(constraint="ux_concept_mastery_student_concept", set_={"mastery_level": _UNDERSTOOD_MASTERY_LEVEL, "evidence_count": ConceptMastery.evidence_count + 1, "last_assessed_at": now})
        await session.execute(mastery)
      session.add(ReviewAnalytics(student_id=analysis.student_id, activity_id=analysis.activity_id, node_id=analysis.node_id, node_type="review", performance_data=analysis.performance_data))
      await session.commit()
    return len(analysis.misconceptions)

  async def get_student_name(self, student_id: str) -> str | None:
    async with self._session_factory() as session:
      name = await session.scalar(select(Profile.full_name).where(Profile.id == student_id))
    return name or None
