"""Storage interfaces for review-response misconception analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class MisconceptionEntry:
  """One normalized misconception detected in a student's responses."""

  concept: str
  misconception: str
  evidence: str
  severity: str
  correct_understanding: str


@dataclass(frozen=True)
class ReviewAnalysis:
  """Everything persisted for one (student, activity, node) analysis."""

  student_id: str
  activity_id: str
  node_id: str
  review_type: str
  misconceptions: list[MisconceptionEntry]
  understood_concepts: list[str]
  ai_analysis: dict[str, Any]
  performance_data: dict[str, Any] = field(default_factory=dict)


class MisconceptionsRepository(Protocol):
  """Repository contract for misconception analysis results."""

  async def has_analysis(self, *, student_id: str, activity_id: str, node_id: str) -> bool:
    """Return True when a result already exists for the logical resource."""

  async def save_analysis(self, analysis: ReviewAnalysis) -> int:
    """Persist misconception rows, struggle counters, mastery, and the analytics row; return rows inserted."""

  async def get_student_name(self, student_id: str) -> str | None:
    """Return the student's display name when a profile exists."""
