"""Storage interfaces for section analytics and the course tables they read."""

from __future__ import annotations

from typing import Protocol

from curriculum_engine.jobs.models import AnalyticsRecord, ProgressRow


class CourseworkRepository(Protocol):
  """Read access to activities, student progress, and enrollments."""

  async def list_mapped_activity_ids(self, document_id: str, section_id: str) -> list[str]:
    """Return activity ids already mapped to a section."""

  async def auto_map_activities(self, *, document_id: str, section_id: str, course_id: str, threshold: float) -> list[str]:
    """Derive section mappings by vector similarity and return the mapped activity ids."""

  async def list_progress(self, activity_ids: list[str]) -> list[ProgressRow]:
    """Return student progress rows for the given activities."""

  async def count_enrollments(self, course_id: str) -> int:
    """Count students enrolled in a course."""


class AnalyticsRepository(Protocol):
  """Write access to per-section analytics records."""

  async def upsert(self, record: AnalyticsRecord) -> None:
    """Insert or replace the record keyed by (document, section)."""

  async def list_for_document(self, document_id: str) -> list[AnalyticsRecord]:
    """Return all analytics records for a document."""
