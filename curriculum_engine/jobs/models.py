"""Domain models for curriculum processing jobs and documents."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]
JobType = Literal["extract_sections", "map_activities", "calculate_analytics", "full_pipeline", "generate_embeddings"]
ProcessingStatus = Literal["uploading", "extracting", "analyzing", "mapping", "completed", "failed"]

# Follow-up jobs run against a document without owning its processing status.
DOCUMENT_DRIVING_JOB_TYPES: frozenset[str] = frozenset({"extract_sections", "map_activities", "calculate_analytics", "full_pipeline"})


@dataclass
class JobRecord:
  """Represents a persisted unit of pipeline work against one document."""

  id: str
  curriculum_document_id: str
  job_type: JobType
  status: JobStatus
  priority: int
  attempts: int
  max_attempts: int
  created_at: datetime.datetime
  started_at: datetime.datetime | None = None
  completed_at: datetime.datetime | None = None
  error_message: str | None = None
  lease_expires_at: datetime.datetime | None = None
  available_at: datetime.datetime | None = None

  @property
  def attempts_remaining(self) -> bool:
    return self.attempts < self.max_attempts

  @property
  def drives_document(self) -> bool:
    return self.job_type in DOCUMENT_DRIVING_JOB_TYPES


@dataclass(frozen=True)
class Section:
  """A structural unit inside a curriculum document."""

  id: str
  title: str
  location: str
  concepts: list[str] = field(default_factory=list)
  description: str = ""

  def to_dict(self) -> dict[str, Any]:
    return {"id": self.id, "title": self.title, "location": self.location, "concepts": list(self.concepts), "description": self.description}

  @classmethod
  def from_dict(cls, payload: dict[str, Any]) -> Section:
    concepts = payload.get("concepts") or []
    return cls(
      id=str(payload.get("id") or ""),
      title=str(payload.get("title") or ""),
      location=str(payload.get("location") or payload.get("pageNumber") or ""),
      concepts=[str(concept) for concept in concepts if isinstance(concept, str | int | float)],
      description=str(payload.get("description") or ""),
    )


@dataclass
class DocumentRecord:
  """Represents an uploaded curriculum document and its processing state."""

  id: str
  course_id: str
  uploaded_by: str
  title: str
  file_type: str | None
  file_path: str | None
  file_url: str | None
  extracted_text: str | None
  sections: list[Section]
  processing_status: ProcessingStatus
  processing_progress: int
  processing_error: str | None = None
  embeddings_status: str | None = None


@dataclass
class AnalyticsRecord:
  """Per-(document, section) aggregate recomputed wholesale on each analytics run."""

  curriculum_document_id: str
  section_id: str
  course_id: str
  total_students: int
  students_attempted: int
  students_completed: int
  average_score: float | None
  average_time_spent: float | None
  common_misconceptions: list[Any]
  performance_insights: dict[str, Any]
  concept_mastery: dict[str, float]
  last_calculated_at: datetime.datetime


@dataclass(frozen=True)
class ProgressRow:
  """A student's progress against one activity, as read from the course tables."""

  student_id: str
  activity_id: str
  status: str | None
  score: float | None
  time_spent: int | None
  responses: Any


@dataclass(frozen=True)
class DocumentStatus:
  """Polling view of a document and its most recent job."""

  processing_status: str
  processing_progress: int
  processing_error: str | None
  latest_job_status: str | None
  latest_job_error: str | None

  def to_dict(self) -> dict[str, Any]:
    return {
      "processing_status": self.processing_status,
      "processing_progress": self.processing_progress,
      "processing_error": self.processing_error,
      "latest_job_status": self.latest_job_status,
      "latest_job_error": self.latest_job_error,
    }
