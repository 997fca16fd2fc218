from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ProcessJobsRequest(BaseModel):
  """Request payload for one dispatch invocation."""

  max_jobs: int = Field(default=5, ge=1, description="Maximum jobs to claim in this invocation; capped by server configuration.")
  model_config = ConfigDict(extra="forbid")


class DispatchResponse(BaseModel):
  processed: int
  failed: int
  total: int


class DocumentStatusResponse(BaseModel):
  """Polling view of one curriculum document."""

  processing_status: str
  processing_progress: int
  processing_error: str | None = None
  latest_job_status: str | None = None
  latest_job_error: str | None = None


class PendingJobsResponse(BaseModel):
  pending_jobs: int


class FlashcardDefinition(BaseModel):
  term: StrictStr
  student_definition: StrictStr = ""


class TeacherPromptResponse(BaseModel):
  prompt: StrictStr
  response: StrictStr = ""


class ReviewResponses(BaseModel):
  """Student answers for a review node, keyed by review type."""

  review_type: Literal["flashcards", "teacher_review"]
  flashcard_terms: list[FlashcardDefinition] = Field(default_factory=list)
  teacher_responses: list[TeacherPromptResponse] = Field(default_factory=list)


class ContextSourceModel(BaseModel):
  type: StrictStr
  title: StrictStr = ""
  summary: StrictStr | None = None
  key_points: list[StrictStr] = Field(default_factory=list)
  key_concepts: list[StrictStr] = Field(default_factory=list)


class AnalyzeReviewRequest(BaseModel):
  """Request payload for misconception analysis of review responses."""

  activity_id: StrictStr = Field(min_length=1)
  student_id: StrictStr = Field(min_length=1)
  node_id: StrictStr | None = None
  responses: ReviewResponses
  context: StrictStr | None = None
  context_sources: list[ContextSourceModel] = Field(default_factory=list)


class AnalyzeReviewResponse(BaseModel):
  success: bool
  message: str | None = None
  analysis: dict[str, Any] | None = None


class GenerateFlashcardsRequest(BaseModel):
  context: StrictStr = Field(min_length=1, description="Source material the terms are drawn from.")
  num_terms: int | None = Field(default=None, ge=1, le=50)
  node_id: StrictStr | None = None
  user_id: StrictStr = Field(min_length=1)


class GenerateFlashcardsResponse(BaseModel):
  terms: list[str]
