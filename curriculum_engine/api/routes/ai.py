from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from curriculum_engine.api.deps import get_flashcard_service, get_review_analysis_service
from curriculum_engine.api.models import AnalyzeReviewRequest, AnalyzeReviewResponse, GenerateFlashcardsRequest, GenerateFlashcardsResponse
from curriculum_engine.core.errors import GenerationError, RateLimitExceededError
from curriculum_engine.services.flashcards import FlashcardService
from curriculum_engine.services.misconceptions import ContextSource, ReviewAnalysisService, ReviewSubmission

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/analyze-review-responses", response_model=AnalyzeReviewResponse)
async def analyze_review_responses(request: AnalyzeReviewRequest, service: Annotated[ReviewAnalysisService, Depends(get_review_analysis_service)]) -> AnalyzeReviewResponse:
  """Detect misconceptions in a student's review answers, at most once per node."""
  submission = ReviewSubmission(
    activity_id=request.activity_id,
    student_id=request.student_id,
    node_id=request.node_id or "",
    review_type=request.responses.review_type,
    flashcard_terms=[item.model_dump() for item in request.responses.flashcard_terms],
    teacher_responses=[item.model_dump() for item in request.responses.teacher_responses],
    context=request.context or "",
    context_sources=[
      ContextSource(type=source.type, title=source.title, summary=source.summary or "", key_points=list(source.key_points), key_concepts=list(source.key_concepts)) for source in request.context_sources
    ],
  )
  try:
    result = await service.analyze_review_responses(submission)
  except RateLimitExceededError:
    raise
  except GenerationError as exc:
    logger.error("Review analysis failed student=%s activity=%s: %s", request.student_id, request.activity_id, exc)
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to analyze responses") from exc

  if result.status == "already_done":
    return AnalyzeReviewResponse(success=True, message="Analysis already completed")
  if result.status == "in_flight":
    return AnalyzeReviewResponse(success=True, message="Analysis already in progress")
  return AnalyzeReviewResponse(success=True, analysis=result.analysis)


@router.post("/generate-flashcards", response_model=GenerateFlashcardsResponse)
async def generate_flashcards(request: GenerateFlashcardsRequest, service: Annotated[FlashcardService, Depends(get_flashcard_service)]) -> GenerateFlashcardsResponse:
  """Suggest flashcard terms drawn from the supplied context."""
  terms = await service.generate_flashcard_terms(context=request.context, num_terms=request.num_terms, node_id=request.node_id, user_id=request.user_id)
  return GenerateFlashcardsResponse(terms=terms)
