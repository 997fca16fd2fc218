"""Misconception analysis of a student's review-node responses."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import Any, Literal

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.ai.json_parser import parse_json_with_fallback
from curriculum_engine.ai.providers.base import GenerationConfig
from curriculum_engine.coordination.idempotency import IdempotencyGuard
from curriculum_engine.core.errors import RateLimitExceededError
from curriculum_engine.services.summaries import build_student_summary, build_teacher_summary
from curriculum_engine.storage.misconceptions_repo import MisconceptionEntry, MisconceptionsRepository, ReviewAnalysis

logger = logging.getLogger(__name__)

RATE_LIMIT_OPERATION = "analyze-review-responses"
GENERATION_OPERATION = "analyze-review"
SEVERITIES = ("low", "medium", "high")
DEFAULT_ASSESSMENT = "Keep reviewing and focus on concepts highlighted below."

ReviewType = Literal["flashcards", "teacher_review"]
AnalysisStatus = Literal["analyzed", "already_done", "in_flight"]

FLASHCARD_PROMPT = """Analyze the following student flashcard definitions and identify:
1. Concepts the student understands correctly
2. Concepts the student has misconceptions about
3. Specific misconceptions with evidence
4. Recommended review concepts

Context:
{context}

Student Definitions:
{items}

Return JSON:
{{
  "concepts_understood": ["list of concepts student understands"],
  "misconceptions": [
    {{
      "concept": "concept name",
      "misconception": "description of misconception",
      "evidence": "student's definition that shows the misconception",
      "severity": "low|medium|high",
      "correct_understanding": "what the correct understanding should be"
    }}
  ],
  "recommended_review": ["concepts that need review"],
  "overall_assessment": "brief assessment of student understanding"
}}"""

TEACHER_REVIEW_PROMPT = """Analyze the following student responses to teacher prompts and identify misconceptions and areas of strength.

Context:
{context}

Student Responses:
{items}

Return JSON:
{{
  "strengths": ["areas where student shows understanding"],
  "misconceptions": [
    {{
      "concept": "concept name",
      "misconception": "description of misconception",
      "evidence": "student response that shows the misconception",
      "severity": "low|medium|high",
      "correct_understanding": "what the correct understanding should be"
    }}
  ],
  "recommended_review": ["concepts that need review"],
  "overall_assessment": "brief assessment of student understanding"
}}"""


@dataclass(frozen=True)
class ContextSource:
  type: str
  title: str = ""
  summary: str = ""
  key_points: list[str] = field(default_factory=list)
  key_concepts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReviewSubmission:
  """One student's responses for a review node."""

  activity_id: str
  student_id: str
  review_type: ReviewType
  node_id: str = ""
  flashcard_terms: list[dict[str, str]] = field(default_factory=list)
  teacher_responses: list[dict[str, str]] = field(default_factory=list)
  context: str = ""
  context_sources: list[ContextSource] = field(default_factory=list)

  @property
  def resource_id(self) -> str:
    return f"analyze-review:{self.activity_id}:{self.node_id}:{self.student_id}"


@dataclass(frozen=True)
class ReviewAnalysisResult:
  status: AnalysisStatus
  analysis: dict[str, Any] | None = None


def build_context_text(context: str, sources: list[ContextSource]) -> str:
  """Prefix free-form context with summaries of document and video sources."""
  parts = []
  for source in sources:
    if source.type in ("document", "pdf"):
      parts.append(f"Document: {source.title}\n{source.summary}\nKey Points: {', '.join(source.key_points)}")
    elif source.type in ("youtube", "video"):
      parts.append(f"Video: {source.title}\n{source.summary}\nKey Concepts: {', '.join(source.key_concepts)}")
    else:
      parts.append("")
  if not parts:
    return context
  return "\n\n".join(parts) + "\n\n" + context


def build_analysis_prompt(submission: ReviewSubmission) -> str:
  context = build_context_text(submission.context, submission.context_sources)
  if submission.review_type == "flashcards":
    items = "\n\n".join(
      f"{index}. Term: {item.get('term', '')}\n   Student Definition: {item.get('student_definition', '')}"
      for index, item in enumerate(submission.flashcard_terms, start=1)
    )
    return FLASHCARD_PROMPT.format(context=context, items=items)
  if submission.review_type == "teacher_review":
    items = "\n\n".join(
      f"Prompt {index}: {item.get('prompt', '')}\nResponse: {item.get('response', '')}"
      for index, item in enumerate(submission.teacher_responses, start=1)
    )
    return TEACHER_REVIEW_PROMPT.format(context=context, items=items)
  raise ValueError(f"Unsupported review type: {submission.review_type}")


def _text_list(value: Any) -> list[str]:
  if isinstance(value, list):
    items = [item if isinstance(item, str) else json.dumps(item) for item in value]
    return [item for item in items if item]
  if isinstance(value, str) and value.strip():
    return [value.strip()]
  return []


def _first_text(*candidates: Any) -> str:
  for candidate in candidates:
    if isinstance(candidate, str) and candidate:
      return candidate
  return ""


def normalize_misconceptions(items: Any) -> list[MisconceptionEntry]:
  """Coerce loosely shaped model output into misconception entries."""
  if not isinstance(items, list):
    return []
  entries = []
  for item in items:
    if not isinstance(item, dict):
      continue
    evidence = item.get("evidence")
    severity = item.get("severity")
    severity = severity.lower() if isinstance(severity, str) else ""
    entries.append(
      MisconceptionEntry(
        concept=_first_text(item.get("concept"), item.get("topic")) or "Unknown Concept",
        misconception=_first_text(item.get("misconception"), item.get("misconception_description"), item.get("description")),
        evidence=_first_text(evidence.get("response") if isinstance(evidence, dict) else None, item.get("student_definition"), item.get("student_response"), evidence),
        severity=severity if severity in SEVERITIES else "medium",
        correct_understanding=_first_text(item.get("correct_understanding"), item.get("correct_explanation"), item.get("explanation")),
      )
    )
  return entries


def parse_analysis(raw: str) -> dict[str, Any]:
  """Parse the model response leniently; unparseable text yields an empty analysis."""
  payload: Any = None
  for candidate in (raw, raw.replace("\n", " ")):
    try:
      payload = parse_json_with_fallback(candidate)
      break
    except ValueError:
      continue
  if not isinstance(payload, dict):
    logger.warning("Review analysis response was not a JSON object; using empty analysis")
    payload = {}
  # Some models wrap the result in an "analysis" envelope.
  if isinstance(payload.get("analysis"), dict):
    payload = payload["analysis"]

  misconceptions = normalize_misconceptions(payload.get("misconceptions"))
  return {
    "concepts_understood": _text_list(payload.get("concepts_understood") or payload.get("strengths")),
    "strengths": _text_list(payload.get("strengths") or payload.get("concepts_understood")),
    "misconceptions": [asdict(entry) for entry in misconceptions],
    "recommended_review": _text_list(payload.get("recommended_review")),
    "overall_assessment": _first_text(payload.get("overall_assessment"), payload.get("summary")) or DEFAULT_ASSESSMENT,
  }


class ReviewAnalysisService:
  """Analyze one review submission at most once per (activity, node, student)."""

  def __init__(self, *, gateway: AIGateway, guard: IdempotencyGuard, repo: MisconceptionsRepository) -> None:
    self._gateway = gateway
    self._guard = guard
    self._repo = repo

  async def analyze_review_responses(self, submission: ReviewSubmission) -> ReviewAnalysisResult:
    decision = self._gateway.rate_limiter.check_rate_limit(submission.student_id, RATE_LIMIT_OPERATION)
    if not decision.allowed:
      raise RateLimitExceededError(decision.message or "Rate limit exceeded", retry_after_seconds=decision.retry_after_seconds)

    outcome = await self._guard.run_once(
      submission.resource_id,
      already_done=partial(self._repo.has_analysis, student_id=submission.student_id, activity_id=submission.activity_id, node_id=submission.node_id),
      work=partial(self._analyze, submission),
    )
    if not outcome.executed:
      return ReviewAnalysisResult(status=outcome.status)
    return ReviewAnalysisResult(status="analyzed", analysis=outcome.result)

  async def _analyze(self, submission: ReviewSubmission) -> dict[str, Any]:
    prompt = build_analysis_prompt(submission)
    raw = await self._gateway.generate(
      prompt,
      operation=GENERATION_OPERATION,
      actor=submission.student_id,
      cache_inputs=(submission.activity_id, submission.node_id, submission.student_id),
      config=GenerationConfig(response_format="json"),
    )
    analysis = parse_analysis(raw)
    misconceptions = normalize_misconceptions(analysis["misconceptions"])
    logger.info(
      "Review analysis student=%s activity=%s node=%s misconceptions=%d understood=%d",
      submission.student_id,
      submission.activity_id,
      submission.node_id,
      len(misconceptions),
      len(analysis["concepts_understood"]),
    )

    student_name = await self._student_name(submission.student_id)
    strengths = analysis["strengths"]
    weaknesses = [entry.concept for entry in misconceptions if entry.concept]
    performance_data: dict[str, Any] = {
      "review_type": submission.review_type,
      "completion_status": "completed",
      "teacher_summary": build_teacher_summary(student_name, misconceptions, strengths),
      "student_summary": build_student_summary(student_name, strengths, misconceptions),
      "strengths_identified": strengths,
      "weaknesses_identified": weaknesses,
      "concepts_addressed": analysis["concepts_understood"] + weaknesses,
      "adaptation_suggestions": {"recommended_review": analysis["recommended_review"], "overall_assessment": analysis["overall_assessment"]},
    }
    if student_name:
      performance_data["student_name"] = student_name

    saved = await self._repo.save_analysis(
      ReviewAnalysis(
        student_id=submission.student_id,
        activity_id=submission.activity_id,
        node_id=submission.node_id,
        review_type=submission.review_type,
        misconceptions=misconceptions,
        understood_concepts=analysis["concepts_understood"],
        ai_analysis=analysis,
        performance_data=performance_data,
      )
    )
    logger.info("Saved %d misconception(s) for student=%s activity=%s", saved, submission.student_id, submission.activity_id)
    return analysis

  async def _student_name(self, student_id: str) -> str:
    try:
      return await self._repo.get_student_name(student_id) or ""
    except Exception:  # noqa: BLE001
      logger.warning("Unable to load student profile for summaries student=%s", student_id, exc_info=True)
      return ""
