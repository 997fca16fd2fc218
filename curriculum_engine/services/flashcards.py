"""Flashcard term generation from course context."""

from __future__ import annotations

import json
import logging
import re

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.ai.json_parser import extract_json_block
from curriculum_engine.core.errors import GenerationError, RateLimitExceededError

logger = logging.getLogger(__name__)

OPERATION = "generate-flashcards"
DEFAULT_TERM_COUNT = 10
CONTEXT_KEY_CHARS = 50

FLASHCARD_TERMS_PROMPT = """Based on the following context from documents and videos, generate {num_terms} important terms/concepts that students should learn. Return only a JSON array of term strings, nothing else.

Context:
{context}

Return a JSON array like: ["Term 1", "Term 2", "Term 3", ...]"""

_WHITESPACE_RE = re.compile(r"\s")


def placeholder_terms(num_terms: int) -> list[str]:
  return [f"Term {index}" for index in range(1, num_terms + 1)]


def parse_terms(raw: str, num_terms: int) -> list[str]:
  """Read a JSON array of terms, or fall back to one term per non-empty line."""
  block = extract_json_block(raw, opening="[")
  if block is not None:
    try:
      payload = json.loads(block)
    except json.JSONDecodeError:
      payload = None
    if isinstance(payload, list):
      return [str(item).strip() for item in payload if str(item).strip()]

  lines = [line.strip() for line in raw.splitlines()]
  return [line for line in lines if line and not line.startswith(("[", "]"))][:num_terms]


class FlashcardService:
  def __init__(self, gateway: AIGateway) -> None:
    self._gateway = gateway

  async def generate_flashcard_terms(self, *, context: str, num_terms: int | None, node_id: str | None, user_id: str) -> list[str]:
    """Return terms for the context; provider failures degrade to placeholders.

    Rate-limit denials propagate so callers can answer with 429.
    """
    count = num_terms or DEFAULT_TERM_COUNT
    context_hash = _WHITESPACE_RE.sub("", context[:CONTEXT_KEY_CHARS])
    try:
      raw = await self._gateway.generate(
        FLASHCARD_TERMS_PROMPT.format(num_terms=count, context=context),
        operation=OPERATION,
        actor=user_id,
        cache_inputs=(context_hash, count, node_id or ""),
        max_retries=0,
      )
    except RateLimitExceededError:
      raise
    except GenerationError as exc:
      logger.warning("Flashcard generation failed for user=%s; using placeholder terms: %s", user_id, exc)
      return placeholder_terms(count)
    return parse_terms(raw, count)
