"""Section extraction: AI-structured parse with a heading-regex fallback."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.ai.json_parser import extract_json_block, parse_json_with_fallback
from curriculum_engine.ai.providers.base import GenerationConfig
from curriculum_engine.core.errors import GenerationError
from curriculum_engine.jobs.models import Section

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^#{1,3}\s+.+$", re.MULTILINE)
_HEADING_MARKER_RE = re.compile(r"^#+\s+")
HEADINGS_PER_PAGE = 3

SECTION_PROMPT = """Analyze this curriculum document and identify its main sections or topics.

For each section return an object with:
- "id": a short unique identifier
- "title": the section title
- "pageNumber": the approximate page where the section starts
- "concepts": a list of the key concepts taught in the section
- "description": one or two sentences summarizing the section

Respond with a JSON array of these objects and nothing else.

Document:
{text}
"""


@dataclass(frozen=True)
class Parsed:
  """Sections produced from a well-formed AI response."""

  sections: list[Section]


@dataclass(frozen=True)
class FallbackUsed:
  """Sections produced by the heading heuristic after the AI path failed."""

  sections: list[Section]
  reason: str


@dataclass(frozen=True)
class Failed:
  """Neither the AI response nor the heading heuristic produced sections."""

  reason: str


SectionExtraction = Parsed | FallbackUsed | Failed


def sections_of(result: SectionExtraction) -> list[Section]:
  if isinstance(result, Failed):
    return []
  return list(result.sections)


def fallback_sections(text: str) -> list[Section]:
  """One section per markdown heading line (levels 1-3)."""
  sections: list[Section] = []
  for index, match in enumerate(_HEADING_RE.finditer(text or "")):
    title = _HEADING_MARKER_RE.sub("", match.group(0)).strip()
    sections.append(Section(id=f"section_{index}", title=title, location=f"page {index // HEADINGS_PER_PAGE + 1}", concepts=[], description=""))
  return sections


def build_section_prompt(text: str, *, max_chars: int) -> str:
  return SECTION_PROMPT.format(text=(text or "")[:max_chars])


def parse_sections_response(raw: str) -> list[Section]:
  """Parse a list-shaped AI response into sections; raises ValueError when unusable."""
  candidate = extract_json_block(raw, opening="[")
  if candidate is None:
    raise ValueError("Response does not contain a JSON array")
  try:
    payload = parse_json_with_fallback(candidate)
  except json.JSONDecodeError as exc:
    raise ValueError(f"Response array is not valid JSON: {exc}") from exc
  if not isinstance(payload, list):
    raise ValueError("Response is not a list")

  sections: list[Section] = []
  for index, item in enumerate(payload):
    if not isinstance(item, dict):
      continue
    sections.append(_section_from_payload(item, index))
  if not sections:
    raise ValueError("Response list contains no sections")
  return sections


def _section_from_payload(item: dict[str, Any], index: int) -> Section:
  title = str(item.get("title") or "").strip() or f"Section {index + 1}"
  page = item.get("pageNumber", item.get("location"))
  if isinstance(page, int | float) and not isinstance(page, bool):
    location = f"page {int(page)}"
  elif page:
    location = str(page)
  else:
    location = f"page {index // HEADINGS_PER_PAGE + 1}"
  concepts = item.get("concepts") if isinstance(item.get("concepts"), list) else []
  return Section(
    id=str(item.get("id") or f"section_{index}"),
    title=title,
    location=location,
    concepts=[str(concept).strip() for concept in concepts if str(concept).strip()],
    description=str(item.get("description") or ""),
  )


async def extract_sections(text: str, gateway: AIGateway, *, document_id: str, prompt_chars: int) -> SectionExtraction:
  """Ask the generative service for sections, degrading to the heading heuristic."""
  reason: str
  if not gateway.available:
    reason = "generative service not configured"
  else:
    prompt = build_section_prompt(text, max_chars=prompt_chars)
    try:
      raw = await gateway.generate(prompt, operation="extract-sections", actor=f"document:{document_id}", config=GenerationConfig(response_format="json", temperature=0.2), stream=True)
      return Parsed(parse_sections_response(raw))
    except ValueError as exc:
      reason = f"unparseable response: {exc}"
    except GenerationError as exc:
      reason = f"generative service error: {exc}"

  sections = fallback_sections(text)
  if not sections:
    logger.warning("Section extraction failed for document=%s: %s; no headings found", document_id, reason)
    return Failed(reason=reason)
  logger.info("Section extraction fell back to headings for document=%s (%d sections): %s", document_id, len(sections), reason)
  return FallbackUsed(sections=sections, reason=reason)
