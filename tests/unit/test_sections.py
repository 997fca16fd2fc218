"""Unit tests for section extraction and its heading fallback."""

from __future__ import annotations

import pytest
from fakes import FakeTextGenerator

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.coordination.rate_limiter import RateLimiter, RatePolicy
from curriculum_engine.coordination.response_cache import ResponseCache
from curriculum_engine.pipeline.sections import Failed, FallbackUsed, Parsed, extract_sections, fallback_sections, parse_sections_response, sections_of

DOCUMENT = """# Fractions
Intro text.
## Adding Fractions
Body.
### Common Denominators
More.
#### Too deep to count
## Multiplying Fractions
"""


def _gateway(generator: FakeTextGenerator | None, policy: RatePolicy | None = None) -> AIGateway:
  limiter = RateLimiter(default_policy=policy or RatePolicy(min_interval_seconds=0, max_burst=100, window_seconds=60))
  return AIGateway(generator, rate_limiter=limiter, cache=ResponseCache(ttl_seconds=60, max_entries=8), max_retries=0)


def test_fallback_builds_one_section_per_heading_up_to_level_three() -> None:
  sections = fallback_sections(DOCUMENT)
  assert [section.title for section in sections] == ["Fractions", "Adding Fractions", "Common Denominators", "Multiplying Fractions"]
  assert [section.id for section in sections] == ["section_0", "section_1", "section_2", "section_3"]
  assert [section.location for section in sections] == ["page 1", "page 1", "page 1", "page 2"]
  assert all(section.concepts == [] and section.description == "" for section in sections)


def test_fallback_without_headings_is_empty() -> None:
  assert fallback_sections("plain prose with no markdown headings") == []
  assert fallback_sections("") == []


def test_parse_sections_response_reads_array_inside_prose() -> None:
  raw = 'Here you go:\n```json\n[{"id": "s1", "title": "Ratios", "pageNumber": 3, "concepts": ["ratio", " "], "description": "Intro"}, "junk"]\n```'
  sections = parse_sections_response(raw)
  assert len(sections) == 1
  assert sections[0].id == "s1"
  assert sections[0].location == "page 3"
  assert sections[0].concepts == ["ratio"]


def test_parse_sections_response_rejects_non_list() -> None:
  with pytest.raises(ValueError):
    parse_sections_response('{"sections": []}')
  with pytest.raises(ValueError):
    parse_sections_response("[]")


@pytest.mark.anyio
async def test_ai_response_is_used_when_parseable() -> None:
  generator = FakeTextGenerator(['[{"id": "s1", "title": "Ratios", "pageNumber": 1, "concepts": ["ratio"]}]'])
  result = await extract_sections(DOCUMENT, _gateway(generator), document_id="doc-1", prompt_chars=100)
  assert isinstance(result, Parsed)
  assert [section.title for section in sections_of(result)] == ["Ratios"]
  assert "Document:\n# Fractions" in generator.prompts[0]


@pytest.mark.anyio
async def test_unparseable_response_falls_back_to_headings() -> None:
  generator = FakeTextGenerator(["I could not find any sections, sorry."])
  result = await extract_sections(DOCUMENT, _gateway(generator), document_id="doc-1", prompt_chars=100)
  assert isinstance(result, FallbackUsed)
  assert len(result.sections) == 4
  assert "unparseable" in result.reason


@pytest.mark.anyio
async def test_missing_provider_falls_back_to_headings() -> None:
  result = await extract_sections(DOCUMENT, _gateway(None), document_id="doc-1", prompt_chars=100)
  assert isinstance(result, FallbackUsed)
  assert len(sections_of(result)) == 4


@pytest.mark.anyio
async def test_rate_limited_extraction_falls_back() -> None:
  generator = FakeTextGenerator(["[]"])
  gateway = _gateway(generator, RatePolicy(min_interval_seconds=60, max_burst=1, window_seconds=60))
  assert gateway.rate_limiter.check_rate_limit("document:doc-1", "extract-sections").allowed
  result = await extract_sections(DOCUMENT, gateway, document_id="doc-1", prompt_chars=100)
  assert isinstance(result, FallbackUsed)
  assert generator.calls == 0


@pytest.mark.anyio
async def test_no_headings_and_failed_ai_is_failed() -> None:
  generator = FakeTextGenerator([RuntimeError("invalid argument")])
  result = await extract_sections("just prose", _gateway(generator), document_id="doc-1", prompt_chars=100)
  assert isinstance(result, Failed)
  assert sections_of(result) == []
