"""Lenient JSON parsing helpers for LLM outputs."""

from __future__ import annotations

import json
import re
from typing import Any

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?|\n?```\s*$")
_BARE_KEY_RE = re.compile(r'([{,]\s*)([A-Za-z_][A-Za-z0-9_-]*)(\s*:)')


def strip_json_fences(raw: str) -> str:
  """Remove a surrounding markdown code fence, if present."""
  return _FENCE_RE.sub("", raw.strip()).strip()


def parse_json_with_fallback(raw: str) -> Any:
  """Parse JSON with minimal recovery to keep LLM retries low."""
  text = strip_json_fences(raw)

  # Prefer strict parsing so valid JSON is preserved without mutation.
  try:
    return json.loads(text)
  except json.JSONDecodeError as exc:
    last_error = exc

  # Extract the first JSON object/array to ignore leading or trailing prose.
  candidate = extract_json_block(text)
  if candidate is None:
    raise last_error

  for repair in (_identity, _strip_trailing_commas, _quote_bare_keys):
    candidate = repair(candidate)
    try:
      return json.loads(candidate)
    except json.JSONDecodeError as exc:
      last_error = exc

  raise last_error


def extract_json_block(raw: str, *, opening: str = "{[") -> str | None:
  """Locate the first balanced JSON object/array, honoring string escapes."""
  start_index: int | None = None
  depth = 0
  in_string = False
  escape = False

  for index, char in enumerate(raw):
    if start_index is None:
      if char in opening:
        start_index = index
        depth = 1
      continue

    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char in "{[":
      depth += 1
    elif char in "}]":
      depth -= 1
      if depth == 0:
        return raw[start_index : index + 1]

  return None


def _identity(raw: str) -> str:
  return raw


def _strip_trailing_commas(raw: str) -> str:
  return _TRAILING_COMMA_RE.sub(r"\1", raw)


def _quote_bare_keys(raw: str) -> str:
  """Wrap bare object keys in quotes to handle JS-style output."""
  return _BARE_KEY_RE.sub(r'\1"\2"\3', raw)
