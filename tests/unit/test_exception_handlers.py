"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

import json

import pytest
from starlette.requests import Request

from curriculum_engine.core.errors import RateLimitExceededError
from curriculum_engine.core.exceptions import _sanitize_validation_errors, rate_limit_exception_handler
from curriculum_engine.core.lifespan import _redact_dsn
from curriculum_engine.core.middleware import _redact_query


def _request(path: str = "/v1/ai/generate-flashcards") -> Request:
  return Request({"type": "http", "method": "POST", "path": path, "headers": [], "query_string": b"", "state": {"request_id": "req-1"}})


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body",), "msg": "Value error, bad context.", "input": {"context": "secret notes"}, "ctx": {"error": ValueError("bad context."), "input": {"context": "secret notes"}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad context."
  assert "input" not in sanitized[0]["ctx"]


@pytest.mark.anyio
async def test_rate_limit_handler_returns_429_with_retry_after() -> None:
  response = await rate_limit_exception_handler(_request(), RateLimitExceededError("Please wait a moment before trying again. Retry in 3 seconds.", retry_after_seconds=3))
  assert response.status_code == 429
  assert response.headers["Retry-After"] == "3"
  body = json.loads(response.body)
  assert body == {"detail": "Please wait a moment before trying again. Retry in 3 seconds.", "requestId": "req-1", "retry_after": 3}


def test_secret_query_parameters_are_masked_in_logs() -> None:
  assert _redact_query("cron_secret=abc&limit=5") == "cron_secret=***&limit=5"


def test_dsn_password_is_masked() -> None:
  redacted = _redact_dsn("postgresql+asyncpg://curriculum:hunter2@db:5432/curriculum")
  assert "hunter2" not in redacted
  assert "db:5432/curriculum" in redacted
