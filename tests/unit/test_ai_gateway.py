"""Unit tests for cache, dedup, throttling, and retry behavior of the AI gateway."""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeTextGenerator

from curriculum_engine.ai.errors import is_rate_limit_error, is_transient_error
from curriculum_engine.ai.gateway import PROVIDER_RETRY_AFTER_SECONDS, AIGateway
from curriculum_engine.coordination.rate_limiter import RateLimiter, RatePolicy
from curriculum_engine.coordination.response_cache import ResponseCache
from curriculum_engine.core.errors import GenerationError, GenerationUnavailableError, RateLimitExceededError

OPEN_POLICY = RatePolicy(min_interval_seconds=0, max_burst=100, window_seconds=60)


async def _no_sleep(_: float) -> None:
  return None


def _gateway(generator: FakeTextGenerator | None, *, policy: RatePolicy = OPEN_POLICY, max_retries: int = 2) -> AIGateway:
  return AIGateway(
    generator,
    rate_limiter=RateLimiter(default_policy=policy),
    cache=ResponseCache(ttl_seconds=600, max_entries=16),
    max_retries=max_retries,
    retry_delay_seconds=0,
    sleep=_no_sleep,
  )


@pytest.mark.anyio
async def test_cached_response_skips_provider_and_rate_limit() -> None:
  generator = FakeTextGenerator(["first answer"])
  gateway = _gateway(generator, policy=RatePolicy(min_interval_seconds=60, max_burst=1, window_seconds=60))

  first = await gateway.generate("prompt", operation="generate-flashcards", actor="user-1", cache_inputs=("ctx", 10, "node"))
  second = await gateway.generate("prompt", operation="generate-flashcards", actor="user-1", cache_inputs=("CTX ", "10", "node"))

  assert first == second == "first answer"
  assert generator.calls == 1


@pytest.mark.anyio
async def test_concurrent_identical_requests_share_one_provider_call() -> None:
  generator = FakeTextGenerator(["shared"], delay=0.01)
  gateway = _gateway(generator)

  results = await asyncio.gather(*(gateway.generate("p", operation="op", actor=f"user-{index}", cache_inputs=("same",)) for index in range(3)))

  assert results == ["shared", "shared", "shared"]
  assert generator.calls == 1


@pytest.mark.anyio
async def test_rate_limit_denial_raises_with_retry_after() -> None:
  generator = FakeTextGenerator(["ok"])
  gateway = _gateway(generator, policy=RatePolicy(min_interval_seconds=2, max_burst=10, window_seconds=60))
  await gateway.generate("p", operation="op", actor="user-1")

  with pytest.raises(RateLimitExceededError) as exc_info:
    await gateway.generate("p2", operation="op", actor="user-1")
  assert exc_info.value.retry_after_seconds == 2
  assert generator.calls == 1


@pytest.mark.anyio
async def test_transient_failure_is_retried_then_succeeds() -> None:
  generator = FakeTextGenerator([ConnectionError("connection reset"), "recovered"])
  gateway = _gateway(generator, max_retries=2)
  assert await gateway.generate("p", operation="op", actor="user-1") == "recovered"
  assert generator.calls == 2


@pytest.mark.anyio
async def test_zero_retries_surfaces_transient_failure() -> None:
  generator = FakeTextGenerator([TimeoutError("timed out"), "never"])
  gateway = _gateway(generator)
  with pytest.raises(GenerationError):
    await gateway.generate("p", operation="op", actor="user-1", max_retries=0)
  assert generator.calls == 1


@pytest.mark.anyio
async def test_non_transient_failure_is_not_retried() -> None:
  generator = FakeTextGenerator([ValueError("invalid prompt"), "never"])
  gateway = _gateway(generator, max_retries=3)
  with pytest.raises(GenerationError, match="invalid prompt"):
    await gateway.generate("p", operation="op", actor="user-1")
  assert generator.calls == 1


@pytest.mark.anyio
async def test_provider_quota_error_becomes_rate_limit() -> None:
  generator = FakeTextGenerator([RuntimeError("429 RESOURCE_EXHAUSTED: quota exceeded")])
  gateway = _gateway(generator)
  with pytest.raises(RateLimitExceededError) as exc_info:
    await gateway.generate("p", operation="op", actor="user-1")
  assert exc_info.value.retry_after_seconds == PROVIDER_RETRY_AFTER_SECONDS


@pytest.mark.anyio
async def test_failed_call_is_not_cached() -> None:
  generator = FakeTextGenerator([ValueError("bad"), "good"])
  gateway = _gateway(generator)
  with pytest.raises(GenerationError):
    await gateway.generate("p", operation="op", actor="user-1", cache_inputs=("k",))
  assert await gateway.generate("p", operation="op", actor="user-1", cache_inputs=("k",)) == "good"


@pytest.mark.anyio
async def test_missing_provider_is_unavailable() -> None:
  gateway = _gateway(None)
  assert not gateway.available
  with pytest.raises(GenerationUnavailableError):
    await gateway.generate("p", operation="op", actor="user-1")


def test_error_classification() -> None:
  assert is_rate_limit_error(RuntimeError("Too Many Requests"))
  assert not is_rate_limit_error(RuntimeError("bad request"))
  assert is_transient_error(TimeoutError())
  assert is_transient_error(RuntimeError("503 Service Unavailable"))
  assert not is_transient_error(RuntimeError("invalid argument"))


class _ChunkedGenerator(FakeTextGenerator):
  async def stream(self, prompt, config):
    self.prompts.append(prompt)
    for chunk in ("[", "", '"Ratio"', "]"):
      yield chunk


@pytest.mark.anyio
async def test_streamed_chunks_are_concatenated() -> None:
  generator = _ChunkedGenerator()
  gateway = _gateway(generator)

  text = await gateway.generate("prompt", operation="extract-sections", actor="document:doc-1", stream=True)

  assert text == '["Ratio"]'
  assert generator.calls == 1
