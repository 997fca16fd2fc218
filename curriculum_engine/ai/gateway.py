"""Single entry point for generative text calls.

Every call passes through the same sequence: response cache, in-flight
de-duplication, per-(actor, operation) rate limit, then the provider call with
fixed-delay retries on transient failures. Successful text is cached when the
caller supplies cache inputs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from curriculum_engine.ai.errors import is_rate_limit_error, is_transient_error
from curriculum_engine.ai.providers.base import GenerationConfig, TextGenerator, collect_stream
from curriculum_engine.config import Settings
from curriculum_engine.coordination.rate_limiter import RateLimiter, RatePolicy
from curriculum_engine.coordination.response_cache import ResponseCache, cache_key
from curriculum_engine.core.errors import GenerationError, GenerationUnavailableError, RateLimitExceededError

logger = logging.getLogger(__name__)

PROVIDER_RETRY_AFTER_SECONDS = 60

# Per-operation policies; everything else uses the configured default policy.
OPERATION_POLICIES: dict[str, RatePolicy] = {
  "generate-flashcards": RatePolicy(min_interval_seconds=3.0, max_burst=5, window_seconds=30.0),
  "analyze-review-responses": RatePolicy(min_interval_seconds=0.0, max_burst=10, window_seconds=60.0),
}


class AIGateway:
  """Coordinates cache, dedup, throttling, and retries around a text generator."""

  def __init__(
    self,
    generator: TextGenerator | None,
    *,
    rate_limiter: RateLimiter,
    cache: ResponseCache,
    max_retries: int = 2,
    retry_delay_seconds: float = 1.0,
    default_config: GenerationConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
  ) -> None:
    self._generator = generator
    self._rate_limiter = rate_limiter
    self._cache = cache
    self._max_retries = max_retries
    self._retry_delay_seconds = retry_delay_seconds
    self._default_config = default_config or GenerationConfig()
    self._sleep = sleep
    self._in_flight: dict[str, asyncio.Future[str]] = {}

  @property
  def available(self) -> bool:
    return self._generator is not None

  @property
  def rate_limiter(self) -> RateLimiter:
    return self._rate_limiter

  async def generate(
    self,
    prompt: str,
    *,
    operation: str,
    actor: str,
    cache_inputs: tuple[object, ...] | None = None,
    config: GenerationConfig | None = None,
    max_retries: int | None = None,
    stream: bool = False,
  ) -> str:
    """Return generated text, raising RateLimitExceededError when throttled."""
    key = cache_key(operation, *cache_inputs) if cache_inputs is not None else None
    if key is not None:
      cached = self._cache.get(key)
      if cached is not None:
        logger.debug("AI cache hit operation=%s actor=%s", operation, actor)
        return cached
      pending = self._in_flight.get(key)
      if pending is not None:
        logger.debug("Joining in-flight AI request operation=%s actor=%s", operation, actor)
        return await asyncio.shield(pending)

    decision = self._rate_limiter.check_rate_limit(actor, operation)
    if not decision.allowed:
      raise RateLimitExceededError(decision.message or "Rate limit exceeded", retry_after_seconds=decision.retry_after_seconds)

    if self._generator is None:
      raise GenerationUnavailableError("No generative text provider is configured")

    call = self._call_with_retries(prompt, config or self._default_config, operation=operation, max_retries=self._max_retries if max_retries is None else max_retries, stream=stream)
    if key is None:
      return await call

    future: asyncio.Future[str] = asyncio.ensure_future(call)
    self._in_flight[key] = future
    try:
      text = await asyncio.shield(future)
    finally:
      if self._in_flight.get(key) is future:
        del self._in_flight[key]
    self._cache.set(key, text)
    return text

  async def _call_with_retries(self, prompt: str, config: GenerationConfig, *, operation: str, max_retries: int, stream: bool) -> str:
    assert self._generator is not None
    attempt = 0
    while True:
      try:
        if stream:
          return await collect_stream(self._generator, prompt, config)
        return await self._generator.generate(prompt, config)
      except Exception as exc:  # noqa: BLE001
        if is_rate_limit_error(exc):
          logger.warning("Provider throttled operation=%s: %s", operation, exc)
          raise RateLimitExceededError("The AI service is busy. Please try again shortly.", retry_after_seconds=PROVIDER_RETRY_AFTER_SECONDS) from exc
        if attempt < max_retries and is_transient_error(exc):
          attempt += 1
          logger.warning("Transient AI failure operation=%s attempt=%d/%d: %s", operation, attempt, max_retries, exc)
          await self._sleep(self._retry_delay_seconds)
          continue
        raise GenerationError(f"Generation failed for {operation}: {exc}") from exc


def build_text_generator(settings: Settings) -> TextGenerator | None:
  """Return the configured provider, or None when no credentials are present."""
  if not settings.gemini_api_key:
    logger.warning("GEMINI_API_KEY is not set; generative features will degrade to fallbacks.")
    return None
  from curriculum_engine.ai.providers.gemini import GeminiTextGenerator

  return GeminiTextGenerator(settings.gemini_model, api_key=settings.gemini_api_key)


def build_gateway(settings: Settings, generator: TextGenerator | None = None) -> AIGateway:
  """Build a gateway wired from settings."""
  rate_limiter = RateLimiter(
    default_policy=RatePolicy(min_interval_seconds=settings.ai_min_interval_seconds, max_burst=settings.ai_max_burst, window_seconds=settings.ai_window_seconds),
    policies=OPERATION_POLICIES,
    max_keys=settings.rate_limit_max_keys,
  )
  cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries)
  return AIGateway(
    generator if generator is not None else build_text_generator(settings),
    rate_limiter=rate_limiter,
    cache=cache,
    max_retries=settings.ai_max_retries,
    retry_delay_seconds=settings.ai_retry_delay_seconds,
    default_config=GenerationConfig(max_output_tokens=settings.max_output_tokens),
  )
