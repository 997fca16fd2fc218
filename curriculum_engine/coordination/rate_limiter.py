"""Per-(actor, operation) call throttle for generative text requests."""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict, deque
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RatePolicy:
  """Minimum spacing between calls plus a burst cap over a sliding window."""

  min_interval_seconds: float
  max_burst: int
  window_seconds: float


@dataclass(frozen=True)
class RateLimitDecision:
  allowed: bool
  retry_after_seconds: int = 0
  message: str | None = None


class RateLimiter:
  """Sliding-window limiter with a bounded key store.

  Keys are (actor, operation). The least recently used keys are evicted once
  ``max_keys`` is reached, so memory stays bounded regardless of traffic.
  """

  def __init__(self, *, default_policy: RatePolicy, policies: dict[str, RatePolicy] | None = None, max_keys: int = 10_000, clock: Callable[[], float] = time.monotonic) -> None:
    self._default_policy = default_policy
    self._policies = dict(policies or {})
    self._max_keys = max_keys
    self._clock = clock
    self._calls: OrderedDict[tuple[str, str], deque[float]] = OrderedDict()
    self._lock = threading.Lock()

  def policy_for(self, operation: str) -> RatePolicy:
    return self._policies.get(operation, self._default_policy)

  def check_rate_limit(self, actor: str, operation: str) -> RateLimitDecision:
    """Record the call when allowed; otherwise report how long to wait."""
    policy = self.policy_for(operation)
    key = (actor, operation)
    with self._lock:
      now = self._clock()
      calls = self._calls.get(key)
      if calls is None:
        calls = deque()
        self._calls[key] = calls
        self._evict_overflow()
      else:
        self._calls.move_to_end(key)
      while calls and now - calls[0] >= policy.window_seconds:
        calls.popleft()

      if calls and now - calls[-1] < policy.min_interval_seconds:
        wait = policy.min_interval_seconds - (now - calls[-1])
        return _denied(wait, "Please wait a moment before trying again.")
      if len(calls) >= policy.max_burst:
        wait = policy.window_seconds - (now - calls[0])
        return _denied(wait, "Too many requests. Please try again later.")

      calls.append(now)
      return RateLimitDecision(allowed=True)

  def reset(self, actor: str | None = None) -> None:
    with self._lock:
      if actor is None:
        self._calls.clear()
        return
      for key in [key for key in self._calls if key[0] == actor]:
        del self._calls[key]

  def __len__(self) -> int:
    return len(self._calls)

  def _evict_overflow(self) -> None:
    while len(self._calls) > self._max_keys:
      self._calls.popitem(last=False)


def _denied(wait_seconds: float, message: str) -> RateLimitDecision:
  retry_after = max(1, math.ceil(wait_seconds))
  return RateLimitDecision(allowed=False, retry_after_seconds=retry_after, message=f"{message} Retry in {retry_after} seconds.")
