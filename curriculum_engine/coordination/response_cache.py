"""Fingerprint-keyed memo of generative text outputs."""

from __future__ import annotations

import hashlib
import re
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

_WHITESPACE_RE = re.compile(r"\s+")
MAX_INPUT_CHARS = 500


def _normalize(value: object) -> str:
  text = _WHITESPACE_RE.sub(" ", str(value)).strip().lower()
  return text[:MAX_INPUT_CHARS]


def cache_key(operation: str, *inputs: object) -> str:
  """Build a fingerprint from the operation name and its salient inputs.

  Inputs are whitespace-collapsed, lower-cased, and truncated so trivially
  different requests share an entry. None inputs are kept as empty strings to
  preserve positional meaning.
  """
  normalized = "\x1f".join("" if item is None else _normalize(item) for item in inputs)
  digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
  return f"{operation}:{digest}"


class ResponseCache:
  """Bounded TTL cache with least-recently-used eviction."""

  def __init__(self, *, ttl_seconds: float, max_entries: int, clock: Callable[[], float] = time.monotonic) -> None:
    if max_entries <= 0:
      raise ValueError("max_entries must be positive")
    self._ttl_seconds = ttl_seconds
    self._max_entries = max_entries
    self._clock = clock
    self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()
    self._lock = threading.Lock()

  def get(self, key: str) -> str | None:
    with self._lock:
      entry = self._entries.get(key)
      if entry is None:
        return None
      expires_at, value = entry
      if expires_at <= self._clock():
        del self._entries[key]
        return None
      self._entries.move_to_end(key)
      return value

  def set(self, key: str, value: str) -> None:
    with self._lock:
      self._entries[key] = (self._clock() + self._ttl_seconds, value)
      self._entries.move_to_end(key)
      while len(self._entries) > self._max_entries:
        self._entries.popitem(last=False)

  def __len__(self) -> int:
    return len(self._entries)
