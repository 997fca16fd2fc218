"""Shared error classification helpers for AI provider handling."""

from __future__ import annotations

from collections.abc import Iterable

_RATE_LIMIT_HINTS: tuple[str, ...] = (
  "429",
  "too many requests",
  "rate limit",
  "resource exhausted",
  "resource_exhausted",
  "quota",
)

_TRANSIENT_HINTS: tuple[str, ...] = (
  "timeout",
  "timed out",
  "connection",
  "network",
  "service unavailable",
  "unavailable",
  "bad gateway",
  "internal error",
  "500",
  "502",
  "503",
  "504",
)


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  return any(hint in message for hint in hints)


def is_rate_limit_error(exc: BaseException) -> bool:
  """Return True when the provider rejected the call for quota or rate reasons."""
  return _match_hint(str(exc).lower(), _RATE_LIMIT_HINTS)


def is_transient_error(exc: BaseException) -> bool:
  """Return True when an immediate retry has a reasonable chance of succeeding."""
  if isinstance(exc, TimeoutError | ConnectionError):
    return True
  return _match_hint(str(exc).lower(), _TRANSIENT_HINTS)
