"""Read local ``.env`` files into the process environment."""

from __future__ import annotations

import os
from pathlib import Path

_QUOTES = ('"', "'")


def default_env_path() -> Path:
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_lines(lines: list[str]) -> dict[str, str]:
  """Parse ``KEY=value`` lines, tolerating ``export`` prefixes, comments and quoting."""
  values: dict[str, str] = {}
  for raw in lines:
    entry = raw.strip()
    if entry.startswith("export "):
      entry = entry.removeprefix("export ").lstrip()
    if not entry or entry.startswith("#"):
      continue
    name, sep, value = entry.partition("=")
    name = name.strip()
    if not sep or not name:
      continue
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
      value = value[1:-1]
    values[name] = value
  return values


def load_env_file(path: Path, *, override: bool = False) -> None:
  """Export values from ``path``; existing variables win unless ``override`` is set."""
  if not path.is_file():
    return
  for name, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()).items():
    if override or name not in os.environ:
      os.environ[name] = value
