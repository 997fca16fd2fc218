"""Test configuration for importing the application package."""

from __future__ import annotations

import os
import sys
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
  sys.path.insert(0, str(TESTS_DIR))

os.environ.setdefault("CURRICULUM_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ["CURRICULUM_TASK_SECRET"] = "task-secret"
os.environ["CRON_SECRET"] = "cron-secret"
for name in ("CURRICULUM_PG_DSN", "DATABASE_URL", "GEMINI_API_KEY", "CURRICULUM_EMBEDDINGS_URL"):
  os.environ.pop(name, None)

import pytest  # noqa: E402

from curriculum_engine.config import get_settings  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()
