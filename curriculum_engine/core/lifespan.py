import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlsplit

from fastapi import FastAPI
from sqlalchemy import text

from curriculum_engine.core.database import get_db_engine
from curriculum_engine.core.logging import configure_logging

logger = logging.getLogger(__name__)


def _redact_dsn(raw: str | None) -> str:
  """Render a DSN as scheme://user@host:port/db, never including the password."""
  if not raw:
    return "<unset>"
  parts = urlsplit(raw)
  if not parts.scheme:
    return "<invalid>"
  location = parts.hostname or ""
  if parts.port:
    location = f"{location}:{parts.port}"
  if parts.username:
    location = f"{parts.username}@{location}"
  return f"{parts.scheme}://{location}{parts.path if parts.path.strip('/') else ''}"


async def _report_database() -> None:
  engine = get_db_engine()
  if engine is None:
    logger.warning("Database engine unavailable; curriculum processing routes will fail until CURRICULUM_PG_DSN is set.")
    return
  async with engine.connect() as connection:
    present = await connection.execute(text("SELECT to_regclass('curriculum_processing_jobs') IS NOT NULL"))
    logger.info("Database reachable; curriculum_processing_jobs present=%s", bool(present.scalar_one()))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Configure logging and check the database on startup; dispose the engine on shutdown."""
  from curriculum_engine.config import get_settings

  settings = get_settings()
  try:
    configure_logging(settings)
    logger.info("Startup complete environment=%s database=%s", settings.environment, _redact_dsn(settings.pg_dsn))
    await _report_database()
  except Exception:
    # Startup checks are advisory.
    logger.warning("Startup checks failed; continuing.", exc_info=True)

  yield

  engine = get_db_engine()
  if engine is not None:
    await engine.dispose()
