import asyncio
import logging
from logging.config import fileConfig
from time import perf_counter

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

import curriculum_engine.schema  # noqa: F401
from alembic import context
from curriculum_engine.core.database import Base, async_database_url

config = context.config
if config.config_file_name is not None:
  fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.runtime.migration")
target_metadata = Base.metadata


class _RevisionTimer:
  """Log each applied revision with the time since the previous one finished."""

  def __init__(self) -> None:
    self._started: float | None = None

  def start(self) -> None:
    self._started = perf_counter()

  def __call__(self, *, ctx: object, step: object, heads: set[str], run_args: dict[str, object]) -> None:
    revision = getattr(step, "up_revision_id", None) or "unknown"
    if self._started is None:
      logger.info("Applied migration %s", revision)
    else:
      logger.info("Applied migration %s in %.3fs", revision, perf_counter() - self._started)
    self.start()


_timer = _RevisionTimer()


def _include_object(obj: object, name: str | None, type_: str, reflected: bool, compare_to: object) -> bool:
  """Skip tables marked ``skip_migration``; the platform owns them."""
  return not (type_ == "table" and getattr(obj, "info", {}).get("skip_migration"))


def _configure(**kwargs: object) -> None:
  context.configure(target_metadata=target_metadata, include_object=_include_object, compare_type=True, on_version_apply=_timer, **kwargs)


def _database_url() -> str:
  url = async_database_url()
  if not url:
    raise RuntimeError("CURRICULUM_PG_DSN (or DATABASE_URL) must be set to run migrations.")
  return url


def run_migrations_offline() -> None:
  _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
  with context.begin_transaction():
    context.run_migrations()


def _run_on_connection(connection: Connection) -> None:
  _configure(connection=connection)
  migration_context = context.get_context()
  heads = migration_context.script.get_heads() if migration_context.script else []
  logger.info("Migrating curriculum schema from %s to %s", migration_context.get_current_revision() or "base", ", ".join(heads) or "none")
  _timer.start()
  with context.begin_transaction():
    context.run_migrations()
  logger.info("Curriculum schema now at %s", ", ".join(migration_context.get_current_heads()) or "none")


async def run_migrations_online() -> None:
  section = config.get_section(config.config_ini_section) or {}
  section["sqlalchemy.url"] = _database_url()
  engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
  try:
    async with engine.connect() as connection:
      await connection.run_sync(_run_on_connection)
  finally:
    await engine.dispose()


if context.is_offline_mode():
  run_migrations_offline()
else:
  asyncio.run(run_migrations_online())
