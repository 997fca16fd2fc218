"""Async SQLAlchemy engine and session factory shared by the Postgres repositories."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from curriculum_engine.config import get_database_settings


class Base(DeclarativeBase):
  pass


def async_database_url() -> str | None:
  """Return the configured DSN rewritten for the asyncpg driver."""
  dsn = get_database_settings().pg_dsn
  if not dsn:
    return None
  for prefix in ("postgresql://", "postgres://"):
    if dsn.startswith(prefix):
      return "postgresql+asyncpg://" + dsn[len(prefix) :]
  return dsn


@lru_cache(maxsize=1)
def get_db_engine() -> AsyncEngine | None:
  url = async_database_url()
  if url is None:
    return None
  settings = get_database_settings()
  return create_async_engine(url, echo=settings.debug, pool_pre_ping=True, connect_args={"timeout": settings.pg_connect_timeout})


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  engine = get_db_engine()
  if engine is None:
    return None
  return async_sessionmaker(bind=engine, expire_on_commit=False)
