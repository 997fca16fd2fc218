"""Lease stores backing the idempotency guard."""

from __future__ import annotations

import asyncio
import datetime
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import delete, update
from sqlalchemy.dialects.postgresql import insert

from curriculum_engine.core.database import get_session_factory
from curriculum_engine.schema.locks import AdvisoryLease


@dataclass(frozen=True)
class Lease:
  """A held claim on one resource id."""

  resource_id: str
  holder_id: str


class LeaseRepository(Protocol):
  """Contract for storing per-resource leases with expiry."""

  async def acquire(self, resource_id: str, holder_id: str, *, ttl_seconds: float) -> Lease | None:
    """Claim the resource when free or expired; return None while another holder's lease is live."""

  async def renew(self, resource_id: str, holder_id: str, *, ttl_seconds: float) -> bool:
    """Extend a lease still owned by holder_id."""

  async def release(self, resource_id: str, holder_id: str) -> None:
    """Drop the lease when owned by holder_id."""


class InMemoryLeaseRepository(LeaseRepository):
  """Process-local lease store for single-instance deployments and tests."""

  def __init__(self, *, max_entries: int = 10_000, clock: Callable[[], float] = time.monotonic) -> None:
    self._entries: dict[str, tuple[str, float]] = {}
    self._lock = asyncio.Lock()
    self._max_entries = max_entries
    self._clock = clock

  async def acquire(self, resource_id: str, holder_id: str, *, ttl_seconds: float) -> Lease | None:
    async with self._lock:
      now = self._clock()
      current = self._entries.get(resource_id)
      if current is not None and current[1] > now and current[0] != holder_id:
        return None
      if current is None and len(self._entries) >= self._max_entries:
        self._prune(now)
        if len(self._entries) >= self._max_entries:
          return None
      self._entries[resource_id] = (holder_id, now + ttl_seconds)
      return Lease(resource_id=resource_id, holder_id=holder_id)

  async def renew(self, resource_id: str, holder_id: str, *, ttl_seconds: float) -> bool:
    async with self._lock:
      current = self._entries.get(resource_id)
      if current is None or current[0] != holder_id:
        return False
      self._entries[resource_id] = (holder_id, self._clock() + ttl_seconds)
      return True

  async def release(self, resource_id: str, holder_id: str) -> None:
    async with self._lock:
      current = self._entries.get(resource_id)
      if current is not None and current[0] == holder_id:
        del self._entries[resource_id]

  def __len__(self) -> int:
    return len(self._entries)

  def _prune(self, now: float) -> None:
    expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
    for key in expired:
      del self._entries[key]


class PostgresLeaseRepository(LeaseRepository):
  """Lease rows in Postgres so the guard holds across worker processes."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def acquire(self, resource_id: str, holder_id: str, *, ttl_seconds: float) -> Lease | None:
    now = datetime.datetime.now(datetime.UTC)
    expires_at = now + datetime.timedelta(seconds=ttl_seconds)
    stmt = insert(AdvisoryLease).values(resource_id=resource_id, holder_id=holder_id, acquired_at=now, expires_at=expires_at)
    # Take over only expired leases.
    stmt = stmt.on_conflict_do_update(
      index_elements=[AdvisoryLease.resource_id],
      set_={"holder_id": holder_id, "acquired_at": now, "expires_at": expires_at},
      where=(AdvisoryLease.expires_at <= now) | (AdvisoryLease.holder_id == holder_id),
    ).returning(AdvisoryLease.resource_id)
    async with self._session_factory() as session:
      claimed = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
    if claimed is None:
      return None
    return Lease(resource_id=resource_id, holder_id=holder_id)

  async def renew(self, resource_id: str, holder_id: str, *, ttl_seconds: float) -> bool:
    expires_at = datetime.datetime.now(datetime.UTC) + datetime.timedelta(seconds=ttl_seconds)
    stmt = update(AdvisoryLease).where(AdvisoryLease.resource_id == resource_id, AdvisoryLease.holder_id == holder_id).values(expires_at=expires_at)
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      await session.commit()
      return bool(result.rowcount)

  async def release(self, resource_id: str, holder_id: str) -> None:
    async with self._session_factory() as session:
      await session.execute(delete(AdvisoryLease).where(AdvisoryLease.resource_id == resource_id, AdvisoryLease.holder_id == holder_id))
      await session.commit()
