"""Per-resource guard preventing duplicate concurrent AI analyses."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from curriculum_engine.coordination.leases import Lease, LeaseRepository
from curriculum_engine.utils.ids import generate_holder_id

T = TypeVar("T")
GuardStatus = Literal["executed", "in_flight", "already_done"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardOutcome(Generic[T]):
  """Result of a guarded operation; result is set only when the work ran."""

  status: GuardStatus
  result: T | None = None

  @property
  def executed(self) -> bool:
    return self.status == "executed"


class IdempotencyGuard:
  """Lease-backed mutual exclusion keyed by a logical resource id.

  A lease expires after ``lease_seconds`` unless renewed, so a crashed holder
  never blocks the resource for longer than one lease. While guarded work runs,
  the lease is renewed every ``renew_seconds``.
  """

  def __init__(self, leases: LeaseRepository, *, lease_seconds: float = 60, renew_seconds: float = 20, holder_id_factory: Callable[[], str] = generate_holder_id) -> None:
    self._leases = leases
    self._lease_seconds = lease_seconds
    self._renew_seconds = renew_seconds
    self._holder_id_factory = holder_id_factory

  async def try_acquire(self, resource_id: str) -> Lease | None:
    """Acquire the resource, or return None while another holder's lease is live."""
    return await self._leases.acquire(resource_id, self._holder_id_factory(), ttl_seconds=self._lease_seconds)

  async def release(self, lease: Lease) -> None:
    await self._leases.release(lease.resource_id, lease.holder_id)

  @contextlib.asynccontextmanager
  async def hold(self, resource_id: str) -> AsyncIterator[Lease | None]:
    """Hold the resource for the body; yields None when the resource is taken."""
    lease = await self.try_acquire(resource_id)
    if lease is None:
      yield None
      return
    renewer = asyncio.create_task(self._renew_until_cancelled(lease)) if self._renew_seconds > 0 else None
    try:
      yield lease
    finally:
      if renewer is not None:
        renewer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
          await renewer
      try:
        await self.release(lease)
      except Exception:  # noqa: BLE001
        logger.warning("Failed to release lease resource_id=%s", lease.resource_id, exc_info=True)

  async def run_once(self, resource_id: str, *, already_done: Callable[[], Awaitable[bool]], work: Callable[[], Awaitable[T]]) -> GuardOutcome[T]:
    """Run work at most once per resource, re-checking persisted state after acquiring."""
    async with self.hold(resource_id) as lease:
      if lease is None:
        logger.info("Skipping guarded work; resource_id=%s is in flight elsewhere", resource_id)
        return GuardOutcome(status="in_flight")
      if await already_done():
        logger.info("Skipping guarded work; resource_id=%s already has a result", resource_id)
        return GuardOutcome(status="already_done")
      result = await work()
      return GuardOutcome(status="executed", result=result)

  async def _renew_until_cancelled(self, lease: Lease) -> None:
    while True:
      await asyncio.sleep(self._renew_seconds)
      try:
        renewed = await self._leases.renew(lease.resource_id, lease.holder_id, ttl_seconds=self._lease_seconds)
      except Exception:  # noqa: BLE001
        logger.warning("Lease renewal failed resource_id=%s; retrying next interval", lease.resource_id, exc_info=True)
        continue
      if not renewed:
        logger.warning("Lease lost while work in flight resource_id=%s holder_id=%s", lease.resource_id, lease.holder_id)
        return
