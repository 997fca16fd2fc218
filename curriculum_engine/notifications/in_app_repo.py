"""Repository helpers for in-app notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import exists, select
from sqlalchemy.dialects.postgresql import insert

from curriculum_engine.core.database import get_session_factory
from curriculum_engine.schema.notifications import InAppNotification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InAppNotificationEntry:
  """Capture a single in-app notification entry."""

  user_id: str
  template_id: str
  title: str
  body: str
  data: dict
  dedup_key: str
  type: str = "announcement"
  priority: str = "normal"


class InAppNotificationRepository(Protocol):
  """Repository contract for in-app notifications."""

  async def exists(self, dedup_key: str) -> bool:
    """Return True when a notification for this event was already inserted."""

  async def insert(self, entry: InAppNotificationEntry) -> bool:
    """Insert the notification; return False when the dedup key already exists."""


class PostgresInAppNotificationRepository(InAppNotificationRepository):
  """Persist in-app notifications to Postgres."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def exists(self, dedup_key: str) -> bool:
    async with self._session_factory() as session:
      return bool(await session.scalar(select(exists().where(InAppNotification.dedup_key == dedup_key))))

  async def insert(self, entry: InAppNotificationEntry) -> bool:
    stmt = (
      insert(InAppNotification)
      .values(user_id=entry.user_id, type=entry.type, template_id=entry.template_id, title=entry.title, message=entry.body, data=entry.data, priority=entry.priority, dedup_key=entry.dedup_key, read=False)
      .on_conflict_do_nothing(index_elements=[InAppNotification.dedup_key])
      .returning(InAppNotification.id)
    )
    async with self._session_factory() as session:
      inserted = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
    return inserted is not None


class NullInAppNotificationRepository(InAppNotificationRepository):
  """No-op repository when persistence is unavailable."""

  async def exists(self, dedup_key: str) -> bool:
    return False

  async def insert(self, entry: InAppNotificationEntry) -> bool:
    logger.debug("In-app notification persistence disabled; dropping template_id=%s", entry.template_id)
    return False
