from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import DBAPIError

from curriculum_engine.storage.postgres_analytics_repo import PostgresCourseworkRepository


class _Savepoint:
  def __init__(self, session: _MappingSession) -> None:
    self._session = session
    self._snapshot: list[str] = []

  async def __aenter__(self) -> None:
    self._snapshot = list(self._session.pending)

  async def __aexit__(self, exc_type, exc, tb) -> bool:
    if exc_type is not None:
      self._session.pending = self._snapshot
    return False


class _MappingSession:
  """Session double: the first execute lists activities, later ones map one activity or fail."""

  def __init__(self, activity_ids: list[str], failing: set[str]) -> None:
    self._activity_ids = list(activity_ids)
    self._queue = list(activity_ids)
    self._failing = failing
    self._listed = False
    self.pending: list[str] = []
    self.committed: list[str] = []
    self.rollback = AsyncMock()

  async def __aenter__(self) -> _MappingSession:
    return self

  async def __aexit__(self, exc_type, exc, tb) -> bool:
    return False

  def begin_nested(self) -> _Savepoint:
    return _Savepoint(self)

  async def execute(self, statement):
    if not self._listed:
      self._listed = True
      result = MagicMock()
      result.scalars.return_value.all.return_value = self._activity_ids
      return result
    activity_id = self._queue.pop(0)
    self.pending.append(activity_id)
    if activity_id in self._failing:
      raise DBAPIError("SELECT update_activity_curriculum_mappings", {}, Exception("embedding missing"))
    return MagicMock()

  async def commit(self) -> None:
    self.committed.extend(self.pending)
    self.pending = []


@pytest.mark.anyio
async def test_failed_activity_mapping_keeps_earlier_mappings():
  session = _MappingSession(["activity-1", "activity-2", "activity-3"], failing={"activity-2"})
  with patch("curriculum_engine.storage.postgres_analytics_repo.get_session_factory", return_value=lambda: session):
    repo = PostgresCourseworkRepository()
  repo.list_mapped_activity_ids = AsyncMock(side_effect=lambda document_id, section_id: sorted(session.committed))

  mapped = await repo.auto_map_activities(document_id="doc-1", section_id="section_0", course_id="course-1", threshold=0.7)

  assert mapped == ["activity-1", "activity-3"]
  session.rollback.assert_not_called()
