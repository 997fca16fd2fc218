import pytest

from curriculum_engine.config import get_settings
from curriculum_engine.coordination.leases import InMemoryLeaseRepository
from curriculum_engine.notifications.in_app_repo import NullInAppNotificationRepository
from curriculum_engine.storage.factory import _get_in_app_repo, _get_jobs_repo, _get_lease_repo, _get_misconceptions_repo


def test_job_storage_requires_postgres():
  settings = get_settings()
  with pytest.raises(ValueError, match="CURRICULUM_PG_DSN"):
    _get_jobs_repo(settings)
  with pytest.raises(ValueError, match="CURRICULUM_PG_DSN"):
    _get_misconceptions_repo(settings)


def test_coordination_degrades_to_process_local_without_postgres():
  settings = get_settings()
  assert isinstance(_get_lease_repo(settings), InMemoryLeaseRepository)
  assert isinstance(_get_in_app_repo(settings), NullInAppNotificationRepository)
