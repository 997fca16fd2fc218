from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import make_document, make_job

from curriculum_engine.notifications.in_app_templates import render_in_app_template
from curriculum_engine.notifications.service import ANALYSIS_COMPLETE_TEMPLATE, NotificationService


@pytest.fixture
def mock_in_app_repo():
  repo = MagicMock()
  repo.exists = AsyncMock(return_value=False)
  repo.insert = AsyncMock(return_value=True)
  return repo


@pytest.mark.anyio
async def test_completion_notification_targets_uploader(mock_in_app_repo):
  service = NotificationService(in_app_repo=mock_in_app_repo)
  assert await service.notify_document_processed(make_document(), make_job("job-1"))

  entry = mock_in_app_repo.insert.call_args[0][0]
  assert entry.user_id == "teacher-1"
  assert entry.template_id == ANALYSIS_COMPLETE_TEMPLATE
  assert entry.dedup_key == "curriculum_processed:doc-1:job-1"
  assert entry.data["action_url"] == "/dashboard/courses/course-1/curriculum"
  assert "Algebra I" in entry.body


@pytest.mark.anyio
async def test_existing_notification_is_not_duplicated(mock_in_app_repo):
  mock_in_app_repo.exists.return_value = True
  service = NotificationService(in_app_repo=mock_in_app_repo)

  assert not await service.notify_document_processed(make_document(), make_job("job-1"))
  mock_in_app_repo.insert.assert_not_called()


@pytest.mark.anyio
async def test_repository_error_is_swallowed(mock_in_app_repo):
  mock_in_app_repo.insert.side_effect = RuntimeError("connection reset")
  service = NotificationService(in_app_repo=mock_in_app_repo)

  assert not await service.notify_document_processed(make_document(), make_job("job-1"))


def test_unknown_template_is_rejected():
  with pytest.raises(ValueError):
    render_in_app_template(template_id="missing_template_v1", data={})


def test_template_requires_its_placeholders():
  with pytest.raises(ValueError, match="title"):
    render_in_app_template(template_id=ANALYSIS_COMPLETE_TEMPLATE, data={})
