"""Notification orchestration for curriculum processing events."""

from __future__ import annotations

import logging

from curriculum_engine.jobs.models import DocumentRecord, JobRecord
from curriculum_engine.notifications.in_app_repo import InAppNotificationEntry, InAppNotificationRepository
from curriculum_engine.notifications.in_app_templates import ANALYSIS_COMPLETE_TEMPLATE, render_in_app_template

logger = logging.getLogger(__name__)


def completion_dedup_key(document_id: str, job_id: str) -> str:
  return f"curriculum_processed:{document_id}:{job_id}"


class NotificationService:
  """Sends user-visible events; failures never propagate to the caller."""

  def __init__(self, *, in_app_repo: InAppNotificationRepository) -> None:
    self._in_app_repo = in_app_repo

  async def notify_document_processed(self, document: DocumentRecord, job: JobRecord) -> bool:
    """Notify the uploader once per completed job; return True when a row was inserted."""
    dedup_key = completion_dedup_key(document.id, job.id)
    try:
      if await self._in_app_repo.exists(dedup_key):
        logger.info("Completion notification already sent for document=%s job=%s", document.id, job.id)
        return False
      data = {
        "curriculum_id": document.id,
        "course_id": document.course_id,
        "course_title": document.title,
        "action_url": f"/dashboard/courses/{document.course_id}/curriculum",
      }
      title, body = render_in_app_template(template_id=ANALYSIS_COMPLETE_TEMPLATE, data={"title": document.title})
      entry = InAppNotificationEntry(user_id=document.uploaded_by, template_id=ANALYSIS_COMPLETE_TEMPLATE, title=title, body=body, data=data, dedup_key=dedup_key)
      inserted = await self._in_app_repo.insert(entry)
    except Exception:  # noqa: BLE001
      logger.warning("Failed to send completion notification document=%s job=%s", document.id, job.id, exc_info=True)
      return False
    if inserted:
      logger.info("Completion notification sent to user=%s for document=%s", document.uploaded_by, document.id)
    return inserted
