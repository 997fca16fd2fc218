from __future__ import annotations

import datetime
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Query

from curriculum_engine.api.deps import get_dispatcher
from curriculum_engine.config import Settings, get_settings
from curriculum_engine.core.security import require_shared_secret
from curriculum_engine.jobs.dispatcher import JobDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.api_route("/process-curriculum-jobs", methods=["GET", "POST"])
async def process_curriculum_jobs(
  settings: Annotated[Settings, Depends(get_settings)],
  dispatcher: Annotated[JobDispatcher, Depends(get_dispatcher)],
  cron_secret: Annotated[str | None, Query()] = None,
  authorization: str | None = Header(default=None),
) -> dict[str, Any]:
  """Scheduler entry point; runs one dispatch with the cron batch size."""
  require_shared_secret(expected=settings.cron_secret, authorization=authorization, header_secret=cron_secret, route="/internal/cron/process-curriculum-jobs")
  summary = await dispatcher.dispatch(min(settings.cron_max_jobs, settings.dispatch_max_jobs_cap))
  logger.info("Cron dispatch processed=%d failed=%d total=%d", summary.processed, summary.failed, summary.total)
  return {"success": True, "timestamp": datetime.datetime.now(datetime.UTC).isoformat(), **summary.to_dict()}
