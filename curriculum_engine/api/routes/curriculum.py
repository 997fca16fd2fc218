from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status

from curriculum_engine.api.deps import get_dispatcher
from curriculum_engine.api.models import DispatchResponse, DocumentStatusResponse, PendingJobsResponse, ProcessJobsRequest
from curriculum_engine.config import Settings, get_settings
from curriculum_engine.core.security import require_shared_secret
from curriculum_engine.jobs.dispatcher import JobDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/process-jobs", response_model=DispatchResponse)
async def process_jobs(
  settings: Annotated[Settings, Depends(get_settings)],
  dispatcher: Annotated[JobDispatcher, Depends(get_dispatcher)],
  payload: Annotated[ProcessJobsRequest | None, Body()] = None,
  authorization: str | None = Header(default=None),
  x_curriculum_task_secret: str | None = Header(default=None),
) -> DispatchResponse:
  """Claim and run a bounded batch of pending curriculum jobs."""
  require_shared_secret(expected=settings.task_secret, authorization=authorization, header_secret=x_curriculum_task_secret, route="/v1/curriculum/process-jobs")
  requested = payload.max_jobs if payload is not None else settings.dispatch_default_max_jobs
  summary = await dispatcher.dispatch(min(requested, settings.dispatch_max_jobs_cap))
  logger.info("Dispatch finished processed=%d failed=%d total=%d", summary.processed, summary.failed, summary.total)
  return DispatchResponse(**summary.to_dict())


@router.get("/process-jobs", response_model=DocumentStatusResponse | PendingJobsResponse)
async def get_processing_status(
  dispatcher: Annotated[JobDispatcher, Depends(get_dispatcher)],
  curriculum_id: Annotated[str | None, Query()] = None,
) -> DocumentStatusResponse | PendingJobsResponse:
  """Report one document's processing state, or the pending queue depth without an id."""
  if not curriculum_id:
    return PendingJobsResponse(pending_jobs=await dispatcher.count_pending())
  document_status = await dispatcher.get_status(curriculum_id)
  if document_status is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Curriculum document not found")
  return DocumentStatusResponse(**document_status.to_dict())
