"""Process-wide service builders exposed as FastAPI dependencies."""

from __future__ import annotations

import logging
from functools import lru_cache

from curriculum_engine.ai.gateway import AIGateway, build_gateway
from curriculum_engine.config import get_settings
from curriculum_engine.coordination.idempotency import IdempotencyGuard
from curriculum_engine.jobs.dispatcher import JobDispatcher
from curriculum_engine.notifications.service import NotificationService
from curriculum_engine.pipeline.registry import build_stage_registry
from curriculum_engine.services.extraction_service import build_document_extractor
from curriculum_engine.services.flashcards import FlashcardService
from curriculum_engine.services.misconceptions import ReviewAnalysisService
from curriculum_engine.services.storage_client import StorageClient, build_storage_client
from curriculum_engine.storage.factory import (
  _get_analytics_repo,
  _get_coursework_repo,
  _get_documents_repo,
  _get_in_app_repo,
  _get_jobs_repo,
  _get_lease_repo,
  _get_misconceptions_repo,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_gateway() -> AIGateway:
  """Single gateway per process so rate limits and the cache are shared by every route."""
  return build_gateway(get_settings())


@lru_cache(maxsize=1)
def get_storage_client() -> StorageClient | None:
  settings = get_settings()
  if not settings.curriculum_bucket:
    return None
  try:
    return build_storage_client(settings)
  except Exception:  # noqa: BLE001
    logger.warning("Object storage unavailable; documents without extracted text will fail extraction.", exc_info=True)
    return None


@lru_cache(maxsize=1)
def get_dispatcher() -> JobDispatcher:
  settings = get_settings()
  documents_repo = _get_documents_repo(settings)
  registry = build_stage_registry(
    settings,
    documents_repo=documents_repo,
    coursework_repo=_get_coursework_repo(settings),
    analytics_repo=_get_analytics_repo(settings),
    storage=get_storage_client(),
    extractor=build_document_extractor(settings),
    gateway=get_gateway(),
  )
  return JobDispatcher(
    jobs_repo=_get_jobs_repo(settings),
    documents_repo=documents_repo,
    registry=registry,
    notifications=NotificationService(in_app_repo=_get_in_app_repo(settings)),
    lease_seconds=settings.job_lease_seconds,
    heartbeat_seconds=settings.job_heartbeat_seconds,
    retry_backoff_seconds=settings.job_retry_backoff_seconds,
  )


@lru_cache(maxsize=1)
def get_review_analysis_service() -> ReviewAnalysisService:
  settings = get_settings()
  guard = IdempotencyGuard(_get_lease_repo(settings), lease_seconds=settings.guard_lease_seconds, renew_seconds=settings.guard_renew_seconds)
  return ReviewAnalysisService(gateway=get_gateway(), guard=guard, repo=_get_misconceptions_repo(settings))


@lru_cache(maxsize=1)
def get_flashcard_service() -> FlashcardService:
  return FlashcardService(get_gateway())
