"""The extract_sections stage."""

from __future__ import annotations

import datetime
import logging

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.core.errors import DocumentSourceError, NonRetryableJobError
from curriculum_engine.jobs import progress as checkpoints
from curriculum_engine.jobs.dispatch import StageContext
from curriculum_engine.jobs.models import DocumentRecord, JobRecord
from curriculum_engine.pipeline.sections import FallbackUsed, Failed, extract_sections, sections_of
from curriculum_engine.services.extraction_service import DocumentExtractor, mime_type_for
from curriculum_engine.services.storage_client import ObjectStorage, object_path_from_signed_url
from curriculum_engine.storage.documents_repo import DocumentsRepository
from curriculum_engine.utils.ids import generate_job_id

logger = logging.getLogger(__name__)

EMBEDDINGS_JOB_PRIORITY = 10


class ExtractSectionsStage:
  """Extract raw text if needed, then split it into sections."""

  def __init__(
    self,
    *,
    documents_repo: DocumentsRepository,
    storage: ObjectStorage | None,
    extractor: DocumentExtractor,
    gateway: AIGateway,
    prompt_chars: int,
    enqueue_embeddings: bool,
    follow_up_max_attempts: int,
  ) -> None:
    self._documents_repo = documents_repo
    self._storage = storage
    self._extractor = extractor
    self._gateway = gateway
    self._prompt_chars = prompt_chars
    self._enqueue_embeddings = enqueue_embeddings
    self._follow_up_max_attempts = follow_up_max_attempts

  async def run(self, context: StageContext) -> None:
    document = context.document
    await context.progress.advance(checkpoints.EXTRACTION_STARTED, status="extracting")

    text = document.extracted_text
    if not text:
      text = await self._extract_text(document)
      await self._documents_repo.save_extracted_text(document.id, text)
      document.extracted_text = text
      await context.progress.advance(checkpoints.TEXT_EXTRACTED)

    await context.progress.advance(checkpoints.SECTIONS_REQUESTED, status="analyzing")
    result = await extract_sections(text, self._gateway, document_id=document.id, prompt_chars=self._prompt_chars)
    if isinstance(result, FallbackUsed | Failed):
      logger.info("Document %s sections degraded (%s): %s", document.id, type(result).__name__, result.reason)
    sections = sections_of(result)

    follow_up = self._embeddings_job(document) if sections and self._enqueue_embeddings else None
    status = "mapping" if context.in_full_pipeline else "analyzing"
    stored_progress = max(checkpoints.SECTIONS_STORED, context.progress.current or 0)
    await self._documents_repo.store_sections(document.id, sections, status=status, progress=stored_progress, follow_up=follow_up)
    context.progress.mark(stored_progress)
    document.sections = sections
    document.processing_status = status
    logger.info("Stored %d sections for document %s", len(sections), document.id)

  async def _extract_text(self, document: DocumentRecord) -> str:
    if self._storage is None:
      raise NonRetryableJobError("Document has no extracted text and object storage is not configured")
    object_path = document.file_path or (object_path_from_signed_url(document.file_url, self._storage.bucket_name) if document.file_url else None)
    if not object_path:
      raise DocumentSourceError("Document has no resolvable storage path")
    if not await self._storage.exists(object_path):
      raise DocumentSourceError(f"File not found in storage: {object_path}")

    content, metadata = await self._storage.download(object_path)
    mime_type = mime_type_for(document.file_type, metadata.content_type)
    if not self._extractor.supports(mime_type):
      raise NonRetryableJobError(f"Text extraction is not supported for file type {mime_type or document.file_type or 'unknown'}")
    text = (await self._extractor.extract_text(content, mime_type or "")).strip()
    if not text:
      raise NonRetryableJobError("Extraction produced no text")
    logger.info("Extracted %d characters for document %s", len(text), document.id)
    return text

  def _embeddings_job(self, document: DocumentRecord) -> JobRecord:
    return JobRecord(
      id=generate_job_id(),
      curriculum_document_id=document.id,
      job_type="generate_embeddings",
      status="pending",
      priority=EMBEDDINGS_JOB_PRIORITY,
      attempts=0,
      max_attempts=self._follow_up_max_attempts,
      created_at=datetime.datetime.now(datetime.UTC),
    )
