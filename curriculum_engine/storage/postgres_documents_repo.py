"""Postgres-backed repository for curriculum documents using SQLAlchemy."""

from __future__ import annotations

from typing import Any

from sqlalchemy import update

from curriculum_engine.core.database import get_session_factory
from curriculum_engine.jobs.models import DocumentRecord, JobRecord, ProcessingStatus, Section
from curriculum_engine.schema.documents import CurriculumDocument
from curriculum_engine.storage.documents_repo import DocumentsRepository
from curriculum_engine.storage.postgres_jobs_repo import job_record_to_model


class PostgresDocumentsRepository(DocumentsRepository):
  """Persist document processing state to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    async with self._session_factory() as session:
      row = await session.get(CurriculumDocument, document_id)
      if row is None:
        return None
      return _model_to_record(row)

  async def update_processing(self, document_id: str, *, status: ProcessingStatus | None = None, progress: int | None = None, error: str | None = None, clear_error: bool = False) -> None:
    values: dict[str, Any] = {}
    if status is not None:
      values["processing_status"] = status
    if progress is not None:
      values["processing_progress"] = progress
    if error is not None:
      values["processing_error"] = error
    elif clear_error:
      values["processing_error"] = None
    if not values:
      return
    await self._update(document_id, values)

  async def save_extracted_text(self, document_id: str, text: str) -> None:
    await self._update(document_id, {"extracted_text": text})

  async def store_sections(self, document_id: str, sections: list[Section], *, status: ProcessingStatus, progress: int, follow_up: JobRecord | None = None) -> None:
    stmt = update(CurriculumDocument).where(CurriculumDocument.id == document_id).values(sections=[section.to_dict() for section in sections], processing_status=status, processing_progress=progress)
    async with self._session_factory() as session:
      await session.execute(stmt)
      if follow_up is not None:
        session.add(job_record_to_model(follow_up))
      await session.commit()

  async def set_embeddings_status(self, document_id: str, status: str) -> None:
    await self._update(document_id, {"embeddings_status": status})

  async def _update(self, document_id: str, values: dict[str, Any]) -> None:
    async with self._session_factory() as session:
      await session.execute(update(CurriculumDocument).where(CurriculumDocument.id == document_id).values(**values))
      await session.commit()


def _model_to_record(row: CurriculumDocument) -> DocumentRecord:
  sections = [Section.from_dict(item) for item in (row.sections or []) if isinstance(item, dict)]
  return DocumentRecord(
    id=row.id,
    course_id=row.course_id,
    uploaded_by=row.uploaded_by,
    title=row.title,
    file_type=row.file_type,
    file_path=row.file_path,
    file_url=row.file_url,
    extracted_text=row.extracted_text,
    sections=sections,
    processing_status=row.processing_status,  # type: ignore[arg-type]
    processing_progress=int(row.processing_progress or 0),
    processing_error=row.processing_error,
    embeddings_status=row.embeddings_status,
  )
