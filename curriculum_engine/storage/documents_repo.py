"""Storage interfaces for curriculum documents."""

from __future__ import annotations

from typing import Protocol

from curriculum_engine.jobs.models import DocumentRecord, JobRecord, ProcessingStatus, Section


class DocumentsRepository(Protocol):
  """Repository contract for document processing state."""

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    """Fetch a document by identifier."""

  async def update_processing(self, document_id: str, *, status: ProcessingStatus | None = None, progress: int | None = None, error: str | None = None, clear_error: bool = False) -> None:
    """Apply partial updates to processing status, progress, and error."""

  async def save_extracted_text(self, document_id: str, text: str) -> None:
    """Persist text produced by the extraction service."""

  async def store_sections(self, document_id: str, sections: list[Section], *, status: ProcessingStatus, progress: int, follow_up: JobRecord | None = None) -> None:
    """Write sections and the optional follow-up job in one transaction."""

  async def set_embeddings_status(self, document_id: str, status: str) -> None:
    """Record the state of embedding generation for the document sections."""
