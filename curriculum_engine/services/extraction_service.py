"""Plain-text extraction from uploaded curriculum files."""

from __future__ import annotations

import logging
from typing import Protocol

from curriculum_engine.ai.providers.base import GenerationConfig
from curriculum_engine.ai.providers.gemini import GeminiTextGenerator
from curriculum_engine.config import Settings

logger = logging.getLogger(__name__)

_EXTRACTION_PROMPT = (
  "Extract all readable text from this document. Preserve the heading structure as markdown headings "
  "(# for chapters, ## for sections, ### for subsections). Return only the extracted text with no commentary."
)

_MIME_TYPES: dict[str, str] = {
  "pdf": "application/pdf",
  "txt": "text/plain",
  "md": "text/markdown",
  "markdown": "text/markdown",
  "html": "text/html",
  "png": "image/png",
  "jpg": "image/jpeg",
  "jpeg": "image/jpeg",
}


def mime_type_for(file_type: str | None, content_type: str | None = None) -> str | None:
  """Resolve a mime type from the stored file type or the object's content type."""
  if content_type:
    return content_type.split(";", 1)[0].strip().lower()
  if not file_type:
    return None
  normalized = file_type.strip().lower()
  if "/" in normalized:
    return normalized
  return _MIME_TYPES.get(normalized.lstrip("."))


class DocumentExtractor(Protocol):
  """Contract for raw bytes -> plain text."""

  def supports(self, mime_type: str | None) -> bool:
    """Return True when this extractor can read the mime type."""

  async def extract_text(self, content: bytes, mime_type: str) -> str:
    """Extract plain text from document bytes."""


class PlainTextExtractor(DocumentExtractor):
  """Decode text formats without a remote service."""

  def supports(self, mime_type: str | None) -> bool:
    return bool(mime_type) and (mime_type.startswith("text/") or mime_type in {"application/json", "application/xml"})

  async def extract_text(self, content: bytes, mime_type: str) -> str:
    return content.decode("utf-8", errors="replace")


class GeminiDocumentExtractor(DocumentExtractor):
  """Upload binary documents to Gemini and ask for their text."""

  _SUPPORTED_PREFIXES = ("application/pdf", "image/")

  def __init__(self, model: GeminiTextGenerator, *, fallback: DocumentExtractor | None = None) -> None:
    self._model = model
    self._fallback = fallback or PlainTextExtractor()

  def supports(self, mime_type: str | None) -> bool:
    if not mime_type:
      return False
    return mime_type.startswith(self._SUPPORTED_PREFIXES) or self._fallback.supports(mime_type)

  async def extract_text(self, content: bytes, mime_type: str) -> str:
    if self._fallback.supports(mime_type):
      return await self._fallback.extract_text(content, mime_type)
    uploaded = await self._model.upload_file(content, mime_type, display_name="curriculum-document")
    text = await self._model.generate_with_files(_EXTRACTION_PROMPT, [uploaded], GenerationConfig(response_format="plain"))
    logger.info("Extracted %d characters from %s document", len(text), mime_type)
    return text


def build_document_extractor(settings: Settings) -> DocumentExtractor:
  """Use Gemini for binary formats when configured, text decoding otherwise."""
  if not settings.gemini_api_key:
    return PlainTextExtractor()
  return GeminiDocumentExtractor(GeminiTextGenerator(settings.extraction_model, api_key=settings.gemini_api_key))
