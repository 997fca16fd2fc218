"""The generate_embeddings follow-up stage."""

from __future__ import annotations

import logging

import httpx

from curriculum_engine.core.errors import NonRetryableJobError, RetryableJobError
from curriculum_engine.jobs.dispatch import StageContext
from curriculum_engine.storage.documents_repo import DocumentsRepository

logger = logging.getLogger(__name__)


class GenerateEmbeddingsStage:
  """Ask the sibling embeddings service to embed the document's sections."""

  def __init__(self, *, documents_repo: DocumentsRepository, embeddings_url: str | None, timeout_seconds: float, auth_secret: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._documents_repo = documents_repo
    self._embeddings_url = embeddings_url
    self._timeout_seconds = timeout_seconds
    self._auth_secret = auth_secret
    self._transport = transport

  async def run(self, context: StageContext) -> None:
    document = context.document
    if not self._embeddings_url:
      raise NonRetryableJobError("Embeddings endpoint is not configured")
    if not document.sections:
      logger.info("Document %s has no sections; skipping embeddings", document.id)
      await self._documents_repo.set_embeddings_status(document.id, "skipped")
      return

    headers = {"Content-Type": "application/json"}
    if self._auth_secret:
      headers["Authorization"] = f"Bearer {self._auth_secret}"
    await self._documents_repo.set_embeddings_status(document.id, "processing")
    try:
      async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
        response = await client.post(self._embeddings_url, json={"curriculum_document_id": document.id}, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      await self._documents_repo.set_embeddings_status(document.id, "failed")
      if 400 <= exc.response.status_code < 500 and exc.response.status_code != 429:
        raise NonRetryableJobError(f"Embeddings request rejected with status {exc.response.status_code}") from exc
      raise RetryableJobError(f"Embeddings request failed with status {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
      await self._documents_repo.set_embeddings_status(document.id, "failed")
      raise RetryableJobError(f"Embeddings request failed: {exc}") from exc

    await self._documents_repo.set_embeddings_status(document.id, "completed")
    logger.info("Embeddings generated for document %s (%d sections)", document.id, len(document.sections))
