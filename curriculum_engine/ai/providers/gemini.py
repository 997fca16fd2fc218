"""Gemini text generation using the google-genai SDK."""

from __future__ import annotations

import io
import logging
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types
from starlette.concurrency import run_in_threadpool

from curriculum_engine.ai.providers.base import GenerationConfig, TextGenerator

logger = logging.getLogger(__name__)


def _to_genai_config(config: GenerationConfig) -> dict[str, Any]:
  payload: dict[str, Any] = {}
  if config.response_format == "json":
    payload["response_mime_type"] = "application/json"
  if config.max_output_tokens is not None:
    payload["max_output_tokens"] = config.max_output_tokens
  if config.temperature is not None:
    payload["temperature"] = config.temperature
  return payload


class GeminiTextGenerator(TextGenerator):
  """Gemini model client; retries are owned by the AI gateway."""

  def __init__(self, model_name: str, *, api_key: str) -> None:
    if not api_key:
      raise ValueError("GEMINI_API_KEY is required for the Gemini provider")
    self.name = model_name
    self._client = genai.Client(api_key=api_key)

  async def generate(self, prompt: str, config: GenerationConfig) -> str:
    response = await self._client.aio.models.generate_content(model=self.name, contents=prompt, config=_to_genai_config(config))
    text = response.text or ""
    logger.debug("Gemini response model=%s chars=%d", self.name, len(text))
    return text

  async def stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
    chunks = await self._client.aio.models.generate_content_stream(model=self.name, contents=prompt, config=_to_genai_config(config))
    async for chunk in chunks:
      if chunk.text:
        yield chunk.text

  async def upload_file(self, file_content: bytes, mime_type: str, display_name: str | None = None) -> Any:
    """Upload a file to the Gemini File API."""
    # The SDK upload call is synchronous.
    return await run_in_threadpool(self._client.files.upload, file=io.BytesIO(file_content), config=types.UploadFileConfig(mime_type=mime_type, display_name=display_name))

  async def generate_with_files(self, prompt: str, files: list[Any], config: GenerationConfig) -> str:
    """Generate a response grounded on previously uploaded files."""
    contents = list(files)
    contents.append(prompt)
    response = await self._client.aio.models.generate_content(model=self.name, contents=contents, config=_to_genai_config(config))
    return response.text or ""
