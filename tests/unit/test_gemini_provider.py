from unittest.mock import AsyncMock, MagicMock

import pytest

from curriculum_engine.ai.providers.base import GenerationConfig
from curriculum_engine.ai.providers.gemini import GeminiTextGenerator, _to_genai_config
from curriculum_engine.services.extraction_service import GeminiDocumentExtractor


def test_generation_config_maps_to_genai_options():
  assert _to_genai_config(GenerationConfig()) == {}
  assert _to_genai_config(GenerationConfig(response_format="json", max_output_tokens=512, temperature=0.2)) == {
    "response_mime_type": "application/json",
    "max_output_tokens": 512,
    "temperature": 0.2,
  }


def test_provider_requires_api_key():
  with pytest.raises(ValueError):
    GeminiTextGenerator("gemini-2.0-flash", api_key="")


@pytest.mark.anyio
async def test_pdf_extraction_uploads_then_prompts():
  model = MagicMock()
  model.upload_file = AsyncMock(return_value="uploaded-file")
  model.generate_with_files = AsyncMock(return_value="# Unit 1\nRatios")
  extractor = GeminiDocumentExtractor(model)

  assert extractor.supports("application/pdf")
  assert extractor.supports("image/png")
  assert not extractor.supports("application/zip")
  assert await extractor.extract_text(b"%PDF-1.7", "application/pdf") == "# Unit 1\nRatios"
  model.upload_file.assert_awaited_once()
  assert model.generate_with_files.call_args[0][1] == ["uploaded-file"]


@pytest.mark.anyio
async def test_text_documents_skip_the_model():
  model = MagicMock()
  model.upload_file = AsyncMock()
  extractor = GeminiDocumentExtractor(model)

  assert await extractor.extract_text("# Ratios".encode(), "text/markdown") == "# Ratios"
  model.upload_file.assert_not_called()
