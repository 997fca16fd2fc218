"""Base interfaces for generative text providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal

ResponseFormat = Literal["plain", "json"]


@dataclass(frozen=True)
class GenerationConfig:
  """Provider-neutral generation options."""

  response_format: ResponseFormat = "plain"
  max_output_tokens: int | None = None
  temperature: float | None = None


class TextGenerator(ABC):
  """Abstract base class for generative text models."""

  name: str

  @abstractmethod
  async def generate(self, prompt: str, config: GenerationConfig) -> str:
    """Generate a full response for the prompt."""

  async def stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
    """Yield response chunks; models without streaming yield one chunk."""
    yield await self.generate(prompt, config)


async def collect_stream(generator: TextGenerator, prompt: str, config: GenerationConfig) -> str:
  """Concatenate streamed chunks into the final text."""
  parts: list[str] = []
  async for chunk in generator.stream(prompt, config):
    if chunk:
      parts.append(chunk)
  return "".join(parts)
