"""Exception hierarchy shared by the job pipeline and the AI layer."""

from __future__ import annotations


class PipelineError(Exception):
  """Base error for curriculum processing failures."""


class RetryableJobError(PipelineError):
  """Stage failure that may succeed on a later attempt."""


class NonRetryableJobError(PipelineError):
  """Stage failure that fails the job immediately regardless of remaining attempts."""


class DocumentNotFoundError(NonRetryableJobError):
  """Raised when a job references a document that no longer exists."""


class DocumentSourceError(NonRetryableJobError):
  """Raised when the uploaded source file cannot be located in storage."""


class UnsupportedJobTypeError(NonRetryableJobError):
  """Raised when no stage handler is registered for a job type."""


class GenerationError(Exception):
  """Base error for generative text failures."""


class GenerationUnavailableError(GenerationError):
  """Raised when no generative provider is configured or reachable."""


class RateLimitExceededError(GenerationError):
  """Raised when a call is throttled locally or by the provider."""

  def __init__(self, message: str, *, retry_after_seconds: int) -> None:
    super().__init__(message)
    self.retry_after_seconds = retry_after_seconds
