import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from curriculum_engine.core.errors import RateLimitExceededError

logger = logging.getLogger("uvicorn.error")

INTERNAL_ERROR_DETAIL = "Internal Server Error"


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


def _json_safe(value: Any) -> Any:
  """Reduce validation context values to JSON primitives."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_json_safe(item) for item in value]
  # Exception instances in ctx are not JSON serializable.
  if isinstance(value, BaseException):
    message = str(value)
    return f"{type(value).__name__}: {message}" if message else type(value).__name__
  return str(value)


def _error_response(status_code: int, detail: Any, request: Request, *, headers: dict[str, str] | None = None, **extra: Any) -> JSONResponse:
  content: dict[str, Any] = {"detail": detail, **extra}
  request_id = _request_id(request)
  if request_id:
    content["requestId"] = request_id
  return JSONResponse(status_code=status_code, content=content, headers=headers)


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Drop submitted input from validation errors so request bodies never echo back."""
  sanitized = []
  for error in errors:
    entry = {key: value for key, value in error.items() if key != "input"}
    if isinstance(entry.get("ctx"), dict):
      entry["ctx"] = {key: value for key, value in entry["ctx"].items() if key != "input"}
    sanitized.append(_json_safe(entry))
  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.error("Unhandled exception request_id=%s path=%s error_type=%s", _request_id(request), request.url.path, type(exc).__name__, exc_info=exc)
  return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_DETAIL, request)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", _request_id(request), request.url.path, request.method, errors)
  return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, errors, request)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Pass client errors through; replace server error details with a generic message."""
  from curriculum_engine.config import get_settings

  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", _request_id(request), request.url.path, exc.status_code, exc.detail)
    return _error_response(exc.status_code, INTERNAL_ERROR_DETAIL, request)
  if get_settings().log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", _request_id(request), request.url.path, exc.status_code, exc.detail)
  return _error_response(exc.status_code, exc.detail, request, headers=exc.headers)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
  """Answer throttled calls with 429 and the seconds to wait."""
  logger.info("Rate limited request_id=%s path=%s retry_after=%s", _request_id(request), request.url.path, exc.retry_after_seconds)
  return _error_response(
    status.HTTP_429_TOO_MANY_REQUESTS,
    str(exc) or "Too many requests. Please try again later.",
    request,
    headers={"Retry-After": str(exc.retry_after_seconds)},
    retry_after=exc.retry_after_seconds,
  )
