import logging
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


def _redact_query(query: str) -> str:
  """Mask secret-bearing query parameters such as the cron secret."""
  parts = []
  for pair in query.split("&"):
    key, sep, _ = pair.partition("=")
    parts.append(f"{key}=***" if sep and "secret" in key.lower() else pair)
  return "&".join(parts)


def _loggable_target(scope: Scope) -> str:
  query = scope.get("query_string", b"").decode("latin-1")
  path = scope.get("path", "")
  return f"{path}?{_redact_query(query)}" if query else path


class RequestLoggingMiddleware:
  """Tag every HTTP request with an id and log its method, target, status and latency."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    # Exception handlers read the id from request.state.
    request_id = Headers(scope=scope).get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id
    logger.info("Incoming request request_id=%s %s %s", request_id, scope.get("method", "UNKNOWN"), _loggable_target(scope))

    started = time.perf_counter()
    response_status = 0

    async def send_with_request_id(message: dict[str, Any]) -> None:
      nonlocal response_status
      if message["type"] == "http.response.start":
        response_status = message["status"]
        headers = MutableHeaders(scope=message)
        headers.setdefault(REQUEST_ID_HEADER, request_id)
      await send(message)

    try:
      await self.app(scope, receive, send_with_request_id)
    finally:
      logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, response_status, (time.perf_counter() - started) * 1000)
