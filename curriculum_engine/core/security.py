"""Shared-secret checks for internal trigger endpoints."""

from __future__ import annotations

import logging
import secrets

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


def require_shared_secret(*, expected: str | None, authorization: str | None, header_secret: str | None, route: str) -> None:
  """Accept either the dedicated secret header or a bearer token carrying the same secret."""
  if not expected:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  shared_secret_valid = secrets.compare_digest((header_secret or ""), expected)
  bearer_valid = secrets.compare_digest((authorization or ""), f"Bearer {expected}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to %s", route)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid task secret.")
