"""Identifier utilities."""

from __future__ import annotations

import os
import socket
import uuid


def generate_job_id() -> str:
  """Return a new processing job identifier."""
  return str(uuid.uuid4())


def generate_holder_id() -> str:
  """Return a lease holder id unique to this process and call."""
  return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
