"""Object storage helper for uploaded curriculum files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol
from urllib.parse import unquote, urlparse, urlunparse

from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from curriculum_engine.config import Settings


@dataclass(frozen=True)
class StorageObjectMetadata:
  """Metadata returned for a stored object."""

  content_type: str | None
  size: int | None
  custom: dict[str, str] = field(default_factory=dict)


class ObjectStorage(Protocol):
  """Contract for reading uploaded files by object path."""

  @property
  def bucket_name(self) -> str:
    """Return the bucket the object paths refer to."""

  async def exists(self, object_name: str) -> bool:
    """Return True when the object exists."""

  async def download(self, object_name: str) -> tuple[bytes, StorageObjectMetadata]:
    """Return object bytes and metadata."""

  async def get_metadata(self, object_name: str) -> StorageObjectMetadata | None:
    """Return metadata, or None when the object is missing."""

  async def signed_read_url(self, object_name: str, ttl_seconds: int | None = None) -> str:
    """Return a time-limited read URL for the object."""


class StorageClient(ObjectStorage):
  """Thin wrapper over GCS and emulator access for curriculum uploads."""

  def __init__(self, settings: Settings) -> None:
    self._bucket_name = settings.curriculum_bucket
    self._storage_host = settings.gcs_storage_host
    self._signed_url_ttl_seconds = settings.signed_url_ttl_seconds
    # Ensure emulator endpoint is visible to the SDK in local development.
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    return self._bucket_name

  async def exists(self, object_name: str) -> bool:
    """Return True when an object exists in the bucket."""
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    return bool(await run_in_threadpool(blob.exists))

  async def download(self, object_name: str) -> tuple[bytes, StorageObjectMetadata]:
    """Download object bytes and return content metadata."""
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    data = await run_in_threadpool(blob.download_as_bytes)
    return data, StorageObjectMetadata(content_type=blob.content_type, size=blob.size, custom=dict(blob.metadata or {}))

  async def get_metadata(self, object_name: str) -> StorageObjectMetadata | None:
    """Return size and custom metadata without downloading the object."""
    blob = await run_in_threadpool(self._client.bucket(self._bucket_name).get_blob, object_name)
    if blob is None:
      return None
    return StorageObjectMetadata(content_type=blob.content_type, size=blob.size, custom=dict(blob.metadata or {}))

  async def signed_read_url(self, object_name: str, ttl_seconds: int | None = None) -> str:
    """Generate a short-lived signed URL for direct download."""
    ttl = self._signed_url_ttl_seconds if ttl_seconds is None else ttl_seconds
    if self._storage_host:
      raise RuntimeError("Signed URLs are not supported with GCS emulator host.")
    blob = self._client.bucket(self._bucket_name).blob(object_name)
    return await run_in_threadpool(blob.generate_signed_url, expiration=timedelta(seconds=int(ttl)), method="GET", version="v4")


def build_storage_client(settings: Settings) -> StorageClient:
  """Create a storage client instance with environment-aware credentials."""
  return StorageClient(settings)


def object_path_from_signed_url(url: str, bucket_name: str) -> str | None:
  """Recover the object path from a signed or public URL for the given bucket.

  Handles path-style (``storage.googleapis.com/<bucket>/<path>``) and
  virtual-hosted (``<bucket>.storage.googleapis.com/<path>``) URLs; the query
  string carrying the signature is dropped.
  """
  parsed = urlparse(url)
  if not parsed.netloc:
    return None
  path = unquote(parsed.path).lstrip("/")
  host = parsed.netloc.lower()
  if host == f"{bucket_name}.storage.googleapis.com".lower():
    return path or None
  prefix = f"{bucket_name}/"
  if path.startswith(prefix):
    return path[len(prefix) :] or None
  # Emulator URLs look like /storage/v1/b/<bucket>/o/<path> or /download/storage/v1/b/<bucket>/o/<path>.
  marker = f"/b/{bucket_name}/o/"
  full_path = "/" + path
  if marker in full_path:
    return full_path.split(marker, 1)[1] or None
  return None


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
