"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from curriculum_engine.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the curriculum processing service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  gcp_project_id: str | None
  gemini_api_key: str | None
  gemini_model: str
  extraction_model: str
  max_output_tokens: int
  curriculum_bucket: str
  gcs_storage_host: str | None
  signed_url_ttl_seconds: int
  dispatch_default_max_jobs: int
  dispatch_max_jobs_cap: int
  cron_max_jobs: int
  job_max_attempts: int
  job_lease_seconds: int
  job_heartbeat_seconds: float
  job_retry_backoff_seconds: float
  section_prompt_chars: int
  guard_lease_seconds: int
  guard_renew_seconds: float
  ai_min_interval_seconds: float
  ai_max_burst: int
  ai_window_seconds: float
  rate_limit_max_keys: int
  cache_ttl_seconds: float
  cache_max_entries: int
  ai_max_retries: int
  ai_retry_delay_seconds: float
  task_secret: str | None
  cron_secret: str | None
  embeddings_url: str | None
  embeddings_timeout_seconds: float


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("CURRICULUM_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("CURRICULUM_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("CURRICULUM_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive integer.")
  return value


def _non_negative_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CURRICULUM_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("CURRICULUM_DEBUG"))

  log_max_bytes = _positive_int("CURRICULUM_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = _non_negative_int("CURRICULUM_LOG_BACKUP_COUNT", "10")

  dispatch_default_max_jobs = _positive_int("CURRICULUM_DISPATCH_MAX_JOBS", "5")
  dispatch_max_jobs_cap = _positive_int("CURRICULUM_DISPATCH_MAX_JOBS_CAP", "25")
  if dispatch_default_max_jobs > dispatch_max_jobs_cap:
    raise ValueError("CURRICULUM_DISPATCH_MAX_JOBS must not exceed CURRICULUM_DISPATCH_MAX_JOBS_CAP.")

  job_lease_seconds = _positive_int("CURRICULUM_JOB_LEASE_SECONDS", "300")
  job_heartbeat_seconds = _non_negative_float("CURRICULUM_JOB_HEARTBEAT_SECONDS", "60")
  if job_heartbeat_seconds >= job_lease_seconds:
    raise ValueError("CURRICULUM_JOB_HEARTBEAT_SECONDS must be shorter than the job lease.")

  guard_lease_seconds = _positive_int("CURRICULUM_GUARD_LEASE_SECONDS", "60")
  guard_renew_seconds = _non_negative_float("CURRICULUM_GUARD_RENEW_SECONDS", "20")
  if guard_renew_seconds >= guard_lease_seconds:
    raise ValueError("CURRICULUM_GUARD_RENEW_SECONDS must be shorter than the guard lease.")

  # Cron secret falls back to the task secret.
  task_secret = _optional_str(os.getenv("CURRICULUM_TASK_SECRET"))
  cron_secret = _optional_str(os.getenv("CRON_SECRET")) or task_secret

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("CURRICULUM_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("CURRICULUM_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("CURRICULUM_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("CURRICULUM_PG_CONNECT_TIMEOUT", "5"),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=os.getenv("CURRICULUM_GEMINI_MODEL", "gemini-2.0-flash"),
    extraction_model=os.getenv("CURRICULUM_EXTRACTION_MODEL", "gemini-2.0-flash"),
    max_output_tokens=_positive_int("CURRICULUM_MAX_OUTPUT_TOKENS", "2048"),
    curriculum_bucket=os.getenv("CURRICULUM_STORAGE_BUCKET", "curriculum-documents"),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    signed_url_ttl_seconds=_positive_int("CURRICULUM_SIGNED_URL_TTL_SECONDS", "900"),
    dispatch_default_max_jobs=dispatch_default_max_jobs,
    dispatch_max_jobs_cap=dispatch_max_jobs_cap,
    cron_max_jobs=_positive_int("CURRICULUM_CRON_MAX_JOBS", "10"),
    job_max_attempts=_positive_int("CURRICULUM_JOB_MAX_ATTEMPTS", "3"),
    job_lease_seconds=job_lease_seconds,
    job_heartbeat_seconds=job_heartbeat_seconds,
    job_retry_backoff_seconds=_non_negative_float("CURRICULUM_JOB_RETRY_BACKOFF_SECONDS", "30"),
    section_prompt_chars=_positive_int("CURRICULUM_SECTION_PROMPT_CHARS", "5000"),
    guard_lease_seconds=guard_lease_seconds,
    guard_renew_seconds=guard_renew_seconds,
    ai_min_interval_seconds=_non_negative_float("CURRICULUM_AI_MIN_INTERVAL_SECONDS", "2"),
    ai_max_burst=_positive_int("CURRICULUM_AI_MAX_BURST", "10"),
    ai_window_seconds=_non_negative_float("CURRICULUM_AI_WINDOW_SECONDS", "60"),
    rate_limit_max_keys=_positive_int("CURRICULUM_RATE_LIMIT_MAX_KEYS", "10000"),
    cache_ttl_seconds=_non_negative_float("CURRICULUM_CACHE_TTL_SECONDS", "600"),
    cache_max_entries=_positive_int("CURRICULUM_CACHE_MAX_ENTRIES", "512"),
    ai_max_retries=_non_negative_int("CURRICULUM_AI_MAX_RETRIES", "2"),
    ai_retry_delay_seconds=_non_negative_float("CURRICULUM_AI_RETRY_DELAY_SECONDS", "1"),
    task_secret=task_secret,
    cron_secret=cron_secret,
    embeddings_url=_optional_str(os.getenv("CURRICULUM_EMBEDDINGS_URL")),
    embeddings_timeout_seconds=_non_negative_float("CURRICULUM_EMBEDDINGS_TIMEOUT_SECONDS", "30"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  debug = _parse_bool(os.getenv("CURRICULUM_DEBUG"))
  pg_connect_timeout = int(os.getenv("CURRICULUM_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("CURRICULUM_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("CURRICULUM_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
