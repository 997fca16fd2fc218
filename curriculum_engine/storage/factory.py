from curriculum_engine.config import Settings
from curriculum_engine.coordination.leases import InMemoryLeaseRepository, LeaseRepository, PostgresLeaseRepository
from curriculum_engine.notifications.in_app_repo import InAppNotificationRepository, NullInAppNotificationRepository, PostgresInAppNotificationRepository
from curriculum_engine.storage.analytics_repo import AnalyticsRepository, CourseworkRepository
from curriculum_engine.storage.documents_repo import DocumentsRepository
from curriculum_engine.storage.jobs_repo import JobsRepository
from curriculum_engine.storage.misconceptions_repo import MisconceptionsRepository
from curriculum_engine.storage.postgres_analytics_repo import PostgresAnalyticsRepository, PostgresCourseworkRepository
from curriculum_engine.storage.postgres_documents_repo import PostgresDocumentsRepository
from curriculum_engine.storage.postgres_jobs_repo import PostgresJobsRepository
from curriculum_engine.storage.postgres_misconceptions_repo import PostgresMisconceptionsRepository


def _require_pg(settings: Settings) -> None:
  if not settings.pg_dsn:
    raise ValueError("CURRICULUM_PG_DSN must be set to enable Postgres persistence.")


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the active jobs repository."""
  _require_pg(settings)
  return PostgresJobsRepository()


def _get_documents_repo(settings: Settings) -> DocumentsRepository:
  _require_pg(settings)
  return PostgresDocumentsRepository()


def _get_coursework_repo(settings: Settings) -> CourseworkRepository:
  _require_pg(settings)
  return PostgresCourseworkRepository()


def _get_analytics_repo(settings: Settings) -> AnalyticsRepository:
  _require_pg(settings)
  return PostgresAnalyticsRepository()


def _get_misconceptions_repo(settings: Settings) -> MisconceptionsRepository:
  _require_pg(settings)
  return PostgresMisconceptionsRepository()


def _get_lease_repo(settings: Settings) -> LeaseRepository:
  """Return the lease store; without Postgres the guard only holds within this process."""
  if settings.pg_dsn:
    return PostgresLeaseRepository()
  return InMemoryLeaseRepository(max_entries=settings.rate_limit_max_keys)


def _get_in_app_repo(settings: Settings) -> InAppNotificationRepository:
  # Persist in-app notifications only when Postgres is configured.
  if settings.pg_dsn:
    return PostgresInAppNotificationRepository()
  return NullInAppNotificationRepository()
