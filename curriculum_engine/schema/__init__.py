"""ORM models; importing this package registers every table on Base.metadata."""

from curriculum_engine.schema import coursework, documents, jobs, locks, misconceptions, notifications  # noqa: F401
