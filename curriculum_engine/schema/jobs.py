from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from curriculum_engine.core.database import Base


class ProcessingJob(Base):
  __tablename__ = "curriculum_processing_jobs"
  __table_args__ = (
    Index("ix_curriculum_jobs_claim_order", "status", "priority", "created_at"),
    Index("ix_curriculum_jobs_processing_lease", "lease_expires_at", postgresql_where=text("status = 'processing'")),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True)
  curriculum_document_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  job_type: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, server_default="pending")
  priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default="5")
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default="3")
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  lease_expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  available_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
