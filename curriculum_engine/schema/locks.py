from __future__ import annotations

import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from curriculum_engine.core.database import Base


class AdvisoryLease(Base):
  """Cross-process mutual exclusion marker for expensive AI analyses."""

  __tablename__ = "advisory_leases"

  resource_id: Mapped[str] = mapped_column(String, primary_key=True)
  holder_id: Mapped[str] = mapped_column(String, nullable=False)
  acquired_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  expires_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
