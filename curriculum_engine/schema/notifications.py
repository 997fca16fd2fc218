"""Platform notification rows written when curriculum processing finishes."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from curriculum_engine.core.database import Base


class InAppNotification(Base):
  __tablename__ = "notifications"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  template_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  type: Mapped[str] = mapped_column(String, nullable=False, server_default="announcement")
  priority: Mapped[str] = mapped_column(String, nullable=False, server_default="normal")
  title: Mapped[str] = mapped_column(String, nullable=False)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  # Curriculum and course ids plus the dashboard action_url.
  data: Mapped[dict] = mapped_column(JSONB, nullable=False)
  dedup_key: Mapped[str | None] = mapped_column(String, unique=True)
  read: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
