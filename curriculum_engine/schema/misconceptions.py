from __future__ import annotations

import datetime
import uuid

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from curriculum_engine.core.database import Base


class StudentMisconception(Base):
  __tablename__ = "student_misconceptions"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  student_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  activity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  node_id: Mapped[str] = mapped_column(String, nullable=False, server_default="")
  concept: Mapped[str] = mapped_column(String, nullable=False)
  misconception_type: Mapped[str] = mapped_column(Text, nullable=False)
  severity: Mapped[str] = mapped_column(String, nullable=False)
  evidence: Mapped[dict] = mapped_column(JSONB, nullable=False)
  ai_analysis: Mapped[dict] = mapped_column(JSONB, nullable=False)
  detected_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CommonStruggle(Base):
  __tablename__ = "common_struggles"
  __table_args__ = (UniqueConstraint("activity_id", "concept", name="ux_common_struggles_activity_concept"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  activity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  concept: Mapped[str] = mapped_column(String, nullable=False)
  student_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  last_seen_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ConceptMastery(Base):
  __tablename__ = "concept_mastery"
  __table_args__ = (UniqueConstraint("student_id", "concept", name="ux_concept_mastery_student_concept"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  student_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  concept: Mapped[str] = mapped_column(String, nullable=False)
  mastery_level: Mapped[float] = mapped_column(Float, nullable=False)
  evidence_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
  last_assessed_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ReviewAnalytics(Base):
  __tablename__ = "real_time_analytics"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  student_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  activity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  node_id: Mapped[str] = mapped_column(String, nullable=False, server_default="")
  node_type: Mapped[str] = mapped_column(String, nullable=False)
  performance_data: Mapped[dict] = mapped_column(JSONB, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
