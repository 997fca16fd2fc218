from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from curriculum_engine.core.database import Base


class CurriculumDocument(Base):
  __tablename__ = "curriculum_documents"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  course_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  uploaded_by: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  file_type: Mapped[str | None] = mapped_column(String, nullable=True)
  file_path: Mapped[str | None] = mapped_column(String, nullable=True)
  file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)
  sections: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
  processing_status: Mapped[str] = mapped_column(String, nullable=False, server_default="uploading")
  processing_progress: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
  embeddings_status: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class CurriculumAnalytics(Base):
  __tablename__ = "curriculum_analytics"
  __table_args__ = (UniqueConstraint("curriculum_document_id", "section_id", name="ux_curriculum_analytics_document_section"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  curriculum_document_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  section_id: Mapped[str] = mapped_column(String, nullable=False)
  course_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  total_students: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  students_attempted: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  students_completed: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  average_score: Mapped[float | None] = mapped_column(Float, nullable=True)
  average_time_spent: Mapped[float | None] = mapped_column(Float, nullable=True)
  common_misconceptions: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
  performance_insights: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
  concept_mastery: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
  last_calculated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ActivityCurriculumMapping(Base):
  __tablename__ = "activity_curriculum_mappings"
  __table_args__ = (UniqueConstraint("activity_id", "curriculum_document_id", "section_id", name="ux_activity_curriculum_mapping"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  activity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  curriculum_document_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  section_id: Mapped[str] = mapped_column(String, nullable=False)
  similarity: Mapped[float | None] = mapped_column(Float, nullable=True)
