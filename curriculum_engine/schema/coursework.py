"""Read-only views of course tables owned by the surrounding platform."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from curriculum_engine.core.database import Base


class Activity(Base):
  __tablename__ = "activities"
  __table_args__ = {"info": {"skip_migration": True}}

  id: Mapped[str] = mapped_column(String, primary_key=True)
  course_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str | None] = mapped_column(String, nullable=True)


class StudentProgress(Base):
  __tablename__ = "student_progress"
  __table_args__ = {"info": {"skip_migration": True}}

  id: Mapped[str] = mapped_column(String, primary_key=True)
  student_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  activity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  status: Mapped[str | None] = mapped_column(String, nullable=True)
  score: Mapped[float | None] = mapped_column(Float, nullable=True)
  time_spent: Mapped[int | None] = mapped_column(Integer, nullable=True)
  responses: Mapped[dict | list | None] = mapped_column(JSONB, nullable=True)
  updated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Enrollment(Base):
  __tablename__ = "enrollments"
  __table_args__ = {"info": {"skip_migration": True}}

  id: Mapped[str] = mapped_column(String, primary_key=True)
  course_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  student_id: Mapped[str] = mapped_column(String, nullable=False, index=True)


class Profile(Base):
  __tablename__ = "profiles"
  __table_args__ = {"info": {"skip_migration": True}}

  id: Mapped[str] = mapped_column(String, primary_key=True)
  full_name: Mapped[str | None] = mapped_column(String, nullable=True)
