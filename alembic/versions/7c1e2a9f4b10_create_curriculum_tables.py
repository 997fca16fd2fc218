"""Create curriculum processing, coordination, and review analysis tables.

Revision ID: 7c1e2a9f4b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "7c1e2a9f4b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "curriculum_documents",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("course_id", sa.String(), nullable=False),
    sa.Column("uploaded_by", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("file_type", sa.String(), nullable=True),
    sa.Column("file_path", sa.String(), nullable=True),
    sa.Column("file_url", sa.Text(), nullable=True),
    sa.Column("extracted_text", sa.Text(), nullable=True),
    sa.Column("sections", postgresql.JSONB(astext_type=sa.Text()), server_default="[]", nullable=False),
    sa.Column("processing_status", sa.String(), server_default="uploading", nullable=False),
    sa.Column("processing_progress", sa.Integer(), server_default="0", nullable=False),
    sa.Column("processing_error", sa.Text(), nullable=True),
    sa.Column("embeddings_status", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_curriculum_documents_course_id"), "curriculum_documents", ["course_id"], unique=False)
  op.create_index(op.f("ix_curriculum_documents_uploaded_by"), "curriculum_documents", ["uploaded_by"], unique=False)

  op.create_table(
    "curriculum_processing_jobs",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("curriculum_document_id", sa.String(), nullable=False),
    sa.Column("job_type", sa.String(), nullable=False),
    sa.Column("status", sa.String(), server_default="pending", nullable=False),
    sa.Column("priority", sa.Integer(), server_default="5", nullable=False),
    sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
    sa.Column("max_attempts", sa.Integer(), server_default="3", nullable=False),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("available_at", sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_curriculum_processing_jobs_curriculum_document_id"), "curriculum_processing_jobs", ["curriculum_document_id"], unique=False)
  op.create_index("ix_curriculum_jobs_claim_order", "curriculum_processing_jobs", ["status", "priority", "created_at"], unique=False)
  op.create_index("ix_curriculum_jobs_processing_lease", "curriculum_processing_jobs", ["lease_expires_at"], unique=False, postgresql_where=sa.text("status = 'processing'"))

  op.create_table(
    "curriculum_analytics",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("curriculum_document_id", sa.String(), nullable=False),
    sa.Column("section_id", sa.String(), nullable=False),
    sa.Column("course_id", sa.String(), nullable=False),
    sa.Column("total_students", sa.Integer(), server_default="0", nullable=False),
    sa.Column("students_attempted", sa.Integer(), server_default="0", nullable=False),
    sa.Column("students_completed", sa.Integer(), server_default="0", nullable=False),
    sa.Column("average_score", sa.Float(), nullable=True),
    sa.Column("average_time_spent", sa.Float(), nullable=True),
    sa.Column("common_misconceptions", postgresql.JSONB(astext_type=sa.Text()), server_default="[]", nullable=False),
    sa.Column("performance_insights", postgresql.JSONB(astext_type=sa.Text()), server_default="{}", nullable=False),
    sa.Column("concept_mastery", postgresql.JSONB(astext_type=sa.Text()), server_default="{}", nullable=False),
    sa.Column("last_calculated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("curriculum_document_id", "section_id", name="ux_curriculum_analytics_document_section"),
  )
  op.create_index(op.f("ix_curriculum_analytics_curriculum_document_id"), "curriculum_analytics", ["curriculum_document_id"], unique=False)
  op.create_index(op.f("ix_curriculum_analytics_course_id"), "curriculum_analytics", ["course_id"], unique=False)

  op.create_table(
    "activity_curriculum_mappings",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("activity_id", sa.String(), nullable=False),
    sa.Column("curriculum_document_id", sa.String(), nullable=False),
    sa.Column("section_id", sa.String(), nullable=False),
    sa.Column("similarity", sa.Float(), nullable=True),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("activity_id", "curriculum_document_id", "section_id", name="ux_activity_curriculum_mapping"),
  )
  op.create_index(op.f("ix_activity_curriculum_mappings_activity_id"), "activity_curriculum_mappings", ["activity_id"], unique=False)
  op.create_index(op.f("ix_activity_curriculum_mappings_curriculum_document_id"), "activity_curriculum_mappings", ["curriculum_document_id"], unique=False)

  op.create_table(
    "advisory_leases",
    sa.Column("resource_id", sa.String(), nullable=False),
    sa.Column("holder_id", sa.String(), nullable=False),
    sa.Column("acquired_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint("resource_id"),
  )
  op.create_index(op.f("ix_advisory_leases_expires_at"), "advisory_leases", ["expires_at"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("type", sa.String(), server_default="announcement", nullable=False),
    sa.Column("template_id", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("priority", sa.String(), server_default="normal", nullable=False),
    sa.Column("dedup_key", sa.String(), nullable=True),
    sa.Column("read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("dedup_key"),
  )
  op.create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)
  op.create_index(op.f("ix_notifications_template_id"), "notifications", ["template_id"], unique=False)

  op.create_table(
    "student_misconceptions",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("student_id", sa.String(), nullable=False),
    sa.Column("activity_id", sa.String(), nullable=False),
    sa.Column("node_id", sa.String(), server_default="", nullable=False),
    sa.Column("concept", sa.String(), nullable=False),
    sa.Column("misconception_type", sa.Text(), nullable=False),
    sa.Column("severity", sa.String(), nullable=False),
    sa.Column("evidence", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("ai_analysis", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("detected_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_student_misconceptions_student_id"), "student_misconceptions", ["student_id"], unique=False)
  op.create_index(op.f("ix_student_misconceptions_activity_id"), "student_misconceptions", ["activity_id"], unique=False)

  op.create_table(
    "common_struggles",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("activity_id", sa.String(), nullable=False),
    sa.Column("concept", sa.String(), nullable=False),
    sa.Column("student_count", sa.Integer(), server_default="0", nullable=False),
    sa.Column("last_seen_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("activity_id", "concept", name="ux_common_struggles_activity_concept"),
  )
  op.create_index(op.f("ix_common_struggles_activity_id"), "common_struggles", ["activity_id"], unique=False)

  op.create_table(
    "concept_mastery",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("student_id", sa.String(), nullable=False),
    sa.Column("concept", sa.String(), nullable=False),
    sa.Column("mastery_level", sa.Float(), nullable=False),
    sa.Column("evidence_count", sa.Integer(), server_default="1", nullable=False),
    sa.Column("last_assessed_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("student_id", "concept", name="ux_concept_mastery_student_concept"),
  )
  op.create_index(op.f("ix_concept_mastery_student_id"), "concept_mastery", ["student_id"], unique=False)

  op.create_table(
    "real_time_analytics",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("student_id", sa.String(), nullable=False),
    sa.Column("activity_id", sa.String(), nullable=False),
    sa.Column("node_id", sa.String(), server_default="", nullable=False),
    sa.Column("node_type", sa.String(), nullable=False),
    sa.Column("performance_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_real_time_analytics_student_id"), "real_time_analytics", ["student_id"], unique=False)
  op.create_index(op.f("ix_real_time_analytics_activity_id"), "real_time_analytics", ["activity_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  for table in (
    "real_time_analytics",
    "concept_mastery",
    "common_struggles",
    "student_misconceptions",
    "notifications",
    "advisory_leases",
    "activity_curriculum_mappings",
    "curriculum_analytics",
    "curriculum_processing_jobs",
    "curriculum_documents",
  ):
    op.drop_table(table)
