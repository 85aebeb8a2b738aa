"""Relational schema for the pipeline artifacts."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


def _id_column() -> Column:
    return Column("id", String(36), primary_key=True, default=new_id)


def _timestamps() -> tuple[Column, Column]:
    return (
        Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
        Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    )


projects = Table(
    "projects",
    metadata,
    _id_column(),
    Column("name", Text, nullable=False),
    Column("base_path", Text, nullable=False),
    Column("tech_stack", Text),
    *_timestamps(),
)

prd_documents = Table(
    "prd_documents",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("vision", Text, nullable=False),
    Column("personas", JSON, nullable=False, default=list),
    Column("status", String(50), nullable=False, default="draft"),
    Column("validated_at", DateTime(timezone=True)),
    *_timestamps(),
    UniqueConstraint("project_id", name="uq_prd_documents_project_id"),
    CheckConstraint("status IN ('draft', 'validated', 'approved')", name="ck_prd_documents_status"),
)

user_flows = Table(
    "user_flows",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("flow_name", String(255), nullable=False),
    Column("flow_diagram", Text),
    Column("description", Text),
    *_timestamps(),
    Index("idx_user_flows_project_id", "project_id"),
)

rfc_documents = Table(
    "rfc_documents",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("user_flow_id", String(36), ForeignKey("user_flows.id", ondelete="SET NULL")),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("architecture_type", String(50)),
    Column("status", String(50), nullable=False, default="draft"),
    *_timestamps(),
    CheckConstraint(
        "status IN ('draft', 'review', 'approved', 'rejected', 'implemented')",
        name="ck_rfc_documents_status",
    ),
    Index("idx_rfc_documents_project_id", "project_id"),
    Index("idx_rfc_documents_user_flow_id", "user_flow_id"),
)

epics = Table(
    "epics",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("rfc_id", String(36), ForeignKey("rfc_documents.id", ondelete="SET NULL")),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("story_points", Integer),
    Column("status", String(50), nullable=False, default="planned"),
    Column("order_index", Integer),
    *_timestamps(),
    CheckConstraint("status IN ('planned', 'in_progress', 'completed')", name="ck_epics_status"),
    Index("idx_epics_project_id", "project_id"),
    Index("idx_epics_rfc_id", "rfc_id"),
)

tasks = Table(
    "tasks",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("status", Text, nullable=False, default="todo"),
    Column("type", Text, nullable=False, default="task"),
    Column("priority", Integer, default=0),
    Column("acceptance_criteria", JSON),
    Column("generated_from_prd", Boolean, default=False),
    Column("story_points", Integer),
    Column("prd_id", String(36), ForeignKey("prd_documents.id", ondelete="SET NULL")),
    Column("epic_id", String(36), ForeignKey("epics.id", ondelete="SET NULL")),
    Column("estimated_days", Integer),
    Column("breakdown_order", Integer),
    *_timestamps(),
    CheckConstraint("estimated_days IS NULL OR estimated_days <= 3", name="ck_tasks_estimated_days"),
    Index("idx_tasks_project_id_type", "project_id", "type"),
    Index("idx_tasks_prd_id", "prd_id"),
    Index("idx_tasks_epic_id", "epic_id"),
)

story_user_flows = Table(
    "story_user_flows",
    metadata,
    _id_column(),
    Column("story_id", String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    Column("user_flow_id", String(36), ForeignKey("user_flows.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    UniqueConstraint("story_id", "user_flow_id", name="uq_story_user_flows_pair"),
    Index("idx_story_user_flows_story_id", "story_id"),
    Index("idx_story_user_flows_user_flow_id", "user_flow_id"),
)

coding_sessions = Table(
    "coding_sessions",
    metadata,
    _id_column(),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("story_id", String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    Column("programmer_type", String(20), nullable=False, default="fullstack"),
    Column("status", String(20), nullable=False, default="pending"),
    Column("progress", Integer, nullable=False, default=0),
    Column("current_file", Text),
    Column("output", Text),
    Column("error", Text),
    Column("started_at", DateTime(timezone=True)),
    Column("completed_at", DateTime(timezone=True)),
    *_timestamps(),
    CheckConstraint("programmer_type IN ('backend', 'frontend', 'fullstack')", name="ck_coding_sessions_programmer_type"),
    CheckConstraint(
        "status IN ('pending', 'running', 'completed', 'failed', 'paused')",
        name="ck_coding_sessions_status",
    ),
    CheckConstraint("progress >= 0 AND progress <= 100", name="ck_coding_sessions_progress"),
    Index("idx_coding_sessions_project_id", "project_id"),
    Index("idx_coding_sessions_story_id", "story_id"),
)
