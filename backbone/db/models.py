"""SQLAlchemy async database models for Backbone.

Scripts form revision lineages; elements belong to a lineage and carry their
options and approvals across revisions. Revision matches hold the decisions a
human must make when a new draft cannot be reconciled automatically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp (stored without tz so SQLite and Postgres compare alike)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ScriptModel(Base):
    """One uploaded draft in a revision lineage."""

    __tablename__ = "scripts"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    production_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str | None] = mapped_column(Text)

    # Revision lineage
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    parent_script_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("scripts.id", ondelete="SET NULL"), index=True
    )
    lineage_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    status: Mapped[str] = mapped_column(Text, nullable=False, default="PROCESSING", index=True)
    page_count: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PROCESSING', 'REVIEWING', 'RECONCILING', 'READY', 'ERROR')",
            name="check_script_status_valid",
        ),
        CheckConstraint("version >= 1", name="check_script_version_positive"),
        Index("idx_scripts_lineage_version", "lineage_id", "version", unique=True),
    )


class ElementModel(Base):
    """Creative unit (character, location, prop) tracked across revisions."""

    __tablename__ = "elements"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    lineage_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    # Revision in which this element was last confirmed
    script_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("scripts.id"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="ACTIVE")
    source: Mapped[str] = mapped_column(Text, nullable=False, default="AUTO")
    department_id: Mapped[str | None] = mapped_column(Text, index=True)

    page_numbers: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    highlight_text: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('ACTIVE', 'ARCHIVED')", name="check_element_status_valid"),
        CheckConstraint(
            "type IN ('CHARACTER', 'LOCATION', 'PROP', 'OTHER')", name="check_element_type_valid"
        ),
        Index("idx_elements_lineage_status_type", "lineage_id", "status", "type"),  # Matching pool
    )


class OptionModel(Base):
    """Media candidate attached to an element."""

    __tablename__ = "options"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    element_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("elements.id"), nullable=False, index=True
    )
    media_type: Mapped[str] = mapped_column(Text, nullable=False, default="IMAGE")
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="ACTIVE")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class ApprovalModel(Base):
    """A user's decision on an option."""

    __tablename__ = "approvals"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    option_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("options.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    decision: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "decision IN ('APPROVED', 'REJECTED', 'MAYBE')", name="check_approval_decision_valid"
        ),
    )


class RevisionMatchModel(Base):
    """Correspondence between a new revision and a prior element awaiting a decision.

    Only FUZZY and MISSING rows are persisted. Everything except the decision
    fields is immutable once the batch is written.
    """

    __tablename__ = "revision_matches"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    new_script_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("scripts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    detected_name: Mapped[str] = mapped_column(Text, nullable=False)
    detected_type: Mapped[str] = mapped_column(Text, nullable=False)
    detected_pages: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    detected_highlight_text: Mapped[str | None] = mapped_column(Text)

    # Display order within the batch (fuzzy first, then missing)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_status: Mapped[str] = mapped_column(Text, nullable=False)
    old_element_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("elements.id"), index=True
    )
    similarity: Mapped[float | None] = mapped_column(Float)

    # Decision (write-once per reconciliation pass)
    user_decision: Mapped[str | None] = mapped_column(Text)
    department_id: Mapped[str | None] = mapped_column(Text)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    resolved_by: Mapped[str | None] = mapped_column(Text)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("match_status IN ('FUZZY', 'MISSING')", name="check_match_status_valid"),
        CheckConstraint(
            "similarity IS NULL OR (similarity >= 0 AND similarity <= 1)",
            name="check_similarity_range",
        ),
        CheckConstraint(
            "user_decision IS NULL OR user_decision IN ('map', 'create_new', 'keep', 'archive')",
            name="check_user_decision_valid",
        ),
    )
