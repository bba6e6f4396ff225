"""SQLAlchemy async database models for Costimator.

Nested structures (design data, snapshots, takeoff/BOQ line sets) live in
JSON columns; quantities are stored as JSON strings there so Decimal values
round-trip exactly.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ProjectModel(Base):
    """Live project state (design data plus pointer to the active takeoff version)."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(Text)

    # Grid, levels, templates, finishes, roof data (DesignData)
    design: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    active_takeoff_version_id: Mapped[str | None] = mapped_column(String(36))

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class ScheduleItemModel(Base):
    """Direct-quantity schedule item owned by a project."""

    __tablename__ = "schedule_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    category: Mapped[str] = mapped_column(Text, nullable=False)
    dpwh_item_number_raw: Mapped[str] = mapped_column(Text, nullable=False)
    description_override: Mapped[str | None] = mapped_column(Text)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    qty: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    basis_note: Mapped[str] = mapped_column(Text, default="", nullable=False)
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Doors & windows geometry hints
    mark: Mapped[str | None] = mapped_column(Text)
    width_m: Mapped[float | None] = mapped_column(Float)
    height_m: Mapped[float | None] = mapped_column(Float)
    quantity: Mapped[int | None] = mapped_column(Integer)
    location: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("qty >= 0", name="check_schedule_qty_non_negative"),
        Index("idx_schedule_items_project", "project_id", "position"),
    )


class TakeoffVersionModel(Base):
    """Immutable-by-status snapshot of a project's design and quantities."""

    __tablename__ = "takeoff_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    version_label: Mapped[str] = mapped_column(Text, nullable=False)
    version_type: Mapped[str] = mapped_column(Text, default="preliminary", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Workflow
    status: Mapped[str] = mapped_column(Text, default="draft", nullable=False)
    created_by: Mapped[str] = mapped_column(Text, default="system", nullable=False)
    submitted_by: Mapped[str | None] = mapped_column(Text)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[str | None] = mapped_column(Text)
    approved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    snapshot: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    # Lineage
    parent_version_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("takeoff_versions.id")
    )
    changes_summary: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("project_id", "version_number", name="uq_takeoff_versions_project_number"),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected', 'superseded')",
            name="check_takeoff_version_status",
        ),
        CheckConstraint("version_number >= 1", name="check_takeoff_version_number_positive"),
        Index("idx_takeoff_versions_project_status", "project_id", "status"),
    )


class ProjectVersionSequenceModel(Base):
    """Per-project version counter.

    Incremented with a single ``UPDATE ... SET last_version_number =
    last_version_number + 1`` so concurrent allocations never hand out the
    same number.
    """

    __tablename__ = "project_version_sequences"

    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True
    )
    last_version_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class ProjectEstimateModel(Base):
    """Priced estimate for a (project, version) pair."""

    __tablename__ = "project_estimates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    estimate_type: Mapped[str] = mapped_column(Text, default="detailed", nullable=False)
    status: Mapped[str] = mapped_column(Text, default="draft", nullable=False)

    prepared_by: Mapped[str | None] = mapped_column(Text)
    prepared_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reviewed_by: Mapped[str | None] = mapped_column(Text)
    reviewed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[str | None] = mapped_column(Text)
    approved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Totals
    total_direct_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    total_ocm: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    total_cp: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    total_vat: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)

    # Markups (percent)
    ocm_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("10"), nullable=False)
    cp_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("10"), nullable=False)
    vat_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("12"), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)
    revision_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("project_id", "version", name="uq_project_estimates_project_version"),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="check_project_estimate_status",
        ),
    )


class CalcRunModel(Base):
    """Durable record of one takeoff/BOQ generation run."""

    __tablename__ = "calc_runs"

    run_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    status: Mapped[str] = mapped_column(Text, default="running", nullable=False)

    # Summary (flat so BOQ attachment is a single UPDATE)
    total_concrete: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"), nullable=False)
    total_rebar: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"), nullable=False)
    total_formwork: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"), nullable=False)
    takeoff_line_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    boq_line_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    takeoff_lines: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    boq_lines: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    validation_errors: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name="check_calc_run_status",
        ),
        Index("idx_calc_runs_project_timestamp", "project_id", "timestamp"),
    )
