"""Costimator Pydantic models for type-safe data validation.

Domain records for the takeoff → BOQ pipeline and the versioning/approval
workflows. Persistence counterparts live in ``costimator.db.models``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScheduleItemCategory(str, Enum):
    """Closed set of schedule item categories (Part E and Part C)."""

    # Part E - Finishing Works
    TERMITE_CONTROL = "termite-control"
    DRAINAGE = "drainage"
    PLUMBING = "plumbing"
    CARPENTRY = "carpentry"
    HARDWARE = "hardware"
    DOORS = "doors"
    WINDOWS = "windows"
    GLAZING = "glazing"
    WATERPROOFING = "waterproofing"
    CLADDING = "cladding"
    INSULATION = "insulation"
    ACOUSTICAL = "acoustical"
    OTHER = "other"
    # Part C - Earthworks
    EARTHWORKS_CLEARING = "earthworks-clearing"
    EARTHWORKS_REMOVAL_TREES = "earthworks-removal-trees"
    EARTHWORKS_REMOVAL_STRUCTURES = "earthworks-removal-structures"
    EARTHWORKS_EXCAVATION = "earthworks-excavation"
    EARTHWORKS_STRUCTURE_EXCAVATION = "earthworks-structure-excavation"
    EARTHWORKS_EMBANKMENT = "earthworks-embankment"
    EARTHWORKS_SITE_DEVELOPMENT = "earthworks-site-development"


class Trade(str, Enum):
    """Normalized work category used for cost grouping."""

    CONCRETE = "Concrete"
    REBAR = "Rebar"
    FORMWORK = "Formwork"
    EARTHWORK = "Earthwork"
    PLUMBING = "Plumbing"
    CARPENTRY = "Carpentry"
    HARDWARE = "Hardware"
    DOORS_WINDOWS = "Doors & Windows"
    GLASS_GLAZING = "Glass & Glazing"
    ROOFING = "Roofing"
    WATERPROOFING = "Waterproofing"
    FINISHES = "Finishes"
    PAINTING = "Painting"
    MASONRY = "Masonry"
    STRUCTURAL_STEEL = "Structural Steel"
    STRUCTURAL = "Structural"
    FOUNDATION = "Foundation"
    RAILING = "Railing"
    CLADDING = "Cladding"
    MEPF = "MEPF"
    MARINE_WORKS = "Marine Works"
    GENERAL_REQUIREMENTS = "General Requirements"
    OTHER = "Other"


class VersionType(str, Enum):
    PRELIMINARY = "preliminary"
    DETAILED = "detailed"
    REVISED = "revised"
    FINAL = "final"
    AS_BUILT = "as-built"


class VersionStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class EstimateStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class EstimateType(str, Enum):
    PRELIMINARY = "preliminary"
    DETAILED = "detailed"
    REVISED = "revised"
    FINAL = "final"


class CalcRunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CatalogItem(BaseModel):
    """DPWH pay item. Immutable reference data; Part is derived, not stored."""

    model_config = ConfigDict(frozen=True)

    item_number: str
    description: str
    unit: str
    category: str = ""
    trade: Trade | None = None
    sub_category: str | None = None
    notes: str | None = None


class ScheduleItem(BaseModel):
    """Direct-quantity item entered against a project (doors, drainage, clearing...)."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    category: ScheduleItemCategory
    dpwh_item_number_raw: str
    description_override: str | None = None
    unit: str
    qty: Decimal
    basis_note: str = ""
    tags: list[str] = Field(default_factory=list)

    # Doors & windows geometry hints
    mark: str | None = None
    width_m: float | None = None
    height_m: float | None = None
    quantity: int | None = None  # number of openings of this mark
    location: str | None = None

    @field_validator("qty")
    @classmethod
    def validate_qty(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("qty must be non-negative")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "id": "s1",
                "category": "plumbing",
                "dpwh_item_number_raw": "1001 (8)",
                "unit": "Linear Meter",
                "qty": "12",
                "basis_note": "per plumbing layout",
                "tags": ["phase1"],
            }
        }


class TakeoffLine(BaseModel):
    """Normalized, traceable quantity derived from design or schedule data."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    source_element_id: str
    trade: Trade
    resource_key: str
    quantity: Decimal
    unit: str
    formula_text: str
    inputs_snapshot: dict[str, Decimal] = Field(default_factory=dict)
    assumptions: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    calculated_at: datetime | None = None

    def tag_value(self, prefix: str) -> str | None:
        """Return the value of the first ``prefix:value`` tag, if any."""
        marker = f"{prefix}:"
        for tag in self.tags:
            if tag.startswith(marker):
                return tag[len(marker):]
        return None


class BOQLine(BaseModel):
    """Aggregated Bill of Quantities line keyed by DPWH item number."""

    id: str
    dpwh_item_number_raw: str
    description: str
    unit: str
    quantity: Decimal
    source_takeoff_line_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ChangeSummary(BaseModel):
    elements_added: int = 0
    elements_removed: int = 0
    elements_modified: int = 0
    quantity_delta_concrete: Decimal | None = None
    quantity_delta_rebar: Decimal | None = None
    quantity_delta_formwork: Decimal | None = None


class GridLine(BaseModel):
    label: str
    offset: float


class Level(BaseModel):
    label: str
    elevation: float


class Grid(BaseModel):
    x_lines: list[GridLine] = Field(default_factory=list)
    y_lines: list[GridLine] = Field(default_factory=list)


class DesignData(BaseModel):
    """Geometry and finish data a project is drawn with."""

    grid: Grid = Field(default_factory=Grid)
    levels: list[Level] = Field(default_factory=list)
    element_templates: list[dict[str, Any]] = Field(default_factory=list)
    element_instances: list[dict[str, Any]] = Field(default_factory=list)

    # Part E - Finishing works
    spaces: list[dict[str, Any]] = Field(default_factory=list)
    openings: list[dict[str, Any]] = Field(default_factory=list)
    finish_types: list[dict[str, Any]] = Field(default_factory=list)
    space_finish_assignments: list[dict[str, Any]] = Field(default_factory=list)
    wall_surfaces: list[dict[str, Any]] = Field(default_factory=list)
    wall_surface_finish_assignments: list[dict[str, Any]] = Field(default_factory=list)

    # Part E - Roofing
    truss_design: dict[str, Any] | None = None
    roof_types: list[dict[str, Any]] = Field(default_factory=list)
    roof_planes: list[dict[str, Any]] = Field(default_factory=list)


class DesignSnapshot(DesignData):
    """Full design and quantity state embedded in a takeoff version."""

    schedule_items: list[ScheduleItem] = Field(default_factory=list)

    # Cached quantities
    boq_lines: list[BOQLine] = Field(default_factory=list)
    total_concrete_m3: Decimal = Decimal("0")
    total_rebar_kg: Decimal = Decimal("0")
    total_formwork_m2: Decimal = Decimal("0")
    boq_line_count: int = 0


class TakeoffVersion(BaseModel):
    """Versioned snapshot of a project's design and quantity state."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: str
    version_number: int = Field(ge=1)
    version_label: str
    version_type: VersionType = VersionType.PRELIMINARY
    description: str = ""

    status: VersionStatus = VersionStatus.DRAFT
    created_by: str = "system"
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_date: datetime | None = None
    rejection_reason: str | None = None

    snapshot: DesignSnapshot = Field(default_factory=DesignSnapshot)

    parent_version_id: str | None = None
    changes_summary: ChangeSummary | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_editable(self) -> bool:
        return self.status in (VersionStatus.DRAFT, VersionStatus.REJECTED)


class ProjectEstimate(BaseModel):
    """Priced view of a project's BOQ at a given version."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: str
    version: int = Field(default=1, ge=1)
    estimate_type: EstimateType = EstimateType.DETAILED
    status: EstimateStatus = EstimateStatus.DRAFT

    prepared_by: str | None = None
    prepared_date: datetime | None = None
    reviewed_by: str | None = None
    reviewed_date: datetime | None = None
    approved_by: str | None = None
    approved_date: datetime | None = None

    total_direct_cost: Decimal = Decimal("0")
    total_ocm: Decimal = Decimal("0")
    total_cp: Decimal = Decimal("0")
    total_vat: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")

    ocm_percentage: Decimal = Decimal("10")
    cp_percentage: Decimal = Decimal("10")
    vat_percentage: Decimal = Decimal("12")

    notes: str | None = None
    revision_reason: str | None = None


class CalcRunSummary(BaseModel):
    total_concrete: Decimal = Decimal("0")
    total_rebar: Decimal = Decimal("0")
    total_formwork: Decimal = Decimal("0")
    takeoff_line_count: int = 0
    boq_line_count: int = 0


class CalcRun(BaseModel):
    """Durable record of one generation invocation."""

    run_id: str
    project_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    status: CalcRunStatus = CalcRunStatus.RUNNING
    summary: CalcRunSummary = Field(default_factory=CalcRunSummary)
    takeoff_lines: list[TakeoffLine] = Field(default_factory=list)
    boq_lines: list[BOQLine] = Field(default_factory=list)
    validation_errors: list[str] = Field(default_factory=list)


class Project(BaseModel):
    """Live project state. Owns its schedule items."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    location: str | None = None
    design: DesignData = Field(default_factory=DesignData)
    schedule_items: list[ScheduleItem] = Field(default_factory=list)
    active_takeoff_version_id: str | None = None
