"""Convert between ORM rows and pydantic domain records."""

from __future__ import annotations

from costimator.db.models import (
    CalcRunModel,
    ProjectEstimateModel,
    ProjectModel,
    ScheduleItemModel,
    TakeoffVersionModel,
)
from costimator.models import (
    BOQLine,
    CalcRun,
    CalcRunSummary,
    ChangeSummary,
    DesignData,
    DesignSnapshot,
    Project,
    ProjectEstimate,
    ScheduleItem,
    TakeoffLine,
    TakeoffVersion,
)


def schedule_item_to_domain(model: ScheduleItemModel) -> ScheduleItem:
    return ScheduleItem(
        id=model.id,
        category=model.category,
        dpwh_item_number_raw=model.dpwh_item_number_raw,
        description_override=model.description_override,
        unit=model.unit,
        qty=model.qty,
        basis_note=model.basis_note,
        tags=list(model.tags or []),
        mark=model.mark,
        width_m=model.width_m,
        height_m=model.height_m,
        quantity=model.quantity,
        location=model.location,
    )


def schedule_item_to_model(item: ScheduleItem, project_id: str, position: int = 0) -> ScheduleItemModel:
    return ScheduleItemModel(
        id=item.id,
        project_id=project_id,
        position=position,
        category=item.category.value,
        dpwh_item_number_raw=item.dpwh_item_number_raw,
        description_override=item.description_override,
        unit=item.unit,
        qty=item.qty,
        basis_note=item.basis_note,
        tags=list(item.tags),
        mark=item.mark,
        width_m=item.width_m,
        height_m=item.height_m,
        quantity=item.quantity,
        location=item.location,
    )


def project_to_domain(model: ProjectModel, schedule_items: list[ScheduleItemModel] | None = None) -> Project:
    return Project(
        id=model.id,
        name=model.name,
        location=model.location,
        design=DesignData.model_validate(model.design or {}),
        schedule_items=[schedule_item_to_domain(row) for row in schedule_items or []],
        active_takeoff_version_id=model.active_takeoff_version_id,
    )


def version_to_domain(model: TakeoffVersionModel) -> TakeoffVersion:
    return TakeoffVersion(
        id=model.id,
        project_id=model.project_id,
        version_number=model.version_number,
        version_label=model.version_label,
        version_type=model.version_type,
        description=model.description,
        status=model.status,
        created_by=model.created_by,
        submitted_by=model.submitted_by,
        submitted_at=model.submitted_at,
        approved_by=model.approved_by,
        approved_date=model.approved_date,
        rejection_reason=model.rejection_reason,
        snapshot=DesignSnapshot.model_validate(model.snapshot or {}),
        parent_version_id=model.parent_version_id,
        changes_summary=(
            ChangeSummary.model_validate(model.changes_summary)
            if model.changes_summary is not None
            else None
        ),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def estimate_to_domain(model: ProjectEstimateModel) -> ProjectEstimate:
    return ProjectEstimate(
        id=model.id,
        project_id=model.project_id,
        version=model.version,
        estimate_type=model.estimate_type,
        status=model.status,
        prepared_by=model.prepared_by,
        prepared_date=model.prepared_date,
        reviewed_by=model.reviewed_by,
        reviewed_date=model.reviewed_date,
        approved_by=model.approved_by,
        approved_date=model.approved_date,
        total_direct_cost=model.total_direct_cost,
        total_ocm=model.total_ocm,
        total_cp=model.total_cp,
        total_vat=model.total_vat,
        grand_total=model.grand_total,
        ocm_percentage=model.ocm_percentage,
        cp_percentage=model.cp_percentage,
        vat_percentage=model.vat_percentage,
        notes=model.notes,
        revision_reason=model.revision_reason,
    )


def calc_run_to_domain(model: CalcRunModel) -> CalcRun:
    return CalcRun(
        run_id=model.run_id,
        project_id=model.project_id,
        timestamp=model.timestamp,
        status=model.status,
        summary=CalcRunSummary(
            total_concrete=model.total_concrete,
            total_rebar=model.total_rebar,
            total_formwork=model.total_formwork,
            takeoff_line_count=model.takeoff_line_count,
            boq_line_count=model.boq_line_count,
        ),
        takeoff_lines=[TakeoffLine.model_validate(line) for line in model.takeoff_lines or []],
        boq_lines=[BOQLine.model_validate(line) for line in model.boq_lines or []],
        validation_errors=list(model.validation_errors or []),
    )


def dump_lines(lines: list[TakeoffLine] | list[BOQLine]) -> list[dict]:
    """JSON-safe form of a line set (Decimals become strings)."""
    return [line.model_dump(mode="json") for line in lines]
