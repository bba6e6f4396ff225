"""Project estimate approval workflow.

draft → submitted → approved | rejected

The transition functions are pure: they return an updated copy and never
touch the record they were given, so an illegal transition leaves status,
notes and timestamps exactly as they were. The ``*_estimate`` coroutines
load by (project_id, version), apply the transition and persist it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.config import get_config
from costimator.db.converters import estimate_to_domain
from costimator.db.models import ProjectEstimateModel
from costimator.db.projects import get_project_model
from costimator.errors import NotFoundError, ValidationError
from costimator.models import EstimateStatus, EstimateType, ProjectEstimate
from costimator.workflow.transitions import ESTIMATE_TRANSITIONS, check_transition

logger = logging.getLogger(__name__)

DEFAULT_REVIEWER = "Admin"
REJECTION_PREFIX = "Rejection Reason: "

_CENTS = Decimal("0.01")

# Columns written by transitions
_WORKFLOW_FIELDS = (
    "status",
    "prepared_by",
    "prepared_date",
    "reviewed_by",
    "reviewed_date",
    "approved_by",
    "approved_date",
    "notes",
)


# ---------------------------------------------------------------------------
# Pure transitions
# ---------------------------------------------------------------------------


def submit(
    estimate: ProjectEstimate,
    prepared_by: str | None = None,
    now: datetime | None = None,
) -> ProjectEstimate:
    """Draft → submitted. Keeps the existing preparer when none is given."""
    target = check_transition(ESTIMATE_TRANSITIONS, "submit", estimate.status, "estimate")
    return estimate.model_copy(
        update={
            "status": target,
            "prepared_by": prepared_by or estimate.prepared_by,
            "prepared_date": now or datetime.utcnow(),
        }
    )


def approve(
    estimate: ProjectEstimate,
    approved_by: str | None = None,
    now: datetime | None = None,
) -> ProjectEstimate:
    """Submitted → approved."""
    target = check_transition(ESTIMATE_TRANSITIONS, "approve", estimate.status, "estimate")
    return estimate.model_copy(
        update={
            "status": target,
            "approved_by": approved_by or DEFAULT_REVIEWER,
            "approved_date": now or datetime.utcnow(),
        }
    )


def reject(
    estimate: ProjectEstimate,
    reason: str | None = None,
    reviewed_by: str | None = None,
    now: datetime | None = None,
) -> ProjectEstimate:
    """Submitted → rejected. The reason is appended to notes, never replacing them."""
    target = check_transition(ESTIMATE_TRANSITIONS, "reject", estimate.status, "estimate")

    notes = estimate.notes
    if reason:
        notes = append_note(notes, f"{REJECTION_PREFIX}{reason}")

    return estimate.model_copy(
        update={
            "status": target,
            "reviewed_by": reviewed_by or DEFAULT_REVIEWER,
            "reviewed_date": now or datetime.utcnow(),
            "notes": notes,
        }
    )


def append_note(notes: str | None, entry: str) -> str:
    """Append an entry to the notes log, separated by a blank line."""
    if not notes:
        return entry
    return f"{notes}\n\n{entry}"


def rejection_reasons(notes: str | None) -> list[str]:
    """Rejection reasons recorded in a notes log, oldest first."""
    if not notes:
        return []
    return [
        block[len(REJECTION_PREFIX):]
        for block in notes.split("\n\n")
        if block.startswith(REJECTION_PREFIX)
    ]


def compute_totals(
    total_direct_cost: Decimal,
    ocm_percentage: Decimal,
    cp_percentage: Decimal,
    vat_percentage: Decimal,
) -> dict[str, Decimal]:
    """Apply DPWH markups: OCM on direct cost, CP on direct + OCM, VAT on the subtotal."""
    ocm = total_direct_cost * ocm_percentage / 100
    cp = (total_direct_cost + ocm) * cp_percentage / 100
    vat = (total_direct_cost + ocm + cp) * vat_percentage / 100
    grand_total = total_direct_cost + ocm + cp + vat

    return {
        "total_direct_cost": total_direct_cost.quantize(_CENTS, rounding=ROUND_HALF_UP),
        "total_ocm": ocm.quantize(_CENTS, rounding=ROUND_HALF_UP),
        "total_cp": cp.quantize(_CENTS, rounding=ROUND_HALF_UP),
        "total_vat": vat.quantize(_CENTS, rounding=ROUND_HALF_UP),
        "grand_total": grand_total.quantize(_CENTS, rounding=ROUND_HALF_UP),
    }


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


async def create_estimate(
    session: AsyncSession,
    project_id: str,
    total_direct_cost: Decimal = Decimal("0"),
    estimate_type: EstimateType = EstimateType.DETAILED,
    prepared_by: str | None = None,
    ocm_percentage: Decimal | None = None,
    cp_percentage: Decimal | None = None,
    vat_percentage: Decimal | None = None,
    notes: str | None = None,
    revision_reason: str | None = None,
) -> ProjectEstimate:
    """Create the next draft estimate for a project.

    Markups default to the configured OCM/CP/VAT percentages.

    Raises:
        NotFoundError: Project does not exist
        ValidationError: Negative direct cost
    """
    await get_project_model(session, project_id)

    if total_direct_cost < 0:
        raise ValidationError("total_direct_cost must be non-negative", field="total_direct_cost")

    markups = get_config().markups
    ocm = markups.ocm_percentage if ocm_percentage is None else ocm_percentage
    cp = markups.cp_percentage if cp_percentage is None else cp_percentage
    vat = markups.vat_percentage if vat_percentage is None else vat_percentage

    last_version = await session.scalar(
        select(func.max(ProjectEstimateModel.version)).where(
            ProjectEstimateModel.project_id == project_id
        )
    )

    model = ProjectEstimateModel(
        project_id=project_id,
        version=(last_version or 0) + 1,
        estimate_type=EstimateType(estimate_type).value,
        status=EstimateStatus.DRAFT.value,
        prepared_by=prepared_by,
        ocm_percentage=ocm,
        cp_percentage=cp,
        vat_percentage=vat,
        notes=notes,
        revision_reason=revision_reason,
        **compute_totals(total_direct_cost, ocm, cp, vat),
    )
    session.add(model)
    await session.flush()

    logger.info(f"Created estimate v{model.version} for project {project_id}")
    return estimate_to_domain(model)


async def get_estimate(session: AsyncSession, project_id: str, version: int) -> ProjectEstimate:
    return estimate_to_domain(await _get_model(session, project_id, version))


async def list_estimates(session: AsyncSession, project_id: str) -> list[ProjectEstimate]:
    """All estimates of a project, newest version first."""
    result = await session.execute(
        select(ProjectEstimateModel)
        .where(ProjectEstimateModel.project_id == project_id)
        .order_by(ProjectEstimateModel.version.desc())
    )
    return [estimate_to_domain(model) for model in result.scalars().all()]


async def submit_estimate(
    session: AsyncSession,
    project_id: str,
    version: int,
    prepared_by: str | None = None,
) -> ProjectEstimate:
    """Submit a draft estimate for approval.

    Raises:
        NotFoundError: No estimate for (project_id, version)
        InvalidTransitionError: Estimate is not a draft
    """
    model = await _get_model(session, project_id, version)
    updated = submit(estimate_to_domain(model), prepared_by)
    return await _save(session, model, updated, "submitted")


async def approve_estimate(
    session: AsyncSession,
    project_id: str,
    version: int,
    approved_by: str | None = None,
) -> ProjectEstimate:
    """Approve a submitted estimate.

    Raises:
        NotFoundError: No estimate for (project_id, version)
        InvalidTransitionError: Estimate is not submitted
    """
    model = await _get_model(session, project_id, version)
    updated = approve(
        estimate_to_domain(model),
        approved_by or get_config().workflow.default_reviewer,
    )
    return await _save(session, model, updated, "approved")


async def reject_estimate(
    session: AsyncSession,
    project_id: str,
    version: int,
    reason: str | None = None,
    reviewed_by: str | None = None,
) -> ProjectEstimate:
    """Reject a submitted estimate, appending the reason to its notes.

    Raises:
        NotFoundError: No estimate for (project_id, version)
        InvalidTransitionError: Estimate is not submitted
    """
    model = await _get_model(session, project_id, version)
    updated = reject(
        estimate_to_domain(model),
        reason,
        reviewed_by or get_config().workflow.default_reviewer,
    )
    return await _save(session, model, updated, "rejected")


async def _get_model(session: AsyncSession, project_id: str, version: int) -> ProjectEstimateModel:
    result = await session.execute(
        select(ProjectEstimateModel).where(
            ProjectEstimateModel.project_id == project_id,
            ProjectEstimateModel.version == version,
        )
    )
    model = result.scalar_one_or_none()
    if model is None:
        raise NotFoundError("Estimate", f"{project_id} v{version}")
    return model


async def _save(
    session: AsyncSession,
    model: ProjectEstimateModel,
    updated: ProjectEstimate,
    verb: str,
) -> ProjectEstimate:
    for name in _WORKFLOW_FIELDS:
        value = getattr(updated, name)
        setattr(model, name, value.value if name == "status" else value)
    await session.flush()

    logger.info(f"Estimate v{model.version} of project {model.project_id} {verb}")
    return updated
