"""Takeoff version management.

Versions are snapshots of a project's design and quantity state. Numbers
are allocated from a per-project counter row; the increment and the read
happen in one ``UPDATE ... RETURNING`` statement, so two writers can never
receive the same number. Versions are never deleted, only superseded.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.config import get_config
from costimator.db.converters import version_to_domain
from costimator.db.models import ProjectVersionSequenceModel, TakeoffVersionModel
from costimator.db.projects import get_project, set_active_version
from costimator.errors import InvalidTransitionError, NotFoundError, ValidationError
from costimator.models import (
    BOQLine,
    ChangeSummary,
    DesignSnapshot,
    TakeoffVersion,
    VersionStatus,
    VersionType,
)
from costimator.workflow.transitions import VERSION_TRANSITIONS, check_transition

logger = logging.getLogger(__name__)

_EDITABLE_STATUSES = {VersionStatus.DRAFT.value, VersionStatus.REJECTED.value}

_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class VersionManager:
    """Create, duplicate and move takeoff versions through their lifecycle."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Numbering
    # ------------------------------------------------------------------

    async def next_version_number(self, project_id: str) -> int:
        """Allocate the next version number for a project.

        The counter row is created on first use, seeded from the highest
        existing version number.
        """
        await self._ensure_sequence(project_id)

        result = await self.session.execute(
            update(ProjectVersionSequenceModel)
            .where(ProjectVersionSequenceModel.project_id == project_id)
            .values(last_version_number=ProjectVersionSequenceModel.last_version_number + 1)
            .returning(ProjectVersionSequenceModel.last_version_number)
        )
        return result.scalar_one()

    async def _ensure_sequence(self, project_id: str) -> None:
        exists = await self.session.scalar(
            select(ProjectVersionSequenceModel.project_id).where(
                ProjectVersionSequenceModel.project_id == project_id
            )
        )
        if exists is not None:
            return

        current_max = await self.session.scalar(
            select(func.coalesce(func.max(TakeoffVersionModel.version_number), 0)).where(
                TakeoffVersionModel.project_id == project_id
            )
        )
        values = {"project_id": project_id, "last_version_number": current_max or 0}

        insert_factory = _CONFLICT_INSERTS.get(self.session.get_bind().dialect.name)
        if insert_factory is None:
            # No upsert support: plain insert, the primary key still rejects a duplicate seed
            self.session.add(ProjectVersionSequenceModel(**values))
            await self.session.flush()
            return

        await self.session.execute(
            insert_factory(ProjectVersionSequenceModel)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["project_id"])
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_version(
        self,
        project_id: str,
        version_label: str | None = None,
        version_type: VersionType | str = VersionType.PRELIMINARY,
        description: str = "",
        created_by: str | None = None,
        boq_lines: list[BOQLine] | None = None,
        snapshot_overrides: dict[str, Any] | None = None,
        parent_version_id: str | None = None,
        changes_summary: ChangeSummary | None = None,
    ) -> TakeoffVersion:
        """Snapshot the live project as a new draft version.

        ``snapshot_overrides`` replaces individual snapshot fields (grid,
        levels, schedule_items, totals...) instead of taking them from the
        project. The project's first version becomes its active version.

        Raises:
            NotFoundError: Project does not exist
            ValidationError: An override does not fit the snapshot schema
        """
        project = await get_project(self.session, project_id)

        boq_lines = list(boq_lines or [])
        base = {
            **project.design.model_dump(),
            "schedule_items": [item.model_dump() for item in project.schedule_items],
            "boq_lines": [line.model_dump() for line in boq_lines],
            "boq_line_count": len(boq_lines),
        }
        try:
            snapshot = DesignSnapshot.model_validate({**base, **(snapshot_overrides or {})})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid snapshot override: {e}", field="snapshot") from e

        number = await self.next_version_number(project_id)
        model = TakeoffVersionModel(
            project_id=project_id,
            version_number=number,
            version_label=version_label or f"Version {number}",
            version_type=VersionType(version_type).value,
            description=description,
            status=VersionStatus.DRAFT.value,
            created_by=created_by or get_config().workflow.default_created_by,
            snapshot=snapshot.model_dump(mode="json"),
            parent_version_id=parent_version_id,
            changes_summary=changes_summary.model_dump(mode="json") if changes_summary else None,
        )
        self.session.add(model)
        await self.session.flush()

        if number == 1:
            await set_active_version(self.session, project_id, model.id)

        logger.info(f"Created takeoff version {number} ({model.version_label}) for project {project_id}")
        return version_to_domain(model)

    async def duplicate_version(
        self,
        source_version_id: str,
        version_label: str | None = None,
        version_type: VersionType | str | None = None,
        description: str | None = None,
        created_by: str | None = None,
        project_id: str | None = None,
    ) -> TakeoffVersion:
        """Copy a version's full snapshot into a new draft version.

        The copy gets a fresh id and number, points back at the source as
        its parent and starts with an all-zero change summary.

        Raises:
            NotFoundError: Source version does not exist (in ``project_id``, if given)
        """
        source = await self._get_model(source_version_id, project_id)

        number = await self.next_version_number(source.project_id)
        snapshot = DesignSnapshot.model_validate(source.snapshot or {}).model_copy(deep=True)

        model = TakeoffVersionModel(
            project_id=source.project_id,
            version_number=number,
            version_label=version_label or f"{source.version_label} (Copy)",
            version_type=VersionType(version_type).value if version_type else source.version_type,
            description=description or f"Duplicated from version {source.version_number}",
            status=VersionStatus.DRAFT.value,
            created_by=created_by or "system",
            snapshot=snapshot.model_dump(mode="json"),
            parent_version_id=source.id,
            changes_summary=ChangeSummary().model_dump(mode="json"),
        )
        self.session.add(model)
        await self.session.flush()

        logger.info(
            f"Version {source.version_number} of project {source.project_id} "
            f"duplicated as version {number}"
        )
        return version_to_domain(model)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_version(self, version_id: str, project_id: str | None = None) -> TakeoffVersion:
        return version_to_domain(await self._get_model(version_id, project_id))

    async def list_versions(
        self, project_id: str, include_superseded: bool = False
    ) -> list[TakeoffVersion]:
        """Versions of a project, newest first."""
        stmt = select(TakeoffVersionModel).where(TakeoffVersionModel.project_id == project_id)
        if not include_superseded:
            stmt = stmt.where(TakeoffVersionModel.status != VersionStatus.SUPERSEDED.value)

        result = await self.session.execute(stmt.order_by(TakeoffVersionModel.version_number.desc()))
        return [version_to_domain(model) for model in result.scalars().all()]

    async def get_active_version(self, project_id: str) -> TakeoffVersion | None:
        """Latest approved version, if any."""
        result = await self.session.execute(
            select(TakeoffVersionModel)
            .where(
                TakeoffVersionModel.project_id == project_id,
                TakeoffVersionModel.status == VersionStatus.APPROVED.value,
            )
            .order_by(TakeoffVersionModel.version_number.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return version_to_domain(model) if model else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def submit_version(self, version_id: str, submitted_by: str | None = None) -> TakeoffVersion:
        model = await self._get_model(version_id)
        target = check_transition(VERSION_TRANSITIONS, "submit", model.status, "version")

        model.status = target.value
        model.submitted_by = submitted_by or get_config().workflow.default_created_by
        model.submitted_at = datetime.utcnow()
        return await self._save(model, "submitted")

    async def approve_version(self, version_id: str, approved_by: str | None = None) -> TakeoffVersion:
        """Approve a submitted version and make it the project's active version."""
        model = await self._get_model(version_id)
        target = check_transition(VERSION_TRANSITIONS, "approve", model.status, "version")

        model.status = target.value
        model.approved_by = approved_by or get_config().workflow.default_created_by
        model.approved_date = datetime.utcnow()
        version = await self._save(model, "approved")

        await set_active_version(self.session, model.project_id, model.id)
        return version

    async def reject_version(
        self, version_id: str, reason: str, rejected_by: str | None = None
    ) -> TakeoffVersion:
        """Reject a submitted version. A reason is required.

        Raises:
            InvalidTransitionError: Version is not submitted
            ValidationError: Reason is blank
        """
        model = await self._get_model(version_id)
        target = check_transition(VERSION_TRANSITIONS, "reject", model.status, "version")

        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required", field="reason")

        model.status = target.value
        model.rejection_reason = reason
        return await self._save(model, f"rejected by {rejected_by or 'system'}")

    async def supersede_version(self, version_id: str) -> TakeoffVersion:
        model = await self._get_model(version_id)
        target = check_transition(VERSION_TRANSITIONS, "supersede", model.status, "version")

        model.status = target.value
        return await self._save(model, "superseded")

    async def update_snapshot(self, version_id: str, updates: dict[str, Any]) -> TakeoffVersion:
        """Replace snapshot fields on a draft or rejected version.

        Raises:
            InvalidTransitionError: Version is submitted, approved or superseded
            ValidationError: Updates do not fit the snapshot schema
        """
        model = await self._get_model(version_id)
        if model.status not in _EDITABLE_STATUSES:
            raise InvalidTransitionError("edit", model.status, "version")

        try:
            snapshot = DesignSnapshot.model_validate({**(model.snapshot or {}), **updates})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid snapshot update: {e}", field="snapshot") from e

        snapshot.boq_line_count = len(snapshot.boq_lines)
        model.snapshot = snapshot.model_dump(mode="json")
        return await self._save(model, "updated")

    # ------------------------------------------------------------------

    async def _get_model(self, version_id: str, project_id: str | None = None) -> TakeoffVersionModel:
        stmt = select(TakeoffVersionModel).where(TakeoffVersionModel.id == version_id)
        if project_id is not None:
            stmt = stmt.where(TakeoffVersionModel.project_id == project_id)

        model = (await self.session.execute(stmt)).scalar_one_or_none()
        if model is None:
            raise NotFoundError("Takeoff version", version_id)
        return model

    async def _save(self, model: TakeoffVersionModel, verb: str) -> TakeoffVersion:
        await self.session.flush()
        logger.info(f"Takeoff version {model.version_number} of project {model.project_id} {verb}")
        return version_to_domain(model)
