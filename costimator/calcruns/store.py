"""CalcRun snapshot store.

A CalcRun records one generation invocation. BOQ lines are attached after
the fact with a single conditional UPDATE, so a concurrent attach can never
leave a run with lines from one call and a line count from another.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.db.converters import calc_run_to_domain, dump_lines
from costimator.db.models import CalcRunModel
from costimator.errors import NotFoundError
from costimator.models import BOQLine, CalcRun, CalcRunStatus, CalcRunSummary, TakeoffLine

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    return f"run_{datetime.utcnow():%Y%m%d%H%M%S}_{uuid4().hex[:8]}"


def run_not_found_warning(run_id: str) -> str:
    return f'CalcRun with runId "{run_id}" not found - BOQ not saved to database'


class CalcRunStore:
    """Persistence for CalcRun records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_run(
        self,
        project_id: str,
        takeoff_lines: list[TakeoffLine] | None = None,
        summary: CalcRunSummary | None = None,
        validation_errors: list[str] | None = None,
        status: CalcRunStatus = CalcRunStatus.RUNNING,
        run_id: str | None = None,
    ) -> CalcRun:
        takeoff_lines = takeoff_lines or []
        summary = summary or CalcRunSummary(takeoff_line_count=len(takeoff_lines))

        model = CalcRunModel(
            run_id=run_id or new_run_id(),
            project_id=project_id,
            timestamp=datetime.utcnow(),
            status=status.value,
            total_concrete=summary.total_concrete,
            total_rebar=summary.total_rebar,
            total_formwork=summary.total_formwork,
            takeoff_line_count=summary.takeoff_line_count,
            boq_line_count=summary.boq_line_count,
            takeoff_lines=dump_lines(takeoff_lines),
            boq_lines=[],
            validation_errors=list(validation_errors or []),
        )
        self.session.add(model)
        await self.session.flush()

        logger.info(f"Created calc run {model.run_id} for project {project_id}")
        return calc_run_to_domain(model)

    async def get_run(self, run_id: str, project_id: str | None = None) -> CalcRun:
        """Load a run.

        Raises:
            NotFoundError: If no run matches (run_id, project_id)
        """
        stmt = select(CalcRunModel).where(CalcRunModel.run_id == run_id)
        if project_id is not None:
            stmt = stmt.where(CalcRunModel.project_id == project_id)

        model = (await self.session.execute(stmt)).scalar_one_or_none()
        if model is None:
            raise NotFoundError("CalcRun", run_id)
        return calc_run_to_domain(model)

    async def latest_run(self, project_id: str) -> CalcRun | None:
        result = await self.session.execute(
            select(CalcRunModel)
            .where(CalcRunModel.project_id == project_id)
            .order_by(CalcRunModel.timestamp.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return calc_run_to_domain(model) if model else None

    async def list_runs(self, project_id: str, limit: int = 20) -> list[CalcRun]:
        result = await self.session.execute(
            select(CalcRunModel)
            .where(CalcRunModel.project_id == project_id)
            .order_by(CalcRunModel.timestamp.desc())
            .limit(limit)
        )
        return [calc_run_to_domain(model) for model in result.scalars().all()]

    async def attach_boq_lines(self, run_id: str, project_id: str, boq_lines: list[BOQLine]) -> bool:
        """Replace the run's BOQ lines and refresh its line count.

        Returns:
            True if the run was updated, False if no run matched
        """
        result = await self.session.execute(
            update(CalcRunModel)
            .where(CalcRunModel.run_id == run_id, CalcRunModel.project_id == project_id)
            .values(boq_lines=dump_lines(boq_lines), boq_line_count=len(boq_lines))
            .execution_options(synchronize_session="evaluate")
        )

        if result.rowcount == 0:
            logger.warning(run_not_found_warning(run_id))
            return False

        logger.info(f"Attached {len(boq_lines)} BOQ lines to calc run {run_id}")
        return True

    async def set_status(
        self,
        run_id: str,
        status: CalcRunStatus,
        validation_errors: list[str] | None = None,
    ) -> bool:
        values: dict = {"status": status.value}
        if validation_errors is not None:
            values["validation_errors"] = list(validation_errors)

        result = await self.session.execute(
            update(CalcRunModel)
            .where(CalcRunModel.run_id == run_id)
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0


async def attach_to_calc_run(
    session: AsyncSession,
    run_id: str,
    project_id: str,
    boq_lines: list[BOQLine],
) -> bool:
    """Module-level shortcut for ``CalcRunStore(session).attach_boq_lines``."""
    return await CalcRunStore(session).attach_boq_lines(run_id, project_id, boq_lines)
