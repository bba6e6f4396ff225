"""Generation pipeline - schedule items → takeoff lines → BOQ → CalcRun.

Single project, single pass, no parallelism: summation order follows the
order schedule items were entered. Item-level failures are collected and
the run continues; only infrastructure failures abort it.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from costimator.boq.generator import BOQGenerationResult, BOQGenerator
from costimator.calcruns.store import CalcRunStore, run_not_found_warning
from costimator.catalog.service import CatalogService
from costimator.core.logging import bind_run_context, clear_run_context
from costimator.db.projects import get_project
from costimator.models import CalcRunStatus, CalcRunSummary
from costimator.pipeline.types import GenerationResult, RunStatus
from costimator.takeoff.schedule import calculate_schedule_items
from costimator.versioning.manager import VersionManager

logger = logging.getLogger(__name__)


class GenerationPipeline:
    """Runs schedule calculation and BOQ generation for a project.

    Responsibilities:
    1. Calculate takeoff lines from the project's schedule items
    2. Record a CalcRun (or reuse the one given)
    3. Aggregate takeoff lines into BOQ lines
    4. Attach the BOQ lines to the CalcRun
    """

    def __init__(self, session: AsyncSession, catalog: CatalogService):
        self.session = session
        self.catalog = catalog
        self.generator = BOQGenerator(catalog)
        self.store = CalcRunStore(session)

    async def run(
        self,
        project_id: str,
        run_id: str | None = None,
        save_version: bool = False,
        version_label: str | None = None,
        created_by: str | None = None,
    ) -> GenerationResult:
        """Execute a full generation run.

        Args:
            project_id: Project to calculate
            run_id: Existing CalcRun to attach BOQ lines to. When omitted a
                new run is created.
            save_version: Also snapshot the project and its BOQ lines as a
                new draft takeoff version

        Returns:
            GenerationResult. A missing ``run_id`` run is a warning, not a
            failure; the BOQ lines are still returned.

        Raises:
            NotFoundError: Project does not exist
        """
        started = datetime.utcnow()
        bind_run_context(project_id=project_id)

        try:
            project = await get_project(self.session, project_id)
            logger.info(
                f"Starting generation for project {project_id} "
                f"({len(project.schedule_items)} schedule items)"
            )

            calculation = calculate_schedule_items(project.schedule_items, project_id)

            if run_id is None:
                run = await self.store.create_run(
                    project_id,
                    takeoff_lines=calculation.takeoff_lines,
                    summary=CalcRunSummary(takeoff_line_count=len(calculation.takeoff_lines)),
                    validation_errors=calculation.errors,
                )
                run_id = run.run_id
            bind_run_context(run_id=run_id)

            boq = self.generator.generate(calculation.takeoff_lines, project)

            saved = await self.store.attach_boq_lines(run_id, project_id, boq.boq_lines)
            if not saved:
                boq.warnings.append(run_not_found_warning(run_id))

            result = GenerationResult(
                project_id=project_id,
                status=_status_for(calculation.errors, boq),
                run_id=run_id,
                takeoff_lines=calculation.takeoff_lines,
                boq=boq,
                calculation_errors=calculation.errors,
                saved_to_run=saved,
                started_at=started,
            )

            if saved:
                final = CalcRunStatus.FAILED if result.status == RunStatus.FAILED else CalcRunStatus.COMPLETED
                await self.store.set_status(run_id, final, validation_errors=result.errors)

            if save_version and result.status != RunStatus.FAILED:
                version = await VersionManager(self.session).create_version(
                    project_id,
                    version_label=version_label,
                    created_by=created_by,
                    boq_lines=boq.boq_lines,
                )
                result.version_id = version.id

            result.duration_seconds = (datetime.utcnow() - started).total_seconds()
            logger.info(
                f"Generation finished for project {project_id}: {result.status.value}, "
                f"{len(result.takeoff_lines)} takeoff lines, {len(result.boq_lines)} BOQ lines"
            )
            return result
        finally:
            clear_run_context()


def _status_for(calculation_errors: list[str], boq: BOQGenerationResult) -> RunStatus:
    if not calculation_errors and not boq.errors:
        return RunStatus.SUCCESS if boq.boq_lines else RunStatus.SKIPPED
    if boq.boq_lines:
        return RunStatus.PARTIAL_SUCCESS
    return RunStatus.FAILED


async def run_generation(
    session: AsyncSession,
    catalog: CatalogService,
    project_id: str,
    run_id: str | None = None,
    save_version: bool = False,
) -> GenerationResult:
    """Functional entry point for ``GenerationPipeline(...).run(...)``."""
    return await GenerationPipeline(session, catalog).run(project_id, run_id, save_version)
