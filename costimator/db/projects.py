"""Project persistence helpers."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.db.converters import project_to_domain
from costimator.db.models import ProjectModel, ScheduleItemModel
from costimator.errors import NotFoundError
from costimator.models import DesignData, Project

logger = logging.getLogger(__name__)


async def create_project(
    session: AsyncSession,
    name: str,
    location: str | None = None,
    design: DesignData | None = None,
    project_id: str | None = None,
) -> Project:
    model = ProjectModel(
        name=name,
        location=location,
        design=(design or DesignData()).model_dump(mode="json"),
    )
    if project_id:
        model.id = project_id

    session.add(model)
    await session.flush()

    logger.info(f"Created project {model.id} ({name})")
    return project_to_domain(model)


async def get_project_model(session: AsyncSession, project_id: str) -> ProjectModel:
    model = await session.get(ProjectModel, project_id)
    if model is None:
        raise NotFoundError("Project", project_id)
    return model


async def get_project(session: AsyncSession, project_id: str) -> Project:
    """Load a project with its schedule items in entry order.

    Raises:
        NotFoundError: If the project does not exist
    """
    model = await get_project_model(session, project_id)

    rows = await session.execute(
        select(ScheduleItemModel)
        .where(ScheduleItemModel.project_id == project_id)
        .order_by(ScheduleItemModel.position.asc(), ScheduleItemModel.created_at.asc())
    )
    return project_to_domain(model, list(rows.scalars().all()))


async def update_design(session: AsyncSession, project_id: str, design: DesignData) -> Project:
    model = await get_project_model(session, project_id)
    model.design = design.model_dump(mode="json")
    await session.flush()
    return await get_project(session, project_id)


async def set_active_version(session: AsyncSession, project_id: str, version_id: str | None) -> None:
    result = await session.execute(
        update(ProjectModel)
        .where(ProjectModel.id == project_id)
        .values(active_takeoff_version_id=version_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Project", project_id)
