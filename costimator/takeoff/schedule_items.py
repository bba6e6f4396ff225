"""Schedule item management for a project.

Every write checks the pay item against the catalog: the item must exist
and the unit must be the catalog's unit (aliases such as ``sq.m`` are
accepted and stored in the catalog's spelling).
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.canonical.pay_items import normalize_unit
from costimator.catalog.service import CatalogService
from costimator.db.converters import schedule_item_to_domain, schedule_item_to_model
from costimator.db.models import ScheduleItemModel
from costimator.db.projects import get_project_model
from costimator.errors import NotFoundError, ValidationError
from costimator.models import ScheduleItem

logger = logging.getLogger(__name__)

# Fields a caller may replace on an existing item
UPDATABLE_FIELDS = {
    "category",
    "dpwh_item_number_raw",
    "description_override",
    "unit",
    "qty",
    "basis_note",
    "tags",
    "mark",
    "width_m",
    "height_m",
    "quantity",
    "location",
}


def validate_against_catalog(item: ScheduleItem, catalog: CatalogService) -> ScheduleItem:
    """Return the item with the catalog's unit spelling.

    Raises:
        ValidationError: Unknown pay item or unit mismatch
    """
    catalog_item = catalog.get(item.dpwh_item_number_raw)
    if catalog_item is None:
        raise ValidationError(
            f'DPWH item "{item.dpwh_item_number_raw}" not found in catalog',
            field="dpwh_item_number_raw",
        )

    if normalize_unit(item.unit) != normalize_unit(catalog_item.unit):
        raise ValidationError(
            f'Unit mismatch: expected "{catalog_item.unit}" but got "{item.unit}"',
            field="unit",
        )

    return item.model_copy(update={"unit": catalog_item.unit})


async def list_schedule_items(session: AsyncSession, project_id: str) -> list[ScheduleItem]:
    await get_project_model(session, project_id)

    rows = await session.execute(
        select(ScheduleItemModel)
        .where(ScheduleItemModel.project_id == project_id)
        .order_by(ScheduleItemModel.position.asc(), ScheduleItemModel.created_at.asc())
    )
    return [schedule_item_to_domain(row) for row in rows.scalars().all()]


async def add_schedule_item(
    session: AsyncSession,
    catalog: CatalogService,
    project_id: str,
    item: ScheduleItem,
) -> ScheduleItem:
    """Append a schedule item to a project.

    Raises:
        NotFoundError: Project does not exist
        ValidationError: Pay item unknown, unit mismatch, or duplicate id
    """
    await get_project_model(session, project_id)
    item = validate_against_catalog(item, catalog)

    if await session.get(ScheduleItemModel, item.id) is not None:
        raise ValidationError(f"Schedule item {item.id} already exists", field="id")

    max_position = await session.scalar(
        select(func.max(ScheduleItemModel.position)).where(
            ScheduleItemModel.project_id == project_id
        )
    )
    position = (max_position if max_position is not None else -1) + 1

    session.add(schedule_item_to_model(item, project_id, position))
    await session.flush()

    logger.info(
        f"Added schedule item {item.id} ({item.category.value}, {item.dpwh_item_number_raw}) "
        f"to project {project_id}"
    )
    return item


async def update_schedule_item(
    session: AsyncSession,
    catalog: CatalogService,
    project_id: str,
    item_id: str,
    changes: dict[str, Any],
) -> ScheduleItem:
    """Replace quantity/metadata on an existing item.

    Raises:
        NotFoundError: Item does not exist in this project
        ValidationError: Unknown field, invalid value, or catalog mismatch
    """
    model = await _get_item_model(session, project_id, item_id)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    current = schedule_item_to_domain(model)
    try:
        updated = ScheduleItem.model_validate({**current.model_dump(), **changes})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid schedule item update: {e}") from e

    updated = validate_against_catalog(updated, catalog)

    replacement = schedule_item_to_model(updated, project_id, model.position)
    for column in UPDATABLE_FIELDS:
        setattr(model, column, getattr(replacement, column))
    await session.flush()

    logger.info(f"Updated schedule item {item_id} in project {project_id}")
    return updated


async def delete_schedule_item(session: AsyncSession, project_id: str, item_id: str) -> None:
    """Remove an item. Raises NotFoundError if it is not in the project."""
    model = await _get_item_model(session, project_id, item_id)
    await session.delete(model)
    await session.flush()

    logger.info(f"Deleted schedule item {item_id} from project {project_id}")


async def _get_item_model(session: AsyncSession, project_id: str, item_id: str) -> ScheduleItemModel:
    model = await session.get(ScheduleItemModel, item_id)
    if model is None or model.project_id != project_id:
        raise NotFoundError("Schedule item", item_id)
    return model
