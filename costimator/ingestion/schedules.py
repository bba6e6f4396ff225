"""Schedule item ingestion for Costimator.

Parses CSV/XLSX schedule sheets (door/window schedules, drainage runs,
earthwork quantities) and adds them to a project as schedule items.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.catalog.service import CatalogService
from costimator.db.projects import get_project_model
from costimator.errors import ValidationError
from costimator.models import ScheduleItem
from costimator.takeoff.schedule_items import add_schedule_item

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_MB = 50
MAX_ROWS = 50000

_ITEM_NUMBER_COLUMNS = ["DPWH Item", "Pay Item", "Item Number"]
_QTY_COLUMNS = ["Qty", "Quantity"]


async def ingest_schedule(
    session: AsyncSession,
    catalog: CatalogService,
    file_path: Path,
    project_id: str,
) -> tuple[int, list[str]]:
    """Ingest schedule items from CSV or XLSX file.

    Expected columns:
    - Category (required, e.g. "doors", "earthworks-clearing")
    - DPWH Item / Pay Item (required)
    - Unit (required, must match the catalog unit)
    - Qty / Quantity (required, non-negative)
    - ID, Description, Basis, Tags, Mark, Width, Height, Count, Location (optional)

    Args:
        session: Database session
        catalog: Pay item catalog used to validate rows
        file_path: Path to CSV or XLSX file
        project_id: Project identifier

    Returns:
        Tuple of (success_count, error_messages)

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file format is invalid
        NotFoundError: If the project doesn't exist
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Schedule file not found: {file_path}")

    file_size_mb = file_path.stat().st_size / (1024 * 1024)
    if file_size_mb > MAX_FILE_SIZE_MB:
        raise ValueError(
            f"File too large ({file_size_mb:.1f}MB). Maximum allowed: {MAX_FILE_SIZE_MB}MB"
        )

    if file_path.suffix.lower() == ".csv":
        df = pd.read_csv(file_path)
    elif file_path.suffix.lower() in (".xlsx", ".xls"):
        df = pd.read_excel(file_path)
    else:
        raise ValueError(f"Unsupported file format: {file_path.suffix}. Use CSV or XLSX.")

    if len(df) > MAX_ROWS:
        raise ValueError(f"Too many rows ({len(df):,}). Maximum allowed: {MAX_ROWS:,}")

    df.columns = [str(col).strip() for col in df.columns]
    missing = []
    if "Category" not in df.columns:
        missing.append("Category")
    if not any(col in df.columns for col in _ITEM_NUMBER_COLUMNS):
        missing.append("DPWH Item")
    if "Unit" not in df.columns:
        missing.append("Unit")
    if not any(col in df.columns for col in _QTY_COLUMNS):
        missing.append("Qty")
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    await get_project_model(session, project_id)

    success_count = 0
    errors: list[str] = []

    for idx, row in df.iterrows():
        try:
            item = _row_to_item(row)
        except (ValueError, PydanticValidationError) as e:
            errors.append(f"Row {idx}: {e}")
            continue

        try:
            await add_schedule_item(session, catalog, project_id, item)
        except ValidationError as e:
            errors.append(f"Row {idx}: {e}")
            continue

        success_count += 1

    logger.info(
        f"Imported {success_count} schedule items into project {project_id} from {file_path.name} "
        f"({len(errors)} rows rejected)"
    )
    return success_count, errors


def _row_to_item(row: pd.Series) -> ScheduleItem:
    category = _get_str(row, "Category")
    item_number = _get_str(row, _ITEM_NUMBER_COLUMNS)
    unit = _get_str(row, "Unit")

    if not category or not item_number or not unit:
        raise ValueError("Missing category, DPWH item or unit")

    qty = _get_decimal(row, _QTY_COLUMNS)
    if qty is None:
        raise ValueError("Missing or non-numeric quantity")

    fields = {
        "category": category.lower(),
        "dpwh_item_number_raw": item_number,
        "unit": unit,
        "qty": qty,
        "description_override": _get_str(row, "Description"),
        "basis_note": _get_str(row, ["Basis", "Basis Note"]) or "",
        "tags": _split_tags(_get_str(row, "Tags")),
        "mark": _get_str(row, "Mark"),
        "width_m": _get_float(row, ["Width", "Width (m)", "W"]),
        "height_m": _get_float(row, ["Height", "Height (m)", "H"]),
        "location": _get_str(row, "Location"),
    }

    count = _get_float(row, "Count")
    if count is not None:
        fields["quantity"] = int(count)

    item_id = _get_str(row, "ID")
    if item_id:
        fields["id"] = item_id

    return ScheduleItem(**fields)


def _split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.replace(";", ",").split(",") if tag.strip()]


def _get_str(row: pd.Series, col_name: str | list[str]) -> str | None:
    """Get string value from row, trying multiple column names."""
    if isinstance(col_name, str):
        col_name = [col_name]

    for col in col_name:
        if col in row and pd.notna(row[col]):
            value = str(row[col]).strip()
            if value:
                return value

    return None


def _get_float(row: pd.Series, col_name: str | list[str]) -> float | None:
    """Get float value from row, trying multiple column names."""
    if isinstance(col_name, str):
        col_name = [col_name]

    for col in col_name:
        if col in row and pd.notna(row[col]):
            try:
                return float(row[col])
            except (ValueError, TypeError):
                continue

    return None


def _get_decimal(row: pd.Series, col_name: list[str]) -> Decimal | None:
    for col in col_name:
        if col in row and pd.notna(row[col]):
            try:
                return Decimal(str(row[col]).strip())
            except InvalidOperation:
                continue

    return None
