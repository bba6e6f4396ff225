"""Integration tests for schedule item management and CSV import."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from costimator.catalog.service import CatalogService
from costimator.db.projects import get_project
from costimator.errors import NotFoundError, ValidationError
from costimator.ingestion.schedules import ingest_schedule
from costimator.models import Project, ScheduleItem, ScheduleItemCategory
from costimator.takeoff.schedule_items import (
    add_schedule_item,
    delete_schedule_item,
    list_schedule_items,
    update_schedule_item,
)


def door_item(item_id: str = "d1", qty: str = "3.78", unit: str = "Square Meter") -> ScheduleItem:
    return ScheduleItem(
        id=item_id,
        category=ScheduleItemCategory.DOORS,
        dpwh_item_number_raw="1006 (1)",
        unit=unit,
        qty=Decimal(qty),
        mark="D-1",
        width_m=0.9,
        height_m=2.1,
        quantity=2,
    )


class TestAddScheduleItem:
    @pytest.mark.asyncio
    async def test_add_and_list_in_entry_order(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item, clearing_item
    ):
        await add_schedule_item(db_session, catalog, project.id, plumbing_item)
        await add_schedule_item(db_session, catalog, project.id, clearing_item)
        await add_schedule_item(db_session, catalog, project.id, door_item())

        items = await list_schedule_items(db_session, project.id)

        assert [item.id for item in items] == ["s1", "s2", "d1"]
        assert items[2].mark == "D-1"
        assert items[2].quantity == 2
        assert items[1].qty == Decimal("250.5")

    @pytest.mark.asyncio
    async def test_unknown_pay_item_rejected(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item
    ):
        item = plumbing_item.model_copy(update={"dpwh_item_number_raw": "9999 (1)"})

        with pytest.raises(ValidationError) as exc_info:
            await add_schedule_item(db_session, catalog, project.id, item)

        assert exc_info.value.field == "dpwh_item_number_raw"
        assert await list_schedule_items(db_session, project.id) == []

    @pytest.mark.asyncio
    async def test_unit_mismatch_rejected(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project
    ):
        with pytest.raises(ValidationError) as exc_info:
            await add_schedule_item(db_session, catalog, project.id, door_item(unit="Each"))

        assert str(exc_info.value) == 'Unit mismatch: expected "Square Meter" but got "Each"'
        assert exc_info.value.field == "unit"

    @pytest.mark.asyncio
    async def test_unit_alias_stored_in_catalog_spelling(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project
    ):
        stored = await add_schedule_item(db_session, catalog, project.id, door_item(unit="sq.m"))

        assert stored.unit == "Square Meter"
        assert (await list_schedule_items(db_session, project.id))[0].unit == "Square Meter"

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item
    ):
        await add_schedule_item(db_session, catalog, project.id, plumbing_item)

        with pytest.raises(ValidationError, match="already exists"):
            await add_schedule_item(db_session, catalog, project.id, plumbing_item)

    @pytest.mark.asyncio
    async def test_missing_project(self, db_session: AsyncSession, catalog: CatalogService, plumbing_item):
        with pytest.raises(NotFoundError):
            await add_schedule_item(db_session, catalog, "no-such-project", plumbing_item)


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_quantity(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item
    ):
        await add_schedule_item(db_session, catalog, project.id, plumbing_item)

        updated = await update_schedule_item(
            db_session, catalog, project.id, "s1", {"qty": Decimal("15.5"), "basis_note": "revised layout"}
        )

        assert updated.qty == Decimal("15.5")
        stored = (await get_project(db_session, project.id)).schedule_items[0]
        assert stored.qty == Decimal("15.5")
        assert stored.basis_note == "revised layout"

    @pytest.mark.asyncio
    async def test_update_rejects_negative_qty(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item
    ):
        await add_schedule_item(db_session, catalog, project.id, plumbing_item)

        with pytest.raises(ValidationError):
            await update_schedule_item(db_session, catalog, project.id, "s1", {"qty": Decimal("-1")})

        assert (await list_schedule_items(db_session, project.id))[0].qty == Decimal("12")

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_field(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item
    ):
        await add_schedule_item(db_session, catalog, project.id, plumbing_item)

        with pytest.raises(ValidationError, match="Cannot update fields: id"):
            await update_schedule_item(db_session, catalog, project.id, "s1", {"id": "s9"})

    @pytest.mark.asyncio
    async def test_update_missing_item(self, db_session: AsyncSession, catalog: CatalogService, project: Project):
        with pytest.raises(NotFoundError, match="Schedule item not found: nope"):
            await update_schedule_item(db_session, catalog, project.id, "nope", {"qty": Decimal("1")})

    @pytest.mark.asyncio
    async def test_delete(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, plumbing_item, clearing_item
    ):
        await add_schedule_item(db_session, catalog, project.id, plumbing_item)
        await add_schedule_item(db_session, catalog, project.id, clearing_item)

        await delete_schedule_item(db_session, project.id, "s1")

        assert [item.id for item in await list_schedule_items(db_session, project.id)] == ["s2"]

        with pytest.raises(NotFoundError):
            await delete_schedule_item(db_session, project.id, "s1")


class TestScheduleImport:
    @pytest.mark.asyncio
    async def test_csv_import_collects_row_errors(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, tmp_path: Path
    ):
        csv_path = tmp_path / "schedule.csv"
        csv_path.write_text(
            "ID,Category,DPWH Item,Unit,Qty,Basis,Tags,Mark\n"
            "d1,doors,1006 (1),Square Meter,3.78,door schedule,phase1;ground,D-1\n"
            "c1,earthworks-clearing,800 (1),sq.m,250.5,site survey,,\n"
            "x1,doors,9999 (1),Each,1,,,\n"
            "x2,landscaping,C-1,m,4,,,\n"
            "x3,plumbing,C-1,m,,,,\n",
            encoding="utf-8",
        )

        count, errors = await ingest_schedule(db_session, catalog, csv_path, project.id)

        assert count == 2
        assert len(errors) == 3
        assert errors[0].startswith("Row 2: ")
        assert "not found in catalog" in errors[0]
        assert errors[1].startswith("Row 3: ")
        assert errors[2] == "Row 4: Missing or non-numeric quantity"

        items = await list_schedule_items(db_session, project.id)
        assert [item.id for item in items] == ["d1", "c1"]
        assert items[0].tags == ["phase1", "ground"]
        assert items[1].unit == "Square Meter"

    @pytest.mark.asyncio
    async def test_missing_columns(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, tmp_path: Path
    ):
        csv_path = tmp_path / "bad.csv"
        csv_path.write_text("Category,Unit\ndoors,Each\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Missing required columns"):
            await ingest_schedule(db_session, catalog, csv_path, project.id)

    @pytest.mark.asyncio
    async def test_unsupported_format(
        self, db_session: AsyncSession, catalog: CatalogService, project: Project, tmp_path: Path
    ):
        path = tmp_path / "schedule.txt"
        path.write_text("x", encoding="utf-8")

        with pytest.raises(ValueError, match="Unsupported file format"):
            await ingest_schedule(db_session, catalog, path, project.id)

    @pytest.mark.asyncio
    async def test_missing_file(self, db_session: AsyncSession, catalog: CatalogService, project: Project, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            await ingest_schedule(db_session, catalog, tmp_path / "none.csv", project.id)
