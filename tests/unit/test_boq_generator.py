"""Unit tests for BOQ generation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from costimator.boq.generator import (
    NO_LINES_WARNING,
    UNCLASSIFIED_PART,
    BOQGenerator,
    boq_line_id,
    generate_boq,
)
from costimator.catalog.service import CatalogService
from costimator.errors import ValidationError
from costimator.models import (
    CatalogItem,
    DesignData,
    Project,
    ScheduleItem,
    ScheduleItemCategory,
    TakeoffLine,
    Trade,
)
from costimator.takeoff.schedule import build_takeoff_line, calculate_schedule_items


def make_line(
    line_id: str,
    item_number: str | None,
    quantity: str,
    unit: str,
    category: str = "plumbing",
    trade: Trade = Trade.PLUMBING,
    extra_tags: list[str] | None = None,
) -> TakeoffLine:
    tags = [f"category:{category}"]
    if item_number is not None:
        tags.append(f"dpwh:{item_number}")
    tags.extend(extra_tags or [])
    return TakeoffLine(
        id=line_id,
        source_element_id=f"src-{line_id}",
        trade=trade,
        resource_key=f"schedule-{category}-{line_id}",
        quantity=Decimal(quantity),
        unit=unit,
        formula_text=f"Direct quantity from schedule: {quantity} {unit}",
        tags=tags,
    )


class TestBOQGeneration:
    """Grouping, summation and catalog resolution."""

    def test_single_schedule_item_end_to_end(self, catalog: CatalogService, plumbing_item: ScheduleItem):
        calculation = calculate_schedule_items([plumbing_item])

        result = BOQGenerator(catalog).generate(calculation.takeoff_lines)

        assert result.succeeded
        assert result.warnings == []
        assert len(result.boq_lines) == 1

        line = result.boq_lines[0]
        assert line.id == "boq_C_1"
        assert line.dpwh_item_number_raw == "C-1"
        assert line.description == "Excavation"
        assert line.unit == "m"
        assert line.quantity == Decimal("12")
        assert line.source_takeoff_line_ids == [calculation.takeoff_lines[0].id]
        assert line.tags[:3] == ["dpwh:C-1", "trade:Plumbing", "categories:1× plumbing"]
        assert "phase1" in line.tags

    def test_sums_quantities_exactly(self, catalog: CatalogService):
        lines = [
            make_line("t1", "1001 (1)", "0.1", "Linear Meter", "drainage"),
            make_line("t2", "1001 (1)", "0.2", "Linear Meter", "drainage"),
            make_line("t3", "1001 (1)", "12.000001", "Linear Meter", "plumbing"),
        ]

        result = generate_boq(lines, catalog)

        line = result.boq_lines[0]
        assert line.quantity == Decimal("12.300001")
        assert line.source_takeoff_line_ids == ["t1", "t2", "t3"]
        assert "categories:2× drainage, 1× plumbing" in line.tags

    def test_groups_spacing_variants_together(self, catalog: CatalogService):
        lines = [
            make_line("t1", "803 (1) a", "10", "Cubic Meter", "earthworks-structure-excavation", Trade.EARTHWORK),
            make_line("t2", "803 (1)A", "5", "cu.m", "earthworks-structure-excavation", Trade.EARTHWORK),
        ]

        result = generate_boq(lines, catalog)

        assert result.errors == []
        assert len(result.boq_lines) == 1
        assert result.boq_lines[0].dpwh_item_number_raw == "803 (1) a"
        assert result.boq_lines[0].quantity == Decimal("15")

    def test_preserves_first_seen_order(self, catalog: CatalogService):
        lines = [
            make_line("t1", "1006 (1)", "4", "Square Meter", "doors", Trade.DOORS_WINDOWS),
            make_line("t2", "800 (1)", "100", "Square Meter", "earthworks-clearing", Trade.EARTHWORK),
            make_line("t3", "1006 (1)", "2", "Square Meter", "doors", Trade.DOORS_WINDOWS),
        ]

        result = generate_boq(lines, catalog)

        assert [line.dpwh_item_number_raw for line in result.boq_lines] == ["1006 (1)", "800 (1)"]

    def test_source_tags_merged_without_duplicates(self, catalog: CatalogService):
        lines = [
            make_line("t1", "C-1", "1", "m", extra_tags=["phase1", "zone:A"]),
            make_line("t2", "C-1", "2", "m", extra_tags=["phase1", "zone:B"]),
        ]

        tags = generate_boq(lines, catalog).boq_lines[0].tags

        assert tags == [
            "dpwh:C-1",
            "trade:Plumbing",
            "categories:2× plumbing",
            "phase1",
            "zone:A",
            "zone:B",
        ]


class TestBOQPartialFailure:
    """Bad groups are reported and left out; good groups still produce lines."""

    def test_unit_mismatch_isolated_to_its_group(self, catalog: CatalogService):
        lines = [
            make_line("t1", "C-1", "3", "m"),
            make_line("t2", "C-1", "4", "Linear Meter"),
            make_line("t3", "800 (1)", "50", "Square Meter", "earthworks-clearing", Trade.EARTHWORK),
        ]

        result = generate_boq(lines, catalog)

        assert len(result.errors) == 1
        assert result.errors[0].startswith("DPWH item C-1: unit mismatch")
        assert [line.dpwh_item_number_raw for line in result.boq_lines] == ["800 (1)"]
        assert result.partial
        assert not result.succeeded

    def test_unknown_catalog_item_is_a_warning(self, catalog: CatalogService):
        lines = [
            make_line("t1", "9999 (1)", "1", "Each"),
            make_line("t2", "C-1", "1", "m"),
        ]

        result = generate_boq(lines, catalog)

        assert result.warnings == ['DPWH item "9999 (1)" not found in catalog']
        assert result.errors == []
        assert len(result.boq_lines) == 1

    def test_missing_dpwh_tag_warns(self, catalog: CatalogService):
        result = generate_boq([make_line("t1", None, "1", "m")], catalog)

        assert result.warnings == ["Takeoff line t1 missing DPWH item number"]
        assert result.boq_lines == []

    def test_catalog_unit_difference_warns(self, catalog: CatalogService):
        result = generate_boq([make_line("t1", "800 (1)", "10", "Each")], catalog)

        assert len(result.boq_lines) == 1
        assert result.boq_lines[0].unit == "Square Meter"
        assert "differs from catalog unit" in result.warnings[0]

    def test_empty_input_warns(self, catalog: CatalogService):
        result = generate_boq([], catalog)

        assert result.boq_lines == []
        assert result.warnings == [NO_LINES_WARNING]
        assert result.summary["total_lines"] == 0

    def test_non_list_input_raises(self, catalog: CatalogService):
        with pytest.raises(ValidationError) as exc_info:
            generate_boq("not a list", catalog)

        assert exc_info.value.field == "takeoff_lines"

    def test_invalid_mapping_reported(self, catalog: CatalogService):
        good = make_line("t1", "C-1", "1", "m")

        result = generate_boq([good.model_dump(), {"id": "broken"}], catalog)

        assert len(result.boq_lines) == 1
        assert result.errors[0].startswith("Takeoff line broken:")


class TestBOQSummary:
    def test_summary_by_trade_and_part(self, catalog: CatalogService):
        lines = [
            make_line("t1", "C-1", "12", "m"),
            make_line("t2", "800 (1)", "250.5", "Square Meter", "earthworks-clearing", Trade.EARTHWORK),
            make_line("t3", "1001 (8)", "1", "Lump Sum"),
        ]

        summary = generate_boq(lines, catalog).summary

        assert summary["total_lines"] == 3
        assert summary["total_quantity"] == Decimal("263.5")
        assert summary["by_trade"] == {
            "Plumbing": Decimal("13"),
            "Earthwork": Decimal("250.5"),
        }
        assert summary["by_part"] == {
            UNCLASSIFIED_PART: 1,
            "PART C: EARTHWORK": 1,
            "PART E: FINISHINGS AND OTHER CIVIL WORKS": 1,
        }

    def test_boq_line_id(self):
        assert boq_line_id("900 (1) a") == "boq_900__1__a"
        assert boq_line_id("C-1") == "boq_C_1"

    def test_mixed_producers_in_one_generation(self, catalog: CatalogService):
        schedule_item = ScheduleItem(
            id="d1",
            category=ScheduleItemCategory.DOORS,
            dpwh_item_number_raw="1006 (1)",
            unit="Square Meter",
            qty=Decimal("3.78"),
        )
        external = make_line("struct-1", "900 (1) a", "7.25", "Cubic Meter", "concrete", Trade.CONCRETE)

        result = generate_boq([build_takeoff_line(schedule_item), external], catalog)

        assert [line.dpwh_item_number_raw for line in result.boq_lines] == ["1006 (1)", "900 (1) a"]
        assert result.summary["by_trade"]["Concrete"] == Decimal("7.25")

    def test_mixed_trade_group_splits_summary_quantity(self, catalog: CatalogService):
        lines = [
            make_line("t1", "1001 (1)", "4", "Linear Meter"),
            make_line("t2", "1001 (1)", "6", "Linear Meter", "drainage", Trade.OTHER),
        ]

        result = generate_boq(lines, catalog)

        assert len(result.boq_lines) == 1
        assert "trade:Plumbing" in result.boq_lines[0].tags
        assert result.summary["by_trade"] == {"Plumbing": Decimal("4"), "Other": Decimal("6")}


def structural_line(
    line_id: str,
    trade: Trade,
    quantity: str,
    unit: str,
    tags: list[str] | None = None,
    assumptions: list[str] | None = None,
) -> TakeoffLine:
    return TakeoffLine(
        id=line_id,
        source_element_id=f"element-{line_id}",
        trade=trade,
        resource_key=f"{trade.value.lower()}-{line_id}",
        quantity=Decimal(quantity),
        unit=unit,
        formula_text="computed from element geometry",
        assumptions=assumptions or [],
        tags=tags or [],
    )


@pytest.fixture
def structural_catalog(catalog_items: list[CatalogItem]) -> CatalogService:
    return CatalogService(
        [
            *catalog_items,
            CatalogItem(
                item_number="900 (1) c",
                description="Structural Concrete, Class A, Footings and Slabs on Fill",
                unit="Cubic Meter",
                category="Concrete Works",
                trade=Trade.CONCRETE,
            ),
            CatalogItem(
                item_number="902 (1) a2",
                description="Reinforcing Steel (Deformed), Grade 40",
                unit="Kilogram",
                category="Reinforcing Steel",
                trade=Trade.REBAR,
            ),
            CatalogItem(
                item_number="903 (1)",
                description="Formworks and Falseworks",
                unit="Square Meter",
                category="Formwork",
                trade=Trade.FORMWORK,
            ),
        ],
        version="test",
    )


@pytest.fixture
def school_project() -> Project:
    return Project(
        id="p-school",
        name="Two-Storey School Building",
        design=DesignData(
            element_templates=[
                {"id": "t-f1", "name": "F1", "type": "footing", "dpwhItemNumber": "900 (1) c"},
                {"id": "t-c1", "name": "C1", "type": "column", "dpwh_item_number": "900 (1) a"},
                {"id": "t-b1", "name": "B1", "type": "beam"},
            ]
        ),
    )


class TestStructuralLines:
    """Lines without a dpwh: tag resolved by trade."""

    def test_concrete_uses_element_template_item(
        self, structural_catalog: CatalogService, school_project: Project
    ):
        lines = [
            structural_line("f1-a", Trade.CONCRETE, "1.5", "m³", ["template:F1", "type:footing"]),
            structural_line("c1-a", Trade.CONCRETE, "0.75", "m³", ["template:C1", "type:column"]),
            structural_line("f1-b", Trade.CONCRETE, "1.5", "m³", ["template:F1", "type:footing"]),
        ]

        result = BOQGenerator(structural_catalog).generate(lines, school_project)

        assert result.warnings == []
        assert [(line.dpwh_item_number_raw, line.quantity) for line in result.boq_lines] == [
            ("900 (1) c", Decimal("3.0")),
            ("900 (1) a", Decimal("0.75")),
        ]
        assert result.boq_lines[0].source_takeoff_line_ids == ["f1-a", "f1-b"]
        assert result.boq_lines[0].unit == "Cubic Meter"

    def test_concrete_template_without_item_uses_default(
        self, structural_catalog: CatalogService, school_project: Project
    ):
        lines = [
            structural_line("b1-a", Trade.CONCRETE, "2", "m³", ["template:B1"]),
            structural_line("b1-b", Trade.CONCRETE, "1", "m³", ["template:B1"]),
            structural_line("x-1", Trade.CONCRETE, "0.5", "m³"),
        ]

        result = BOQGenerator(structural_catalog).generate(lines, school_project)

        assert [line.dpwh_item_number_raw for line in result.boq_lines] == ["900 (1) a"]
        assert result.boq_lines[0].quantity == Decimal("3.5")
        assert result.warnings == [
            'Template "B1" has no DPWH item assigned, using default (900 (1) a)',
            'Template "Unknown" has no DPWH item assigned, using default (900 (1) a)',
        ]

    def test_concrete_without_project_uses_default(self, structural_catalog: CatalogService):
        lines = [structural_line("f1-a", Trade.CONCRETE, "1.5", "m³", ["template:F1"])]

        result = generate_boq(lines, structural_catalog)

        assert result.boq_lines[0].dpwh_item_number_raw == "900 (1) a"
        assert "using default (900 (1) a)" in result.warnings[0]

    def test_rebar_uses_dpwh_item_assumption(self, structural_catalog: CatalogService):
        lines = [
            structural_line(
                "r1",
                Trade.REBAR,
                "120.5",
                "kg",
                ["rebar:main"],
                ["16mm main bars", "DPWH Item: 902 (1) a2, Grade 40"],
            ),
            structural_line("r2", Trade.REBAR, "30", "kg", ["rebar:stirrup"]),
        ]

        result = generate_boq(lines, structural_catalog)

        assert len(result.boq_lines) == 1
        assert result.boq_lines[0].dpwh_item_number_raw == "902 (1) a2"
        assert result.boq_lines[0].quantity == Decimal("150.5")
        assert result.warnings == ["Rebar lines without a DPWH item assumption use default (902 (1) a2)"]
        assert result.summary["by_trade"] == {"Rebar": Decimal("150.5")}

    def test_formwork_always_uses_default(self, structural_catalog: CatalogService):
        lines = [
            structural_line("fw1", Trade.FORMWORK, "12", "m²"),
            structural_line("fw2", Trade.FORMWORK, "8.25", "m²"),
        ]

        result = generate_boq(lines, structural_catalog)

        assert result.boq_lines[0].dpwh_item_number_raw == "903 (1)"
        assert result.boq_lines[0].quantity == Decimal("20.25")
        assert result.warnings == ["Formwork lines use default DPWH item (903 (1))"]

    def test_dpwh_tag_wins_over_trade_resolution(
        self, structural_catalog: CatalogService, school_project: Project
    ):
        line = structural_line("f1-a", Trade.CONCRETE, "1", "Cubic Meter", ["template:F1", "dpwh:900 (1) a"])

        result = BOQGenerator(structural_catalog).generate([line], school_project)

        assert result.boq_lines[0].dpwh_item_number_raw == "900 (1) a"
        assert result.warnings == []

    def test_default_item_missing_from_catalog_is_reported(self, catalog: CatalogService):
        lines = [structural_line("fw1", Trade.FORMWORK, "12", "m²")]

        result = generate_boq(lines, catalog)

        assert result.boq_lines == []
        assert 'DPWH item "903 (1)" not found in catalog' in result.warnings
