"""Excel export of a Bill of Quantities.

Lines are grouped by DPWH Part (A, C, D, E, F, G) and subcategory, in the
order a DPWH program of works lists them. Items whose number cannot be
classified are listed last under "UNCLASSIFIED".
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from costimator.boq.generator import UNCLASSIFIED_PART
from costimator.catalog.classifier import sort_parts
from costimator.catalog.service import CatalogService
from costimator.models import BOQLine

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=12)
PART_FILL = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
THIN_BORDER = Border(bottom=Side(style="thin", color="999999"))

BOQ_COLUMNS = ["Item No.", "Description", "Unit", "Quantity", "Sources"]


def group_by_part(
    boq_lines: list[BOQLine], catalog: CatalogService
) -> dict[str, dict[str, list[BOQLine]]]:
    """part label → subcategory → lines, parts in DPWH order."""
    grouped: dict[str, dict[str, list[BOQLine]]] = defaultdict(lambda: defaultdict(list))

    for line in boq_lines:
        classification = catalog.classify_item(line.dpwh_item_number_raw)
        part = classification.label or UNCLASSIFIED_PART
        grouped[part][classification.subcategory].append(line)

    return {part: dict(grouped[part]) for part in sort_parts(list(grouped))}


def build_boq_workbook(
    boq_lines: list[BOQLine],
    catalog: CatalogService,
    project_name: str | None = None,
) -> Workbook:
    wb = Workbook()

    if "Sheet" in wb.sheetnames:
        wb.remove(wb["Sheet"])

    grouped = group_by_part(boq_lines, catalog)
    _create_boq_sheet(wb, grouped, project_name, catalog.version)
    _create_summary_sheet(wb, grouped)

    return wb


def export_boq_excel(
    boq_lines: list[BOQLine],
    catalog: CatalogService,
    project_name: str | None = None,
) -> BytesIO:
    """Render the BOQ workbook into memory.

    Returns:
        BytesIO containing Excel workbook
    """
    wb = build_boq_workbook(boq_lines, catalog, project_name)

    output = BytesIO()
    wb.save(output)
    output.seek(0)

    return output


def _create_boq_sheet(
    wb: Workbook,
    grouped: dict[str, dict[str, list[BOQLine]]],
    project_name: str | None,
    catalog_version: str,
) -> None:
    ws = wb.create_sheet("Bill of Quantities", 0)

    ws["A1"] = "Bill of Quantities"
    ws["A1"].font = Font(bold=True, size=16)
    ws.merge_cells("A1:E1")

    ws["A3"] = "Project:"
    ws["B3"] = project_name or "-"
    ws["A4"] = "Catalog:"
    ws["B4"] = catalog_version
    ws["A5"] = "Generated:"
    ws["B5"] = datetime.now().strftime("%Y-%m-%d %H:%M")

    row = 7
    for col, header in enumerate(BOQ_COLUMNS, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT

    for part, subcategories in grouped.items():
        row += 1
        cell = ws.cell(row=row, column=1, value=part)
        cell.font = Font(bold=True)
        for col in range(1, len(BOQ_COLUMNS) + 1):
            ws.cell(row=row, column=col).fill = PART_FILL

        for subcategory, lines in subcategories.items():
            row += 1
            ws.cell(row=row, column=2, value=subcategory).font = Font(italic=True)

            for line in lines:
                row += 1
                ws.cell(row=row, column=1, value=line.dpwh_item_number_raw)
                ws.cell(row=row, column=2, value=line.description)
                ws.cell(row=row, column=3, value=line.unit)
                qty_cell = ws.cell(row=row, column=4, value=float(line.quantity))
                qty_cell.number_format = "#,##0.00"
                qty_cell.alignment = Alignment(horizontal="right")
                ws.cell(row=row, column=5, value=len(line.source_takeoff_line_ids))
                for col in range(1, len(BOQ_COLUMNS) + 1):
                    ws.cell(row=row, column=col).border = THIN_BORDER

    for col, width in enumerate([16, 60, 14, 14, 10], 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def _create_summary_sheet(wb: Workbook, grouped: dict[str, dict[str, list[BOQLine]]]) -> None:
    ws = wb.create_sheet("Summary")

    ws["A1"] = "Summary by Part"
    ws["A1"].font = Font(bold=True, size=14)

    row = 3
    for col, header in enumerate(["Part", "Lines", "Total Quantity"], 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT

    total_lines = 0
    for part, subcategories in grouped.items():
        lines = [line for group in subcategories.values() for line in group]
        quantity = sum((line.quantity for line in lines), Decimal("0"))
        total_lines += len(lines)

        row += 1
        ws.cell(row=row, column=1, value=part)
        ws.cell(row=row, column=2, value=len(lines))
        ws.cell(row=row, column=3, value=float(quantity)).number_format = "#,##0.00"

    row += 1
    ws.cell(row=row, column=1, value="TOTAL").font = Font(bold=True)
    ws.cell(row=row, column=2, value=total_lines).font = Font(bold=True)

    for col, width in enumerate([45, 10, 18], 1):
        ws.column_dimensions[get_column_letter(col)].width = width
