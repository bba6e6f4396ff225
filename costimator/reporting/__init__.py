"""Reporting module for Costimator.

Renders Bills of Quantities grouped by DPWH Part.
"""

from costimator.reporting.boq_export import build_boq_workbook, export_boq_excel

__all__ = ["build_boq_workbook", "export_boq_excel"]
