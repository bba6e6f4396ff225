"""Bill of Quantities generation.

Groups takeoff lines by their DPWH pay item, sums the quantities and
resolves description/unit from the catalog. Partial failure is normal: bad
groups are reported in ``errors`` or ``warnings`` and left out, every other
group still produces its BOQ line.

The pay item comes from the line's ``dpwh:`` tag. Structural lines usually
carry none and are resolved by trade instead:

- Concrete: ``dpwhItemNumber`` of the project element template named by the
  ``template:`` tag, else ``900 (1) a``
- Rebar: the ``DPWH Item: ...`` assumption, else ``902 (1) a2``
- Formwork: always ``903 (1)``

Every fallback to a default item is reported as a warning.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from costimator.canonical.pay_items import normalize_pay_item_number, normalize_unit
from costimator.catalog.classifier import classify
from costimator.catalog.service import CatalogService
from costimator.errors import ValidationError
from costimator.models import BOQLine, Project, TakeoffLine, Trade

logger = logging.getLogger(__name__)

NO_LINES_WARNING = "No takeoff lines to process"
UNCLASSIFIED_PART = "UNCLASSIFIED"

DEFAULT_STRUCTURAL_ITEMS = {
    Trade.CONCRETE: "900 (1) a",
    Trade.REBAR: "902 (1) a2",
    Trade.FORMWORK: "903 (1)",
}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_DPWH_ASSUMPTION = re.compile(r"DPWH Item:\s*([^,]+)")


def boq_line_id(item_number: str) -> str:
    """``900 (1) a`` → ``boq_900__1__a``"""
    return f"boq_{_NON_ALNUM.sub('_', item_number)}"


@dataclass
class BOQGenerationResult:
    """Outcome of one BOQ generation pass."""

    boq_lines: list[BOQLine] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """No errors (warnings allowed)."""
        return not self.errors

    @property
    def partial(self) -> bool:
        """Some groups failed but at least one BOQ line was produced."""
        return bool(self.errors) and bool(self.boq_lines)

    @property
    def failed(self) -> bool:
        return bool(self.errors) and not self.boq_lines


@dataclass
class _Group:
    key: str
    item_number: str
    lines: list[TakeoffLine] = field(default_factory=list)

    def quantity_by_trade(self) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {}
        for line in self.lines:
            totals[line.trade.value] = totals.get(line.trade.value, Decimal("0")) + line.quantity
        return totals


class BOQGenerator:
    """Aggregate takeoff lines into BOQ lines against a catalog."""

    def __init__(self, catalog: CatalogService):
        self.catalog = catalog

    def generate(
        self,
        takeoff_lines: list[TakeoffLine],
        project: Project | None = None,
    ) -> BOQGenerationResult:
        """Generate BOQ lines from takeoff lines.

        Args:
            takeoff_lines: Lines from any producer, in calculation order
            project: Owning project; its element templates resolve concrete items

        Returns:
            BOQGenerationResult; inspect ``succeeded``/``partial``/``failed``

        Raises:
            ValidationError: If ``takeoff_lines`` is not a list
        """
        if not isinstance(takeoff_lines, (list, tuple)):
            raise ValidationError(
                f"takeoff_lines must be a list, got {type(takeoff_lines).__name__}",
                field="takeoff_lines",
            )

        result = BOQGenerationResult(summary=_summarize([]))
        if not takeoff_lines:
            result.warnings.append(NO_LINES_WARNING)
            return result

        groups = self._group(takeoff_lines, project, result)

        by_trade: dict[str, Decimal] = {}
        for group in groups.values():
            boq_line = self._build_line(group, result)
            if boq_line is None:
                continue
            result.boq_lines.append(boq_line)
            for trade, quantity in group.quantity_by_trade().items():
                by_trade[trade] = by_trade.get(trade, Decimal("0")) + quantity

        result.summary = _summarize(result.boq_lines, self.catalog, by_trade)

        project_id = project.id if project else None
        logger.info(
            f"Generated {len(result.boq_lines)} BOQ lines from {len(takeoff_lines)} takeoff lines "
            f"for project {project_id} ({len(result.warnings)} warnings, {len(result.errors)} errors)"
        )
        return result

    def _group(
        self,
        takeoff_lines: list[TakeoffLine],
        project: Project | None,
        result: BOQGenerationResult,
    ) -> dict[str, _Group]:
        """Group by normalized pay item number, preserving first-seen order."""
        groups: dict[str, _Group] = {}

        for index, raw in enumerate(takeoff_lines):
            line = _coerce_line(raw, index, result)
            if line is None:
                continue

            item_number = line.tag_value("dpwh") or self._structural_item(line, project, result)
            if not item_number:
                result.warnings.append(f"Takeoff line {line.id} missing DPWH item number")
                continue

            key = normalize_pay_item_number(item_number)
            group = groups.get(key)
            if group is None:
                group = groups[key] = _Group(key=key, item_number=item_number)
            group.lines.append(line)

        return groups

    def _structural_item(
        self, line: TakeoffLine, project: Project | None, result: BOQGenerationResult
    ) -> str | None:
        """Resolve the pay item of an untagged concrete, rebar or formwork line."""
        default = DEFAULT_STRUCTURAL_ITEMS.get(line.trade)
        if default is None:
            return None

        if line.trade == Trade.CONCRETE:
            template_name = line.tag_value("template")
            template = _find_template(project, template_name)
            item_number = _template_item_number(template) if template else None
            if item_number:
                return item_number
            _warn_once(
                result,
                f'Template "{template_name or "Unknown"}" has no DPWH item assigned, '
                f"using default ({default})",
            )
            return default

        if line.trade == Trade.REBAR:
            for assumption in line.assumptions:
                match = _DPWH_ASSUMPTION.search(assumption)
                if match:
                    return match.group(1).strip()
            _warn_once(result, f"Rebar lines without a DPWH item assumption use default ({default})")
            return default

        _warn_once(result, f"Formwork lines use default DPWH item ({default})")
        return default

    def _build_line(self, group: _Group, result: BOQGenerationResult) -> BOQLine | None:
        units = list(dict.fromkeys(normalize_unit(line.unit) for line in group.lines))
        if len(units) > 1:
            result.errors.append(
                f"DPWH item {group.item_number}: unit mismatch across takeoff lines "
                f"({', '.join(units)})"
            )
            return None

        catalog_item = self.catalog.get(group.item_number)
        if catalog_item is None:
            result.warnings.append(f'DPWH item "{group.item_number}" not found in catalog')
            return None

        if units[0] != normalize_unit(catalog_item.unit):
            result.warnings.append(
                f"DPWH item {catalog_item.item_number}: takeoff unit {group.lines[0].unit!r} "
                f"differs from catalog unit {catalog_item.unit!r}"
            )

        total = sum((line.quantity for line in group.lines), Decimal("0"))

        category_counts: Counter[str] = Counter()
        for line in group.lines:
            category = line.tag_value("category")
            if category:
                category_counts[category] += 1

        tags = [
            f"dpwh:{catalog_item.item_number}",
            # first contributing trade; summary quantities are split per line trade
            f"trade:{group.lines[0].trade.value}",
        ]
        if category_counts:
            tags.append(
                "categories:"
                + ", ".join(f"{count}× {category}" for category, count in category_counts.items())
            )

        seen = set(tags)
        for line in group.lines:
            for tag in line.tags:
                if tag.startswith("category:") or tag.startswith("dpwh:") or tag in seen:
                    continue
                seen.add(tag)
                tags.append(tag)

        return BOQLine(
            id=boq_line_id(catalog_item.item_number),
            dpwh_item_number_raw=catalog_item.item_number,
            description=catalog_item.description,
            unit=catalog_item.unit,
            quantity=total,
            source_takeoff_line_ids=[line.id for line in group.lines],
            tags=tags,
        )


def generate_boq(
    takeoff_lines: list[TakeoffLine],
    catalog: CatalogService,
    project: Project | None = None,
) -> BOQGenerationResult:
    """Functional shortcut for ``BOQGenerator(catalog).generate(...)``."""
    return BOQGenerator(catalog).generate(takeoff_lines, project)


def _coerce_line(raw: Any, index: int, result: BOQGenerationResult) -> TakeoffLine | None:
    if isinstance(raw, TakeoffLine):
        return raw
    if isinstance(raw, Mapping):
        try:
            return TakeoffLine.model_validate(dict(raw))
        except PydanticValidationError as e:
            result.errors.append(f"Takeoff line {raw.get('id', f'#{index}')}: {e.error_count()} invalid fields")
            return None
    result.errors.append(f"Takeoff line #{index}: unsupported type {type(raw).__name__}")
    return None


def _find_template(project: Project | None, name: str | None) -> dict[str, Any] | None:
    if project is None or not name:
        return None
    for template in project.design.element_templates:
        if template.get("name") == name:
            return template
    return None


def _template_item_number(template: dict[str, Any]) -> str | None:
    return template.get("dpwh_item_number") or template.get("dpwhItemNumber")


def _warn_once(result: BOQGenerationResult, message: str) -> None:
    if message not in result.warnings:
        result.warnings.append(message)


def _trade_of(line: BOQLine) -> str:
    for tag in line.tags:
        if tag.startswith("trade:"):
            return tag[len("trade:"):]
    return "Other"


def _summarize(
    boq_lines: list[BOQLine],
    catalog: CatalogService | None = None,
    by_trade: dict[str, Decimal] | None = None,
) -> dict[str, Any]:
    """Summary totals. ``by_trade`` defaults to each line's ``trade:`` tag."""
    if by_trade is None:
        by_trade = {}
        for line in boq_lines:
            trade = _trade_of(line)
            by_trade[trade] = by_trade.get(trade, Decimal("0")) + line.quantity

    by_part: dict[str, int] = {}
    for line in boq_lines:
        if catalog is not None:
            label = catalog.classify_item(line.dpwh_item_number_raw).label
        else:
            label = classify(line.dpwh_item_number_raw).label
        part = label or UNCLASSIFIED_PART
        by_part[part] = by_part.get(part, 0) + 1

    return {
        "total_lines": len(boq_lines),
        "total_quantity": sum((line.quantity for line in boq_lines), Decimal("0")),
        "by_trade": by_trade,
        "by_part": by_part,
    }
