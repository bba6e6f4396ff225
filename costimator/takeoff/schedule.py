"""Schedule item → takeoff line calculation.

Schedule items are direct-quantity entries (doors, drainage runs, clearing
areas...), so no geometry is involved: each valid item becomes exactly one
takeoff line carrying its quantity verbatim plus the trace data needed to
explain where the number came from.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from costimator.catalog.trades import map_trade
from costimator.models import ScheduleItem, TakeoffLine

logger = logging.getLogger(__name__)


@dataclass
class ScheduleCalculationResult:
    """Takeoff lines built from a batch of schedule items.

    Failed items never abort the batch; they show up in ``errors`` as
    ``Schedule item {id}: {message}`` and are left out of ``takeoff_lines``.
    """

    takeoff_lines: list[TakeoffLine] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    summary: dict[str, Any] = field(
        default_factory=lambda: {"total_items": 0, "by_category": {}}
    )

    @property
    def succeeded(self) -> bool:
        return not self.errors

    @property
    def partial(self) -> bool:
        return bool(self.errors) and bool(self.takeoff_lines)

    @property
    def failed(self) -> bool:
        return bool(self.errors) and not self.takeoff_lines


def resource_key(item: ScheduleItem) -> str:
    """Deterministic resource key for a schedule item."""
    return f"schedule-{item.category.value}-{item.id}"


def build_takeoff_line(item: ScheduleItem, calculated_at: datetime | None = None) -> TakeoffLine:
    """Build the takeoff line for one validated schedule item."""
    assumptions = [
        f"Basis: {item.basis_note}",
        f"Category: {item.category.value}",
    ]
    if item.description_override:
        assumptions.append(f"Description: {item.description_override}")

    tags = [
        f"category:{item.category.value}",
        f"dpwh:{item.dpwh_item_number_raw}",
        *item.tags,
    ]

    return TakeoffLine(
        source_element_id=item.id,
        trade=map_trade(item.category),
        resource_key=resource_key(item),
        quantity=item.qty,
        unit=item.unit,
        formula_text=f"Direct quantity from schedule: {item.qty} {item.unit}",
        inputs_snapshot={"qty": item.qty},
        assumptions=assumptions,
        tags=tags,
        calculated_at=calculated_at or datetime.utcnow(),
    )


def calculate_schedule_items(
    schedule_items: Iterable[ScheduleItem | Mapping[str, Any]],
    project_id: str | None = None,
) -> ScheduleCalculationResult:
    """Convert schedule items into takeoff lines.

    Accepts validated ``ScheduleItem`` records or raw mappings (as stored in
    a snapshot or read from an import file). Raw mappings are validated
    here; anything that fails validation is reported and skipped.

    Args:
        schedule_items: Items belonging to one project
        project_id: Used for logging only

    Returns:
        ScheduleCalculationResult with lines, per-item errors and a summary
    """
    result = ScheduleCalculationResult()
    by_category: Counter[str] = Counter()
    calculated_at = datetime.utcnow()

    for index, raw in enumerate(schedule_items):
        result.summary["total_items"] += 1

        category = _raw_category(raw)
        if category:
            by_category[category] += 1

        outcome = _calculate_one(raw, calculated_at)
        if isinstance(outcome, TakeoffLine):
            result.takeoff_lines.append(outcome)
        else:
            result.errors.append(f"Schedule item {_raw_id(raw, index)}: {outcome}")

    result.summary["by_category"] = dict(by_category)

    if result.errors:
        logger.warning(
            f"Schedule calculation for project {project_id}: "
            f"{len(result.takeoff_lines)} lines, {len(result.errors)} items skipped"
        )
    else:
        logger.debug(
            f"Schedule calculation for project {project_id}: {len(result.takeoff_lines)} lines"
        )

    return result


def _calculate_one(
    raw: ScheduleItem | Mapping[str, Any], calculated_at: datetime
) -> TakeoffLine | str:
    """Return the takeoff line, or the reason the item was skipped."""
    if isinstance(raw, ScheduleItem):
        item = raw
    elif isinstance(raw, Mapping):
        try:
            item = ScheduleItem.model_validate(dict(raw))
        except PydanticValidationError as e:
            return _describe_validation_error(e)
    else:
        return f"Unsupported schedule item type {type(raw).__name__}"

    # Validated records can still be mutated after construction
    if item.qty < 0:
        return "qty must be non-negative"
    if not item.dpwh_item_number_raw or not item.unit:
        return "Missing DPWH item number or unit"

    return build_takeoff_line(item, calculated_at)


def _describe_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(loc) for loc in detail["loc"]) or "item"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


def _raw_id(raw: Any, index: int) -> str:
    if isinstance(raw, ScheduleItem):
        return raw.id
    if isinstance(raw, Mapping) and raw.get("id"):
        return str(raw["id"])
    return f"#{index}"


def _raw_category(raw: Any) -> str | None:
    if isinstance(raw, ScheduleItem):
        return raw.category.value
    if isinstance(raw, Mapping) and raw.get("category"):
        category = raw["category"]
        return str(getattr(category, "value", category))
    return None
