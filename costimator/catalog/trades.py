"""Schedule item category → Trade mapping.

The table lists every ``ScheduleItemCategory`` explicitly, including the ones
that deliberately land on ``Trade.OTHER``. Anything outside the table
(unknown strings, categories added later) also falls back to ``Trade.OTHER``;
BOQ grouping relies on that fallback.
"""

from __future__ import annotations

from costimator.models import ScheduleItemCategory, Trade

DEFAULT_TRADE = Trade.OTHER

CATEGORY_TRADES: dict[ScheduleItemCategory, Trade] = {
    # Part E - Finishing Works
    ScheduleItemCategory.TERMITE_CONTROL: Trade.OTHER,
    ScheduleItemCategory.DRAINAGE: Trade.PLUMBING,
    ScheduleItemCategory.PLUMBING: Trade.PLUMBING,
    ScheduleItemCategory.CARPENTRY: Trade.CARPENTRY,
    ScheduleItemCategory.HARDWARE: Trade.HARDWARE,
    ScheduleItemCategory.DOORS: Trade.DOORS_WINDOWS,
    ScheduleItemCategory.WINDOWS: Trade.DOORS_WINDOWS,
    ScheduleItemCategory.GLAZING: Trade.GLASS_GLAZING,
    ScheduleItemCategory.WATERPROOFING: Trade.WATERPROOFING,
    ScheduleItemCategory.CLADDING: Trade.CLADDING,
    ScheduleItemCategory.INSULATION: Trade.OTHER,
    ScheduleItemCategory.ACOUSTICAL: Trade.OTHER,
    ScheduleItemCategory.OTHER: Trade.OTHER,
    # Part C - Earthworks
    ScheduleItemCategory.EARTHWORKS_CLEARING: Trade.EARTHWORK,
    ScheduleItemCategory.EARTHWORKS_REMOVAL_TREES: Trade.EARTHWORK,
    ScheduleItemCategory.EARTHWORKS_REMOVAL_STRUCTURES: Trade.EARTHWORK,
    ScheduleItemCategory.EARTHWORKS_EXCAVATION: Trade.EARTHWORK,
    ScheduleItemCategory.EARTHWORKS_STRUCTURE_EXCAVATION: Trade.EARTHWORK,
    ScheduleItemCategory.EARTHWORKS_EMBANKMENT: Trade.EARTHWORK,
    ScheduleItemCategory.EARTHWORKS_SITE_DEVELOPMENT: Trade.EARTHWORK,
}


def map_trade(category: ScheduleItemCategory | str | None) -> Trade:
    """Return the Trade for a schedule item category. Never raises."""
    if category is None:
        return DEFAULT_TRADE

    try:
        key = ScheduleItemCategory(category)
    except ValueError:
        return DEFAULT_TRADE

    return CATEGORY_TRADES.get(key, DEFAULT_TRADE)


def unmapped_categories() -> list[ScheduleItemCategory]:
    """Categories missing from the table (should always be empty)."""
    return [category for category in ScheduleItemCategory if category not in CATEGORY_TRADES]
