"""DPWH pay item number and unit normalization.

Pay item numbers arrive with inconsistent spacing and case ("900 (1) c",
"900 (1)c", "900 (1) C"). Lookups and grouping use the normalized form; the
catalog's own spelling is what ends up on BOQ lines.
"""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_SPACE_BEFORE_SUFFIX = re.compile(r"\)\s+([a-z0-9])", re.IGNORECASE)
_BASE_NUMBER = re.compile(r"^(\d+)")
_PAY_ITEM_FORMAT = re.compile(r"^\d+\s*\(\d+\)([a-z]\d*)?$", re.IGNORECASE)

_UNIT_ALIASES = {
    "cu.m": "Cubic Meter",
    "m3": "Cubic Meter",
    "m³": "Cubic Meter",
    "cubic meter": "Cubic Meter",
    "cubic meters": "Cubic Meter",
    "sq.m": "Square Meter",
    "m2": "Square Meter",
    "m²": "Square Meter",
    "square meter": "Square Meter",
    "square meters": "Square Meter",
    "lin.m": "Linear Meter",
    "linear meter": "Linear Meter",
    "linear meters": "Linear Meter",
    "l.m": "Linear Meter",
    "kg": "Kilogram",
    "kilograms": "Kilogram",
    "kilogram": "Kilogram",
    "l.s.": "Lump Sum",
    "lump sum": "Lump Sum",
    "ls": "Lump Sum",
    "each": "Each",
    "ea": "Each",
    "pc": "Each",
    "piece": "Each",
    "pcs": "Each",
}


def normalize_pay_item_number(pay_item: str | None) -> str:
    """Normalize a pay item number for matching.

    >>> normalize_pay_item_number("900 (1) c")
    '900 (1)C'
    >>> normalize_pay_item_number("800 (3)a1")
    '800 (3)A1'
    """
    if not pay_item:
        return ""

    text = _WHITESPACE.sub(" ", pay_item.strip())
    text = _SPACE_BEFORE_SUFFIX.sub(r")\1", text)
    return text.upper()


def pay_items_match(first: str | None, second: str | None) -> bool:
    return normalize_pay_item_number(first) == normalize_pay_item_number(second)


def normalize_unit(unit: str | None) -> str:
    """Map unit spellings onto the catalog's unit names ("cu.m" → "Cubic Meter")."""
    if not unit:
        return ""

    cleaned = unit.strip()
    return _UNIT_ALIASES.get(cleaned.lower(), cleaned)


def base_item_number(pay_item: str | None) -> int | None:
    """Leading integer of a pay item number ("1046 (3)" → 1046), or None."""
    if not pay_item:
        return None

    match = _BASE_NUMBER.match(pay_item.strip())
    return int(match.group(1)) if match else None


def is_valid_pay_item_format(pay_item: str | None) -> bool:
    return bool(_PAY_ITEM_FORMAT.match(normalize_pay_item_number(pay_item)))
