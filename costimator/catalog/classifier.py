"""DPWH Part and subcategory classification.

Maps a pay item number (plus its catalog category) onto the Volume III Part
it belongs to. Rules are ordered and keyed on the leading integer of the
item number; subcategories come from keyword rules on the category text.
Pure functions, no state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from costimator.canonical.pay_items import base_item_number

PART_ORDER = ["PART A", "PART C", "PART D", "PART E", "PART F", "PART G"]

# (lower bound inclusive, upper bound exclusive, part, part name)
_PART_RULES: list[tuple[int, int | None, str, str]] = [
    (800, 900, "PART C", "EARTHWORK"),
    (900, 1000, "PART D", "REINFORCED CONCRETE / BUILDINGS"),
    (1000, 1100, "PART E", "FINISHINGS AND OTHER CIVIL WORKS"),
    (1100, 1500, "PART F", "ELECTRICAL"),
    (1500, None, "PART G", "MECHANICAL"),
]

_GENERAL_PART = ("PART A", "GENERAL")

# Facilities for the Engineer, e.g. "A.1.1 (1)"
_GENERAL_ITEM = re.compile(r"^A\.\d", re.IGNORECASE)

# First matching keyword group wins
_FINISHES_SUBCATEGORIES: list[tuple[tuple[str, ...], str]] = [
    (("termite",), "Termite Control"),
    (("plumbing", "drainage", "sewer", "water", "pipe"), "Plumbing Works"),
    (("door", "window"), "Doors and Windows"),
    (("glass", "glazing"), "Glass and Glazing"),
    (("tile", "tiling"), "Tiling Works"),
    (("floor",), "Flooring"),
    (("plaster",), "Plastering Works"),
    (("ceiling",), "Ceiling Works"),
    (("paint", "coating", "varnish"), "Painting Works"),
    (("railing",), "Railings"),
    (("masonry", "chb", "block"), "Masonry Works"),
    (("roofing",), "Roofing Works"),
    (("insulation",), "Insulation"),
    (("waterproof",), "Waterproofing"),
]

_CONCRETE_SUBCATEGORIES: list[tuple[tuple[str, ...], str]] = [
    (("formwork",), "Formwork"),
    (("reinforc",), "Reinforcing Steel"),
    (("precast",), "Precast Concrete"),
]

_ELECTRICAL_SUBCATEGORIES: list[tuple[tuple[str, ...], str]] = [
    (("electric", "wiring", "conduit"), "Electrical Works"),
    (("steel", "metal"), "Metal Works"),
]


@dataclass(frozen=True, slots=True)
class DPWHClassification:
    part: str | None
    part_name: str | None
    subcategory: str

    @property
    def label(self) -> str | None:
        """Display label, e.g. ``PART C: EARTHWORK``."""
        if self.part is None:
            return None
        return f"{self.part}: {self.part_name}"


def classify(item_number: str | None, category: str | None = None) -> DPWHClassification:
    """Classify a pay item into its DPWH Part.

    ``A.x`` numbers are general requirements (Part A). Other item numbers
    that are blank, ``-``, or lack a numeric prefix cannot be placed in a
    Part; they come back with ``part=None`` instead of failing.
    """
    if item_number and _GENERAL_ITEM.match(item_number.strip()):
        return DPWHClassification(
            part=_GENERAL_PART[0],
            part_name=_GENERAL_PART[1],
            subcategory=category or "Other Works",
        )

    prefix = base_item_number(item_number) if item_number and item_number.strip() != "-" else None
    if prefix is None:
        return DPWHClassification(part=None, part_name=None, subcategory=category or "Other Works")

    part, part_name = _part_for(prefix)
    return DPWHClassification(
        part=part,
        part_name=part_name,
        subcategory=_subcategory_for(prefix, category),
    )


def sort_parts(labels: list[str]) -> list[str]:
    """Order part labels A, C, D, E, F, G; unrecognized labels go last."""

    def _key(label: str) -> tuple[int, str]:
        head = label.split(":")[0].strip()
        index = PART_ORDER.index(head) if head in PART_ORDER else len(PART_ORDER)
        return index, label

    return sorted(labels, key=_key)


def _part_for(prefix: int) -> tuple[str, str]:
    for lower, upper, part, part_name in _PART_RULES:
        if prefix >= lower and (upper is None or prefix < upper):
            return part, part_name
    return _GENERAL_PART


def _match_keywords(
    category_lower: str, rules: list[tuple[tuple[str, ...], str]]
) -> str | None:
    for keywords, subcategory in rules:
        if any(keyword in category_lower for keyword in keywords):
            return subcategory
    return None


def _subcategory_for(prefix: int, category: str | None) -> str:
    lowered = category.lower() if category else ""

    if 1000 <= prefix < 1100:
        if not category:
            return "Other Finishes"
        return _match_keywords(lowered, _FINISHES_SUBCATEGORIES) or category

    if 900 <= prefix < 1000:
        if not category:
            return "Concrete Works"
        return _match_keywords(lowered, _CONCRETE_SUBCATEGORIES) or category

    if 800 <= prefix < 900:
        if not category:
            return "Earthwork"
        return _earthwork_subcategory(lowered) or category

    if 1100 <= prefix < 1500:
        if not category:
            return "Metal & Electrical Works"
        return _match_keywords(lowered, _ELECTRICAL_SUBCATEGORIES) or category

    if prefix >= 1500:
        return category or "Marine & Other Works"

    return category or "Other Works"


def _earthwork_subcategory(lowered: str) -> str | None:
    if "clearing" in lowered or "grubbing" in lowered:
        return "Clearing and Grubbing"
    if "removal" in lowered and "tree" in lowered:
        return "Removal of Trees"
    if "removal" in lowered and "structure" in lowered:
        return "Removal of Structures"
    if "structure" in lowered and "excavat" in lowered:
        return "Structure Excavation"
    if "excavat" in lowered:
        return "Excavation"
    if "embankment" in lowered or "fill" in lowered:
        return "Embankment"
    if "site development" in lowered or "site-development" in lowered:
        return "Site Development"
    return None
