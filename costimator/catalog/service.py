"""DPWH pay item catalog service.

Loads the versioned catalog dataset once and serves read-only lookups.
Construct a single ``CatalogService`` at process start and pass it to the
schedule item manager, BOQ generator, and exporters.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from costimator.canonical.pay_items import normalize_pay_item_number
from costimator.catalog.classifier import DPWHClassification, classify
from costimator.errors import ConfigurationError
from costimator.models import CatalogItem

logger = logging.getLogger(__name__)


class CatalogService:
    """In-memory, immutable view of the DPWH pay item catalog."""

    def __init__(self, items: Iterable[CatalogItem], version: str = "unversioned"):
        self.version = version
        self._items: dict[str, CatalogItem] = {}

        for item in items:
            key = normalize_pay_item_number(item.item_number)
            if key in self._items:
                raise ConfigurationError(
                    f"Duplicate pay item {item.item_number!r} in catalog {version}"
                )
            self._items[key] = item

    @classmethod
    def from_file(cls, path: Path) -> CatalogService:
        """Load catalog from a YAML (or JSON) dataset file.

        Expected shape::

            version: "2023-vol3"
            items:
              - item_number: "800 (1)"
                description: Clearing and Grubbing
                unit: Square Meter
                category: Earthworks

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        if not path.exists():
            raise ConfigurationError(f"Catalog dataset not found: {path}")

        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise ConfigurationError(f"Expected mapping with 'items' list in {path}")

        items = [cls._parse_item(raw, idx, path) for idx, raw in enumerate(data["items"])]
        service = cls(items, version=str(data.get("version", "unversioned")))

        logger.info(f"Loaded {len(service)} pay items from {path} (version {service.version})")
        return service

    @staticmethod
    def _parse_item(raw: Any, idx: int, path: Path) -> CatalogItem:
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Catalog entry {idx} in {path} is not a mapping")
        try:
            return CatalogItem(**raw)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid catalog entry {idx} in {path}: {e}") from e

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self._items.values())

    def __contains__(self, item_number: object) -> bool:
        return isinstance(item_number, str) and self.get(item_number) is not None

    def get(self, item_number: str | None) -> CatalogItem | None:
        """Look up a pay item, tolerant of spacing and case differences."""
        if not item_number:
            return None
        return self._items.get(normalize_pay_item_number(item_number))

    def classify_item(self, item_number: str) -> DPWHClassification:
        """Classify a pay item using its catalog category (if known)."""
        item = self.get(item_number)
        return classify(item_number, item.category if item else None)

    def search(self, query: str, limit: int = 50) -> list[CatalogItem]:
        """Case-insensitive match on item number or description."""
        needle = query.strip().lower()
        if not needle:
            return []

        matches = [
            item
            for item in self._items.values()
            if needle in item.item_number.lower() or needle in item.description.lower()
        ]
        return matches[:limit]


def load_catalog(path: Path | None = None) -> CatalogService:
    """Build the catalog service from the configured dataset path."""
    if path is None:
        from costimator.config import get_config

        path = get_config().dpwh_catalog_path
    return CatalogService.from_file(path)
