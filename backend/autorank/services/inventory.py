"""
Candidate supply for ranking.

The storage layer is external; anything with `fetch_candidates(filters)` can
feed the ranker. InMemoryInventory serves the bundled demo listings (or any
JSON list of listings) and is what the API uses out of the box.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from autorank.schemas.search import FilterSet
from autorank.schemas.vehicles import VehicleRecord

logger = logging.getLogger(__name__)

# Inventory file location
_INVENTORY_PATH = Path(__file__).parent.parent / "data" / "inventory.json"


class CandidateProvider(Protocol):
    def fetch_candidates(self, filters: FilterSet) -> list[VehicleRecord]: ...


class InventoryError(Exception):
    """Raised when listings cannot be supplied at all."""


def load_inventory(path: str | Path | None = None) -> list[VehicleRecord]:
    """
    Load listings from a JSON array.

    Invalid entries are logged and skipped; a missing or unreadable file
    raises InventoryError.
    """
    inventory_path = Path(path) if path else _INVENTORY_PATH
    try:
        with open(inventory_path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise InventoryError(f"Cannot read inventory at {inventory_path}: {e}") from e

    if not isinstance(raw, list):
        raise InventoryError(f"Inventory at {inventory_path} is not a list")

    records: list[VehicleRecord] = []
    for item in raw:
        try:
            records.append(VehicleRecord.model_validate(item))
        except ValidationError as e:
            item_id = item.get("id", "?") if isinstance(item, dict) else "?"
            logger.warning(f"Skipping invalid inventory entry {item_id}: {e.error_count()} errors")

    logger.info(f"Loaded {len(records)} listings from {inventory_path}")
    return records


class InMemoryInventory:
    """Listings held in memory. Assumes ids are already unique."""

    def __init__(self, records: list[VehicleRecord] | None = None):
        self._records = list(records or [])

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "InMemoryInventory":
        return cls(load_inventory(path))

    @property
    def records(self) -> list[VehicleRecord]:
        return list(self._records)

    def fetch_candidates(self, filters: FilterSet) -> list[VehicleRecord]:
        # Filtering happens in the ranker so filtered_out stays meaningful
        return list(self._records)
