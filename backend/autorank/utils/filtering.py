"""
Binary filter predicates over vehicle records.

Filtering is pass/fail only; how well a record matches is the scorer's job.
"""
from autorank.schemas.search import FilterSet
from autorank.schemas.vehicles import VehicleRecord


def _attribute_value(record: VehicleRecord, group: str) -> str | None:
    value = getattr(record, group, None)
    if value is None or isinstance(value, (list, dict)):
        return None
    return str(value).strip().lower()


def matches(record: VehicleRecord, filters: FilterSet) -> bool:
    """
    Check a record against explicit filters.

    Ranges are inclusive with open ends unbounded. Category groups (fuel_type,
    transmission, make, body_style, location, ...) are ANDed together; values
    inside one group are ORed. An empty selection imposes no constraint.
    """
    for bounds, value in (
        (filters.price_range, record.price),
        (filters.year_range, record.year),
        (filters.mileage_range, record.mileage),
    ):
        if not bounds.is_unbounded and not bounds.contains(value):
            return False

    for group, selected in filters.categories.items():
        if not selected:
            continue
        value = _attribute_value(record, group)
        if value is None:
            return False
        if value not in {str(s).strip().lower() for s in selected}:
            return False

    return True


class FilterEngine:
    """Object form of `matches` for injection into the ranker."""

    def matches(self, record: VehicleRecord, filters: FilterSet) -> bool:
        return matches(record, filters)

    def apply(self, records: list[VehicleRecord], filters: FilterSet) -> list[VehicleRecord]:
        return [r for r in records if matches(r, filters)]
