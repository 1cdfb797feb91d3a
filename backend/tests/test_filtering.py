"""Tests for explicit filter predicates."""

from conftest import make_record

from autorank.schemas.search import FilterSet, NumericRange
from autorank.utils.filtering import FilterEngine, matches


class TestNumericRange:
    def test_inverted_range_swapped(self):
        price = NumericRange(min=30000, max=10000)
        assert price.min == 10000
        assert price.max == 30000

    def test_inclusive_bounds(self):
        price = NumericRange(min=10000, max=20000)
        assert price.contains(10000)
        assert price.contains(20000)
        assert not price.contains(20000.01)

    def test_open_ends(self):
        assert NumericRange().is_unbounded
        assert NumericRange(min=5).contains(1_000_000)
        assert not NumericRange(max=5).contains(6)


class TestMatches:
    def test_empty_filters_pass_everything(self):
        assert matches(make_record(), FilterSet())

    def test_price_range(self):
        filters = FilterSet(price_range=NumericRange(max=18000))
        assert matches(make_record(price=17500), filters)
        assert not matches(make_record(price=18500), filters)

    def test_year_and_mileage(self):
        filters = FilterSet(year_range=NumericRange(min=2020), mileage_range=NumericRange(max=60000))
        assert matches(make_record(year=2021, mileage=40000), filters)
        assert not matches(make_record(year=2019, mileage=40000), filters)
        assert not matches(make_record(year=2021, mileage=90000), filters)

    def test_or_within_group(self):
        filters = FilterSet(categories={"fuel_type": {"electric", "hybrid"}})
        assert matches(make_record(fuel_type="hybrid"), filters)
        assert not matches(make_record(fuel_type="diesel"), filters)

    def test_and_across_groups(self):
        filters = FilterSet(categories={"fuel_type": {"electric"}, "transmission": {"manual"}})
        assert not matches(make_record(fuel_type="electric", transmission="automatic"), filters)
        assert matches(make_record(fuel_type="electric", transmission="manual"), filters)

    def test_case_insensitive(self):
        filters = FilterSet(categories={"make": {"bmw"}, "location": {"DUBLIN"}})
        assert matches(make_record(make="BMW", location="Dublin"), filters)

    def test_empty_selection_ignored(self):
        filters = FilterSet(categories={"fuel_type": set()})
        assert matches(make_record(fuel_type="diesel"), filters)

    def test_missing_attribute_fails(self):
        filters = FilterSet(categories={"body_style": {"SUV"}})
        assert not matches(make_record(body_style=None), filters)

    def test_unknown_group_fails(self):
        filters = FilterSet(categories={"colour": {"red"}})
        assert not matches(make_record(), filters)


class TestFilterEngine:
    def test_apply_keeps_order(self):
        records = [
            make_record(id="a", price=9000),
            make_record(id="b", price=25000),
            make_record(id="c", price=12000),
        ]
        filters = FilterSet(price_range=NumericRange(max=15000))
        assert [r.id for r in FilterEngine().apply(records, filters)] == ["a", "c"]
