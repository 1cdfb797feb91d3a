"""Tests for the search service wiring."""

import pytest
from conftest import make_record

from autorank.config import Settings
from autorank.schemas.search import FilterSet
from autorank.services.inventory import InMemoryInventory
from autorank.services.search_service import SearchService, build_search_service


class _BrokenProvider:
    def fetch_candidates(self, filters):
        raise ConnectionError("inventory store down")


@pytest.fixture
def service(reference, showroom):
    return SearchService(reference, InMemoryInventory(showroom), parse_cache_size=2, max_history=2)


class TestParseMemo:
    def test_same_text_reuses_parse(self, service):
        first = service.parse("bmw suv")
        assert service.parse("bmw suv") is first

    def test_history_is_part_of_key(self, service):
        first = service.parse("suv", history=["audi a4"])
        assert service.parse("suv") is not first

    def test_bounded(self, service):
        for text in ("bmw", "audi", "golf"):
            service.parse(text)
        assert service.cached_queries == 2

    def test_disabled(self, reference, showroom):
        service = SearchService(reference, InMemoryInventory(showroom), parse_cache_size=0)
        service.parse("bmw")
        assert service.cached_queries == 0


class TestSearch:
    def test_ranks_inventory(self, service):
        response = service.search("audi")
        assert response.results[0].record.make == "Audi"
        assert response.total == 6
        assert response.intelligence.brand == "Audi"
        assert response.warnings == []

    def test_limit(self, service):
        response = service.search("", limit=2)
        assert len(response.results) == 2
        assert response.total == 6

    def test_filters(self, service):
        response = service.search("", filters=FilterSet(categories={"body_style": {"hatchback"}}))
        assert {r.record.id for r in response.results} == {"leaf", "golf"}
        assert response.diagnostics.filtered_out == 4

    def test_history_capped(self, service):
        response = service.search("", history=["x", "y", "golf"])
        golf = next(r for r in response.results if r.record.id == "golf")
        assert "history-model" not in golf.matched_dimensions

    def test_provider_failure_degrades(self, reference):
        service = SearchService(reference, _BrokenProvider())
        response = service.search("bmw")
        assert response.results == []
        assert response.explanation.startswith("No cars match")
        assert "Listings are temporarily unavailable" in response.warnings

    def test_scoring_failures_reported(self, reference):
        # model_copy skips validation, so this gets past the schema
        broken = make_record(id="broken").model_copy(update={"make": None})
        service = SearchService(reference, InMemoryInventory([make_record(id="fine"), broken]))
        response = service.search("toyota")
        assert [r.record.id for r in response.results] == ["fine"]
        assert response.diagnostics.scoring_failures == 1
        assert response.warnings == ["1 listings could not be ranked"]


class TestSuggest:
    def test_brand_from_inventory_first(self, service):
        suggestions = service.suggest("BM")
        assert suggestions[0].text == "BMW"
        assert "BMW 3 Series" in [s.text for s in suggestions]

    def test_unlisted_reference_brands_still_offered(self, service):
        suggestions = service.suggest("pors")
        assert suggestions[0].text == "Porsche"

    def test_idle(self, service):
        suggestions = service.suggest("", recent=["bmw x5"], popular=["tesla"])
        assert [s.kind for s in suggestions] == ["recent", "popular"]

    def test_model_name_without_make(self, service):
        suggestions = service.suggest("cam")
        assert suggestions[0].text == "Toyota Camry"
        assert suggestions[0].popularity >= 100

    def test_listing_makes_use_reference_spelling(self, reference):
        inventory = InMemoryInventory([
            make_record(id="a", make="VW", model="Golf"),
            make_record(id="b", make="volkswagen", model="Polo"),
        ])
        index = SearchService(reference, inventory).corpus_index()
        assert index.brands[0] == "Volkswagen"
        assert index.brands.count("Volkswagen") == 1
        assert "VW" not in index.brands
        assert "Volkswagen Golf" in index.models


class TestBuildSearchService:
    def test_from_settings(self):
        service = build_search_service(Settings(weights_version="budget-first-v1", max_suggestions=3))
        assert service.scorer.weights.version == "budget-first-v1"
        assert service.suggestion_generator.max_suggestions == 3
        assert len(service.provider.records) == 20

    def test_missing_inventory(self, tmp_path):
        service = build_search_service(Settings(inventory_path=str(tmp_path / "missing.json")))
        response = service.search("bmw")
        assert response.results == []

    def test_missing_reference_data(self, tmp_path):
        service = build_search_service(Settings(reference_data_path=str(tmp_path / "missing.json")))
        response = service.search("bmw")
        assert not response.diagnostics.reference_data_loaded
        assert response.intelligence.brand is None
        assert any("keyword-only" in w for w in response.warnings)
        assert response.results[0].record.make == "BMW"
