"""Tests for type-ahead suggestions."""

import pytest

from autorank.data.reference_data import EMPTY_REFERENCE_DATA
from autorank.schemas.search import BrandModelIndex
from autorank.utils.suggestions import SuggestionGenerator


@pytest.fixture
def generator(reference):
    return SuggestionGenerator(reference)


@pytest.fixture
def index():
    return BrandModelIndex(brands=["BMW", "Toyota", "Ford"], models=["BMW 3 Series", "Ford Focus"])


class TestPrefixVersusSubstring:
    def test_brand_prefix_first(self, generator, index):
        suggestions = generator.suggest("BM", corpus_index=index)
        first = suggestions[0]
        assert first.kind == "brand"
        assert first.text == "BMW"
        assert 100 <= first.popularity <= 110

    def test_substring_matches_stay_below_prefix_base(self, generator):
        index = BrandModelIndex(brands=["Ford", "Oddity Motors"], models=["Ford Fiesta"])
        suggestions = generator.suggest("or", corpus_index=index)
        by_text = {s.text: s.popularity for s in suggestions}
        # "Ford" contains "or" but does not start with it
        assert by_text["Ford"] < 100
        assert all(s.popularity < 100 for s in suggestions)

    def test_longer_typed_prefix_ranks_higher(self, generator, index):
        suggestions = generator.suggest("bmw", corpus_index=index)
        assert [s.text for s in suggestions[:2]] == ["BMW", "BMW 3 Series"]
        assert suggestions[0].popularity > suggestions[1].popularity

    def test_no_match_excluded(self, generator, index):
        suggestions = generator.suggest("zzz", corpus_index=index)
        assert suggestions == []

    def test_default_index_is_reference_brands(self, generator):
        suggestions = generator.suggest("toy")
        assert suggestions[0].text == "Toyota"

    def test_model_typed_without_make(self, generator):
        index = BrandModelIndex(brands=["Toyota", "Ford"], models=["Toyota Camry", "Ford Focus"])
        suggestions = generator.suggest("cam", corpus_index=index)
        assert suggestions[0].text == "Toyota Camry"
        assert suggestions[0].kind == "model"
        # Bonus measured against "Camry", not the full display name
        assert suggestions[0].popularity == 106

    def test_model_prefix_still_below_matching_brand(self, generator):
        index = BrandModelIndex(brands=["Mini"], models=["Mini Cooper", "Renault Minivan"])
        suggestions = generator.suggest("mini", corpus_index=index)
        assert suggestions[0].text == "Mini"

    def test_model_of_unknown_make_only_matches_as_substring(self, generator):
        index = BrandModelIndex(brands=["Toyota"], models=["Lada Niva"])
        suggestions = generator.suggest("niv", corpus_index=index)
        assert suggestions[0].popularity < 100


class TestCategoriesAndExamples:
    def test_category_match(self, generator, index):
        suggestions = generator.suggest("sedan", corpus_index=index)
        category = next(s for s in suggestions if s.kind == "category")
        assert category.text == "Sedan"
        assert 70 <= category.popularity <= 80

    def test_examples_need_three_characters(self, generator, index):
        assert not any(s.kind == "natural_language" for s in generator.suggest("su", corpus_index=index))

    def test_examples_ranked_by_position(self, generator, index):
        suggestions = generator.suggest("cars", corpus_index=index)
        examples = [s for s in suggestions if s.kind == "natural_language"]
        assert examples
        assert examples[0].popularity == 50
        assert all(e.popularity < 50 for e in examples[1:])


class TestIdleSuggestions:
    def test_recent_then_popular(self, generator):
        suggestions = generator.suggest(
            "",
            recent=["bmw x5", "audi a4", "golf", "civic"],
            popular=["tesla model 3", "electric suv"],
        )
        assert [s.popularity for s in suggestions] == [90, 80, 80, 70, 70]
        assert suggestions[0].text == "bmw x5"
        assert suggestions[0].kind == "recent"
        assert "civic" not in [s.text for s in suggestions]

    def test_no_history(self, generator):
        assert generator.suggest("") == []

    def test_duplicate_texts_collapsed(self, generator):
        suggestions = generator.suggest("", recent=["BMW X5"], popular=["bmw x5"])
        assert len(suggestions) == 1
        assert suggestions[0].kind == "recent"


class TestLimitsAndDeterminism:
    def test_capped_at_eight(self, generator):
        index = BrandModelIndex(brands=[f"Brand {i}" for i in range(20)])
        assert len(generator.suggest("brand", corpus_index=index)) == 8

    def test_identical_calls_identical_output(self, generator, index):
        first = generator.suggest("o", corpus_index=index)
        second = generator.suggest("o", corpus_index=index)
        assert first == second

    def test_sorted_by_popularity(self, generator, index):
        suggestions = generator.suggest("o", corpus_index=index)
        popularity = [s.popularity for s in suggestions]
        assert popularity == sorted(popularity, reverse=True)

    def test_works_without_reference_data(self, index):
        generator = SuggestionGenerator(EMPTY_REFERENCE_DATA)
        assert generator.suggest("bm", corpus_index=index)[0].text == "BMW"
