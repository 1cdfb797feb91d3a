"""
Type-ahead suggestions for the search box.

Scores brand, model, category and example-phrase candidates against partial
input and returns at most eight, most popular first. Popularity is a pure
function of the input so the list never reshuffles between identical calls.
"""
import logging
from typing import Sequence

from autorank.data.reference_data import ReferenceData
from autorank.schemas.search import BrandModelIndex, SuggestionItem
from autorank.utils.normalization import fold

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 8
EMPTY_INPUT_PER_SOURCE = 3

PREFIX_BASE = 100
SUBSTRING_BASE = 80
CATEGORY_BASE = 70
NL_EXAMPLE_BASE = 50
NL_EXAMPLE_STEP = 5
NL_EXAMPLE_MIN_INPUT = 3
MAX_NL_EXAMPLES = 3

# Display order when popularity ties
_KIND_ORDER = {"brand": 0, "model": 1, "category": 2, "recent": 3, "popular": 4, "natural_language": 5}


def _coverage_bonus(partial: str, text: str) -> int:
    """0..10: how much of the candidate the user has already typed."""
    if not text:
        return 0
    return round(10 * min(len(partial), len(text)) / len(text))


def _model_part(name: str, brand_prefixes: list[str]) -> str | None:
    """The model half of a "Make Model" display name."""
    lowered = name.lower()
    for prefix in brand_prefixes:
        if lowered.startswith(prefix):
            return name[len(prefix):]
    return None


class SuggestionGenerator:
    """Builds autocomplete lists from reference data plus a brand/model index."""

    def __init__(self, reference: ReferenceData, max_suggestions: int = MAX_SUGGESTIONS):
        self.reference = reference
        self.max_suggestions = max_suggestions

    def suggest(
        self,
        partial_text: str,
        recent: Sequence[str] = (),
        popular: Sequence[str] = (),
        corpus_index: BrandModelIndex | None = None,
    ) -> list[SuggestionItem]:
        partial = fold(partial_text)
        if not partial:
            return self._idle_suggestions(recent, popular)

        index = corpus_index or BrandModelIndex(brands=list(self.reference.brands))
        suggestions: list[SuggestionItem] = []

        for brand in index.brands:
            item = self._score_name(partial, brand, "brand", "Car brand")
            if item:
                suggestions.append(item)

        brand_prefixes = [b.lower() + " " for b in index.brands]
        for model in index.models:
            item = self._score_name(partial, model, "model", "Car model", _model_part(model, brand_prefixes))
            if item:
                suggestions.append(item)

        for category in self.reference.categories:
            if partial in category.name.lower():
                suggestions.append(
                    SuggestionItem(
                        text=category.name,
                        kind="category",
                        popularity=CATEGORY_BASE + _coverage_bonus(partial, category.name),
                        subtitle=category.description or "Car category",
                    )
                )

        if len(partial) >= NL_EXAMPLE_MIN_INPUT:
            examples = [e for e in self.reference.nl_examples if partial in e.lower()]
            for rank, example in enumerate(examples[:MAX_NL_EXAMPLES]):
                suggestions.append(
                    SuggestionItem(
                        text=example,
                        kind="natural_language",
                        popularity=NL_EXAMPLE_BASE - NL_EXAMPLE_STEP * rank,
                        subtitle="AI-powered search",
                    )
                )

        return self._finalize(suggestions)

    @staticmethod
    def _score_name(
        partial: str, text: str, kind: str, subtitle: str, short_name: str | None = None
    ) -> SuggestionItem | None:
        """Prefix or substring match; `short_name` ("Camry" in "Toyota Camry") also counts as a prefix."""
        lowered = text.lower()
        measured = text
        if lowered.startswith(partial):
            base = PREFIX_BASE
        elif short_name and short_name.lower().startswith(partial):
            base = PREFIX_BASE
            measured = short_name
        elif partial in lowered:
            base = SUBSTRING_BASE
        else:
            return None
        return SuggestionItem(
            text=text,
            kind=kind,
            popularity=base + _coverage_bonus(partial, measured),
            subtitle=subtitle,
        )

    def _idle_suggestions(self, recent: Sequence[str], popular: Sequence[str]) -> list[SuggestionItem]:
        """Empty input: latest recent searches plus the top popular searches."""
        suggestions: list[SuggestionItem] = []
        recent_texts = [r for r in (recent or []) if isinstance(r, str) and r.strip()]
        popular_texts = [p for p in (popular or []) if isinstance(p, str) and p.strip()]

        for i, text in enumerate(recent_texts[:EMPTY_INPUT_PER_SOURCE]):
            suggestions.append(
                SuggestionItem(text=text, kind="recent", popularity=90 - i * 10, subtitle="Recent search")
            )
        for i, text in enumerate(popular_texts[:EMPTY_INPUT_PER_SOURCE]):
            suggestions.append(
                SuggestionItem(text=text, kind="popular", popularity=80 - i * 10, subtitle="Popular search")
            )
        return self._finalize(suggestions)

    def _finalize(self, suggestions: list[SuggestionItem]) -> list[SuggestionItem]:
        """Drop duplicate texts (keeping the best entry), sort, and cap."""
        ordered = sorted(
            suggestions,
            key=lambda s: (-s.popularity, _KIND_ORDER.get(s.kind, 99), s.text.lower()),
        )
        seen: set[str] = set()
        unique: list[SuggestionItem] = []
        for item in ordered:
            key = item.text.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)
        return unique[: self.max_suggestions]
