"""
Relevance scoring for vehicle records.

Additive, multi-factor score. Higher is better. Every term that contributes
records a dimension label so the UI can explain why a car ranked where it did.
Weights live in named, versioned RankingWeights profiles; a screen that wants
different behaviour picks a profile instead of forking the algorithm.
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Sequence

from autorank.schemas.search import FilterSet, ParsedQuery
from autorank.schemas.vehicles import VehicleRecord
from autorank.utils.normalization import fuel_keyword
from autorank.utils.query_analysis import NEARBY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingWeights:
    version: str = "default-v1"
    make_match: float = 100.0
    model_match: float = 90.0
    fuel_match: float = 80.0
    history_make: float = 30.0  # per history entry naming the make
    history_model: float = 25.0  # per history entry naming the model
    recency_window: int = 20  # newest cars get up to this many points, minus one per year of age
    trending_bonus: float = 15.0
    trending_fuel: str = "electric"
    budget_match: float = 60.0
    body_style_match: float = 40.0
    year_match: float = 20.0
    mileage_match: float = 25.0
    location_match: float = 20.0


DEFAULT_WEIGHTS = RankingWeights()

WEIGHT_PROFILES: dict[str, RankingWeights] = {
    DEFAULT_WEIGHTS.version: DEFAULT_WEIGHTS,
    # Deal-hunting screens: price fit outweighs a model match
    "budget-first-v1": RankingWeights(version="budget-first-v1", budget_match=120.0, trending_bonus=0.0),
}


def get_weights(version: str | None) -> RankingWeights:
    """Look up a weight profile by version; unknown versions fall back to the default."""
    if not version:
        return DEFAULT_WEIGHTS
    weights = WEIGHT_PROFILES.get(version)
    if weights is None:
        logger.warning(f"Unknown weights version {version!r}; using {DEFAULT_WEIGHTS.version}")
        return DEFAULT_WEIGHTS
    return weights


# Model words too generic to identify a model on their own
_GENERIC_MODEL_WORDS = {"model", "series", "class", "sport", "sports", "line", "edition", "type", "new"}

_NAME_SPLIT = re.compile(r"[\s\-]+")


def _typed_prefix(keyword: str, name: str) -> bool:
    """Keyword equals the name, or a word of it, or is a 3+ character prefix of one."""
    if keyword == name:
        return True
    if len(keyword) < 3 or keyword.isdigit():
        return False
    return any(word.startswith(keyword) for word in _NAME_SPLIT.split(name) if word)


def _make_matches(make: str, query: ParsedQuery) -> bool:
    if query.brand and query.brand.lower() == make:
        return True
    return any(_typed_prefix(keyword, make) for keyword in query.keywords)


def _model_matches(model: str, keywords: list[str]) -> bool:
    """
    The whole model phrase appears in the keywords ("3 series", "5008"), or a
    keyword names one distinctive model word ("camry", "cam", "ioniq").
    Bare numbers and generic words ("model", "series") never match alone.
    """
    if not keywords:
        return False
    words = model.split()
    width = len(words)
    for i in range(len(keywords) - width + 1):
        if keywords[i:i + width] == words:
            return True

    distinctive = [w for w in words if not w.isdigit() and w not in _GENERIC_MODEL_WORDS]
    for keyword in keywords:
        if keyword.isdigit() or keyword in _GENERIC_MODEL_WORDS:
            continue
        if any(_typed_prefix(keyword, word) for word in distinctive):
            return True
    return False


def _within(value: float, low: float | None, high: float | None) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def _fuel_matches(fuel_type: str, keywords: list[str]) -> bool:
    if fuel_type == "unknown":
        return False
    return any(fuel_keyword(k) == fuel_type for k in keywords)


class RelevanceScorer:
    """
    Scores one record against a parsed query and the user's recent searches.

    Pure: no randomness and no state beyond the weights and the reference year.
    `current_year` is pinned in tests; by default it is read per call.
    """

    def __init__(self, weights: RankingWeights = DEFAULT_WEIGHTS, current_year: int | None = None):
        self.weights = weights
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.now(UTC).year

    def score(
        self,
        record: VehicleRecord,
        query: ParsedQuery,
        filters: FilterSet | None = None,
        history: Sequence[str] = (),
    ) -> tuple[float, set[str]]:
        """
        Return (score, matched_dimensions).

        `filters` is part of the contract for profile-specific scorers; the
        built-in dimensions don't read it because every candidate reaching the
        scorer already passed those filters.
        """
        w = self.weights
        score = 0.0
        dimensions: set[str] = set()

        make = record.make.lower()
        model = record.model.lower()

        if _make_matches(make, query):
            score += w.make_match
            dimensions.add("brand-match")

        if _model_matches(model, query.keywords):
            score += w.model_match
            dimensions.add("model-match")

        if _fuel_matches(record.fuel_type, query.keywords):
            score += w.fuel_match
            dimensions.add("fuel-match")

        history_make = 0.0
        history_model = 0.0
        for entry in history or ():
            if not isinstance(entry, str):
                continue
            entry_lower = entry.lower()
            if make and make in entry_lower:
                history_make += w.history_make
            if model and model in entry_lower:
                history_model += w.history_model
        if history_make:
            score += history_make
            dimensions.add("history-make")
        if history_model:
            score += history_model
            dimensions.add("history-model")

        recency = max(0, w.recency_window - (self.current_year - record.year))
        if recency:
            score += recency
            dimensions.add("recency")

        if w.trending_bonus and record.fuel_type == w.trending_fuel:
            score += w.trending_bonus
            dimensions.add("trending")

        if query.has_budget and _within(record.price, query.budget_min, query.budget_max):
            score += w.budget_match
            dimensions.add("budget-match")

        if query.body_style and record.body_style and query.body_style.lower() == record.body_style.lower():
            score += w.body_style_match
            dimensions.add("body-style-match")

        # Only the floor scores, keeping the total non-decreasing in year
        if query.year_min is not None and record.year >= query.year_min:
            score += w.year_match
            dimensions.add("year-match")

        if query.mileage_max is not None and record.mileage <= query.mileage_max:
            score += w.mileage_match
            dimensions.add("mileage-match")

        # "near me" has no reference point to compare against
        if query.location and query.location != NEARBY and record.location:
            if record.location.lower() == query.location.lower():
                score += w.location_match
                dimensions.add("location-match")

        return score, dimensions
