"""
Pydantic schemas for search requests, parsed intent and ranked responses.
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from autorank.schemas.vehicles import VehicleRecord

IntentCategory = Literal["budget", "lifestyle", "performance", "efficiency", "general"]
SortKey = Literal["relevance", "price", "year", "mileage"]
SortOrder = Literal["asc", "desc"]
SuggestionKind = Literal["brand", "model", "category", "recent", "popular", "natural_language"]


class NumericRange(BaseModel):
    """Inclusive range. A missing end is unbounded."""

    min: float | None = None
    max: float | None = None

    @model_validator(mode="after")
    def _swap_inverted(self):
        # Inverted ranges come from sloppy UI state; swap instead of rejecting.
        if self.min is not None and self.max is not None and self.min > self.max:
            self.min, self.max = self.max, self.min
        return self

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    @property
    def is_unbounded(self) -> bool:
        return self.min is None and self.max is None


class FilterSet(BaseModel):
    """Explicit structured filters chosen by the user."""

    price_range: NumericRange = Field(default_factory=NumericRange)
    year_range: NumericRange = Field(default_factory=NumericRange)
    mileage_range: NumericRange = Field(default_factory=NumericRange)
    categories: dict[str, set[str]] = Field(default_factory=dict)  # group name -> selected values
    sort_by: SortKey = "relevance"
    sort_order: SortOrder = "desc"


class ParsedQuery(BaseModel):
    """Structured intent extracted from free text."""

    raw_text: str = ""
    intent_category: IntentCategory = "general"
    budget_min: float | None = None
    budget_max: float | None = None
    brand: str | None = None
    body_style: str | None = None
    year_min: int | None = None
    year_max: int | None = None
    mileage_max: int | None = None
    location: str | None = None  # a reference location, or "near me"
    keywords: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    suggestions: list[str] = Field(default_factory=list)
    is_natural_language: bool = False
    brand_match: Literal["prefix", "substring"] | None = None

    @property
    def has_budget(self) -> bool:
        return self.budget_min is not None or self.budget_max is not None


class RankedResult(BaseModel):
    """A scored, positioned candidate in a ranked result list."""

    record: VehicleRecord
    score: float
    matched_dimensions: set[str] = Field(default_factory=set)
    rank: int = 0  # 1-based once sorting is done


class RankingDiagnostics(BaseModel):
    """Counters surfaced to the caller for logging."""

    candidates_in: int = 0
    filtered_out: int = 0
    scoring_failures: int = 0
    reference_data_loaded: bool = True
    weights_version: str = ""


class RankingOutcome(BaseModel):
    """Everything one ranking pass produces."""

    results: list[RankedResult] = Field(default_factory=list)
    explanation: str = ""
    query: ParsedQuery = Field(default_factory=ParsedQuery)
    diagnostics: RankingDiagnostics = Field(default_factory=RankingDiagnostics)


class SuggestionItem(BaseModel):
    """Autocomplete entry."""

    text: str
    kind: SuggestionKind
    popularity: int = 0
    subtitle: str | None = None


class BrandModelIndex(BaseModel):
    """Brand and model names offered as type-ahead suggestions, in popularity order."""

    brands: list[str] = Field(default_factory=list)
    models: list[str] = Field(default_factory=list)  # "Make Model" display strings

    @classmethod
    def from_records(cls, records: list[VehicleRecord]) -> "BrandModelIndex":
        """Build an index from listings, most-listed brands and models first."""
        brand_counts: dict[str, int] = {}
        model_counts: dict[str, int] = {}
        for record in records:
            brand_counts[record.make] = brand_counts.get(record.make, 0) + 1
            name = f"{record.make} {record.model}"
            model_counts[name] = model_counts.get(name, 0) + 1
        brands = sorted(brand_counts, key=lambda b: (-brand_counts[b], b))
        models = sorted(model_counts, key=lambda m: (-model_counts[m], m))
        return cls(brands=brands, models=models)


class SearchResponse(BaseModel):
    """Response from /search endpoint."""

    query: str
    results: list[RankedResult] = Field(default_factory=list)
    total: int = 0
    explanation: str = ""
    intelligence: ParsedQuery | None = None
    diagnostics: RankingDiagnostics = Field(default_factory=RankingDiagnostics)
    warnings: list[str] = Field(default_factory=list)


class SuggestResponse(BaseModel):
    """Response from /search/suggest endpoint."""

    query: str
    suggestions: list[SuggestionItem] = Field(default_factory=list)
