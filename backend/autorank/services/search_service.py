"""
Search orchestration for the API.

Wires the parser, scorer, ranker and suggestion generator around one loaded
copy of the reference data and a candidate provider. Components are passed in
so tests and alternative screens can swap any of them.

- Parsed queries are memoized (bounded LRU) because type-ahead and search
  often parse the same text repeatedly.
- A provider failure degrades to an empty ranking with a warning; the user
  still gets a well-formed response.
"""

import logging
import threading
from collections import OrderedDict
from typing import Sequence

from autorank.config import Settings
from autorank.data.reference_data import ReferenceData, load_reference_data
from autorank.schemas.search import (
    BrandModelIndex,
    FilterSet,
    ParsedQuery,
    SearchResponse,
    SuggestionItem,
)
from autorank.services.inventory import CandidateProvider, InMemoryInventory, InventoryError
from autorank.utils.query_analysis import QueryParser
from autorank.utils.ranking import ResultRanker
from autorank.utils.scoring import RelevanceScorer, get_weights
from autorank.utils.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(
        self,
        reference: ReferenceData,
        provider: CandidateProvider,
        parser: QueryParser | None = None,
        scorer: RelevanceScorer | None = None,
        ranker: ResultRanker | None = None,
        suggestion_generator: SuggestionGenerator | None = None,
        parse_cache_size: int = 256,
        max_history: int = 10,
        default_limit: int = 50,
        currency_symbol: str = "€",
    ):
        self.reference = reference
        self.provider = provider
        self.parser = parser or QueryParser(reference, currency_symbol=currency_symbol)
        self.scorer = scorer or RelevanceScorer()
        self.ranker = ranker or ResultRanker(self.parser, self.scorer, currency_symbol=currency_symbol)
        self.suggestion_generator = suggestion_generator or SuggestionGenerator(reference)
        self.parse_cache_size = parse_cache_size
        self.max_history = max_history
        self.default_limit = default_limit

        self._parse_cache: OrderedDict[tuple[str, tuple[str, ...]], ParsedQuery] = OrderedDict()
        self._lock = threading.Lock()

    def _trim_history(self, history: Sequence[str] | None) -> list[str]:
        if not isinstance(history, (list, tuple)):
            return []
        entries = [h for h in history if isinstance(h, str) and h.strip()]
        return entries[: self.max_history]

    def parse(self, raw_text: str, history: Sequence[str] = ()) -> ParsedQuery:
        """Parse with memoization keyed on the text and the history used."""
        history = self._trim_history(history)
        if self.parse_cache_size <= 0:
            return self.parser.parse(raw_text, history)

        key = (raw_text if isinstance(raw_text, str) else "", tuple(history))
        with self._lock:
            cached = self._parse_cache.get(key)
            if cached is not None:
                self._parse_cache.move_to_end(key)
                return cached

        parsed = self.parser.parse(raw_text, history)

        with self._lock:
            self._parse_cache[key] = parsed
            self._parse_cache.move_to_end(key)
            while len(self._parse_cache) > self.parse_cache_size:
                self._parse_cache.popitem(last=False)
        return parsed

    @property
    def cached_queries(self) -> int:
        with self._lock:
            return len(self._parse_cache)

    def search(
        self,
        raw_text: str,
        filters: FilterSet | None = None,
        history: Sequence[str] = (),
        limit: int | None = None,
    ) -> SearchResponse:
        filters = filters or FilterSet()
        history = self._trim_history(history)
        warnings: list[str] = []

        if not self.reference.loaded:
            warnings.append("Reference data unavailable; using keyword-only matching")

        try:
            candidates = self.provider.fetch_candidates(filters)
        except Exception as e:
            logger.error(f"Candidate provider failed for {raw_text!r}: {e}")
            warnings.append("Listings are temporarily unavailable")
            candidates = []

        parsed = self.parse(raw_text, history)
        outcome = self.ranker.rank(
            raw_text,
            candidates,
            filters=filters,
            history=history,
            parsed=parsed,
            limit=limit if limit is not None else self.default_limit,
        )

        diagnostics = outcome.diagnostics
        logger.info(
            f"Search {raw_text!r}: {diagnostics.candidates_in} candidates, "
            f"{diagnostics.filtered_out} filtered, {len(outcome.results)} returned "
            f"(weights {diagnostics.weights_version})"
        )
        if diagnostics.scoring_failures:
            warnings.append(f"{diagnostics.scoring_failures} listings could not be ranked")

        return SearchResponse(
            query=raw_text,
            results=outcome.results,
            total=len(candidates) - diagnostics.filtered_out - diagnostics.scoring_failures,
            explanation=outcome.explanation,
            intelligence=outcome.query,
            diagnostics=diagnostics,
            warnings=warnings,
        )

    def corpus_index(self) -> BrandModelIndex:
        """Brand/model index over the current listings, falling back to reference brands."""
        records = getattr(self.provider, "records", None)
        if not records:
            return BrandModelIndex(brands=list(self.reference.brands))
        index = BrandModelIndex.from_records(records)
        # Listings may spell a make as an alias ("VW") or in any case
        brands: list[str] = []
        models: list[str] = []
        for name in index.brands:
            brand = self.reference.canonical_brand(name) or name
            if brand not in brands:
                brands.append(brand)
        for name in index.models:
            make, _, model = name.partition(" ")
            display = f"{self.reference.canonical_brand(make) or make} {model}"
            if display not in models:
                models.append(display)
        index.models = models
        # Brands with no listings are still worth suggesting
        listed = {b.lower() for b in brands}
        brands.extend(b for b in self.reference.brands if b.lower() not in listed)
        index.brands = brands
        return index

    def suggest(
        self,
        partial_text: str,
        recent: Sequence[str] = (),
        popular: Sequence[str] = (),
    ) -> list[SuggestionItem]:
        return self.suggestion_generator.suggest(
            partial_text,
            recent=self._trim_history(recent),
            popular=popular,
            corpus_index=self.corpus_index(),
        )


def build_search_service(config: Settings) -> SearchService:
    """Build a service from settings, loading reference data and inventory once."""
    reference = load_reference_data(config.reference_data_path)

    try:
        provider: CandidateProvider = InMemoryInventory.from_file(config.inventory_path)
    except InventoryError as e:
        logger.warning(f"Inventory unavailable, serving empty results: {e}")
        provider = InMemoryInventory()

    parser = QueryParser(
        reference,
        min_signals=config.nl_min_signals,
        min_tokens=config.nl_min_tokens,
        currency_symbol=config.currency_symbol,
    )
    scorer = RelevanceScorer(weights=get_weights(config.weights_version))

    return SearchService(
        reference,
        provider,
        parser=parser,
        scorer=scorer,
        ranker=ResultRanker(parser, scorer, currency_symbol=config.currency_symbol),
        suggestion_generator=SuggestionGenerator(reference, max_suggestions=config.max_suggestions),
        parse_cache_size=config.parse_cache_size,
        max_history=config.max_history,
        default_limit=config.default_result_limit,
        currency_symbol=config.currency_symbol,
    )
