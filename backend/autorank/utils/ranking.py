"""
Ranking and sorting of vehicle search results.

One pass runs Parsing -> Filtering -> Scoring -> Sorting -> Done and keeps no
state between calls. Ordering:
- "relevance" (default): score desc
- "price" / "year" / "mileage": that field in the requested direction
Ties always fall back to newest listing first, then id ascending.
"""

import logging
from enum import Enum
from typing import Any, Sequence

from autorank.schemas.search import (
    FilterSet,
    ParsedQuery,
    RankedResult,
    RankingDiagnostics,
    RankingOutcome,
)
from autorank.schemas.vehicles import VehicleRecord
from autorank.utils.filtering import FilterEngine
from autorank.utils.normalization import format_money
from autorank.utils.query_analysis import NEARBY, QueryParser
from autorank.utils.scoring import RelevanceScorer

logger = logging.getLogger(__name__)

# Above this parser confidence the explanation names the fields that drove ranking
EXPLAIN_CONFIDENCE = 0.7


class RankingStage(Enum):
    FILTERING = "filtering"
    SCORING = "scoring"


def _created_ts(result: RankedResult) -> float:
    return result.record.created_at.timestamp()


def sort_results(results: list[RankedResult], filters: FilterSet) -> list[RankedResult]:
    """
    Order results for display and assign 1-based ranks.

    Ties break on created_at (newest first) then id (ascending) so the order
    is fully deterministic.
    """
    if filters.sort_by == "relevance":
        ordered = sorted(results, key=lambda r: (-r.score, -_created_ts(r), r.record.id))
    else:
        field = filters.sort_by
        sign = 1 if filters.sort_order == "asc" else -1
        ordered = sorted(
            results,
            key=lambda r: (sign * getattr(r.record, field), -_created_ts(r), r.record.id),
        )

    for position, result in enumerate(ordered, start=1):
        result.rank = position
    return ordered


def _join_phrases(parts: list[str]) -> str:
    if len(parts) <= 1:
        return "".join(parts)
    return ", ".join(parts[:-1]) + " and " + parts[-1]


def _range_phrase(label: str, low, high, fmt) -> str | None:
    if low is not None and high is not None:
        if low == high:
            return f"{label} {fmt(low)}"
        return f"{label} {fmt(low)}–{fmt(high)}"
    if low is not None:
        return f"{label} ≥ {fmt(low)}"
    if high is not None:
        return f"{label} ≤ {fmt(high)}"
    return None


def _field_phrases(query: ParsedQuery, currency_symbol: str) -> list[str]:
    phrases = [
        _range_phrase("budget", query.budget_min, query.budget_max, lambda v: format_money(v, currency_symbol)),
    ]
    if query.brand:
        phrases.append(f"brand {query.brand}")
    if query.body_style:
        phrases.append(f"body style {query.body_style}")
    phrases.append(_range_phrase("year", query.year_min, query.year_max, str))
    if query.mileage_max is not None:
        phrases.append(f"mileage ≤ {query.mileage_max:,}")
    if query.location:
        phrases.append(query.location if query.location == NEARBY else f"location {query.location}")
    return [p for p in phrases if p]


def explain_results(query: ParsedQuery, result_count: int, currency_symbol: str = "€") -> str:
    """Human-readable summary of a ranking pass."""
    raw = query.raw_text.strip()

    if result_count == 0:
        if raw:
            return f'No cars match "{raw}". Try fewer keywords or wider filters.'
        return "No cars match your filters. Try widening them."

    noun = "car" if result_count == 1 else "cars"
    fields = _field_phrases(query, currency_symbol)

    if query.confidence > EXPLAIN_CONFIDENCE and fields:
        return f"Filtered to {result_count} {noun} matching {_join_phrases(fields)}"

    if query.is_natural_language:
        explanation = f'Found {result_count} {noun} for "{raw}" (natural-language search'
        if fields:
            explanation += f", interpreted as {_join_phrases(fields)}"
        return explanation + ")"

    if raw:
        return f'Found {result_count} {noun} matching "{raw}"'
    return f"Found {result_count} {noun}"


class ResultRanker:
    """Orchestrates parser, filter engine and scorer over a candidate list."""

    def __init__(
        self,
        parser: QueryParser,
        scorer: RelevanceScorer,
        filter_engine: FilterEngine | None = None,
        currency_symbol: str = "€",
    ):
        self.parser = parser
        self.scorer = scorer
        self.filter_engine = filter_engine or FilterEngine()
        self.currency_symbol = currency_symbol

    def rank(
        self,
        raw_text: Any,
        candidates: Sequence[VehicleRecord],
        filters: FilterSet | None = None,
        history: Sequence[str] = (),
        parsed: ParsedQuery | None = None,
        limit: int | None = None,
    ) -> RankingOutcome:
        """
        Rank candidates for a query.

        `parsed` lets a caller that memoizes parsing skip the Parsing stage.
        Empty or fully filtered candidate lists give an empty result, never an
        error. A candidate that raises while being evaluated is skipped and
        counted in diagnostics.scoring_failures.
        """
        filters = filters or FilterSet()
        history = [h for h in history if isinstance(h, str)] if isinstance(history, (list, tuple)) else []
        candidates = list(candidates or [])

        query = parsed if parsed is not None else self.parser.parse(raw_text, history)

        diagnostics = RankingDiagnostics(
            candidates_in=len(candidates),
            reference_data_loaded=self.parser.reference.loaded,
            weights_version=self.scorer.weights.version,
        )

        results: list[RankedResult] = []
        for record in candidates:
            stage = RankingStage.FILTERING
            try:
                if not self.filter_engine.matches(record, filters):
                    diagnostics.filtered_out += 1
                    continue
                stage = RankingStage.SCORING
                score, dimensions = self.scorer.score(record, query, filters, history)
            except Exception as e:
                diagnostics.scoring_failures += 1
                record_id = getattr(record, "id", "?")
                logger.warning(f"Skipping candidate {record_id} after error during {stage.value}: {e}")
                continue

            results.append(
                RankedResult(
                    record=record.model_copy(update={"relevance_score": score}),
                    score=score,
                    matched_dimensions=dimensions,
                )
            )

        ordered = sort_results(results, filters)
        total = len(ordered)
        if limit is not None and limit >= 0:
            ordered = ordered[:limit]

        explanation = explain_results(query, total, self.currency_symbol)

        if diagnostics.scoring_failures:
            logger.info(
                f"Ranked {len(ordered)} of {diagnostics.candidates_in} candidates "
                f"({diagnostics.scoring_failures} skipped after errors)"
            )
        if ordered:
            top = ordered[0]
            logger.debug(f"Top result for {query.raw_text!r}: {top.record.display_name} ({top.score:g})")

        return RankingOutcome(
            results=ordered,
            explanation=explanation,
            query=query,
            diagnostics=diagnostics,
        )
