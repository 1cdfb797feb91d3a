"""
Search API routes - ranked listing search and type-ahead suggestions.
"""

import logging
import time

from fastapi import APIRouter, Depends, Query

from autorank.config import settings
from autorank.schemas.search import (
    FilterSet,
    NumericRange,
    SearchResponse,
    SortKey,
    SortOrder,
    SuggestResponse,
)
from autorank.services.search_service import SearchService, build_search_service
from autorank.utils.query_analysis import MAX_QUERY_LENGTH

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])

# Built on first use (or at startup) and shared across requests
_search_service: SearchService | None = None


def get_search_service() -> SearchService:
    global _search_service
    if _search_service is None:
        _search_service = build_search_service(settings)
    return _search_service


def reset_search_service():
    """Drop the shared service so the next request rebuilds it from settings."""
    global _search_service
    _search_service = None


def _build_filters(
    sort: str,
    order: str,
    min_price: float | None,
    max_price: float | None,
    min_year: int | None,
    max_year: int | None,
    min_mileage: int | None,
    max_mileage: int | None,
    categories: dict[str, list[str] | None],
) -> FilterSet:
    return FilterSet(
        price_range=NumericRange(min=min_price, max=max_price),
        year_range=NumericRange(min=min_year, max=max_year),
        mileage_range=NumericRange(min=min_mileage, max=max_mileage),
        categories={group: set(values) for group, values in categories.items() if values},
        sort_by=sort,
        sort_order=order,
    )


@router.get("", response_model=SearchResponse)
async def search_cars(
    query: str = Query(
        "", max_length=MAX_QUERY_LENGTH, description="Free text: keywords or a natural-language request"
    ),
    sort: SortKey = Query("relevance", description="relevance, price, year or mileage"),
    order: SortOrder = Query("desc", description="asc or desc (ignored for relevance)"),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    min_year: int | None = Query(None),
    max_year: int | None = Query(None),
    min_mileage: int | None = Query(None, ge=0),
    max_mileage: int | None = Query(None, ge=0),
    fuel_type: list[str] | None = Query(None, description="Repeat to allow several fuel types"),
    transmission: list[str] | None = Query(None),
    body_style: list[str] | None = Query(None),
    make: list[str] | None = Query(None),
    location: list[str] | None = Query(None),
    history: list[str] | None = Query(None, description="Recent searches, newest first"),
    limit: int = Query(settings.default_result_limit, ge=1, le=200),
    service: SearchService = Depends(get_search_service),
):
    """
    Rank listings for a query.

    Free text is parsed for budget, brand and body style; explicit filters
    restrict candidates before scoring. Recent searches nudge matching makes
    and models upward.
    """
    search_start = time.monotonic()
    filters = _build_filters(
        sort,
        order,
        min_price,
        max_price,
        min_year,
        max_year,
        min_mileage,
        max_mileage,
        {
            "fuel_type": fuel_type,
            "transmission": transmission,
            "body_style": body_style,
            "make": make,
            "location": location,
        },
    )

    response = service.search(query, filters=filters, history=history or [], limit=limit)

    elapsed_ms = (time.monotonic() - search_start) * 1000
    logger.info(f"GET /search {query!r} -> {len(response.results)} results in {elapsed_ms:.1f}ms")
    return response


@router.get("/suggest", response_model=SuggestResponse)
async def suggest(
    q: str = Query("", max_length=MAX_QUERY_LENGTH, description="Partial search text"),
    recent: list[str] | None = Query(None, description="Recent searches, newest first"),
    popular: list[str] | None = Query(None, description="Popular searches, most popular first"),
    service: SearchService = Depends(get_search_service),
):
    """Type-ahead suggestions for the search box."""
    suggestions = service.suggest(q, recent=recent or [], popular=popular or [])
    return SuggestResponse(query=q, suggestions=suggestions)
