"""
Query analysis for car searches.

Turns free text ("Show me reliable cars under €25k") into a ParsedQuery:
price bounds, brand, body style, model-year and mileage limits, location,
leftover keywords, an intent category and a confidence score. Also decides
whether the text reads like a natural-language request or a plain keyword
lookup, which callers use to pick between heuristic intent ranking and simple
keyword matching.

Parsing never raises; the worst case is an all-default ParsedQuery.
"""
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Sequence

from autorank.data.reference_data import ReferenceData
from autorank.schemas.search import ParsedQuery
from autorank.utils.normalization import fold, format_money, normalize_price

logger = logging.getLogger(__name__)

# Longer input is cut before analysis
MAX_QUERY_LENGTH = 500

# Currency-prefixed or plain numbers (optionally "25k"), then words
_TOKEN_PATTERN = re.compile(r"[€$£]?\d+(?:[.,]\d+)*k?\b|[a-z0-9][a-z0-9'\-]*")

# A number may only start where no digit or separator precedes it
_NUMBER = r"(?<![\d.,])(\d+(?:[.,]\d+)*)"
_UNIT = r"\s*(k|thousand)?\b"
_CURRENCY = r"[€$£]?\s*"
_CURRENCY_SYMBOL = re.compile(r"[€$£]")
_DISTANCE_UNITS = r"(?:miles|mi|km|kms|kilomet\w*)"

# Numbers followed by these units are mileage, age or seat counts, not prices
_NOT_A_PRICE = r"(?!\s*(?:" + _DISTANCE_UNITS + r"|years?|yrs?|seats?|seater|doors?|owners?)\b)"
_AMOUNT = _NUMBER + _UNIT + _NOT_A_PRICE

# Price ranges. Groups: low number, low unit, high number, high unit.
_RANGE_PATTERNS = [
    re.compile(r"\bbetween\s*" + _CURRENCY + _NUMBER + r"\s*(k|thousand)?\s*(?:and|to|-)\s*" + _CURRENCY + _AMOUNT),
    re.compile(r"[€$£]\s*" + _NUMBER + r"\s*(k|thousand)?\s*-\s*" + _CURRENCY + _AMOUNT),
    re.compile(_NUMBER + r"\s*(k|thousand)?\s*-\s*" + _CURRENCY + _NUMBER + r"\s*(k|thousand)\b" + _NOT_A_PRICE),
]

# Lower price bounds. Group 1 = number, group 2 = unit.
_MIN_PRICE_PATTERNS = [
    re.compile(r"\b(?:over|above|more than|at least|minimum)\s*" + _CURRENCY + _AMOUNT),
]

# Upper price bounds, checked in order. Group 1 = number, group 2 = unit.
# The flag marks phrases where a bare "under 30" means 30k.
_BUDGET_PATTERNS = [
    (re.compile(r"\b(?:under|below|less than|cheaper than)\s*" + _CURRENCY + _AMOUNT), True),
    (re.compile(r"[€$£]\s*" + _AMOUNT), False),
    (re.compile(_NUMBER + r"\s*(k|thousand)?\s*(?:[€$£]|\beur\b|\beuros?\b|\busd\b|\bdollars?\b)"), False),
    (re.compile(r"\b(?:max|maximum|up to|budget(?: of)?)\s*" + _NUMBER + r"\s*(k|thousand)\b" + _NOT_A_PRICE), False),
]

_LOW_MILEAGE_PATTERN = re.compile(r"\blow (?:mileage|miles|kms?)\b")
_MILEAGE_PATTERN = re.compile(
    r"\b(?:under|below|less than|fewer than|max|maximum|up to)\s*" + _NUMBER + _UNIT + r"\s*" + _DISTANCE_UNITS + r"\b"
)

_RECENT_WORDS = {"new", "newer", "recent", "latest", "newest"}
_OLD_WORDS = {"old", "older"}
_BEFORE_WORDS = {"before", "pre", "until"}
_YEAR_TOKEN = re.compile(r"\d{4}")
_NEARBY_PATTERN = re.compile(r"\b(?:near me|nearby|close to me)\b")

_LEAD_IN_PATTERN = re.compile(
    r"\b(show me|find|best|reliable|looking for|recommend|i want|i need|suggest|top)\b"
)
_NUMBER_UNIT_PATTERN = re.compile(r"(?<![\d.,])\d+\s*(k|thousand)\b")
_COMPARATIVE_PATTERN = re.compile(
    r"\b(cheaper|better|faster|bigger|smaller|newer|older|safer|larger|roomier|quieter|"
    r"more|less|than|cheapest|fastest|biggest|safest|newest)\b"
)

_STOPWORDS = {
    "a", "an", "the", "me", "my", "i", "show", "find", "want", "need", "looking",
    "please", "some", "any", "for", "with", "and", "or", "of", "in", "on", "to",
    "that", "is", "are", "be", "it", "car", "cars", "vehicle", "vehicles", "what",
    "which", "can", "you", "get", "from", "at", "by", "like", "recommend", "suggest",
}

_INTENT_WORDS = [
    ("budget", {"cheap", "cheapest", "affordable", "budget", "inexpensive", "bargain", "value"}),
    ("performance", {"fast", "fastest", "sporty", "sports", "powerful", "performance", "quick", "speed", "racing"}),
    ("efficiency", {"electric", "hybrid", "efficient", "economical", "eco", "ev", "mpg", "green", "fuel"}),
    ("lifestyle", {"family", "families", "commute", "commuting", "city", "trip", "luxury", "spacious", "comfortable"}),
]

# Confidence contributions
FIELD_CONFIDENCE = 0.3
SUBSTRING_BRAND_CONFIDENCE = 0.15
YEAR_CONFIDENCE = 0.1
MILEAGE_CONFIDENCE = 0.15
LOCATION_CONFIDENCE = 0.1
NL_ONLY_CONFIDENCE = 0.2

LOW_MILEAGE_MAX = 50000
RECENT_YEARS = 2  # "new" = at most this many years old
OLD_YEARS = 5  # "old" = at least this many years old
NEARBY = "near me"

MAX_SUGGESTIONS = 3


@dataclass
class _Token:
    text: str
    start: int
    end: int


@dataclass
class _Match:
    """A reference name found in the query."""

    value: str  # canonical name
    position: int  # index of the first token
    width: int  # number of tokens covered
    length: int  # characters of query text matched
    kind: str  # "prefix" or "substring"


def _tokenize(text: str) -> list[_Token]:
    return [_Token(m.group(0), m.start(), m.end()) for m in _TOKEN_PATTERN.finditer(text)]


def _consume_span(tokens: list[_Token], start: int, end: int, consumed: set[int]):
    for i, token in enumerate(tokens):
        if token.start >= start and token.end <= end:
            consumed.add(i)


def _mask(text: str, start: int, end: int) -> str:
    """Blank out a matched phrase so later patterns can't reuse it. Offsets are kept."""
    return text[:start] + " " * (end - start) + text[end:]


def _amount(number: str, unit: str | None, bare_means_thousands: bool = False) -> float:
    amount = normalize_price(f"{number}k" if unit else number)
    # "under 30" on a car site means 30k
    if bare_means_thousands and not unit and 0 < amount < 1000:
        amount *= 1000
    return amount


def _match_kind(span: str, name: str) -> str | None:
    """
    Classify how a query span relates to a reference name.

    Prefix: equal, a typed-ahead prefix of the name ("merc" -> "mercedes-benz"),
    or the name with a plural/possessive ending ("suvs"). Substring: the name
    sits inside the span ("mytoyota"); only for names long enough to be unambiguous.
    Multi-word names ("family car") must be typed in full.
    """
    if span == name:
        return "prefix"
    if len(span) >= 3 and span not in _STOPWORDS and " " not in name and name.startswith(span):
        return "prefix"
    if span in (name + "s", name + "'s", name + "es"):
        return "prefix"
    if len(name) >= 5 and name in span:
        return "substring"
    return None


def _best_match(tokens: list[_Token], names: dict[str, str], consumed: set[int]) -> _Match | None:
    """
    Find the best reference match over single tokens and adjacent pairs.

    Longest matched text wins, then earliest position, then prefix over substring.
    """
    candidates: list[_Match] = []
    for i, token in enumerate(tokens):
        for width in (1, 2):
            idxs = list(range(i, i + width))
            if idxs[-1] >= len(tokens) or any(j in consumed for j in idxs):
                continue
            span = " ".join(tokens[j].text for j in idxs)
            for name, canonical in names.items():
                kind = _match_kind(span, name)
                if kind:
                    matched = len(span) if kind == "prefix" else len(name)
                    candidates.append(_Match(canonical, i, width, matched, kind))

    if not candidates:
        return None
    candidates.sort(key=lambda m: (-m.length, m.position, m.kind != "prefix"))
    return candidates[0]


class QueryParser:
    """
    Heuristic parser for free-text car searches.

    `min_signals` and `min_tokens` are the natural-language thresholds: a query
    is natural language when at least `min_signals` of these fire: lead-in
    phrase, number with a unit word, comparative adjective, `min_tokens`+ words.
    `current_year` anchors "new"/"old"; it is pinned in tests.
    """

    def __init__(
        self,
        reference: ReferenceData,
        min_signals: int = 2,
        min_tokens: int = 4,
        currency_symbol: str = "€",
        current_year: int | None = None,
    ):
        self.reference = reference
        self.min_signals = min_signals
        self.min_tokens = min_tokens
        self.currency_symbol = currency_symbol
        self._current_year = current_year

        self._brand_names: dict[str, str] = {b.lower(): b for b in reference.brands}
        for alias, canonical in reference.brand_aliases.items():
            self._brand_names.setdefault(alias, canonical)

        self._body_names: dict[str, str] = {}
        for category in reference.body_styles:
            self._body_names[category.name.lower()] = category.name
            for keyword in category.keywords:
                self._body_names.setdefault(keyword, category.name)

        self._locations: dict[str, str] = {loc.lower(): loc for loc in reference.locations}

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.now(UTC).year

    def is_natural_language(self, raw_text: Any) -> bool:
        text = fold(raw_text)[:MAX_QUERY_LENGTH]
        return self._natural_language_signals(text, _tokenize(text)) >= self.min_signals

    def _natural_language_signals(self, text: str, tokens: list[_Token]) -> int:
        signals = 0
        if _LEAD_IN_PATTERN.search(text):
            signals += 1
        if _NUMBER_UNIT_PATTERN.search(text):
            signals += 1
        if _COMPARATIVE_PATTERN.search(text):
            signals += 1
        if len(tokens) >= self.min_tokens:
            signals += 1
        return signals

    def parse(self, raw_text: Any, history: Sequence[str] = ()) -> ParsedQuery:
        """Parse free text into a ParsedQuery. Never raises."""
        if not isinstance(raw_text, str):
            raw_text = ""
        try:
            return self._parse(raw_text, history)
        except Exception as e:
            logger.warning(f"Query parsing failed for {raw_text[:80]!r}: {e}")
            return ParsedQuery(raw_text=raw_text)

    def _parse(self, raw_text: str, history: Sequence[str]) -> ParsedQuery:
        text = fold(raw_text)[:MAX_QUERY_LENGTH]
        if not text:
            return ParsedQuery(raw_text=raw_text)

        tokens = _tokenize(text)
        is_nl = self._natural_language_signals(text, tokens) >= self.min_signals

        if not self.reference.loaded:
            # Keyword-only mode: no structured extraction, confidence pinned to 0
            return ParsedQuery(
                raw_text=raw_text,
                keywords=self._keywords(tokens, set()),
                is_natural_language=is_nl,
            )

        consumed: set[int] = set()
        confidence = 0.0

        # Mileage first so "under 50k miles" never reads as a price
        mileage_max, text = self._extract_mileage(text, tokens, consumed)
        if mileage_max is not None:
            confidence += MILEAGE_CONFIDENCE

        budget_min, budget_max = self._extract_budget(text, tokens, consumed)
        if budget_min is not None or budget_max is not None:
            confidence += FIELD_CONFIDENCE

        year_min, year_max = self._extract_years(tokens, consumed)
        if year_min is not None or year_max is not None:
            confidence += YEAR_CONFIDENCE

        brand = None
        brand_match = None
        match = _best_match(tokens, self._brand_names, consumed)
        if match:
            brand = match.value
            brand_match = match.kind
            consumed.update(range(match.position, match.position + match.width))
            confidence += FIELD_CONFIDENCE if match.kind == "prefix" else SUBSTRING_BRAND_CONFIDENCE

        body_style = None
        match = _best_match(tokens, self._body_names, consumed)
        if match:
            body_style = match.value
            consumed.update(range(match.position, match.position + match.width))
            confidence += FIELD_CONFIDENCE

        location = self._extract_location(text, tokens, consumed)
        if location:
            confidence += LOCATION_CONFIDENCE

        if confidence == 0.0 and is_nl:
            confidence = NL_ONLY_CONFIDENCE
        confidence = round(min(confidence, 1.0), 2)

        words = {t.text for t in tokens}
        has_budget = budget_min is not None or budget_max is not None
        intent = self._intent_category(words, has_budget)

        return ParsedQuery(
            raw_text=raw_text,
            intent_category=intent,
            budget_min=budget_min,
            budget_max=budget_max,
            brand=brand,
            body_style=body_style,
            year_min=year_min,
            year_max=year_max,
            mileage_max=mileage_max,
            location=location,
            keywords=self._keywords(tokens, consumed),
            confidence=confidence,
            suggestions=self._suggestions(brand, body_style, budget_max, location, history),
            is_natural_language=is_nl,
            brand_match=brand_match,
        )

    @staticmethod
    def _extract_mileage(text: str, tokens: list[_Token], consumed: set[int]) -> tuple[int | None, str]:
        """Returns (mileage_max, text with the mileage phrase masked)."""
        match = _LOW_MILEAGE_PATTERN.search(text)
        if match:
            _consume_span(tokens, match.start(), match.end(), consumed)
            return LOW_MILEAGE_MAX, _mask(text, match.start(), match.end())

        match = _MILEAGE_PATTERN.search(text)
        if match:
            distance = normalize_price(f"{match.group(1)}k" if match.group(2) else match.group(1))
            if distance > 0:
                _consume_span(tokens, match.start(), match.end(), consumed)
                return int(distance), _mask(text, match.start(), match.end())
        return None, text

    def _looks_like_year(self, match: re.Match, number: str, unit: str | None) -> bool:
        if unit or _CURRENCY_SYMBOL.search(match.group(0)):
            return False
        return _YEAR_TOKEN.fullmatch(number) is not None and 1900 <= int(number) <= self.current_year + 1

    def _extract_budget(self, text: str, tokens: list[_Token], consumed: set[int]) -> tuple[float | None, float | None]:
        """
        Returns (budget_min, budget_max). Lower bounds are read before upper ones.

        Bare year-like numbers in ranges and lower bounds ("between 2018 and
        2020", "over 2015") are left for model-year extraction.
        """
        for pattern in _RANGE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            low_number, low_unit, high_number, high_unit = match.groups()
            if self._looks_like_year(match, low_number, low_unit) or self._looks_like_year(match, high_number, high_unit):
                continue
            # "20-30k": the unit on the upper end covers both
            low = _amount(low_number, low_unit or high_unit, bare_means_thousands=True)
            high = _amount(high_number, high_unit, bare_means_thousands=True)
            if low <= 0 or high <= 0:
                continue
            _consume_span(tokens, match.start(), match.end(), consumed)
            return min(low, high), max(low, high)

        budget_min = None
        for pattern in _MIN_PRICE_PATTERNS:
            match = pattern.search(text)
            if match and not self._looks_like_year(match, match.group(1), match.group(2)):
                amount = _amount(match.group(1), match.group(2), bare_means_thousands=True)
                if amount > 0:
                    budget_min = amount
                    _consume_span(tokens, match.start(), match.end(), consumed)
                    text = _mask(text, match.start(), match.end())
                    break

        budget_max = None
        for pattern, bare_means_thousands in _BUDGET_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            amount = _amount(match.group(1), match.group(2), bare_means_thousands)
            if amount <= 0:
                continue
            budget_max = amount
            _consume_span(tokens, match.start(), match.end(), consumed)
            break

        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            budget_min, budget_max = budget_max, budget_min
        return budget_min, budget_max

    def _extract_years(self, tokens: list[_Token], consumed: set[int]) -> tuple[int | None, int | None]:
        """
        Returns (year_min, year_max).

        An explicit model year wins over "new"/"old". One year is a floor, two
        or more span a range, and "before 2015" caps the year instead.
        """
        latest = self.current_year + 1
        years: list[int] = []
        year_max = None
        for i, token in enumerate(tokens):
            if i in consumed or not _YEAR_TOKEN.fullmatch(token.text):
                continue
            year = int(token.text)
            if not 1900 <= year <= latest:
                continue
            consumed.add(i)
            if i > 0 and tokens[i - 1].text in _BEFORE_WORDS and i - 1 not in consumed:
                consumed.add(i - 1)
                year_max = year - 1 if year_max is None else min(year_max, year - 1)
            else:
                years.append(year)
        if len(years) >= 2:
            return min(years), max(years)
        if years or year_max is not None:
            return (years[0] if years else None), year_max

        for i, token in enumerate(tokens):
            if i in consumed:
                continue
            if token.text in _RECENT_WORDS:
                consumed.add(i)
                return self.current_year - RECENT_YEARS, None
            if token.text in _OLD_WORDS:
                consumed.add(i)
                return None, self.current_year - OLD_YEARS
        return None, None

    def _extract_location(self, text: str, tokens: list[_Token], consumed: set[int]) -> str | None:
        for i, token in enumerate(tokens):
            if i in consumed:
                continue
            for width in (2, 1):
                idxs = list(range(i, i + width))
                if idxs[-1] >= len(tokens) or any(j in consumed for j in idxs):
                    continue
                span = " ".join(tokens[j].text for j in idxs)
                if span in self._locations:
                    consumed.update(idxs)
                    return self._locations[span]

        match = _NEARBY_PATTERN.search(text)
        if match:
            _consume_span(tokens, match.start(), match.end(), consumed)
            return NEARBY
        return None

    @staticmethod
    def _keywords(tokens: list[_Token], consumed: set[int]) -> list[str]:
        keywords = []
        for i, token in enumerate(tokens):
            if i in consumed or token.text in _STOPWORDS:
                continue
            word = token.text.strip("'-")
            if word and word not in _STOPWORDS:
                keywords.append(word)
        return keywords

    @staticmethod
    def _intent_category(words: set[str], has_budget: bool) -> str:
        if has_budget:
            return "budget"
        for category, vocabulary in _INTENT_WORDS:
            if words & vocabulary:
                return category
        return "general"

    def _history_brand(self, history: Sequence[str]) -> str | None:
        """Most recent history entry that names a known brand."""
        if not isinstance(history, (list, tuple)):
            return None
        for entry in history:
            tokens = _tokenize(fold(entry)[:MAX_QUERY_LENGTH])
            match = _best_match(tokens, self._brand_names, set())
            if match and match.kind == "prefix":
                return match.value
        return None

    def _suggestions(
        self,
        brand: str | None,
        body_style: str | None,
        budget_max: float | None,
        location: str | None,
        history: Sequence[str],
    ) -> list[str]:
        suggestions: list[str] = []
        if brand and body_style:
            suggestions.append(f"{brand} {body_style}s")
            suggestions.append(f"Best {brand} {body_style}s")
        elif brand:
            suggestions.append(f"{brand} popular models")
            suggestions.append(f"Best {brand} cars")
        elif body_style:
            suggestions.append(f"Best {body_style}s")
            suggestions.append(f"Affordable {body_style}s")

        noun = f"{body_style}s" if body_style else "cars"
        if budget_max is not None:
            suggestions.append(f"Best {noun} under {format_money(budget_max, self.currency_symbol)}")

        if location and location != NEARBY:
            suggestions.append(f"{noun if body_style else 'Cars'} in {location}")

        if not brand and (body_style or budget_max is not None):
            recent_brand = self._history_brand(history)
            if recent_brand:
                suggestions.append(f"{recent_brand} {noun}")

        unique = list(dict.fromkeys(suggestions))
        return unique[:MAX_SUGGESTIONS]
