"""
Normalization helpers shared by the schemas, the query parser and the scorer.
"""
import math
import re
from typing import Any

_FUEL_SYNONYMS = {
    "petrol": "petrol",
    "gas": "petrol",
    "gasoline": "petrol",
    "benzin": "petrol",
    "diesel": "diesel",
    "electric": "electric",
    "electricity": "electric",
    "ev": "electric",
    "bev": "electric",
    "hybrid": "hybrid",
    "phev": "hybrid",
    "plug-in hybrid": "hybrid",
}

_TRANSMISSION_SYNONYMS = {
    "automatic": "automatic",
    "auto": "automatic",
    "manual": "manual",
    "stick": "manual",
}

_AMOUNT_PATTERN = re.compile(r"^([0-9]+(?:[.,][0-9]+)*)\s*(k|thousand)?$")


def normalize_fuel_type(value: Any) -> str:
    """
    Map free-form fuel labels onto petrol/diesel/electric/hybrid/unknown.
    "Gasoline" -> "petrol", "EV" -> "electric", None -> "unknown".
    """
    if not value:
        return "unknown"
    return _FUEL_SYNONYMS.get(str(value).strip().lower(), "unknown")


def normalize_transmission(value: Any) -> str:
    """Map free-form transmission labels onto automatic/manual/unknown."""
    if not value:
        return "unknown"
    return _TRANSMISSION_SYNONYMS.get(str(value).strip().lower(), "unknown")


def fuel_keyword(token: str) -> str | None:
    """Return the canonical fuel type a query token names, if any."""
    return _FUEL_SYNONYMS.get(token.lower())


def normalize_price(price_str: Any) -> float:
    """
    Normalize a price string to float.
    Handles "$123.45", "€25,000", "25k", "25 thousand". Returns 0.0 when unparseable.
    """
    if price_str is None:
        return 0.0

    if isinstance(price_str, bool):
        return 0.0

    if isinstance(price_str, (int, float)):
        return float(price_str)

    if isinstance(price_str, str):
        cleaned = price_str.replace("$", "").replace("€", "").replace("£", "").strip().lower()
        match = _AMOUNT_PATTERN.match(cleaned)
        if not match:
            return 0.0
        number, unit = match.groups()
        # "25,000" and "25.000" are thousands separators; "12.5" is a decimal
        if re.fullmatch(r"[0-9]{1,3}([.,][0-9]{3})+", number):
            number = re.sub(r"[.,]", "", number)
        else:
            number = number.replace(",", ".")
        try:
            amount = float(number)
        except ValueError:
            return 0.0
        if unit:
            amount *= 1000
        # A run of hundreds of digits overflows to inf
        return amount if math.isfinite(amount) else 0.0

    return 0.0


def format_money(amount: float, symbol: str = "€") -> str:
    """Format an amount for explanations: 25000 -> "€25,000"."""
    return f"{symbol}{int(round(amount)):,}"


def fold(text: Any) -> str:
    """Lower-case and collapse whitespace; non-strings become ""."""
    if not isinstance(text, str):
        return ""
    return " ".join(text.lower().split())
