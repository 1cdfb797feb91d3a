"""
JSON-backed reference lists used by the query parser and suggestion generator.

The file holds:
- brands: canonical brand names
- brand_aliases: short or informal names -> canonical brand ("vw" -> "Volkswagen")
- categories: {name, description, keywords, body_style}; body_style=false marks
  segments (Electric, Luxury, ...) that are offered as suggestions but never
  extracted as a body style
- locations: towns a query can name ("cars in cork")
- nl_examples: canned natural-language example searches

Loaded once at startup and never mutated afterwards.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Reference file location
_REFERENCE_PATH = Path(__file__).parent / "reference_data.json"


@dataclass(frozen=True)
class Category:
    name: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    body_style: bool = True


@dataclass(frozen=True)
class ReferenceData:
    """Static reference lists. `loaded` is False when the file could not be read."""

    brands: tuple[str, ...] = ()
    brand_aliases: dict[str, str] = field(default_factory=dict)
    categories: tuple[Category, ...] = ()
    locations: tuple[str, ...] = ()
    nl_examples: tuple[str, ...] = ()
    loaded: bool = True

    @property
    def body_styles(self) -> tuple[Category, ...]:
        return tuple(c for c in self.categories if c.body_style)

    def canonical_brand(self, name: str) -> str | None:
        """Resolve a brand name or alias (any case) to its canonical spelling."""
        key = name.strip().lower()
        for brand in self.brands:
            if brand.lower() == key:
                return brand
        return self.brand_aliases.get(key)


EMPTY_REFERENCE_DATA = ReferenceData(loaded=False)


def _parse_reference(data: dict) -> ReferenceData:
    categories = tuple(
        Category(
            name=c["name"],
            description=c.get("description", ""),
            keywords=tuple(k.lower() for k in c.get("keywords", [])),
            body_style=bool(c.get("body_style", True)),
        )
        for c in data.get("categories", [])
    )
    return ReferenceData(
        brands=tuple(data.get("brands", [])),
        brand_aliases={k.lower(): v for k, v in data.get("brand_aliases", {}).items()},
        categories=categories,
        locations=tuple(data.get("locations", [])),
        nl_examples=tuple(data.get("nl_examples", [])),
    )


def load_reference_data(path: str | Path | None = None) -> ReferenceData:
    """
    Load reference lists from disk.

    Never raises: a missing or malformed file is logged and an empty,
    not-loaded ReferenceData is returned so search keeps working in
    keyword-only mode.
    """
    ref_path = Path(path) if path else _REFERENCE_PATH
    if not ref_path.exists():
        logger.warning(f"Reference data not found at {ref_path}; falling back to keyword-only parsing")
        return EMPTY_REFERENCE_DATA

    try:
        with open(ref_path, encoding="utf-8") as f:
            data = json.load(f)
        reference = _parse_reference(data)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Reference data at {ref_path} is unreadable ({e}); falling back to keyword-only parsing")
        return EMPTY_REFERENCE_DATA

    if not reference.brands and not reference.categories:
        logger.warning(f"Reference data at {ref_path} has no brands or categories")
        return EMPTY_REFERENCE_DATA

    logger.info(
        f"Loaded reference data: {len(reference.brands)} brands, "
        f"{len(reference.categories)} categories, {len(reference.nl_examples)} examples"
    )
    return reference
