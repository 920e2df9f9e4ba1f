"""Natural-language query -> StructuredFilters.

The language model does the extraction when available. Any failure (no
provider, exception, empty or non-JSON reply) drops to a keyword/regex scan
that is worse but always works.
"""
import json
import re
from typing import Any, Dict, Optional

from .llm import CompletionProvider
from .schemas import StructuredFilters
from .utils import logger
from .vocabulary import Vocabulary

EXTRACTION_PROMPT = """You are an expert at parsing natural language search queries for car auctions.
Extract structured search criteria from the user's query and respond with JSON only.

Extract the following fields when present:
- make: car manufacturer (e.g. "Toyota", "BMW", "Honda")
- model: car model (e.g. "Camry", "Accord", "3 Series")
- min_year: minimum model year (integer)
- max_year: maximum model year (integer)
- min_price: minimum price in dollars (number, no currency symbols)
- max_price: maximum price in dollars (number, no currency symbols)
- damage_type: type of damage mentioned (e.g. "hail", "flood", "front end", "clean title")
- location: geographic location (state, city or region)
- keywords: array of other relevant search terms

Rules:
- Only include fields that are explicitly mentioned or clearly implied
- "under $10,000" means max_price 10000
- "hail damage" means damage_type "hail"
- "2018-2020" means min_year 2018 and max_year 2020
- If nothing matches, return an empty object {}"""

_STRING_FIELDS = ("make", "model", "damage_type", "location")
_YEAR_FIELDS = ("min_year", "max_year")
_PRICE_FIELDS = ("min_price", "max_price")

_AMOUNT = (
    r"\$?\s*(\d+(?:,\d{3})*(?:\.\d+)?)(?!\d|,\d|\.\d)\s*(k\b)?"
    # "under 100k miles" is a mileage limit, not a price
    r"(?!\s*(?:k\s*)?(?:miles?|mi)\b)"
)
MAX_PRICE_RE = re.compile(r"\b(?:under|below|less than|max(?:imum)?|up to)\s+" + _AMOUNT)
MIN_PRICE_RE = re.compile(r"\b(?:over|above|more than|at least|min(?:imum)?)\s+" + _AMOUNT)
YEAR_RANGE_RE = re.compile(r"\b(19\d{2}|20\d{2})\s*(?:-|to|through)\s*(19\d{2}|20\d{2})\b")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _amount(match: "re.Match") -> Optional[float]:
    value = float(match.group(1).replace(",", ""))
    if match.group(2):
        value *= 1000
    return value if value > 0 else None


def clean_filters(raw: Dict[str, Any]) -> StructuredFilters:
    """Keep only fields that pass type and sanity checks; drop the rest."""
    cleaned: Dict[str, Any] = {}
    for name in _STRING_FIELDS:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            cleaned[name] = value.strip()
    for name in _YEAR_FIELDS:
        value = raw.get(name)
        if _is_number(value) and float(value).is_integer() and value > 1900:
            cleaned[name] = int(value)
    for name in _PRICE_FIELDS:
        value = raw.get(name)
        if _is_number(value) and value > 0:
            cleaned[name] = value
    keywords = raw.get("keywords")
    if isinstance(keywords, list) and all(isinstance(k, str) for k in keywords):
        cleaned["keywords"] = keywords
    return StructuredFilters(**cleaned)


class FilterExtractor:

    def __init__(self, provider: Optional[CompletionProvider] = None,
                 vocabulary: Optional[Vocabulary] = None):
        self.provider = provider
        self.vocabulary = vocabulary or Vocabulary()

    def extract(self, query: str) -> StructuredFilters:
        if not query or not query.strip():
            return StructuredFilters()
        if self.provider is None:
            return self.fallback_parse(query)
        try:
            content = self.provider.complete_json(EXTRACTION_PROMPT, query)
            if not content:
                raise ValueError("empty completion")
            parsed = json.loads(content)
            if not isinstance(parsed, dict):
                raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
            return clean_filters(parsed)
        except Exception as e:
            logger.warning("LLM filter extraction failed, using keyword fallback: %s", e)
            return self.fallback_parse(query)

    def fallback_parse(self, query: str) -> StructuredFilters:
        text = query.lower()
        found: Dict[str, Any] = {}

        for make in self.vocabulary.makes:
            if re.search(rf"\b{re.escape(make.lower())}s?\b", text):
                found["make"] = make
                break

        for model in self.vocabulary.models:
            if model.lower() in text:
                found["model"] = model
                break

        for name, pattern in (("max_price", MAX_PRICE_RE), ("min_price", MIN_PRICE_RE)):
            m = pattern.search(text)
            amount = _amount(m) if m else None
            if amount:
                found[name] = amount

        m = YEAR_RANGE_RE.search(text)
        if m:
            low, high = sorted((int(m.group(1)), int(m.group(2))))
            found["min_year"], found["max_year"] = low, high

        for damage in self.vocabulary.query_damage:
            if damage in text:
                found["damage_type"] = damage
                break

        for state in self.vocabulary.states:
            if re.search(rf"\b{re.escape(state)}\b", text):
                found["location"] = state
                break

        return StructuredFilters(**found)
