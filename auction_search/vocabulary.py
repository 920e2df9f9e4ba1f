"""Keyword lists used by the fallback query parser and the listing-title parser.

The defaults live here; a JSON file named by VOCABULARY_PATH may replace any
of the lists, e.g. ``{"makes": ["Toyota", "Tesla"], "states": ["texas"]}``.
Order matters: scans take the first entry that matches.
"""
import json
import os
from dataclasses import dataclass, field, fields, replace
from typing import Optional, Tuple

from dotenv import load_dotenv

from .utils import logger

load_dotenv()

DEFAULT_MAKES = (
    "Toyota", "Honda", "BMW", "Mercedes", "Ford", "Chevrolet", "Nissan",
    "Audi", "Lexus", "Hyundai", "Kia", "Mazda", "Subaru", "Volkswagen",
    "Jeep", "Ram", "GMC", "Cadillac", "Buick", "Lincoln", "Acura", "Infiniti",
)

DEFAULT_MODELS = (
    "camry", "accord", "civic", "corolla", "altima", "f-150", "mustang",
    "3 series", "silverado", "wrangler", "tacoma", "rav4", "cr-v", "sentra",
    "elantra", "outback",
)

# longer names first where one contains another ("west virginia")
DEFAULT_STATES = (
    "alabama", "alaska", "arizona", "arkansas", "california", "colorado",
    "connecticut", "delaware", "florida", "georgia", "hawaii", "idaho",
    "illinois", "indiana", "iowa", "kansas", "kentucky", "louisiana", "maine",
    "maryland", "massachusetts", "michigan", "minnesota", "mississippi",
    "missouri", "montana", "nebraska", "nevada", "new hampshire", "new jersey",
    "new mexico", "new york", "north carolina", "north dakota", "ohio",
    "oklahoma", "oregon", "pennsylvania", "rhode island", "south carolina",
    "south dakota", "tennessee", "texas", "utah", "vermont", "west virginia",
    "virginia", "washington", "wisconsin", "wyoming",
)

# damage words recognised in a user's query
DEFAULT_QUERY_DAMAGE = (
    "hail", "flood", "clean", "minor", "salvage", "collision", "fire",
    "theft", "rebuilt", "lemon",
)

# (keyword in listing title, normalised damage type)
DEFAULT_TITLE_DAMAGE = (
    ("salvage", "salvage"),
    ("flood", "flood"),
    ("hail", "hail"),
    ("collision", "collision"),
    ("fire", "fire"),
    ("theft", "theft"),
    ("clean title", "clean"),
    ("rebuilt", "rebuilt"),
    ("lemon", "lemon"),
)


@dataclass(frozen=True)
class Vocabulary:
    makes: Tuple[str, ...] = DEFAULT_MAKES
    models: Tuple[str, ...] = DEFAULT_MODELS
    states: Tuple[str, ...] = DEFAULT_STATES
    query_damage: Tuple[str, ...] = DEFAULT_QUERY_DAMAGE
    title_damage: Tuple[Tuple[str, str], ...] = field(default=DEFAULT_TITLE_DAMAGE)

    @classmethod
    def from_mapping(cls, data: dict) -> "Vocabulary":
        vocab = cls()
        updates = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if not isinstance(value, list):
                raise ValueError(f"vocabulary '{f.name}' must be a list")
            if f.name == "title_damage":
                updates[f.name] = tuple((str(k), str(v)) for k, v in value)
            else:
                updates[f.name] = tuple(str(v) for v in value)
        return replace(vocab, **updates)


def load_vocabulary(path: Optional[str] = None) -> Vocabulary:
    path = path or os.getenv("VOCABULARY_PATH")
    if not path:
        return Vocabulary()
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    logger.info("Loaded vocabulary overrides from %s: %s", path, sorted(data))
    return Vocabulary.from_mapping(data)
