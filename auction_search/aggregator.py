"""Merge marketplace and stored listings, drop duplicates, rank by relevance."""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .schemas import StructuredFilters
from .utils import logger

MAKE_POINTS = 10
MODEL_POINTS = 8
PRICE_POINTS = 5
DAMAGE_POINTS = 3

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def dedup_key(vehicle) -> str:
    return vehicle.vin or f"{vehicle.source}-{vehicle.external_id}"


def deduplicate(vehicles: Iterable) -> list:
    """First occurrence of each key wins."""
    seen = set()
    unique = []
    for vehicle in vehicles:
        key = dedup_key(vehicle)
        if key in seen:
            continue
        seen.add(key)
        unique.append(vehicle)
    return unique


def relevance_score(vehicle, filters: StructuredFilters) -> int:
    score = 0
    if filters.make and (vehicle.make or "").lower() == filters.make.lower():
        score += MAKE_POINTS
    if filters.model and filters.model.lower() in (vehicle.model or "").lower():
        score += MODEL_POINTS
    if filters.max_price and vehicle.current_bid is not None and vehicle.current_bid <= filters.max_price:
        score += PRICE_POINTS
    if filters.damage_type and filters.damage_type.lower() in (vehicle.damage_type or "").lower():
        score += DAMAGE_POINTS
    return score


def _created(vehicle) -> datetime:
    ts: Optional[datetime] = vehicle.created_at
    if ts is None:
        return _EPOCH
    # sqlite hands back naive timestamps
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def rank(vehicles: Iterable, filters: StructuredFilters) -> list:
    """Highest score first; equal scores go newest first. sorted() is stable,
    so full ties keep their input order."""
    return sorted(
        vehicles,
        key=lambda v: (relevance_score(v, filters), _created(v)),
        reverse=True,
    )


class Aggregator:

    def __init__(self, connector, store):
        self.connector = connector
        self.store = store

    def search_vehicles(self, filters: StructuredFilters) -> list:
        results: List = []
        try:
            results.extend(self.connector.search(filters))
            results.extend(self.store.query_by_filters(filters))
        except Exception as e:
            logger.exception("Vehicle search failed after %d results: %s", len(results), e)
        unique = deduplicate(results)
        if len(unique) < len(results):
            logger.debug("Dropped %d duplicate listings", len(results) - len(unique))
        return rank(unique, filters)
