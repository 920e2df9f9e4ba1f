"""Search orchestration used by the API, the scheduler and the sync runner.

Collaborators (completion provider, marketplace client, vocabulary) are built
once from the environment; the vehicle store is bound to the caller's session.
"""
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Optional

from sqlalchemy.orm import Session

from . import crud
from .aggregator import Aggregator
from .extractor import FilterExtractor
from .llm import default_completion_provider
from .marketplace import MarketplaceConnector, default_marketplace_client
from .models import SavedSearch, User
from .schemas import StructuredFilters
from .store import SqlVehicleStore
from .utils import logger
from .vocabulary import load_vocabulary


@lru_cache(maxsize=1)
def get_vocabulary():
    return load_vocabulary()

@lru_cache(maxsize=1)
def get_extractor() -> FilterExtractor:
    return FilterExtractor(default_completion_provider(), get_vocabulary())

@lru_cache(maxsize=1)
def get_marketplace_client():
    return default_marketplace_client()

def build_connector(db: Session, client=None) -> MarketplaceConnector:
    client = client if client is not None else get_marketplace_client()
    return MarketplaceConnector(client, SqlVehicleStore(db), get_vocabulary())

def build_aggregator(db: Session, client=None) -> Aggregator:
    return Aggregator(build_connector(db, client), SqlVehicleStore(db))

def run_search(db: Session, user: User, query: str,
               extractor: Optional[FilterExtractor] = None, client=None) -> Dict:
    extractor = extractor or get_extractor()
    filters = extractor.extract(query)
    vehicles = build_aggregator(db, client).search_vehicles(filters)
    crud.create_search_query(db, user.id, query, filters, len(vehicles))
    logger.info("User %s searched %r: %d results", user.id, query, len(vehicles))
    return {"query": query, "parsed_filters": filters, "results": vehicles, "count": len(vehicles)}

def run_saved_search(db: Session, saved: SavedSearch, client=None) -> Dict:
    filters = StructuredFilters(**(saved.parsed_filters or {}))
    vehicles = build_aggregator(db, client).search_vehicles(filters)
    crud.update_saved_search(db, saved.user_id, saved.id, {"last_run_at": datetime.now(timezone.utc)})
    return {"query": saved.query, "results": vehicles, "count": len(vehicles)}

def sync_recent_listings(db: Session, client=None) -> int:
    return build_connector(db, client).sync_recent_listings()
