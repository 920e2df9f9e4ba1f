"""eBay Motors connector.

Summary results from the Browse API carry no structured vehicle attributes,
so make, model, year, mileage and damage are mined out of the listing title.
Items where make, model or year can't be found are dropped.
"""
import os
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import requests
from dotenv import load_dotenv

from .schemas import StructuredFilters, VehicleCreate
from .utils import logger, retry
from .vocabulary import Vocabulary

load_dotenv()

EBAY_BASE_URL = os.getenv("EBAY_BASE_URL", "https://api.ebay.com/buy/browse/v1")
MARKETPLACE_TIMEOUT = float(os.getenv("MARKETPLACE_TIMEOUT", "15"))
SOURCE = "ebay"
CARS_TRUCKS_CATEGORY = "6001"
SEARCH_LIMIT = 50
SYNC_LIMIT = 100

YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")
MILEAGE_RE = re.compile(r"(\d+(?:,\d{3})*)\s*(?:miles?|mi)\b", re.I)
MODEL_TOKEN_RE = re.compile(r"^([\w-]+)(?:\s+([\w-]+))?")


class MarketplaceError(Exception):
    pass


class MarketplaceSearchProvider(Protocol):
    def search_items(self, query: str, limit: int, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        ...


class EbayClient:
    """Thin wrapper over the Browse API item_summary/search endpoint."""

    def __init__(self, api_key: str, base_url: str = EBAY_BASE_URL,
                 timeout: float = MARKETPLACE_TIMEOUT, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @retry((requests.ConnectionError, requests.Timeout), tries=3, delay=1, backoff=2)
    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.session.get(
            f"{self.base_url}{path}",
            params=params,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "X-EBAY-C-MARKETPLACE-ID": "EBAY_US",
            },
            timeout=self.timeout,
        )
        if not resp.ok:
            raise MarketplaceError(f"eBay API error: {resp.status_code} {resp.reason}")
        try:
            return resp.json()
        except ValueError as e:
            raise MarketplaceError(f"eBay API returned invalid JSON: {e}") from e

    def search_items(self, query: str, limit: int, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"q": query, "category_ids": CARS_TRUCKS_CATEGORY, "limit": limit}
        if sort:
            params["sort"] = sort
        payload = self._get("/item_summary/search", params)
        if not isinstance(payload, dict):
            raise MarketplaceError("eBay API payload is not an object")
        items = payload.get("itemSummaries") or []
        if not isinstance(items, list):
            raise MarketplaceError("itemSummaries is not a list")
        return items


def build_search_query(filters: StructuredFilters) -> str:
    parts = []
    if filters.make:
        parts.append(filters.make)
    if filters.model:
        parts.append(filters.model)
    lo, hi = filters.min_year, filters.max_year
    if lo and hi:
        parts.append(str(lo) if lo == hi else f"{lo}-{hi}")
    elif lo:
        parts.append(f"{lo}+")
    elif hi:
        parts.append(f"-{hi}")
    if filters.damage_type:
        if "clean" in filters.damage_type.lower():
            parts.append("clean title")
        else:
            parts.append(f"{filters.damage_type} damage")
    return " ".join(parts) or "cars trucks"


def parse_vehicle_title(title: str, vocabulary: Vocabulary) -> Dict[str, Any]:
    year_m = YEAR_RE.search(title)
    year = int(year_m.group(1)) if year_m else None

    make = model = None
    for candidate in vocabulary.makes:
        m = re.search(rf"\b{re.escape(candidate)}\b", title, re.I)
        if m:
            make = candidate
            rest = title[m.end():].strip()
            # "Honda 2019 Accord"
            year_first = YEAR_RE.match(rest)
            if year_first:
                rest = rest[year_first.end():].strip()
            tokens = MODEL_TOKEN_RE.match(rest)
            if tokens:
                first, second = tokens.group(1), tokens.group(2)
                # "3 Series", "4 Runner"
                model = f"{first} {second}" if first.isdigit() and second else first
            break
    return {"make": make, "model": model, "year": year}


def extract_mileage(title: str) -> Optional[int]:
    m = MILEAGE_RE.search(title)
    return int(m.group(1).replace(",", "")) if m else None


def extract_damage_type(title: str, vocabulary: Vocabulary) -> Optional[str]:
    lower = title.lower()
    for keyword, damage in vocabulary.title_damage:
        if keyword in lower:
            return damage
    return None


def _money(value: Any) -> Optional[float]:
    if not isinstance(value, dict) or value.get("value") in (None, ""):
        return None
    return float(value["value"])


def _timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_listing(item: Dict[str, Any], vocabulary: Vocabulary) -> Optional[VehicleCreate]:
    """Map one item summary to a VehicleCreate, or None if the title lacks
    make, model or year."""
    item_id = item.get("itemId")
    title = (item.get("title") or "").strip()
    if not item_id or not title:
        return None
    parsed = parse_vehicle_title(title, vocabulary)
    if not (parsed["make"] and parsed["model"] and parsed["year"]):
        return None

    location = item.get("itemLocation") or {}
    images = []
    if (item.get("image") or {}).get("imageUrl"):
        images.append(item["image"]["imageUrl"])
    for extra in item.get("additionalImages") or []:
        if extra.get("imageUrl") and extra["imageUrl"] not in images:
            images.append(extra["imageUrl"])

    return VehicleCreate(
        external_id=str(item_id),
        source=SOURCE,
        title=title,
        make=parsed["make"],
        model=parsed["model"],
        year=parsed["year"],
        vin=None,
        mileage=extract_mileage(title),
        current_bid=_money(item.get("price")),
        buy_it_now_price=_money(item.get("buyItNowPrice")),
        damage_type=extract_damage_type(title, vocabulary),
        location=location.get("city") or location.get("country"),
        auction_date=_timestamp(item.get("listingDate")),
        auction_end_date=_timestamp(item.get("endDate")),
        image_urls=images,
        auction_url=item.get("itemWebUrl") or f"https://www.ebay.com/itm/{item_id}",
        is_active=True,
    )


def default_marketplace_client() -> Optional[EbayClient]:
    api_key = os.getenv("EBAY_API_KEY")
    if not api_key:
        logger.info("EBAY_API_KEY not set; searching stored vehicles only")
        return None
    return EbayClient(api_key=api_key)


class MarketplaceConnector:
    """Fetches listings from the marketplace and persists the ones not yet
    seen, so every returned vehicle carries a stored id."""

    def __init__(self, client: Optional[MarketplaceSearchProvider], store,
                 vocabulary: Optional[Vocabulary] = None):
        self.client = client
        self.store = store
        self.vocabulary = vocabulary or Vocabulary()

    def _normalize_all(self, items: List[Dict[str, Any]]) -> List[VehicleCreate]:
        records = []
        for item in items:
            try:
                record = normalize_listing(item, self.vocabulary)
            except Exception as e:
                logger.warning("Skipping marketplace item %s: %s", item.get("itemId"), e)
                continue
            if record is not None:
                records.append(record)
        return records

    def search(self, filters: StructuredFilters) -> list:
        if self.client is None:
            return []
        try:
            query = build_search_query(filters)
            items = self.client.search_items(query, limit=SEARCH_LIMIT)
            vehicles = []
            for record in self._normalize_all(items):
                try:
                    vehicles.append(self.store.get_or_insert(record))
                except Exception as e:
                    logger.warning("Failed to persist %s/%s: %s", record.source, record.external_id, e)
            logger.info("Marketplace query %r returned %d items, kept %d", query, len(items), len(vehicles))
            return vehicles
        except Exception as e:
            logger.exception("Marketplace search failed: %s", e)
            return []

    def sync_recent_listings(self) -> int:
        """Persist newly listed vehicles from the marketplace feed. Returns the
        number of rows inserted."""
        if self.client is None:
            logger.warning("Marketplace sync skipped: no marketplace client configured")
            return 0
        try:
            items = self.client.search_items("cars", limit=SYNC_LIMIT, sort="newlyListed")
        except Exception as e:
            logger.exception("Marketplace sync failed: %s", e)
            return 0
        inserted = 0
        for record in self._normalize_all(items):
            try:
                if self.store.add_if_absent(record):
                    inserted += 1
            except Exception as e:
                logger.warning("Failed to sync %s/%s: %s", record.source, record.external_id, e)
        logger.info("Marketplace sync: %d items fetched, %d new", len(items), inserted)
        return inserted
