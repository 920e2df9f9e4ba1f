import os

os.environ["DATABASE_URL"] = "sqlite://"
for _name in ("OPENAI_API_KEY", "EBAY_API_KEY", "VOCABULARY_PATH", "SYNC_SCHEDULER_ENABLED"):
    os.environ.pop(_name, None)

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from auction_search import models  # noqa: F401 register tables
from auction_search.db import Base, engine, SessionLocal


class FakeProvider:
    """Completion provider returning canned content, or raising it."""

    def __init__(self, content=None):
        self.content = content
        self.calls = []

    def complete_json(self, system_prompt, user_text):
        self.calls.append(user_text)
        if isinstance(self.content, Exception):
            raise self.content
        return self.content


class FakeMarketplace:
    """Marketplace client serving a fixed list of item summaries."""

    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error
        self.calls = []

    def search_items(self, query, limit, sort=None):
        self.calls.append({"query": query, "limit": limit, "sort": sort})
        if self.error:
            raise self.error
        return list(self.items)


def ebay_item(item_id, title, price=None, **extra):
    item = {
        "itemId": item_id,
        "title": title,
        "itemLocation": {"city": "Dallas", "country": "US"},
        "itemWebUrl": f"https://www.ebay.com/itm/{item_id}",
        "image": {"imageUrl": f"https://i.ebayimg.com/{item_id}.jpg"},
    }
    if price is not None:
        item["price"] = {"value": str(price), "currency": "USD"}
    item.update(extra)
    return item


def listing(external_id, make="Toyota", model="Camry", source="ebay", vin=None,
            current_bid=None, damage_type=None, age_minutes=0):
    """Plain object with the attributes the aggregator reads."""
    return SimpleNamespace(
        id=None, external_id=external_id, source=source, vin=vin, make=make,
        model=model, current_bid=current_bid, damage_type=damage_type,
        created_at=datetime(2024, 6, 1, 12, 0) - timedelta(minutes=age_minutes),
    )


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
