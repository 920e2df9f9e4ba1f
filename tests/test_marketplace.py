from unittest.mock import MagicMock

import pytest
import requests

from auction_search import crud
from auction_search.marketplace import (
    EbayClient, MarketplaceConnector, MarketplaceError, build_search_query,
    normalize_listing, parse_vehicle_title,
)
from auction_search.schemas import StructuredFilters
from auction_search.store import SqlVehicleStore
from auction_search.vocabulary import Vocabulary
from conftest import FakeMarketplace, ebay_item

VOCAB = Vocabulary()


@pytest.mark.parametrize("filters, expected", [
    (StructuredFilters(), "cars trucks"),
    (StructuredFilters(make="Toyota", model="Camry"), "Toyota Camry"),
    (StructuredFilters(make="Ford", min_year=2015, max_year=2019), "Ford 2015-2019"),
    (StructuredFilters(min_year=2015), "2015+"),
    (StructuredFilters(max_year=2010), "-2010"),
    (StructuredFilters(min_year=2018, max_year=2018), "2018"),
    (StructuredFilters(make="Honda", damage_type="hail"), "Honda hail damage"),
    (StructuredFilters(damage_type="Clean"), "clean title"),
])
def test_build_search_query(filters, expected):
    assert build_search_query(filters) == expected


def test_normalize_title_example():
    record = normalize_listing(
        ebay_item("v1|123|0", "2019 Honda Accord Hail Damage 45,000 miles", price="7450.00",
                  buyItNowPrice={"value": "9000.00"}, listingDate="2024-05-01T10:00:00.000Z",
                  additionalImages=[{"imageUrl": "https://i.ebayimg.com/extra.jpg"}]),
        VOCAB,
    )
    assert record.make == "Honda"
    assert record.model == "Accord"
    assert record.year == 2019
    assert record.damage_type == "hail"
    assert record.mileage == 45000
    assert record.current_bid == 7450.0
    assert record.buy_it_now_price == 9000.0
    assert record.location == "Dallas"
    assert record.auction_date.year == 2024
    assert record.image_urls == ["https://i.ebayimg.com/v1|123|0.jpg", "https://i.ebayimg.com/extra.jpg"]
    assert record.source == "ebay"


def test_numeric_model_takes_next_word():
    parsed = parse_vehicle_title("2016 BMW 3 Series 328i salvage title", VOCAB)
    assert parsed == {"make": "BMW", "model": "3 Series", "year": 2016}


def test_make_matches_whole_words_only():
    parsed = parse_vehicle_title("2012 Dodge Grand Caravan program vehicle", VOCAB)
    assert parsed["make"] is None


@pytest.mark.parametrize("title", [
    "Mystery Project Car",
    "Toyota Corolla no year given",
    "1999 parts lot",
])
def test_items_missing_core_fields_are_dropped(title):
    assert normalize_listing(ebay_item("x", title), VOCAB) is None


def test_damage_and_mileage_extraction():
    record = normalize_listing(ebay_item("y", "2015 Ford F-150 clean title 120000 mi"), VOCAB)
    assert record.model == "F-150"
    assert record.damage_type == "clean"
    assert record.mileage == 120000
    record = normalize_listing(ebay_item("z", "2014 Kia Soul"), VOCAB)
    assert record.damage_type is None and record.mileage is None
    assert record.auction_url == "https://www.ebay.com/itm/z"


def test_search_persists_new_and_reuses_existing(db):
    store = SqlVehicleStore(db)
    client = FakeMarketplace([
        ebay_item("1", "2019 Honda Accord Hail Damage 45,000 miles", price=7000),
        ebay_item("2", "Mystery Project Car", price=500),
        ebay_item("3", "2017 Toyota Camry SE", price=9000),
    ])
    connector = MarketplaceConnector(client, store, VOCAB)

    first = connector.search(StructuredFilters(make="Honda"))
    assert [v.external_id for v in first] == ["1", "3"]
    assert all(v.id is not None for v in first)
    assert client.calls[0] == {"query": "Honda", "limit": 50, "sort": None}

    second = connector.search(StructuredFilters(make="Honda"))
    assert [v.id for v in second] == [v.id for v in first]
    assert len(crud.list_vehicles_by_filters(db)) == 2


def test_search_swallows_marketplace_errors(db):
    connector = MarketplaceConnector(FakeMarketplace(error=MarketplaceError("401")), SqlVehicleStore(db))
    assert connector.search(StructuredFilters()) == []
    assert MarketplaceConnector(None, SqlVehicleStore(db)).search(StructuredFilters()) == []


def test_bad_item_is_skipped_not_fatal(db):
    client = FakeMarketplace([
        ebay_item("bad", "2019 Honda Civic", price="not-a-number"),
        ebay_item("good", "2019 Honda Civic", price=4000),
    ])
    vehicles = MarketplaceConnector(client, SqlVehicleStore(db)).search(StructuredFilters())
    assert [v.external_id for v in vehicles] == ["good"]


def test_sync_recent_listings_is_idempotent(db):
    client = FakeMarketplace([
        ebay_item("10", "2020 Toyota Corolla 30,000 miles", price=12000),
        ebay_item("11", "2018 Nissan Altima flood", price=3000),
        ebay_item("12", "Mystery Project Car"),
    ])
    connector = MarketplaceConnector(client, SqlVehicleStore(db))
    assert connector.sync_recent_listings() == 2
    assert connector.sync_recent_listings() == 0
    assert len(crud.list_vehicles_by_filters(db)) == 2
    assert client.calls[0] == {"query": "cars", "limit": 100, "sort": "newlyListed"}


def test_ebay_client_request():
    response = MagicMock(ok=True)
    response.json.return_value = {"itemSummaries": [{"itemId": "1"}]}
    session = MagicMock()
    session.get.return_value = response
    client = EbayClient(api_key="token", base_url="https://api.test/browse/v1/", session=session)

    assert client.search_items("Toyota", limit=50) == [{"itemId": "1"}]
    args, kwargs = session.get.call_args
    assert args[0] == "https://api.test/browse/v1/item_summary/search"
    assert kwargs["params"] == {"q": "Toyota", "category_ids": "6001", "limit": 50}
    assert kwargs["headers"]["Authorization"] == "Bearer token"


def test_ebay_client_http_error():
    session = MagicMock()
    session.get.return_value = MagicMock(ok=False, status_code=401, reason="Unauthorized")
    client = EbayClient(api_key="bad", session=session)
    with pytest.raises(MarketplaceError):
        client.search_items("cars", limit=10)
    assert session.get.call_count == 1


def test_ebay_client_retries_connection_errors(monkeypatch):
    monkeypatch.setattr("auction_search.utils.time.sleep", lambda s: None)
    ok = MagicMock(ok=True)
    ok.json.return_value = {}
    session = MagicMock()
    session.get.side_effect = [requests.ConnectionError("reset"), ok]
    client = EbayClient(api_key="token", session=session)
    assert client.search_items("cars", limit=10) == []
    assert session.get.call_count == 2


def test_year_after_make_is_not_the_model():
    parsed = parse_vehicle_title("Honda 2019 Accord EX-L", VOCAB)
    assert parsed == {"make": "Honda", "model": "Accord", "year": 2019}


def test_sync_counts_only_rows_it_created(db, monkeypatch):
    store = SqlVehicleStore(db)
    already = normalize_listing(ebay_item("10", "2020 Toyota Corolla"), VOCAB)
    crud.create_vehicle(db, already)
    # another writer stored "10" between the existence check and the insert
    monkeypatch.setattr(store, "find_by_external_id", lambda source, external_id: None)
    client = FakeMarketplace([
        ebay_item("10", "2020 Toyota Corolla"),
        ebay_item("11", "2018 Nissan Altima flood"),
    ])
    assert MarketplaceConnector(client, store).sync_recent_listings() == 1
    assert len(crud.list_vehicles_by_filters(db)) == 2
