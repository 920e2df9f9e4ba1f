import json

import pytest
from fastapi.testclient import TestClient

from auction_search import crud, services
from auction_search.api.routes import get_marketplace_client
from auction_search.db import get_db
from auction_search.extractor import FilterExtractor
from auction_search.main import app
from auction_search.schemas import UserCreate
from conftest import FakeMarketplace, FakeProvider, ebay_item

HEADERS = {"x-user-uid": "uid-1"}

ITEMS = [
    ebay_item("100", "2018 Toyota Camry SE Hail Damage", price=8500),
    ebay_item("101", "2017 Toyota Camry XLE flood", price=6000),
    ebay_item("102", "2019 Honda Accord Hail Damage 45,000 miles", price=7000),
]


@pytest.fixture
def marketplace():
    return FakeMarketplace(ITEMS)


@pytest.fixture
def client(db, marketplace):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[services.get_extractor] = lambda: FilterExtractor()
    app.dependency_overrides[get_marketplace_client] = lambda: marketplace
    crud.create_user(db, UserCreate(firebase_uid="uid-1", email="one@example.com"))
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert "timestamp" in body


def test_auth_required(client):
    assert client.get("/api/users/me").status_code == 401
    resp = client.get("/api/users/me", headers={"x-user-uid": "nobody"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "User not found"


def test_create_user_and_me(client):
    resp = client.post("/api/users", json={"firebase_uid": "uid-2", "email": "two@example.com"})
    assert resp.status_code == 200
    assert resp.json()["trial_end_date"] is not None
    assert client.post("/api/users", json={"firebase_uid": "uid-2", "email": "x@example.com"}).status_code == 409
    me = client.get("/api/users/me", headers={"x-user-uid": "uid-2"}).json()
    assert me["email"] == "two@example.com"


def test_search_records_history(client, marketplace):
    resp = client.post("/api/search", json={"query": "Toyota Camry with hail damage under $10,000"},
                       headers=HEADERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["parsed_filters"]["make"] == "Toyota"
    assert body["parsed_filters"]["max_price"] == 10000
    assert body["count"] == len(body["results"]) == 3
    assert body["results"][0]["external_id"] == "100"
    assert marketplace.calls[0]["query"] == "Toyota camry hail damage"

    history = client.get("/api/search/history", headers=HEADERS).json()
    assert len(history) == 1
    assert history[0]["result_count"] == 3
    assert history[0]["parsed_filters"]["damage_type"] == "hail"


def test_search_uses_llm_filters(client, db):
    provider = FakeProvider(json.dumps({"make": "Honda", "damage_type": "hail"}))
    app.dependency_overrides[services.get_extractor] = lambda: FilterExtractor(provider)
    body = client.post("/api/search", json={"query": "hail damaged hondas"}, headers=HEADERS).json()
    parsed = body["parsed_filters"]
    assert (parsed["make"], parsed["damage_type"], parsed["model"]) == ("Honda", "hail", None)
    assert body["results"][0]["make"] == "Honda"
    assert provider.calls == ["hail damaged hondas"]


def test_search_rejects_blank_query(client):
    assert client.post("/api/search", json={"query": "  "}, headers=HEADERS).status_code == 400


def test_search_survives_marketplace_outage(client, marketplace):
    marketplace.error = RuntimeError("eBay down")
    body = client.post("/api/search", json={"query": "anything"}, headers=HEADERS).json()
    assert body["count"] == 0


def test_saved_search_flow(client):
    resp = client.post("/api/saved-searches",
                       json={"name": "cheap camrys", "query": "toyota camry under $9000"},
                       headers=HEADERS)
    assert resp.status_code == 200
    saved = resp.json()
    assert saved["parsed_filters"]["max_price"] == 9000
    assert saved["last_run_at"] is None

    run = client.post(f"/api/saved-searches/{saved['id']}/run", headers=HEADERS).json()
    assert run["query"] == "toyota camry under $9000"
    assert run["count"] == 3

    listed = client.get("/api/saved-searches", headers=HEADERS).json()
    assert listed[0]["last_run_at"] is not None

    updated = client.put(f"/api/saved-searches/{saved['id']}",
                         json={"alerts_enabled": True, "parsed_filters": {"make": "Honda"}},
                         headers=HEADERS).json()
    assert updated["alerts_enabled"] is True
    assert updated["parsed_filters"]["make"] == "Honda"
    assert updated["parsed_filters"].get("max_price") is None

    assert client.delete(f"/api/saved-searches/{saved['id']}", headers=HEADERS).json() == {"success": True}
    assert client.delete(f"/api/saved-searches/{saved['id']}", headers=HEADERS).status_code == 404
    assert client.post(f"/api/saved-searches/{saved['id']}/run", headers=HEADERS).status_code == 404


def test_saved_search_belongs_to_owner(client, db):
    crud.create_user(db, UserCreate(firebase_uid="uid-2", email="two@example.com"))
    saved = client.post("/api/saved-searches", json={"name": "n", "query": "ford"}, headers=HEADERS).json()
    other = {"x-user-uid": "uid-2"}
    assert client.get("/api/saved-searches", headers=other).json() == []
    assert client.put(f"/api/saved-searches/{saved['id']}", json={"name": "x"}, headers=other).status_code == 404


def test_favorites_and_vehicle_lookup(client):
    results = client.post("/api/search", json={"query": "toyota"}, headers=HEADERS).json()["results"]
    vehicle_id = results[0]["id"]

    assert client.get(f"/api/vehicles/{vehicle_id}").json()["id"] == vehicle_id
    assert client.get("/api/vehicles/9999").status_code == 404

    assert client.post("/api/favorites", json={"vehicle_id": 9999}, headers=HEADERS).status_code == 404
    fav = client.post("/api/favorites", json={"vehicle_id": vehicle_id}, headers=HEADERS)
    assert fav.status_code == 200
    favorites = client.get("/api/favorites", headers=HEADERS).json()
    assert [v["id"] for v in favorites] == [vehicle_id]

    assert client.delete(f"/api/favorites/{vehicle_id}", headers=HEADERS).json() == {"success": True}
    assert client.delete(f"/api/favorites/{vehicle_id}", headers=HEADERS).status_code == 404


def test_sync_endpoint(client, marketplace):
    assert client.post("/api/sync").json() == {"status": "ok", "inserted": 3}
    assert client.post("/api/sync").json() == {"status": "ok", "inserted": 0}
    assert marketplace.calls[-1]["sort"] == "newlyListed"
