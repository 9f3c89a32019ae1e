#!/usr/bin/env python3
"""
Test suite for the HTTP and WebSocket surface.

The application runs against the in-memory store with the scheduler off;
TestClient drives the lifespan so app.state is fully built.
"""
import pytest
from fastapi.testclient import TestClient

from core.models.listing import LISTINGS_COLLECTION
from fakes import FakeStore, fixed_clock, make_listing
from services.api import create_app


@pytest.fixture
def app_store():
    return FakeStore()


@pytest.fixture
def client(app_store, authenticator):
    app = create_app(store=app_store, authenticator=authenticator, enable_scheduler=False, clock=fixed_clock)
    with TestClient(app) as test_client:
        yield test_client


def _auth(authenticator, identity):
    return {"Authorization": f"Bearer {authenticator.issue(identity)}"}


CAR_PAYLOAD = {
    "make": "Toyota",
    "model": "RAV4",
    "year": 2020,
    "price": 27500,
    "mileage": 41000,
    "condition": "used",
    "fuel_type": "hybrid",
    "transmission": "automatic",
    "body_type": "suv",
    "exterior_color": "white",
    "location": {"city": "Austin", "state": "TX"},
    "description": "Hybrid AWD, new tires",
    "images": [{"url": "https://img.test/rav4.jpg", "is_primary": True}],
}


# ============================================================================
# HTTP
# ============================================================================

def test_ping(client):
    response = client.get("/api/ping")
    assert response.status_code == 200
    assert response.json()["message"] == "pong"
    assert response.json()["connections"] == 0


def test_error_statuses(client, authenticator, buyer):
    print("\n=== Test: Error Mapping ===")
    assert client.get("/api/cars/vendor").status_code == 401
    assert client.get("/api/vendors/dashboard", headers=_auth(authenticator, buyer)).status_code == 403
    missing = client.get("/api/cars/does-not-exist")
    assert missing.status_code == 404
    assert "does-not-exist" in missing.json()["message"]
    print("✓ 401 / 403 / 404 mapped from service errors")


def test_create_then_read_car(client, authenticator, vendor, app_store):
    headers = _auth(authenticator, vendor)
    created = client.post("/api/cars", json=CAR_PAYLOAD, headers=headers)
    assert created.status_code == 201
    car = created.json()["car"]
    assert car["seller"] == "vendor-1"
    assert car["seller_type"] == "dealer"

    fetched = client.get(f"/api/cars/{car['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["car"]["views"] == 1
    assert app_store.document(LISTINGS_COLLECTION, car["id"])["views"] == 1


def test_create_rejects_invalid_payload(client, authenticator, vendor):
    bad = dict(CAR_PAYLOAD, price=-5)
    response = client.post("/api/cars", json=bad, headers=_auth(authenticator, vendor))
    assert response.status_code == 422


def test_update_by_other_vendor_forbidden(client, authenticator, other_vendor, app_store):
    app_store.seed(LISTINGS_COLLECTION, make_listing(_id="car-1").to_dict_for_db())
    response = client.put("/api/cars/car-1", json={"price": 1000}, headers=_auth(authenticator, other_vendor))
    assert response.status_code == 403


def test_bulk_update_rejects_empty_updates(client, authenticator, vendor):
    response = client.post(
        "/api/vendors/bulk-update",
        json={"listing_ids": ["car-1"], "updates": {"seller": "someone"}},
        headers=_auth(authenticator, vendor),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "No valid updates provided"


@pytest.mark.parametrize("updates", [{"price": None}, {"price": [1]}, {"price": "nan"}, {"featured": {}}])
def test_bulk_update_rejects_malformed_values(client, authenticator, vendor, app_store, updates):
    app_store.seed(LISTINGS_COLLECTION, make_listing(_id="car-1").to_dict_for_db())
    response = client.post(
        "/api/vendors/bulk-update",
        json={"listing_ids": ["car-1"], "updates": updates},
        headers=_auth(authenticator, vendor),
    )
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid value for")
    assert app_store.document(LISTINGS_COLLECTION, "car-1")["price"] == 25000.0


def test_vendor_dashboard_on_empty_store(client, authenticator, vendor):
    response = client.get("/api/vendors/dashboard", headers=_auth(authenticator, vendor))
    assert response.status_code == 200
    assert response.json()["insights"]["conversion_rate"] == "0"


def test_store_outage_is_503(client, app_store):
    app_store.unavailable = True
    assert client.get("/api/cars/car-1").status_code == 503


def test_messages_flow(client, authenticator, buyer, vendor):
    sent = client.post(
        "/api/messages",
        json={"subject": "Still available?", "message": "Is the RAV4 still for sale?"},
        headers=_auth(authenticator, buyer),
    )
    assert sent.status_code == 201
    message_id = sent.json()["data"]["id"]

    inbox = client.get("/api/messages/admin", headers=_auth(authenticator, vendor)).json()
    assert inbox["unread_count"] == 1

    reply = client.post(
        f"/api/messages/{message_id}/reply",
        json={"message": "Yes it is"},
        headers=_auth(authenticator, vendor),
    )
    assert reply.status_code == 200
    assert client.get("/api/messages/admin", headers=_auth(authenticator, buyer)).status_code == 403


# ============================================================================
# WEBSOCKET
# ============================================================================

def test_websocket_join_frames(client, authenticator, buyer):
    token = authenticator.issue(buyer)
    with client.websocket_connect(f"/ws?token={token}") as ws:
        hello = ws.receive_json()
        assert hello["event"] == "connected"
        assert hello["data"]["authenticated"] is True
        assert hello["data"]["topics"] == ["public", "user:buyer-1"]

        ws.send_json({"action": "joinInterests", "makes": ["Toyota"], "body_types": ["SUV"]})
        joined = ws.receive_json()
        assert joined == {"event": "joined", "data": {"topics": ["make:toyota", "bodyType:suv"]}}

        ws.send_json({"action": "joinUserRoom", "user_id": "someone-else"})
        denied = ws.receive_json()
        assert denied["event"] == "error"
        assert denied["data"]["topic"] == "user:someone-else"

        ws.send_json({"action": "dance"})
        assert ws.receive_json()["event"] == "error"


def test_websocket_malformed_frames_keep_socket_open(client):
    """Wrongly typed or missing fields answer with an error frame; the socket stays usable."""
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()

        for frame in (
            {"action": "joinLocation", "city": None, "state": "TX"},
            {"action": "joinLocation", "state": "TX"},
            {"action": "joinInterests", "makes": [42]},
            {"action": "leave", "topic": ["public"]},
            {"topic": "public"},
        ):
            ws.send_json(frame)
            reply = ws.receive_json()
            assert reply["event"] == "error", frame
            assert reply["data"]["message"].startswith("Invalid frame")

        ws.send_json({"action": "joinLocation", "city": "Austin", "state": "TX"})
        assert ws.receive_json() == {"event": "joined", "data": {"topics": ["location:austin:tx"]}}


def test_websocket_anonymous_receives_new_listing(client, authenticator, vendor):
    with client.websocket_connect("/ws") as ws:
        hello = ws.receive_json()
        assert hello["data"]["authenticated"] is False

        created = client.post("/api/cars", json=CAR_PAYLOAD, headers=_auth(authenticator, vendor))
        assert created.status_code == 201

        frame = ws.receive_json()
        assert frame["event"] == "new-listing"
        assert frame["data"]["scope"] == "public"
        assert frame["data"]["car"]["model"] == "RAV4"


# ============================================================================
# READ ENDPOINTS
# ============================================================================

def test_public_read_endpoints(client, app_store):
    app_store.seed(LISTINGS_COLLECTION, make_listing(_id="car-1").to_dict_for_db())

    feed = client.get("/api/cars", params={"make": "toyota", "max_price": 30000})
    assert feed.status_code == 200
    assert [car["id"] for car in feed.json()["cars"]] == ["car-1"]

    suggestions = client.get("/api/cars/suggestions", params={"q": "cam"}).json()
    assert suggestions["models"] == ["Camry"]
    assert suggestions["cars"][0]["text"] == "2021 Toyota Camry"

    assert client.get("/api/cars/search", params={"search": "camry"}).json()["total"] == 0
    assert client.get("/api/cars/popular").status_code == 200
    assert client.get("/api/cars/market-analysis").json()["overview"]["total_listings"] == 0
    assert client.get("/api/cars/stats/overview").json()["total_active"] == 1


def test_vendor_read_endpoints(client, authenticator, vendor, app_store):
    app_store.seed(LISTINGS_COLLECTION, make_listing(_id="car-1", inquiries=2).to_dict_for_db())
    headers = _auth(authenticator, vendor)

    assert client.get("/api/vendors/analytics", headers=headers).status_code == 200
    assert client.get("/api/vendors/leads", headers=headers).json()["pagination"]["total"] == 1
    assert client.get("/api/vendors/inventory", headers=headers).json()["cars"][0]["id"] == "car-1"
    assert client.get("/api/vendors/recommendations", headers=headers).json()["pricing"] == []
    assert client.get("/api/vendors/report", params={"period": 7}, headers=headers).json()["period"] == 7
    assert client.get("/api/vendors/report", params={"period": 0}, headers=headers).status_code == 422
    assert client.get("/api/vendors/realtime", headers=headers).status_code == 200

    alerts = client.get("/api/vendors/alerts", headers=headers).json()["alerts"]
    assert alerts[0]["title"] == "Low Inventory"
    assert client.get("/api/vendors/profile", headers=headers).status_code == 404


# ============================================================================
# ACCOUNTS
# ============================================================================

def test_register_login_me(client):
    account = {
        "name": "Riley Chen",
        "email": "riley@example.test",
        "password": "s3cret-pass",
        "phone": "5125550199",
        "role": "vendor",
    }
    registered = client.post("/api/auth/register", json=account)
    assert registered.status_code == 201
    assert "password_hash" not in registered.json()["user"]

    assert client.post("/api/auth/register", json=account).status_code == 409

    login = client.post("/api/auth/login", json={"email": account["email"], "password": account["password"]})
    assert login.status_code == 200
    token = login.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["user"]["name"] == "Riley Chen"
    assert client.get("/api/vendors/profile", headers={"Authorization": f"Bearer {token}"}).status_code == 200

    bad = client.post("/api/auth/login", json={"email": account["email"], "password": "nope"})
    assert bad.status_code == 401
