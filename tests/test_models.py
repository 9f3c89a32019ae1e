#!/usr/bin/env python3
"""
Test suite for the entity models.
Validates listing invariants, request schemas and event payloads.
"""
from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.models import (
    BULK_UPDATABLE_FIELDS,
    BulkUpdateFields,
    BulkUpdateRequest,
    Event,
    EventKind,
    ListingCreate,
    PriceHistoryEntry,
    User,
    create_listing,
    listing_view,
)
from fakes import NOW, make_listing


# ============================================================================
# LISTING INVARIANTS
# ============================================================================

def test_sold_listing_requires_sold_at():
    print("\n=== Test: Sold Invariant ===")
    with pytest.raises(ValidationError):
        make_listing(status="sold")
    with pytest.raises(ValidationError):
        make_listing(status="sold", sold_at=NOW - timedelta(days=30))
    sold = make_listing(status="sold", sold_at=NOW)
    assert sold.days_to_sell() == 10
    print("✓ sold_at required and never before listed_at")


def test_price_history_must_be_ordered():
    with pytest.raises(ValidationError):
        make_listing(
            price_history=[
                PriceHistoryEntry(price=100, date=NOW),
                PriceHistoryEntry(price=90, date=NOW - timedelta(days=1)),
            ]
        )


def test_change_price_appends_history():
    listing = make_listing(price=20000)
    assert listing.change_price(20000, NOW) is None
    assert len(listing.price_history) == 1

    assert listing.change_price(18500, NOW) == 20000
    assert listing.price == 18500
    assert [entry.price for entry in listing.price_history] == [20000, 18500]
    assert listing.last_updated == NOW


def test_change_status_round_trip():
    listing = make_listing()
    assert listing.change_status("sold", NOW) == "active"
    assert listing.sold_at == NOW
    assert listing.change_status("pending", NOW) == "sold"
    assert listing.sold_at is None


def test_naive_datetimes_are_treated_as_utc():
    listing = make_listing(listed_at=NOW.replace(tzinfo=None) - timedelta(days=1))
    assert listing.listed_at.tzinfo is not None


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

def _create(**overrides):
    fields = dict(
        make="Ford",
        model="Focus",
        year=2018,
        price=9500,
        mileage=88000,
        condition="used",
        fuel_type="gasoline",
        transmission="manual",
        body_type="hatchback",
        exterior_color="red",
        location={"city": "Tulsa", "state": "OK"},
        description="Manual, recent clutch",
        images=[{"url": "https://img.test/focus.jpg"}],
    )
    fields.update(overrides)
    return ListingCreate(**fields)


def test_create_listing_factory():
    listing = create_listing("vendor-9", _create(), "vendor", NOW)
    assert listing.seller_type == "dealer"
    assert listing.original_price == 9500
    assert listing.price_history[0].date == NOW
    assert create_listing("buyer-1", _create(), "buyer", NOW).seller_type == "private"


def test_create_schema_validation():
    with pytest.raises(ValidationError):
        _create(year=1850)
    with pytest.raises(ValidationError):
        _create(description="short")
    with pytest.raises(ValidationError):
        _create(images=[])
    with pytest.raises(ValidationError):
        _create(body_type="spaceship")


def test_bulk_update_whitelist():
    request = BulkUpdateRequest(
        listing_ids=["a"],
        updates={"featured": 1, "price": "15000", "make": "Nope"},
    )
    assert request.allowed_updates() == {"featured": True, "price": 15000.0}

    with pytest.raises(ValueError):
        BulkUpdateRequest(listing_ids=["a"], updates={"price": 0}).allowed_updates()
    with pytest.raises(ValidationError):
        BulkUpdateRequest(listing_ids=[], updates={"featured": True})


def test_bulk_update_rejects_unusable_values():
    print("\n=== Test: Bulk update value validation ===")
    for updates in (
        {"price": "nan"},
        {"price": float("inf")},
        {"price": None},
        {"price": [15000]},
        {"status": "gone"},
        {"status": None},
        {"urgent": None},
        {"featured": "maybe"},
    ):
        with pytest.raises(ValueError, match="Invalid value for"):
            BulkUpdateRequest(listing_ids=["a"], updates=updates).allowed_updates()
    print("✓ NaN, infinity, null and wrongly typed values are rejected")

    assert set(BulkUpdateFields.model_fields) == set(BULK_UPDATABLE_FIELDS)
    assert BulkUpdateRequest(listing_ids=["a"], updates={"status": "pending"}).allowed_updates() == {
        "status": "pending"
    }


def test_listing_view_renames_id():
    view = listing_view(make_listing(_id="car-7").to_dict_for_db())
    assert view["id"] == "car-7"
    assert "_id" not in view


# ============================================================================
# USERS AND EVENTS
# ============================================================================

def test_user_public_dict_hides_password():
    user = User(_id="u1", name="Sam", email="sam@example.test", password_hash="hashed")
    assert "password_hash" not in user.to_public_dict()
    assert user.to_dict_for_db()["password_hash"] == "hashed"
    assert user.identity().display_name == "Sam"


def test_event_payload_is_flat():
    event = Event(
        kind=EventKind.PRICE_ALERT,
        message="Price drop",
        priority="medium",
        listing_id="car-1",
        timestamp=NOW,
        data={"old_price": 100, "new_price": 90},
    )
    payload = event.to_payload()
    assert payload == {
        "old_price": 100,
        "new_price": 90,
        "type": "price-alert",
        "message": "Price drop",
        "priority": "medium",
        "timestamp": NOW.isoformat(),
        "car_id": "car-1",
    }
    with pytest.raises(ValidationError):
        Event(kind=EventKind.NEW_LISTING, message="x", priority="urgent")
