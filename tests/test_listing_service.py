#!/usr/bin/env python3
"""
Test suite for the listing service: store commit first, then fan-out.
"""
from datetime import timedelta

import pytest

from core.errors import NotFoundError, PermissionDeniedError
from core.listings import ListingService
from core.models.listing import LISTINGS_COLLECTION, BulkUpdateRequest, ListingCreate, ListingUpdate
from core.realtime import location_topic, make_topic
from fakes import NOW, RecordingConnection, fixed_clock, make_listing


@pytest.fixture
def service(store, fanout):
    return ListingService(store, fanout, clock=fixed_clock)


@pytest.fixture
def seller_conn(router, authenticator, vendor):
    conn = RecordingConnection("seller")
    router.connect(conn, authenticator.issue(vendor))
    return conn


def _seed(store, *listings):
    store.seed(LISTINGS_COLLECTION, *(listing.to_dict_for_db() for listing in listings))


def _create_payload(**overrides):
    fields = dict(
        make="Honda",
        model="Civic",
        year=2022,
        price=21000,
        mileage=12000,
        condition="used",
        fuel_type="gasoline",
        transmission="cvt",
        body_type="sedan",
        exterior_color="blue",
        location={"city": "Dallas", "state": "TX"},
        description="Well kept commuter car",
        images=[{"url": "https://img.test/civic.jpg", "is_primary": True}],
    )
    fields.update(overrides)
    return ListingCreate(**fields)


# ============================================================================
# LIFECYCLE
# ============================================================================

@pytest.mark.asyncio
async def test_create_commits_then_notifies(service, store, router, vendor):
    print("\n=== Test: Create Listing ===")
    watcher = RecordingConnection("watcher")
    router.connect(watcher)
    router.join(watcher, make_topic("honda"))

    listing = await service.create(vendor, _create_payload())

    stored = store.document(LISTINGS_COLLECTION, listing.id)
    assert stored["seller"] == "vendor-1"
    assert stored["seller_type"] == "dealer"
    assert stored["original_price"] == 21000
    assert [entry["price"] for entry in stored["price_history"]] == [21000]
    assert stored["listed_at"] == NOW
    assert [event for event, _ in watcher.sent] == ["new-listing", "new-listing"]
    print("✓ Listing stored and announced on public + make topics")


@pytest.mark.asyncio
async def test_update_price_appends_history_and_alerts(service, store, router, vendor):
    _seed(store, make_listing(_id="car-1", price=20000, views=7))
    watcher = RecordingConnection("watcher")
    router.connect(watcher)
    router.join(watcher, location_topic("Austin", "TX"))

    updated = await service.update(vendor, "car-1", ListingUpdate(price=18000, featured=True))

    assert updated.price == 18000
    stored = store.document(LISTINGS_COLLECTION, "car-1")
    assert [entry["price"] for entry in stored["price_history"]] == [20000, 18000]
    assert stored["featured"] is True
    assert stored["views"] == 7
    alert = watcher.events("price-alert")[0]
    assert alert["old_price"] == 20000
    assert alert["discount"] == 10.0


@pytest.mark.asyncio
async def test_update_by_non_owner_is_rejected(service, store, other_vendor):
    _seed(store, make_listing(_id="car-1"))
    with pytest.raises(PermissionDeniedError):
        await service.update(other_vendor, "car-1", ListingUpdate(price=1))
    assert store.document(LISTINGS_COLLECTION, "car-1")["price"] == 25000


@pytest.mark.asyncio
async def test_missing_listing_raises_not_found(service, vendor):
    with pytest.raises(NotFoundError):
        await service.delete(vendor, "nope")
    with pytest.raises(NotFoundError):
        await service.favorite("nope")


@pytest.mark.asyncio
async def test_status_sold_sets_sold_at_and_quick_sale(service, store, vendor, seller_conn):
    _seed(store, make_listing(_id="car-1", listed_at=NOW - timedelta(days=2)))

    await service.change_status(vendor, "car-1", "sold")
    assert store.document(LISTINGS_COLLECTION, "car-1")["sold_at"] == NOW
    assert seller_conn.events("sales-achievement")[0]["achievement"] == "quick_sale"

    await service.change_status(vendor, "car-1", "active")
    assert store.document(LISTINGS_COLLECTION, "car-1")["sold_at"] is None


@pytest.mark.asyncio
async def test_delete_announces_removal(service, store, router, vendor):
    _seed(store, make_listing(_id="car-1"))
    watcher = RecordingConnection("watcher")
    router.connect(watcher)

    await service.delete(vendor, "car-1")

    assert store.document(LISTINGS_COLLECTION, "car-1") is None
    assert watcher.events("listing-removed")[0]["car_id"] == "car-1"


@pytest.mark.asyncio
async def test_fanout_failure_does_not_undo_commit(service, store, vendor, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("router down")

    monkeypatch.setattr(service.fanout, "listing_created", explode)
    listing = await service.create(vendor, _create_payload())
    assert store.document(LISTINGS_COLLECTION, listing.id) is not None


# ============================================================================
# ENGAGEMENT
# ============================================================================

@pytest.mark.asyncio
async def test_inquiry_milestone_on_fifth_inquiry(service, store, buyer, seller_conn):
    _seed(store, make_listing(_id="car-1", inquiries=4))

    listing = await service.record_inquiry(buyer, "car-1", "Is it still available?")
    assert listing.inquiries == 5
    assert [event for event, _ in seller_conn.sent] == ["new-inquiry", "performance-milestone"]
    assert seller_conn.events("new-inquiry")[0]["message"] == "Is it still available?"

    seller_conn.sent.clear()
    await service.record_inquiry(buyer, "car-1")
    assert [event for event, _ in seller_conn.sent] == ["new-inquiry"]


@pytest.mark.asyncio
async def test_view_counts_and_suggests_similar(service, store, router, authenticator, buyer, seller_conn):
    _seed(
        store,
        make_listing(_id="car-1", views=99),
        make_listing(_id="car-2", listed_at=NOW - timedelta(days=1)),
        make_listing(_id="other", make="Ford", model="F-150", body_type="truck", price=50000),
    )
    viewer = RecordingConnection("viewer")
    router.connect(viewer, authenticator.issue(buyer))

    result = await service.view("car-1", buyer)

    assert result["car"].views == 100
    assert [car.id for car in result["similar_cars"]] == ["car-2"]
    assert seller_conn.events("performance-milestone")[0]["milestone"] == "high_views"
    suggestion = viewer.events("similar-listings")[0]
    assert [car["id"] for car in suggestion["similar_cars"]] == ["car-2"]


@pytest.mark.asyncio
async def test_favorite_increments(service, store):
    _seed(store, make_listing(_id="car-1", favorites=2))
    assert await service.favorite("car-1") == 3


# ============================================================================
# BULK AND INVENTORY
# ============================================================================

@pytest.mark.asyncio
async def test_bulk_update_only_touches_own_listings(service, store, other_vendor, router, authenticator):
    """A vendor naming someone else's listings updates nothing but is still told so."""
    _seed(store, make_listing(_id="car-1"), make_listing(_id="car-2"))
    conn = RecordingConnection("other")
    router.connect(conn, authenticator.issue(other_vendor))

    updated = await service.bulk_update(
        other_vendor, BulkUpdateRequest(listing_ids=["car-1", "car-2"], updates={"featured": True})
    )

    assert updated == 0
    assert store.document(LISTINGS_COLLECTION, "car-1")["featured"] is False
    assert conn.events("inventory-update")[0]["updated_count"] == 0


@pytest.mark.asyncio
async def test_bulk_update_filters_fields_and_records_price(service, store, vendor):
    _seed(store, make_listing(_id="car-1"), make_listing(_id="car-2"))
    request = BulkUpdateRequest(
        listing_ids=["car-1", "car-2"],
        updates={"price": 19999, "seller": "hijack", "status": "sold"},
    )

    assert await service.bulk_update(vendor, request) == 2
    stored = store.document(LISTINGS_COLLECTION, "car-2")
    assert stored["seller"] == "vendor-1"
    assert stored["status"] == "sold"
    assert stored["sold_at"] == NOW
    assert stored["price_history"][-1]["price"] == 19999


@pytest.mark.asyncio
async def test_bulk_sold_keeps_existing_sale_dates(service, store, vendor):
    print("\n=== Test: Bulk sold keeps earlier sale dates ===")
    earlier = NOW - timedelta(days=5)
    _seed(
        store,
        make_listing(_id="car-1", status="sold", sold_at=earlier),
        make_listing(_id="car-2"),
    )

    request = BulkUpdateRequest(listing_ids=["car-1", "car-2"], updates={"status": "sold"})
    assert await service.bulk_update(vendor, request) == 2

    assert store.document(LISTINGS_COLLECTION, "car-1")["sold_at"] == earlier
    assert store.document(LISTINGS_COLLECTION, "car-2")["sold_at"] == NOW
    assert (await service.get("car-1")).status == "sold"
    print("✓ Only newly sold listings are stamped")

    await service.bulk_update(vendor, BulkUpdateRequest(listing_ids=["car-1"], updates={"status": "active"}))
    assert store.document(LISTINGS_COLLECTION, "car-1")["sold_at"] is None


@pytest.mark.asyncio
async def test_bulk_price_skips_unchanged_listings(service, store, vendor):
    _seed(store, make_listing(_id="car-1", price=19999), make_listing(_id="car-2", price=25000))

    request = BulkUpdateRequest(listing_ids=["car-1", "car-2"], updates={"price": 19999})
    assert await service.bulk_update(vendor, request) == 2

    assert [entry["price"] for entry in store.document(LISTINGS_COLLECTION, "car-1")["price_history"]] == [19999]
    assert [entry["price"] for entry in store.document(LISTINGS_COLLECTION, "car-2")["price_history"]] == [
        25000,
        19999,
    ]


@pytest.mark.asyncio
async def test_bulk_update_never_stores_unreadable_price(service, store, vendor):
    _seed(store, make_listing(_id="car-1"))
    for price in ("nan", None, "-inf"):
        with pytest.raises(ValueError):
            await service.bulk_update(
                vendor, BulkUpdateRequest(listing_ids=["car-1"], updates={"price": price})
            )

    assert store.updates == []
    view = await service.view("car-1")
    assert view["price"] == 25000.0


@pytest.mark.asyncio
async def test_bulk_update_rejects_empty_or_invalid(service, vendor):
    with pytest.raises(ValueError):
        await service.bulk_update(vendor, BulkUpdateRequest(listing_ids=["a"], updates={"seller": "x"}))
    with pytest.raises(ValueError):
        await service.bulk_update(vendor, BulkUpdateRequest(listing_ids=["a"], updates={"status": "gone"}))


@pytest.mark.asyncio
async def test_inventory_paginates_and_searches(service, store):
    _seed(
        store,
        make_listing(_id="a", listed_at=NOW - timedelta(days=3)),
        make_listing(_id="b", listed_at=NOW - timedelta(days=2)),
        make_listing(_id="c", make="Mazda", model="CX-5", listed_at=NOW - timedelta(days=1)),
        make_listing(_id="x", seller="vendor-2"),
    )
    page = await service.inventory("vendor-1", page=1, limit=2)
    assert [car["id"] for car in page["cars"]] == ["c", "b"]
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    found = await service.inventory("vendor-1", search="cx-")
    assert [car["id"] for car in found["cars"]] == ["c"]
