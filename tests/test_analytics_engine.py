#!/usr/bin/env python3
"""
Test suite for the analytics aggregation engine.

Aggregate rows are scripted on the FakeStore against the exact pipelines
the engine builds with a fixed clock; find/count queries run against
seeded documents.
"""
from datetime import timedelta

import pytest

from core.analytics import AnalyticsEngine, pipelines
from core.errors import NotFoundError
from core.models.listing import LISTINGS_COLLECTION
from core.models.user import USERS_COLLECTION, User
from core.thresholds import DEFAULT_THRESHOLDS
from fakes import NOW, fixed_clock, make_listing

WINDOW = DEFAULT_THRESHOLDS.comparable_year_window


@pytest.fixture
def engine(store):
    return AnalyticsEngine(store, clock=fixed_clock)


def _seed(store, *listings):
    store.seed(LISTINGS_COLLECTION, *(listing.to_dict_for_db() for listing in listings))


# ============================================================================
# DASHBOARD
# ============================================================================

@pytest.mark.asyncio
async def test_dashboard_empty_vendor_degrades_to_zeros(engine):
    print("\n=== Test: Empty Dashboard ===")
    dashboard = await engine.dashboard("vendor-1")

    assert dashboard["stats"]["active"] == 0
    assert dashboard["stats"]["sold"] == 0
    assert dashboard["stats"]["total_value"] == 0
    assert dashboard["stats"]["avg_price"] == 0
    assert dashboard["insights"]["conversion_rate"] == "0"
    assert dashboard["recent_activity"] == []
    assert dashboard["top_performing"] == []
    print("✓ Empty aggregates yield zero defaults")


@pytest.mark.asyncio
async def test_dashboard_folds_status_breakdown(engine, store):
    store.script_aggregate(
        LISTINGS_COLLECTION,
        pipelines.status_breakdown("vendor-1"),
        [
            {"_id": "active", "count": 3, "total_value": 75000, "total_views": 300, "total_inquiries": 8},
            {"_id": "sold", "count": 1, "total_value": 20000, "total_views": 50, "total_inquiries": 2},
        ],
    )
    dashboard = await engine.dashboard("vendor-1")

    stats = dashboard["stats"]
    assert stats["active"] == 3
    assert stats["sold"] == 1
    assert stats["total_value"] == 95000
    assert stats["avg_price"] == 23750
    assert stats["total_inquiries"] == 10
    assert dashboard["insights"]["conversion_rate"] == "10.0"


# ============================================================================
# LEADS AND PRICING
# ============================================================================

@pytest.mark.asyncio
async def test_leads_score_and_urgency(engine, store):
    _seed(
        store,
        make_listing(_id="old", views=40, inquiries=3, listed_at=NOW - timedelta(days=31)),
        make_listing(_id="fresh", views=0, inquiries=1, listed_at=NOW - timedelta(days=5)),
        make_listing(_id="quiet", views=90, inquiries=0),
    )
    result = await engine.leads("vendor-1")

    leads = {lead.listing_id: lead for lead in result["leads"]}
    assert set(leads) == {"old", "fresh"}
    assert leads["old"].lead_score == 7.5
    assert leads["old"].urgency == "high"
    assert leads["fresh"].lead_score == 0.0
    assert leads["fresh"].urgency == "low"
    assert result["pagination"] == {"page": 1, "limit": 20, "total": 2, "pages": 1}


@pytest.mark.asyncio
async def test_overpriced_listing_gets_medium_recommendation(engine, store):
    """35,000 against a 28,000 comparable mean is overpriced by 7,000."""
    _seed(store, make_listing(_id="camry", price=35000))
    store.script_aggregate(
        LISTINGS_COLLECTION,
        pipelines.comparables_stats("Toyota", "Camry", 2021, WINDOW, "vendor-1"),
        [{"_id": None, "avg_price": 28000, "min_price": 26000, "max_price": 30000, "count": 4}],
    )
    recommendations = await engine.pricing_recommendations("vendor-1")

    assert len(recommendations) == 1
    rec = recommendations[0]
    assert rec.verdict == "overpriced"
    assert rec.priority == "medium"
    assert rec.price_diff == 7000
    assert rec.suggested_adjustment == -7000
    assert rec.comparable_count == 4

    overpriced = await engine.overpriced_listings("vendor-1")
    assert [doc["_id"] for doc, _ in overpriced] == ["camry"]


def _script_camry_market(store, avg_price=28000, count=6):
    store.script_aggregate(
        LISTINGS_COLLECTION,
        pipelines.comparables_stats("Toyota", "Camry", 2021, WINDOW, "vendor-1"),
        [{"_id": None, "avg_price": avg_price, "min_price": 20000, "max_price": 36000, "count": count}],
    )


@pytest.mark.asyncio
async def test_pricing_verdicts_and_priorities(engine, store):
    print("\n=== Test: Pricing verdicts against a 28,000 mean ===")
    _seed(
        store,
        make_listing(_id="far-over", price=40000),
        make_listing(_id="over", price=35000),
        make_listing(_id="under", price=24000),
        make_listing(_id="near", price=26000),
    )
    _script_camry_market(store)

    recommendations = await engine.pricing_recommendations("vendor-1")

    assert [(rec.listing_id, rec.verdict, rec.priority) for rec in recommendations] == [
        ("far-over", "overpriced", "high"),
        ("over", "overpriced", "medium"),
        ("under", "underpriced", "medium"),
    ]
    assert recommendations[0].price_diff == 12000
    assert recommendations[2].price_diff == -4000
    assert recommendations[2].suggested_adjustment == 4000
    print("✓ +12,000 high, +7,000 medium, -4,000 underpriced, -2,000 left alone")


@pytest.mark.asyncio
async def test_pricing_recommendations_keep_the_largest_gaps(engine, store):
    prices = [34000, 35000, 36000, 37000, 38000, 39000, 40000]
    _seed(store, *(make_listing(_id=f"camry-{price}", price=price) for price in prices))
    _script_camry_market(store)

    recommendations = await engine.pricing_recommendations("vendor-1")

    assert len(recommendations) == DEFAULT_THRESHOLDS.market_comparison_limit
    assert [rec.price for rec in recommendations] == [40000, 39000, 38000, 37000, 36000]


@pytest.mark.asyncio
async def test_listing_without_comparables_is_skipped(engine, store):
    _seed(store, make_listing(_id="rare", make="Lancia", model="Delta", price=90000))
    assert await engine.pricing_recommendations("vendor-1") == []
    comparisons = await engine.compare_with_market("vendor-1")
    assert comparisons[0][1] is None


@pytest.mark.asyncio
async def test_comparables_exclude_own_listings(engine, store):
    _seed(store, make_listing(_id="camry"))
    await engine.compare_with_market("vendor-1")
    _, pipeline = store.aggregate_calls[0]
    match = pipeline[0]["$match"]
    assert match["seller"] == {"$ne": "vendor-1"}
    assert match["year"] == {"$gte": 2019, "$lte": 2023}
    assert match["status"] == "active"


# ============================================================================
# HEALTH, REPORT, SNAPSHOTS
# ============================================================================

@pytest.mark.asyncio
async def test_vendor_health_and_advisories(engine, store):
    _seed(
        store,
        make_listing(_id="stale", views=10, listed_at=NOW - timedelta(days=50)),
        make_listing(_id="hot", views=150, inquiries=6),
    )
    health = await engine.vendor_health("vendor-1")
    assert health.active_count == 2
    assert health.stale_count == 1
    assert health.high_interest_count == 1
    assert health.price_review_count == 1

    titles = [advisory.title for advisory in await engine.advisories("vendor-1")]
    assert titles[0] == "Stale Inventory Alert"
    assert "Low Inventory" in titles


@pytest.mark.asyncio
async def test_report_sections_and_period_validation(engine):
    report = await engine.report("vendor-1")
    assert report["period"] == 30
    assert set(report) >= {
        "inventory_overview",
        "sales_performance",
        "market_position",
        "customer_engagement",
        "financial_metrics",
        "recommendations",
    }
    assert report["financial_metrics"]["profitability"]["sales"] == 0

    with pytest.raises(ValueError):
        await engine.report("vendor-1", period=-1)


@pytest.mark.asyncio
async def test_profitability_from_sold_listings(engine, store):
    sold = make_listing(_id="sold", price=22000, listed_at=NOW - timedelta(days=20))
    sold.original_price = 20000
    sold.change_status("sold", NOW)
    _seed(store, sold)

    result = await engine.profitability("vendor-1")
    assert result["sales"] == 1
    assert result["total_profit"] == 2000
    assert result["avg_profit_margin"] == 10.0


@pytest.mark.asyncio
async def test_stale_by_vendor_uses_scan_window(engine, store):
    store.script_aggregate(
        LISTINGS_COLLECTION,
        pipelines.stale_by_seller(NOW - timedelta(days=30), 20),
        [{"_id": "vendor-1", "count": 3}, {"_id": None, "count": 1}],
    )
    assert await engine.stale_by_vendor() == {"vendor-1": 3}


@pytest.mark.asyncio
async def test_profile_requires_user(engine, store):
    with pytest.raises(NotFoundError):
        await engine.profile("ghost")

    user = User(_id="vendor-1", name="Lone Star Motors", email="sales@lonestar.test", role="vendor",
                password_hash="secret-hash")
    store.seed(USERS_COLLECTION, user.to_dict_for_db())
    profile = await engine.profile("vendor-1")
    assert profile["vendor"]["name"] == "Lone Star Motors"
    assert "password_hash" not in profile["vendor"]
    assert profile["stats"]["total_listings"] == 0


@pytest.mark.asyncio
async def test_market_trends_and_digest(engine, store):
    store.script_aggregate(
        LISTINGS_COLLECTION,
        pipelines.trending_makes(NOW - timedelta(hours=24)),
        [{"_id": "Tesla", "count": 7, "avg_price": 41000}],
    )
    _seed(store, make_listing(_id="new", listed_at=NOW - timedelta(hours=2)))

    assert await engine.market_trends() == [{"make": "Tesla", "count": 7, "avg_price": 41000}]
    digest = await engine.daily_digest()
    assert digest["new_listings"] == 1
    assert digest["price_drops"] == 0
    assert digest["date"] == "2026-03-15"
