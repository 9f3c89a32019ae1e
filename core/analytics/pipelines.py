"""
Aggregation pipeline builders for the 'listings' collection.

Pure functions: every time boundary is passed in, so the same arguments
always build the same pipeline.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

Pipeline = List[Dict[str, Any]]

MS_PER_DAY = 1000 * 60 * 60 * 24


def _days_between(later: Any, earlier: Any) -> Dict[str, Any]:
    return {"$divide": [{"$subtract": [later, earlier]}, MS_PER_DAY]}


# ============================================================================
# VENDOR INVENTORY
# ============================================================================

def status_breakdown(vendor_id: str) -> Pipeline:
    """Per-status counts, value and engagement totals for one seller."""
    return [
        {"$match": {"seller": vendor_id}},
        {
            "$group": {
                "_id": "$status",
                "count": {"$sum": 1},
                "total_value": {"$sum": "$price"},
                "avg_price": {"$avg": "$price"},
                "avg_mileage": {"$avg": "$mileage"},
                "avg_year": {"$avg": "$year"},
                "total_views": {"$sum": "$views"},
                "total_inquiries": {"$sum": "$inquiries"},
            }
        },
    ]


def recent_activity(vendor_id: str, since: datetime, limit: int = 10) -> Pipeline:
    return [
        {
            "$match": {
                "seller": vendor_id,
                "$or": [
                    {"listed_at": {"$gte": since}},
                    {"last_updated": {"$gte": since}},
                    {"sold_at": {"$gte": since}},
                ],
            }
        },
        {
            "$project": {
                "make": 1, "model": 1, "year": 1, "price": 1, "status": 1,
                "views": 1, "inquiries": 1, "listed_at": 1, "last_updated": 1, "sold_at": 1,
            }
        },
        {"$sort": {"last_updated": -1}},
        {"$limit": limit},
    ]


def listing_totals(vendor_id: str, listed_before: Optional[datetime] = None) -> Pipeline:
    match: Dict[str, Any] = {"seller": vendor_id}
    if listed_before is not None:
        match["listed_at"] = {"$lte": listed_before}
    return [
        {"$match": match},
        {
            "$group": {
                "_id": None,
                "total_listings": {"$sum": 1},
                "total_views": {"$sum": "$views"},
                "total_inquiries": {"$sum": "$inquiries"},
                "avg_price": {"$avg": "$price"},
                "active_listings": {"$sum": {"$cond": [{"$eq": ["$status", "active"]}, 1, 0]}},
            }
        },
    ]


def performance(vendor_id: str, default_days_to_sell: float) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id}},
        {
            "$group": {
                "_id": None,
                "avg_views_per_listing": {"$avg": "$views"},
                "avg_inquiries_per_listing": {"$avg": "$inquiries"},
                "avg_days_to_sell": {
                    "$avg": {
                        "$cond": [
                            {"$ne": ["$sold_at", None]},
                            _days_between("$sold_at", "$listed_at"),
                            default_days_to_sell,
                        ]
                    }
                },
            }
        },
    ]


def makes_by_count(vendor_id: str, status: Optional[str] = None, limit: int = 0) -> Pipeline:
    match: Dict[str, Any] = {"seller": vendor_id}
    if status is not None:
        match["status"] = status
    pipeline: Pipeline = [
        {"$match": match},
        {
            "$group": {
                "_id": "$make",
                "count": {"$sum": 1},
                "avg_price": {"$avg": "$price"},
                "total_value": {"$sum": "$price"},
            }
        },
        {"$sort": {"count": -1}},
    ]
    if limit:
        pipeline.append({"$limit": limit})
    return pipeline


def age_distribution(vendor_id: str, now: datetime, boundaries: Sequence[float]) -> Pipeline:
    """Bucket active listings by days listed."""
    return [
        {"$match": {"seller": vendor_id, "status": "active"}},
        {"$addFields": {"days_listed": _days_between(now, "$listed_at")}},
        {
            "$bucket": {
                "groupBy": "$days_listed",
                "boundaries": list(boundaries),
                "default": "other",
                "output": {
                    "count": {"$sum": 1},
                    "avg_views": {"$avg": "$views"},
                    "avg_inquiries": {"$avg": "$inquiries"},
                },
            }
        },
    ]


# ============================================================================
# SALES AND ENGAGEMENT
# ============================================================================

def sales_series(vendor_id: str, since: datetime) -> Pipeline:
    """Sales grouped by year/month/week of sale."""
    return [
        {"$match": {"seller": vendor_id, "sold_at": {"$gte": since}}},
        {
            "$group": {
                "_id": {
                    "year": {"$year": "$sold_at"},
                    "month": {"$month": "$sold_at"},
                    "week": {"$week": "$sold_at"},
                },
                "count": {"$sum": 1},
                "revenue": {"$sum": "$price"},
                "avg_price": {"$avg": "$price"},
                "avg_days_to_sell": {"$avg": _days_between("$sold_at", "$listed_at")},
            }
        },
        {"$sort": {"_id.year": 1, "_id.month": 1, "_id.week": 1}},
    ]


def revenue_by_month(vendor_id: str, since: datetime) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id, "sold_at": {"$gte": since}}},
        {
            "$group": {
                "_id": {"year": {"$year": "$sold_at"}, "month": {"$month": "$sold_at"}},
                "revenue": {"$sum": "$price"},
                "count": {"$sum": 1},
                "avg_sale_price": {"$avg": "$price"},
            }
        },
        {"$sort": {"_id.year": 1, "_id.month": 1}},
    ]


def conversion_funnel(vendor_id: str, since: datetime) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id, "listed_at": {"$gte": since}}},
        {
            "$group": {
                "_id": None,
                "total_listings": {"$sum": 1},
                "with_views": {"$sum": {"$cond": [{"$gt": ["$views", 0]}, 1, 0]}},
                "with_inquiries": {"$sum": {"$cond": [{"$gt": ["$inquiries", 0]}, 1, 0]}},
                "sold": {"$sum": {"$cond": [{"$eq": ["$status", "sold"]}, 1, 0]}},
            }
        },
    ]


def engagement(vendor_id: str, since: datetime) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id, "listed_at": {"$gte": since}}},
        {
            "$group": {
                "_id": None,
                "total_views": {"$sum": "$views"},
                "total_inquiries": {"$sum": "$inquiries"},
                "total_favorites": {"$sum": "$favorites"},
                "avg_views_per_listing": {"$avg": "$views"},
                "avg_inquiries_per_listing": {"$avg": "$inquiries"},
                "engagement_rate": {
                    "$avg": {
                        "$cond": [
                            {"$gt": ["$views", 0]},
                            {"$divide": ["$inquiries", "$views"]},
                            0,
                        ]
                    }
                },
            }
        },
    ]


def top_categories(vendor_id: str, sold_since: datetime, min_sales: int, max_days_to_sell: float) -> Pipeline:
    """(make, body type) pairs that sell repeatedly and quickly."""
    return [
        {"$match": {"seller": vendor_id, "status": "sold", "sold_at": {"$gte": sold_since}}},
        {
            "$group": {
                "_id": {"make": "$make", "body_type": "$body_type"},
                "count": {"$sum": 1},
                "avg_days_to_sell": {"$avg": _days_between("$sold_at", "$listed_at")},
            }
        },
        {"$match": {"count": {"$gte": min_sales}, "avg_days_to_sell": {"$lte": max_days_to_sell}}},
        {"$sort": {"count": -1}},
        {"$limit": 3},
    ]


def day_activity(vendor_id: str, day_start: datetime) -> Pipeline:
    """Listings touched since the start of the day."""
    return [
        {
            "$match": {
                "seller": vendor_id,
                "$or": [
                    {"listed_at": {"$gte": day_start}},
                    {"last_updated": {"$gte": day_start}},
                    {"sold_at": {"$gte": day_start}},
                ],
            }
        },
        {
            "$group": {
                "_id": None,
                "new_listings": {"$sum": {"$cond": [{"$gte": ["$listed_at", day_start]}, 1, 0]}},
                "sold_today": {"$sum": {"$cond": [{"$gte": ["$sold_at", day_start]}, 1, 0]}},
                "today_revenue": {"$sum": {"$cond": [{"$gte": ["$sold_at", day_start]}, "$price", 0]}},
                "today_views": {"$sum": "$views"},
                "today_inquiries": {"$sum": "$inquiries"},
            }
        },
    ]


def week_activity(vendor_id: str, since: datetime) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id, "listed_at": {"$gte": since}}},
        {
            "$group": {
                "_id": None,
                "week_listings": {"$sum": 1},
                "week_sold": {"$sum": {"$cond": [{"$eq": ["$status", "sold"]}, 1, 0]}},
                "week_revenue": {"$sum": {"$cond": [{"$eq": ["$status", "sold"]}, "$price", 0]}},
            }
        },
    ]


def sales_between(vendor_id: str, start: datetime, end: datetime) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id, "sold_at": {"$gte": start, "$lt": end}}},
        {"$group": {"_id": None, "sales": {"$sum": 1}, "revenue": {"$sum": "$price"}}},
    ]


def profile_stats(vendor_id: str) -> Pipeline:
    return [
        {"$match": {"seller": vendor_id}},
        {
            "$group": {
                "_id": None,
                "total_listings": {"$sum": 1},
                "active_listings": {"$sum": {"$cond": [{"$eq": ["$status", "active"]}, 1, 0]}},
                "sold_listings": {"$sum": {"$cond": [{"$eq": ["$status", "sold"]}, 1, 0]}},
                "total_revenue": {"$sum": {"$cond": [{"$eq": ["$status", "sold"]}, "$price", 0]}},
                "total_views": {"$sum": "$views"},
                "total_inquiries": {"$sum": "$inquiries"},
            }
        },
    ]


# ============================================================================
# MARKET-WIDE
# ============================================================================

def comparables_filter(
    make: str,
    model: str,
    year: int,
    year_window: int,
    exclude_seller: Optional[str] = None,
) -> Dict[str, Any]:
    """Same make and model, model year within the window, active."""
    match: Dict[str, Any] = {
        "make": make,
        "model": model,
        "year": {"$gte": year - year_window, "$lte": year + year_window},
        "status": "active",
    }
    if exclude_seller is not None:
        match["seller"] = {"$ne": exclude_seller}
    return match


def comparables_stats(
    make: str,
    model: str,
    year: int,
    year_window: int,
    exclude_seller: Optional[str] = None,
) -> Pipeline:
    return [
        {"$match": comparables_filter(make, model, year, year_window, exclude_seller)},
        {
            "$group": {
                "_id": None,
                "avg_price": {"$avg": "$price"},
                "min_price": {"$min": "$price"},
                "max_price": {"$max": "$price"},
                "count": {"$sum": 1},
            }
        },
    ]


def market_opportunities(since: datetime, min_count: int, min_avg_views: float, limit: int) -> Pipeline:
    """(make, body type) combinations with many listings and high interest."""
    return [
        {"$match": {"status": "active", "listed_at": {"$gte": since}}},
        {
            "$group": {
                "_id": {"make": "$make", "body_type": "$body_type"},
                "count": {"$sum": 1},
                "avg_price": {"$avg": "$price"},
                "avg_views": {"$avg": "$views"},
            }
        },
        {"$match": {"count": {"$gte": min_count}, "avg_views": {"$gte": min_avg_views}}},
        {"$sort": {"avg_views": -1}},
        {"$limit": limit},
    ]


def trending_makes(since: datetime, limit: int = 5) -> Pipeline:
    return [
        {"$match": {"status": "active", "listed_at": {"$gte": since}}},
        {"$group": {"_id": "$make", "count": {"$sum": 1}, "avg_price": {"$avg": "$price"}}},
        {"$sort": {"count": -1}},
        {"$limit": limit},
    ]


def popular_makes(limit: int = 3) -> Pipeline:
    return [
        {"$match": {"status": "active"}},
        {"$group": {"_id": "$make", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
        {"$limit": limit},
    ]


def stale_by_seller(listed_before: datetime, max_views: int) -> Pipeline:
    return [
        {"$match": {"status": "active", "listed_at": {"$lte": listed_before}, "views": {"$lte": max_views}}},
        {"$group": {"_id": "$seller", "count": {"$sum": 1}}},
    ]
