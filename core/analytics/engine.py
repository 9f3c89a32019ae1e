"""
Analytics Aggregation Engine.

Computes vendor and marketplace read models on request from the current
contents of the entity store. Nothing is cached and nothing is written.

Conventions:
    - Aggregates that return no rows degrade to zero/empty defaults.
    - StoreUnavailableError from the store propagates to the caller.
    - Time boundaries come from the injected clock, so a fixed clock makes
      every pipeline deterministic.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.analytics import metrics, pipelines
from core.analytics.rules import ALERT_RULES, DEFAULT_RULES, REPORT_RULES, VendorHealth, evaluate_rules
from core.errors import NotFoundError
from core.logging import get_logger, log_execution_time
from core.models.analytics import (
    Advisory,
    Lead,
    MarketOpportunity,
    PricingRecommendation,
    Recommendations,
)
from core.models.common import pagination, utc_now
from core.models.listing import LISTING_STATUSES, LISTINGS_COLLECTION, listing_view
from core.models.user import USERS_COLLECTION, User
from core.store import EntityStore
from core.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = get_logger("analytics")

Market = Dict[str, Any]


def _money(value: float) -> str:
    return f"${abs(value):,.0f}"


class AnalyticsEngine:
    """
    Read-only analytics over the listings collection.

    Args:
        store: Entity store to query
        thresholds: Business limits
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        store: EntityStore,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.thresholds = thresholds
        self.clock = clock

    # ========================================================================
    # QUERY HELPERS
    # ========================================================================

    async def _aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await self.store.aggregate(LISTINGS_COLLECTION, pipeline)

    async def _first(self, pipeline: List[Dict[str, Any]], defaults: Dict[str, Any]) -> Dict[str, Any]:
        """First row of an aggregate laid over `defaults`; defaults when empty."""
        rows = await self._aggregate(pipeline)
        result = dict(defaults)
        if rows:
            result.update({key: value for key, value in rows[0].items() if key != "_id" and value is not None})
        return result

    async def _find(self, filter: Dict[str, Any], **kwargs) -> List[Dict[str, Any]]:
        return await self.store.find(LISTINGS_COLLECTION, filter, **kwargs)

    async def _count(self, filter: Dict[str, Any]) -> int:
        return await self.store.count_documents(LISTINGS_COLLECTION, filter)

    def _days_ago(self, days: float, now: Optional[datetime] = None) -> datetime:
        return (now or self.clock()) - timedelta(days=days)

    @staticmethod
    def _start_of_day(now: datetime) -> datetime:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)

    # ========================================================================
    # DASHBOARD
    # ========================================================================

    @log_execution_time(logger)
    async def dashboard(self, vendor_id: str) -> Dict[str, Any]:
        """Status breakdown, recent activity, best and worst performers."""
        now = self.clock()
        t = self.thresholds
        overview, recent, top, low = await asyncio.gather(
            self._aggregate(pipelines.status_breakdown(vendor_id)),
            self._aggregate(pipelines.recent_activity(vendor_id, self._days_ago(7, now))),
            self._find(
                {"seller": vendor_id, "status": "active"},
                sort=[("views", -1), ("inquiries", -1)],
                limit=5,
            ),
            self._find(
                {
                    "seller": vendor_id,
                    "status": "active",
                    "listed_at": {"$lte": self._days_ago(t.low_performing_days, now)},
                    "views": {"$lte": t.low_performing_max_views},
                },
                sort=[("views", 1), ("listed_at", 1)],
                limit=5,
            ),
        )

        stats: Dict[str, Any] = {status: 0 for status in LISTING_STATUSES}
        stats.update(total_value=0, avg_price=0.0, total_views=0, total_inquiries=0)
        for row in overview:
            if row.get("_id") in LISTING_STATUSES:
                stats[row["_id"]] = row.get("count", 0)
            stats["total_value"] += row.get("total_value") or 0
            stats["total_views"] += row.get("total_views") or 0
            stats["total_inquiries"] += row.get("total_inquiries") or 0

        total_cars = sum(stats[status] for status in LISTING_STATUSES)
        stats["avg_price"] = metrics.average_price(stats["total_value"], total_cars)

        return {
            "stats": stats,
            "recent_activity": [listing_view(row) for row in recent],
            "top_performing": [listing_view(doc) for doc in top],
            "low_performing": [listing_view(doc) for doc in low],
            "insights": {
                "conversion_rate": metrics.conversion_rate(stats["sold"], stats["total_inquiries"]),
                "avg_views_per_car": round(metrics.safe_divide(stats["total_views"], total_cars)),
                "avg_inquiries_per_car": round(metrics.safe_divide(stats["total_inquiries"], total_cars)),
            },
        }

    async def analytics(self, vendor_id: str) -> Dict[str, Any]:
        """Current totals with trend deltas against listings older than 30 days."""
        now = self.clock()
        totals_defaults = {
            "total_listings": 0,
            "total_views": 0,
            "total_inquiries": 0,
            "avg_price": 0.0,
            "active_listings": 0,
        }
        current, previous, top, performance, popular = await asyncio.gather(
            self._first(pipelines.listing_totals(vendor_id), totals_defaults),
            self._first(pipelines.listing_totals(vendor_id, self._days_ago(30, now)), totals_defaults),
            self._find({"seller": vendor_id}, sort=[("views", -1), ("inquiries", -1)], limit=3),
            self._first(
                pipelines.performance(vendor_id, self.thresholds.default_days_to_sell),
                {
                    "avg_views_per_listing": 0.0,
                    "avg_inquiries_per_listing": 0.0,
                    "avg_days_to_sell": self.thresholds.default_days_to_sell,
                },
            ),
            self._aggregate(pipelines.makes_by_count(vendor_id, limit=1)),
        )

        def change(key: str) -> float:
            return metrics.round_half_up(metrics.trend(current[key], previous[key]), 1)

        return {
            "overview": {
                "total_listings": current["total_listings"],
                "total_views": current["total_views"],
                "total_inquiries": current["total_inquiries"],
                "avg_price": round(current["avg_price"]),
                "conversion_rate": metrics.round_half_up(
                    metrics.safe_divide(current["total_inquiries"], current["total_views"]) * 100, 1
                ),
                "active_listings": current["active_listings"],
            },
            "trends": {
                "views_change": change("total_views"),
                "inquiries_change": change("total_inquiries"),
                "price_change": change("avg_price"),
                "listings_change": change("total_listings"),
            },
            "top_performing": [listing_view(doc) for doc in top],
            "performance": {
                "avg_views_per_listing": metrics.round_half_up(performance["avg_views_per_listing"], 1),
                "avg_inquiries_per_listing": metrics.round_half_up(performance["avg_inquiries_per_listing"], 1),
                "avg_days_to_sell": round(performance["avg_days_to_sell"]),
                "most_popular_make": popular[0]["_id"] if popular else "N/A",
            },
        }

    # ========================================================================
    # LEADS
    # ========================================================================

    def build_lead(self, document: Dict[str, Any], now: Optional[datetime] = None) -> Lead:
        """Score one listing document."""
        views = document.get("views", 0)
        inquiries = document.get("inquiries", 0)
        days = metrics.days_listed(document["listed_at"], now or self.clock())
        return Lead(
            listing_id=document["_id"],
            make=document["make"],
            model=document["model"],
            year=document["year"],
            price=document["price"],
            views=views,
            inquiries=inquiries,
            favorites=document.get("favorites", 0),
            lead_score=metrics.lead_score(inquiries, views),
            days_listed=days,
            urgency=metrics.urgency(days, self.thresholds),
        )

    async def leads(self, vendor_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Listings with at least one inquiry, most recently updated first."""
        page = max(page, 1)
        query = {"seller": vendor_id, "inquiries": {"$gt": 0}}
        documents, total = await asyncio.gather(
            self._find(query, sort=[("last_updated", -1)], skip=(page - 1) * limit, limit=limit),
            self._count(query),
        )
        now = self.clock()
        return {
            "leads": [self.build_lead(doc, now) for doc in documents],
            "pagination": pagination(page, limit, total),
        }

    # ========================================================================
    # PRICING AND MARKET
    # ========================================================================

    async def market_for(
        self, make: str, model: str, year: int, exclude_seller: Optional[str] = None
    ) -> Optional[Market]:
        """Comparable-market stats, or None when there are no comparables."""
        rows = await self._aggregate(
            pipelines.comparables_stats(
                make, model, year, self.thresholds.comparable_year_window, exclude_seller
            )
        )
        if not rows or not rows[0].get("count") or rows[0].get("avg_price") is None:
            return None
        row = rows[0]
        return {
            "avg_price": row["avg_price"],
            "min_price": row.get("min_price"),
            "max_price": row.get("max_price"),
            "count": row["count"],
        }

    async def compare_with_market(
        self, vendor_id: str, limit: int = 0
    ) -> List[Tuple[Dict[str, Any], Optional[Market]]]:
        """
        Pair each of the vendor's active listings with its comparable market.

        One comparables query runs per distinct (make, model, year).
        """
        documents = await self._find({"seller": vendor_id, "status": "active"}, limit=limit)
        keys = list(dict.fromkeys((doc["make"], doc["model"], doc["year"]) for doc in documents))
        markets = await asyncio.gather(
            *(self.market_for(make, model, year, exclude_seller=vendor_id) for make, model, year in keys)
        )
        by_key = dict(zip(keys, markets))
        return [(doc, by_key[(doc["make"], doc["model"], doc["year"])]) for doc in documents]

    def classify_price(self, document: Dict[str, Any], market: Market) -> Optional[PricingRecommendation]:
        """Flag a listing whose price is far from the market mean."""
        t = self.thresholds
        price_diff = document["price"] - market["avg_price"]
        if price_diff > t.overpriced_diff:
            verdict = "overpriced"
            suggestion = f"Consider reducing price by {_money(price_diff)}"
        elif price_diff < t.underpriced_diff:
            verdict = "underpriced"
            suggestion = f"You could increase price by {_money(price_diff)}"
        else:
            return None

        return PricingRecommendation(
            listing_id=document["_id"],
            make=document["make"],
            model=document["model"],
            year=document["year"],
            price=document["price"],
            market_price=market["avg_price"],
            price_diff=price_diff,
            suggested_adjustment=-price_diff,
            verdict=verdict,
            priority="high" if abs(price_diff) > t.pricing_high_priority_diff else "medium",
            suggestion=suggestion,
            comparable_count=market["count"],
        )

    async def pricing_recommendations(self, vendor_id: str) -> List[PricingRecommendation]:
        recommendations = []
        for document, market in await self.compare_with_market(vendor_id):
            if market is None:
                continue
            recommendation = self.classify_price(document, market)
            if recommendation is not None:
                recommendations.append(recommendation)
        recommendations.sort(key=lambda rec: abs(rec.price_diff), reverse=True)
        return recommendations[: self.thresholds.market_comparison_limit]

    async def overpriced_listings(self, vendor_id: str) -> List[Tuple[Dict[str, Any], Market]]:
        """Listings priced above the comparable mean times the competitive ratio."""
        ratio = self.thresholds.competitive_price_ratio
        return [
            (document, market)
            for document, market in await self.compare_with_market(vendor_id)
            if market is not None and document["price"] > market["avg_price"] * ratio
        ]

    async def market_opportunities(self) -> List[MarketOpportunity]:
        """Platform-wide (make, body type) pairs with high demand."""
        t = self.thresholds
        rows = await self._aggregate(
            pipelines.market_opportunities(
                self._days_ago(t.opportunity_window_days),
                t.opportunity_min_count,
                t.opportunity_min_avg_views,
                t.opportunity_limit,
            )
        )
        opportunities = []
        for row in rows:
            make = row["_id"]["make"]
            body_type = row["_id"]["body_type"]
            opportunities.append(
                MarketOpportunity(
                    make=make,
                    body_type=body_type,
                    count=row.get("count", 0),
                    avg_price=row.get("avg_price") or 0.0,
                    avg_views=row.get("avg_views") or 0.0,
                    suggestion=f"High demand for {make} {body_type} - consider stocking more",
                )
            )
        return opportunities

    async def recommendations(self, vendor_id: str) -> Recommendations:
        t = self.thresholds
        underperforming, pricing, opportunities = await asyncio.gather(
            self._find(
                {
                    "seller": vendor_id,
                    "status": "active",
                    "listed_at": {"$lte": self._days_ago(t.underperforming_days)},
                    "views": {"$lte": t.underperforming_max_views},
                },
                limit=5,
            ),
            self.pricing_recommendations(vendor_id),
            self.market_opportunities(),
        )
        return Recommendations(
            underperforming=[
                {
                    **listing_view(doc),
                    "suggestion": "Consider reducing price or improving photos/description",
                    "priority": "high",
                }
                for doc in underperforming
            ],
            pricing=pricing,
            opportunities=opportunities,
        )

    # ========================================================================
    # RULESET INPUT
    # ========================================================================

    async def vendor_health(self, vendor_id: str) -> VendorHealth:
        """Gather the counts the advisory rules are evaluated against."""
        t = self.thresholds
        now = self.clock()
        active = {"seller": vendor_id, "status": "active"}
        active_count, stale_count, high_interest, price_review, overpriced, categories = await asyncio.gather(
            self._count(active),
            self._count({
                **active,
                "listed_at": {"$lte": self._days_ago(t.stale_days, now)},
                "views": {"$lte": t.stale_max_views},
            }),
            self._count({
                **active,
                "inquiries": {"$gte": t.high_interest_inquiries},
                "views": {"$gte": t.high_interest_views},
            }),
            self._count({
                **active,
                "listed_at": {"$lte": self._days_ago(t.price_review_days, now)},
                "views": {"$lte": t.price_review_max_views},
            }),
            self.overpriced_listings(vendor_id),
            self._aggregate(
                pipelines.top_categories(
                    vendor_id,
                    self._days_ago(t.top_category_window_days, now),
                    t.top_category_min_sales,
                    t.top_category_max_days_to_sell,
                )
            ),
        )
        return VendorHealth(
            active_count=active_count,
            stale_count=stale_count,
            overpriced_count=len(overpriced),
            high_interest_count=high_interest,
            price_review_count=price_review,
            top_categories=[
                {
                    "make": row["_id"]["make"],
                    "body_type": row["_id"]["body_type"],
                    "count": row.get("count", 0),
                    "avg_days_to_sell": row.get("avg_days_to_sell"),
                }
                for row in categories
            ],
        )

    async def advisories(self, vendor_id: str, rules=DEFAULT_RULES) -> List[Advisory]:
        return evaluate_rules(await self.vendor_health(vendor_id), self.thresholds, rules)

    # ========================================================================
    # REPORT
    # ========================================================================

    def _bucket_label(self, lower: Any) -> str:
        bounds = list(self.thresholds.age_bucket_boundaries)
        if lower not in bounds:
            return str(lower)
        index = bounds.index(lower)
        upper = bounds[index + 1] if index + 1 < len(bounds) else float("inf")
        if upper == float("inf"):
            return f"{int(lower)}+ days"
        return f"{int(lower)}-{int(upper)} days"

    async def _inventory_overview(self, vendor_id: str, now: datetime) -> Dict[str, Any]:
        overview, by_make, ages = await asyncio.gather(
            self._aggregate(pipelines.status_breakdown(vendor_id)),
            self._aggregate(pipelines.makes_by_count(vendor_id, status="active")),
            self._aggregate(
                pipelines.age_distribution(vendor_id, now, self.thresholds.age_bucket_boundaries)
            ),
        )
        return {
            "overview": [
                {
                    "status": row["_id"],
                    "count": row.get("count", 0),
                    "total_value": row.get("total_value") or 0,
                    "avg_price": row.get("avg_price") or 0,
                    "avg_mileage": row.get("avg_mileage") or 0,
                    "avg_year": row.get("avg_year") or 0,
                }
                for row in overview
            ],
            "by_make": [
                {
                    "make": row["_id"],
                    "count": row.get("count", 0),
                    "avg_price": row.get("avg_price") or 0,
                    "total_value": row.get("total_value") or 0,
                }
                for row in by_make
            ],
            "age_distribution": [
                {
                    "range": self._bucket_label(row["_id"]),
                    "count": row.get("count", 0),
                    "avg_views": row.get("avg_views") or 0,
                    "avg_inquiries": row.get("avg_inquiries") or 0,
                }
                for row in ages
            ],
        }

    async def _sales_performance(self, vendor_id: str, since: datetime) -> Dict[str, Any]:
        series, funnel = await asyncio.gather(
            self._aggregate(pipelines.sales_series(vendor_id, since)),
            self._first(
                pipelines.conversion_funnel(vendor_id, since),
                {"total_listings": 0, "with_views": 0, "with_inquiries": 0, "sold": 0},
            ),
        )
        return {
            "sales_data": [
                {
                    **row["_id"],
                    "count": row.get("count", 0),
                    "revenue": row.get("revenue") or 0,
                    "avg_price": row.get("avg_price") or 0,
                    "avg_days_to_sell": row.get("avg_days_to_sell") or 0,
                }
                for row in series
            ],
            "conversion_funnel": funnel,
        }

    async def _market_position(self, vendor_id: str) -> Dict[str, Any]:
        comparisons = await self.compare_with_market(
            vendor_id, limit=self.thresholds.market_comparison_limit
        )
        return {
            "market_comparisons": [
                {
                    "car": listing_view(document),
                    "market": market,
                    "competitive": market is None or document["price"] <= market["avg_price"],
                }
                for document, market in comparisons
            ]
        }

    async def _customer_engagement(self, vendor_id: str, since: datetime) -> Dict[str, Any]:
        engagement, top = await asyncio.gather(
            self._first(
                pipelines.engagement(vendor_id, since),
                {
                    "total_views": 0,
                    "total_inquiries": 0,
                    "total_favorites": 0,
                    "avg_views_per_listing": 0.0,
                    "avg_inquiries_per_listing": 0.0,
                    "engagement_rate": 0.0,
                },
            ),
            self._find(
                {"seller": vendor_id, "listed_at": {"$gte": since}},
                sort=[("views", -1), ("inquiries", -1)],
                limit=5,
            ),
        )
        return {"metrics": engagement, "top_performers": [listing_view(doc) for doc in top]}

    async def profitability(self, vendor_id: str) -> Dict[str, Any]:
        """profit = sale price - original price, margin relative to the original."""
        sold = await self._find({
            "seller": vendor_id,
            "status": "sold",
            "original_price": {"$exists": True, "$ne": None},
        })
        sold = [doc for doc in sold if doc.get("original_price")]
        profits = [metrics.profit(doc["price"], doc["original_price"]) for doc in sold]
        margins = [metrics.profit_margin(doc["price"], doc["original_price"]) for doc in sold]
        return {
            "sales": len(sold),
            "total_profit": sum(profits),
            "avg_profit": metrics.safe_divide(sum(profits), len(profits)),
            "avg_profit_margin": metrics.round_half_up(metrics.safe_divide(sum(margins), len(margins)), 1),
        }

    async def _financial_metrics(self, vendor_id: str, since: datetime) -> Dict[str, Any]:
        overview, revenue, profitability = await asyncio.gather(
            self._aggregate(pipelines.status_breakdown(vendor_id)),
            self._aggregate(pipelines.revenue_by_month(vendor_id, since)),
            self.profitability(vendor_id),
        )
        return {
            "overview": [
                {
                    "status": row["_id"],
                    "count": row.get("count", 0),
                    "total_value": row.get("total_value") or 0,
                    "avg_value": row.get("avg_price") or 0,
                }
                for row in overview
            ],
            "revenue_by_period": [
                {
                    **row["_id"],
                    "revenue": row.get("revenue") or 0,
                    "count": row.get("count", 0),
                    "avg_sale_price": row.get("avg_sale_price") or 0,
                }
                for row in revenue
            ],
            "profitability": profitability,
        }

    @log_execution_time(logger)
    async def report(self, vendor_id: str, period: Optional[int] = None) -> Dict[str, Any]:
        """
        Compose the full vendor report for a trailing window.

        Args:
            vendor_id: Vendor whose listings are reported on
            period: Window in days (defaults to 30)

        Returns:
            Report snapshot with inventory, sales, market position,
            engagement, financial figures and advisories
        """
        period = period or self.thresholds.default_report_period_days
        if period < 1:
            raise ValueError("period must be at least one day")
        now = self.clock()
        since = self._days_ago(period, now)

        inventory, sales, position, engagement, financial, advice = await asyncio.gather(
            self._inventory_overview(vendor_id, now),
            self._sales_performance(vendor_id, since),
            self._market_position(vendor_id),
            self._customer_engagement(vendor_id, since),
            self._financial_metrics(vendor_id, since),
            self.advisories(vendor_id, REPORT_RULES),
        )
        logger.info("Generated vendor report", extra={"vendor_id": vendor_id, "period": period})
        return {
            "period": period,
            "generated_at": now,
            "inventory_overview": inventory,
            "sales_performance": sales,
            "market_position": position,
            "customer_engagement": engagement,
            "financial_metrics": financial,
            "recommendations": advice,
        }

    # ========================================================================
    # REAL-TIME AND PERIODIC SNAPSHOTS
    # ========================================================================

    async def realtime_dashboard(self, vendor_id: str) -> Dict[str, Any]:
        now = self.clock()
        today, week, alerts = await asyncio.gather(
            self._first(
                pipelines.day_activity(vendor_id, self._start_of_day(now)),
                {"new_listings": 0, "sold_today": 0, "today_revenue": 0, "today_views": 0, "today_inquiries": 0},
            ),
            self._first(
                pipelines.week_activity(vendor_id, self._days_ago(7, now)),
                {"week_listings": 0, "week_sold": 0, "week_revenue": 0},
            ),
            self.advisories(vendor_id, ALERT_RULES),
        )
        return {"today": today, "week": week, "alerts": alerts, "last_updated": now}

    async def profile(self, vendor_id: str) -> Dict[str, Any]:
        document = await self.store.find_one(USERS_COLLECTION, {"_id": vendor_id})
        if document is None:
            raise NotFoundError("User", vendor_id)
        stats = await self._first(
            pipelines.profile_stats(vendor_id),
            {
                "total_listings": 0,
                "active_listings": 0,
                "sold_listings": 0,
                "total_revenue": 0,
                "total_views": 0,
                "total_inquiries": 0,
            },
        )
        return {"vendor": User.model_validate(document).to_public_dict(), "stats": stats}

    async def daily_summary(self, vendor_id: str) -> Dict[str, Any]:
        now = self.clock()
        day_start = self._start_of_day(now)
        today, last_week, top = await asyncio.gather(
            self._first(
                pipelines.day_activity(vendor_id, day_start),
                {"new_listings": 0, "sold_today": 0, "today_revenue": 0, "today_views": 0, "today_inquiries": 0},
            ),
            self._first(
                pipelines.sales_between(vendor_id, self._days_ago(14, now), self._days_ago(7, now)),
                {"sales": 0, "revenue": 0},
            ),
            self._find(
                {"seller": vendor_id, "status": "active"},
                sort=[("views", -1), ("inquiries", -1)],
                limit=3,
            ),
        )
        return {
            "today": today,
            "weekly_comparison": {"last_week_sales": last_week["sales"], "last_week_revenue": last_week["revenue"]},
            "top_performers": [listing_view(doc) for doc in top],
            "date": day_start.date().isoformat(),
        }

    async def daily_digest(self) -> Dict[str, Any]:
        now = self.clock()
        day_ago = now - timedelta(hours=24)
        new_listings, price_drops, popular = await asyncio.gather(
            self._count({"status": "active", "listed_at": {"$gte": day_ago}}),
            self._find(
                {
                    "status": "active",
                    "price_history.1": {"$exists": True},
                    "last_updated": {"$gte": day_ago},
                },
                limit=5,
            ),
            self._aggregate(pipelines.popular_makes(3)),
        )
        return {
            "new_listings": new_listings,
            "price_drops": len(price_drops),
            "popular_makes": [{"make": row["_id"], "count": row.get("count", 0)} for row in popular],
            "date": now.date().isoformat(),
        }

    async def market_trends(self) -> List[Dict[str, Any]]:
        since = self.clock() - timedelta(hours=self.thresholds.trending_window_hours)
        rows = await self._aggregate(pipelines.trending_makes(since))
        return [
            {"make": row["_id"], "count": row.get("count", 0), "avg_price": row.get("avg_price") or 0}
            for row in rows
        ]

    async def stale_by_vendor(self) -> Dict[str, int]:
        """Vendor id -> count of old, rarely viewed active listings."""
        t = self.thresholds
        rows = await self._aggregate(
            pipelines.stale_by_seller(self._days_ago(t.stale_scan_days), t.stale_scan_max_views)
        )
        return {row["_id"]: row.get("count", 0) for row in rows if row.get("_id")}

    async def active_vendors(self) -> List[str]:
        return await self.store.distinct(LISTINGS_COLLECTION, "seller", {"status": "active"})
