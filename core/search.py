"""
Search Service - browsing, faceted search and market lookups over listings.

All queries are restricted to active listings. Free-text input is escaped
before it is used in a regular expression.
"""
import asyncio
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from core.logging import get_logger
from core.models.common import pagination, utc_now
from core.models.listing import LISTINGS_COLLECTION, Listing, listing_view
from core.models.user import USERS_COLLECTION
from core.store import EntityStore

logger = get_logger("search")

SORTABLE_FIELDS = ("listed_at", "last_updated", "price", "year", "mileage", "views")
PRICE_BUCKETS = [0, 10000, 20000, 30000, 50000, 75000, 100000, float("inf")]


class SearchParams(BaseModel):
    """Listing filters shared by browse and advanced search."""
    search: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    max_mileage: Optional[int] = None
    condition: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    body_type: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    featured: Optional[bool] = None
    urgent: Optional[bool] = None


def contains(text: str) -> Dict[str, str]:
    """Case-insensitive substring match."""
    return {"$regex": re.escape(text), "$options": "i"}


def _range(low: Optional[float], high: Optional[float]) -> Optional[Dict[str, float]]:
    bounds = {}
    if low is not None:
        bounds["$gte"] = low
    if high is not None:
        bounds["$lte"] = high
    return bounds or None


def build_listing_filter(params: SearchParams) -> Dict[str, Any]:
    """Translate search parameters into a store filter on active listings."""
    query: Dict[str, Any] = {"status": "active"}
    if params.search:
        query["$text"] = {"$search": params.search}
    if params.make:
        query["make"] = contains(params.make)
    if params.model:
        query["model"] = contains(params.model)

    price = _range(params.min_price, params.max_price)
    if price:
        query["price"] = price
    year = _range(params.min_year, params.max_year)
    if year:
        query["year"] = year
    if params.max_mileage is not None:
        query["mileage"] = {"$lte": params.max_mileage}

    for field in ("condition", "fuel_type", "transmission", "body_type"):
        value = getattr(params, field)
        if value:
            query[field] = value

    if params.city:
        query["location.city"] = contains(params.city)
    if params.state:
        query["location.state"] = contains(params.state)
    if params.featured:
        query["featured"] = True
    if params.urgent:
        query["urgent"] = True
    return query


def sort_spec(sort_by: str = "listed_at", sort_order: str = "desc") -> List:
    if sort_by not in SORTABLE_FIELDS:
        sort_by = "listed_at"
    return [(sort_by, -1 if sort_order == "desc" else 1)]


def similar_filter(listing: Listing) -> Dict[str, Any]:
    """Same make and model, same make and body type at a similar price, or same body type near the price."""
    return {
        "_id": {"$ne": listing.id},
        "status": "active",
        "$or": [
            {"make": listing.make, "model": listing.model},
            {
                "make": listing.make,
                "body_type": listing.body_type,
                "price": {"$gte": listing.price * 0.7, "$lte": listing.price * 1.3},
            },
            {
                "body_type": listing.body_type,
                "price": {"$gte": listing.price * 0.8, "$lte": listing.price * 1.2},
            },
        ],
    }


class SearchService:
    """Read paths over active listings."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def browse(
        self,
        params: SearchParams,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "listed_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        """Filtered, paginated listing feed with the available filter values."""
        page = max(page, 1)
        query = build_listing_filter(params)
        cars, total, makes, body_types, fuel_types = await asyncio.gather(
            self.store.find(
                LISTINGS_COLLECTION, query, sort=sort_spec(sort_by, sort_order),
                skip=(page - 1) * limit, limit=limit,
            ),
            self.store.count_documents(LISTINGS_COLLECTION, query),
            self.store.distinct(LISTINGS_COLLECTION, "make", {"status": "active"}),
            self.store.distinct(LISTINGS_COLLECTION, "body_type", {"status": "active"}),
            self.store.distinct(LISTINGS_COLLECTION, "fuel_type", {"status": "active"}),
        )
        return {
            "cars": [listing_view(doc) for doc in cars],
            "pagination": pagination(page, limit, total),
            "filters": {"makes": makes, "body_types": body_types, "fuel_types": fuel_types},
        }

    async def advanced_search(
        self,
        params: SearchParams,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "listed_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        """
        Faceted search in one aggregate: the page of results plus total count,
        price statistics, top makes and top model years.
        """
        page = max(page, 1)
        pipeline: List[Dict[str, Any]] = [{"$match": build_listing_filter(params)}]
        if params.search:
            pipeline.append({"$addFields": {"score": {"$meta": "textScore"}}})
        pipeline.append({
            "$lookup": {
                "from": USERS_COLLECTION,
                "localField": "seller",
                "foreignField": "_id",
                "as": "seller_info",
                "pipeline": [{"$project": {"name": 1, "email": 1, "phone": 1}}],
            }
        })
        pipeline.append({"$unwind": {"path": "$seller_info", "preserveNullAndEmptyArrays": True}})
        if params.search and sort_by == "relevance":
            pipeline.append({"$sort": {"score": {"$meta": "textScore"}}})
        else:
            pipeline.append({"$sort": dict(sort_spec(sort_by, sort_order))})
        pipeline.append({
            "$facet": {
                "cars": [{"$skip": (page - 1) * limit}, {"$limit": limit}],
                "total_count": [{"$count": "count"}],
                "price_stats": [
                    {
                        "$group": {
                            "_id": None,
                            "min_price": {"$min": "$price"},
                            "max_price": {"$max": "$price"},
                            "avg_price": {"$avg": "$price"},
                        }
                    }
                ],
                "make_stats": [
                    {"$group": {"_id": "$make", "count": {"$sum": 1}}},
                    {"$sort": {"count": -1}},
                    {"$limit": 10},
                ],
                "year_stats": [
                    {"$group": {"_id": "$year", "count": {"$sum": 1}}},
                    {"$sort": {"_id": -1}},
                    {"$limit": 10},
                ],
            }
        })

        rows = await self.store.aggregate(LISTINGS_COLLECTION, pipeline)
        result = rows[0] if rows else {}
        counts = result.get("total_count") or []
        total = counts[0]["count"] if counts else 0
        price_stats = (result.get("price_stats") or [{}])[0]
        price_stats.pop("_id", None)

        return {
            "cars": [listing_view(doc) for doc in result.get("cars", [])],
            "total": total,
            "pages": pagination(page, limit, total)["pages"],
            "current_page": page,
            "stats": {
                "price": {
                    "min_price": price_stats.get("min_price", 0),
                    "max_price": price_stats.get("max_price", 0),
                    "avg_price": price_stats.get("avg_price", 0),
                },
                "makes": [{"make": row["_id"], "count": row["count"]} for row in result.get("make_stats", [])],
                "years": [{"year": row["_id"], "count": row["count"]} for row in result.get("year_stats", [])],
            },
        }

    async def suggestions(self, query: str) -> Dict[str, Any]:
        query = query.strip()
        if not query:
            return {"makes": [], "models": [], "cars": []}
        pattern = contains(query)
        makes, models, cars = await asyncio.gather(
            self.store.distinct(LISTINGS_COLLECTION, "make", {"make": pattern, "status": "active"}),
            self.store.distinct(LISTINGS_COLLECTION, "model", {"model": pattern, "status": "active"}),
            self.store.find(
                LISTINGS_COLLECTION,
                {"$or": [{"make": pattern}, {"model": pattern}], "status": "active"},
                limit=5,
            ),
        )
        return {
            "makes": makes[:5],
            "models": models[:5],
            "cars": [
                {
                    "text": f"{car['year']} {car['make']} {car['model']}",
                    "make": car["make"],
                    "model": car["model"],
                    "year": car["year"],
                }
                for car in cars
            ],
        }

    async def popular(self) -> Dict[str, Any]:
        makes, models, recent = await asyncio.gather(
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": {"status": "active"}},
                {"$group": {"_id": "$make", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
                {"$limit": 8},
            ]),
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": {"status": "active"}},
                {"$group": {"_id": {"make": "$make", "model": "$model"}, "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
                {"$limit": 8},
                {"$project": {"_id": 0, "make": "$_id.make", "model": "$_id.model", "count": 1}},
            ]),
            self.store.find(
                LISTINGS_COLLECTION, {"status": "active"}, sort=[("listed_at", -1)], limit=5
            ),
        )
        return {
            "popular_makes": [{"make": row["_id"], "count": row["count"]} for row in makes],
            "popular_models": models,
            "recent_listings": [f"{car['year']} {car['make']} {car['model']}" for car in recent],
        }

    async def similar(self, listing: Listing, limit: int = 6) -> List[Listing]:
        documents = await self.store.find(
            LISTINGS_COLLECTION, similar_filter(listing), sort=[("listed_at", -1)], limit=limit
        )
        return [Listing.from_db(doc) for doc in documents]

    async def market_analysis(self, make: Optional[str] = None, model: Optional[str] = None) -> Dict[str, Any]:
        """Price and model-year distribution of active listings, optionally for one make/model."""
        match: Dict[str, Any] = {"status": "active"}
        if make:
            match["make"] = make
        if model:
            match["model"] = model

        overview, price_ranges, years = await asyncio.gather(
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": match},
                {
                    "$group": {
                        "_id": None,
                        "total_listings": {"$sum": 1},
                        "avg_price": {"$avg": "$price"},
                        "min_price": {"$min": "$price"},
                        "max_price": {"$max": "$price"},
                        "avg_mileage": {"$avg": "$mileage"},
                        "avg_year": {"$avg": "$year"},
                    }
                },
            ]),
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": match},
                {
                    "$bucket": {
                        "groupBy": "$price",
                        "boundaries": PRICE_BUCKETS,
                        "default": "other",
                        "output": {"count": {"$sum": 1}},
                    }
                },
            ]),
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": match},
                {"$group": {"_id": "$year", "count": {"$sum": 1}}},
                {"$sort": {"_id": -1}},
                {"$limit": 10},
            ]),
        )
        summary = dict(overview[0]) if overview else {
            "total_listings": 0, "avg_price": 0, "min_price": 0, "max_price": 0, "avg_mileage": 0, "avg_year": 0,
        }
        summary.pop("_id", None)
        return {
            "overview": summary,
            "price_ranges": [{"min_price": row["_id"], "count": row["count"]} for row in price_ranges],
            "year_distribution": [{"year": row["_id"], "count": row["count"]} for row in years],
            "generated_at": utc_now(),
        }

    async def overview_stats(self) -> Dict[str, Any]:
        total_active, avg_rows, makes, recent = await asyncio.gather(
            self.store.count_documents(LISTINGS_COLLECTION, {"status": "active"}),
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": {"status": "active"}},
                {"$group": {"_id": None, "avg_price": {"$avg": "$price"}}},
            ]),
            self.store.aggregate(LISTINGS_COLLECTION, [
                {"$match": {"status": "active"}},
                {"$group": {"_id": "$make", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
                {"$limit": 5},
            ]),
            self.store.find(LISTINGS_COLLECTION, {"status": "active"}, sort=[("listed_at", -1)], limit=5),
        )
        return {
            "total_active": total_active,
            "avg_price": (avg_rows[0].get("avg_price") if avg_rows else None) or 0,
            "popular_makes": [{"make": row["_id"], "count": row["count"]} for row in makes],
            "recent_listings": [listing_view(doc) for doc in recent],
        }
