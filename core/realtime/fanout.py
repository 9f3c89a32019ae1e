"""
Event Fan-Out Engine - turns committed mutations into topic deliveries.

Design:
    - plan_* functions are pure: (mutation facts) -> list of Dispatch.
      They never read or write the store, so every rule is testable
      without a router or a database.
    - EventFanOut runs a plan through the TopicRouter, in plan order.

Callers invoke the engine only after their mutation has committed. The
engine itself never raises delivery problems back to them; the router
isolates per-recipient failures.

Example:
    fanout = EventFanOut(router)
    await fanout.price_changed(listing, old_price=100, new_price=94)
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.analytics.metrics import crossed, price_change_percent, round_half_up
from core.logging import get_logger
from core.models.event import Event, EventKind
from core.models.listing import Listing
from core.models.message import Message
from core.realtime.router import TopicRouter
from core.realtime.topics import (
    PUBLIC_TOPIC,
    location_topic,
    make_topic,
    role_topic,
    user_topic,
)
from core.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = get_logger("fanout")


@dataclass(frozen=True)
class Dispatch:
    """One publish call: deliver `event` to `topic`."""
    topic: str
    event: Event


def _money(value: float) -> str:
    return f"${value:,.0f}"


# ============================================================================
# LISTING LIFECYCLE
# ============================================================================

def plan_listing_created(listing: Listing) -> List[Dispatch]:
    """New listing -> its location, its make and the public feed."""
    car = listing.summary()
    city = listing.location.city
    return [
        Dispatch(
            location_topic(city, listing.location.state),
            Event(
                kind=EventKind.NEW_LISTING,
                message=f"New {listing.title} available in {city}",
                listing_id=listing.id,
                data={"car": car, "scope": "location"},
            ),
        ),
        Dispatch(
            make_topic(listing.make),
            Event(
                kind=EventKind.NEW_LISTING,
                message=f"New {listing.make} {listing.model} listed for {_money(listing.price)}",
                listing_id=listing.id,
                data={"car": car, "scope": "make"},
            ),
        ),
        Dispatch(
            PUBLIC_TOPIC,
            Event(
                kind=EventKind.NEW_LISTING,
                message=f"New {listing.title} listed",
                listing_id=listing.id,
                data={"car": car, "scope": "public"},
            ),
        ),
    ]


def plan_price_change(
    listing: Listing,
    old_price: float,
    new_price: float,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[Dispatch]:
    """
    Price reductions at or beyond the alert threshold reach the listing's
    location and make topics. Smaller drops and increases publish nothing.
    """
    if old_price <= 0:
        return []
    percent = price_change_percent(old_price, new_price)
    if percent > thresholds.price_drop_alert_percent:
        return []

    discount = round_half_up(abs(percent), 1)
    event = Event(
        kind=EventKind.PRICE_ALERT,
        message=f"Price drop: {listing.title} now {_money(new_price)}",
        priority="medium",
        listing_id=listing.id,
        data={
            "car": listing.summary(),
            "old_price": old_price,
            "new_price": new_price,
            "discount": discount,
        },
    )
    return [
        Dispatch(location_topic(listing.location.city, listing.location.state), event),
        Dispatch(make_topic(listing.make), event),
    ]


def plan_listing_removed(listing: Listing) -> List[Dispatch]:
    return [
        Dispatch(
            PUBLIC_TOPIC,
            Event(
                kind=EventKind.LISTING_REMOVED,
                message=f"{listing.title} is no longer available",
                listing_id=listing.id,
                data={"car": listing.summary()},
            ),
        )
    ]


def plan_status_change(
    listing: Listing,
    previous_status: str,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[Dispatch]:
    """A sale inside the quick-sale window congratulates the seller."""
    if listing.status != "sold" or previous_status == "sold":
        return []
    days = listing.days_to_sell()
    if days is None or days > thresholds.quick_sale_days:
        return []
    return plan_sales_achievement(
        listing.seller,
        "quick_sale",
        {"car": listing.summary(), "days": int(days)},
        listing_id=listing.id,
    )


# ============================================================================
# ENGAGEMENT
# ============================================================================

def plan_inquiry(
    listing: Listing,
    inquirer: str,
    previous_inquiries: int,
    current_inquiries: int,
    message: Optional[str] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[Dispatch]:
    """
    Inquiry -> the seller's personal topic, then a milestone event when this
    inquiry is the one that reaches the milestone count.
    """
    seller_topic = user_topic(listing.seller)
    dispatches = [
        Dispatch(
            seller_topic,
            Event(
                kind=EventKind.NEW_INQUIRY,
                message=message or f"{inquirer} is interested in your {listing.title}",
                priority="high",
                listing_id=listing.id,
                data={"car": listing.summary(), "inquirer": inquirer},
            ),
        )
    ]
    if crossed(previous_inquiries, current_inquiries, thresholds.inquiry_milestone):
        dispatches.append(
            Dispatch(
                seller_topic,
                Event(
                    kind=EventKind.PERFORMANCE_MILESTONE,
                    message=f"{current_inquiries} people are interested in your {listing.title}",
                    priority="high",
                    listing_id=listing.id,
                    data={
                        "milestone": "multiple_inquiries",
                        "car": listing.summary(),
                        "inquiries": current_inquiries,
                    },
                ),
            )
        )
    return dispatches


def plan_view(
    listing: Listing,
    previous_views: int,
    current_views: int,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[Dispatch]:
    if not crossed(previous_views, current_views, thresholds.view_milestone):
        return []
    return [
        Dispatch(
            user_topic(listing.seller),
            Event(
                kind=EventKind.PERFORMANCE_MILESTONE,
                message=f"Your {listing.title} reached {current_views} views!",
                priority="medium",
                listing_id=listing.id,
                data={"milestone": "high_views", "car": listing.summary(), "views": current_views},
            ),
        )
    ]


def plan_similar_listings(
    viewer_id: str,
    viewed: Listing,
    similar: Sequence[Listing],
) -> List[Dispatch]:
    if not similar:
        return []
    return [
        Dispatch(
            user_topic(viewer_id),
            Event(
                kind=EventKind.SIMILAR_LISTINGS,
                message=f"Found {len(similar)} similar cars you might like",
                user_id=viewer_id,
                listing_id=viewed.id,
                data={
                    "viewed_car": {"make": viewed.make, "model": viewed.model, "year": viewed.year},
                    "similar_cars": [car.summary() for car in similar],
                },
            ),
        )
    ]


# ============================================================================
# VENDOR NOTIFICATIONS
# ============================================================================

def plan_bulk_update(vendor_id: str, updated_count: int, updates: Dict[str, Any]) -> List[Dispatch]:
    """Always published, even when the ownership filter matched nothing."""
    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.INVENTORY_UPDATE,
                message=f"Updated {updated_count} cars",
                priority="medium",
                user_id=vendor_id,
                data={"updated_count": updated_count, "updates": updates},
            ),
        )
    ]


_INVENTORY_ALERTS = {
    "low_inventory": ("high", "Low inventory alert: Only {count} active listings remaining"),
    "stale_listings": ("medium", "{count} listings have been active for over {days} days"),
    "price_review": ("medium", "{count} cars may need price adjustment"),
    "market_opportunity": ("low", "High demand detected for {category}"),
}


def plan_inventory_alert(vendor_id: str, alert_type: str, data: Dict[str, Any]) -> List[Dispatch]:
    """
    Raises:
        ValueError: For an unknown alert type
    """
    if alert_type not in _INVENTORY_ALERTS:
        raise ValueError(f"Unknown inventory alert: {alert_type}")
    priority, template = _INVENTORY_ALERTS[alert_type]
    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.INVENTORY_ALERT,
                message=template.format(**data),
                priority=priority,
                user_id=vendor_id,
                data={"alert_type": alert_type, **data},
            ),
        )
    ]


def plan_sales_achievement(
    vendor_id: str,
    achievement: str,
    data: Dict[str, Any],
    listing_id: Optional[str] = None,
) -> List[Dispatch]:
    if achievement == "monthly_target":
        priority, message = "high", f"Congratulations! You've reached your monthly sales target of {data['target']} cars"
    elif achievement == "revenue_milestone":
        priority, message = "high", f"Great job! You've earned {_money(data['revenue'])} this month"
    elif achievement == "quick_sale":
        car = data["car"]
        priority = "medium"
        message = f"Fast sale! Your {car['year']} {car['make']} {car['model']} sold in {data['days']} days"
    elif achievement == "high_margin":
        priority, message = "medium", f"Excellent profit margin of {data['margin']}% on your recent sale"
    else:
        raise ValueError(f"Unknown sales achievement: {achievement}")

    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.SALES_ACHIEVEMENT,
                message=message,
                priority=priority,
                user_id=vendor_id,
                listing_id=listing_id,
                data={"achievement": achievement, **data},
            ),
        )
    ]


def plan_competitor_pricing(
    vendor_id: str,
    listing: Listing,
    market_avg_price: float,
    comparable_count: int = 0,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[Dispatch]:
    """Compare a listing with the comparable-market mean and tell its seller."""
    if market_avg_price <= 0:
        return []
    price_diff = listing.price - market_avg_price
    percent_diff = round_half_up(price_diff / market_avg_price * 100, 1)
    alert_percent = (thresholds.competitive_price_ratio - 1) * 100

    if price_diff > 0:
        message = f"Your {listing.title} is priced {percent_diff}% above market average"
        priority = "high" if abs(percent_diff) > alert_percent else "medium"
    else:
        message = f"Your {listing.title} is competitively priced at {abs(percent_diff)}% below market"
        priority = "low"

    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.PRICING_ALERT,
                message=message,
                priority=priority,
                listing_id=listing.id,
                user_id=vendor_id,
                data={
                    "car": listing.summary(),
                    "market_avg_price": market_avg_price,
                    "comparable_count": comparable_count,
                    "price_diff": price_diff,
                    "percent_diff": percent_diff,
                },
            ),
        )
    ]


def plan_market_insight(vendor_id: str, insight: Dict[str, Any]) -> List[Dispatch]:
    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.MARKET_INSIGHT,
                message=insight.get("message", "New market insight available"),
                user_id=vendor_id,
                data={"insight": insight},
            ),
        )
    ]


def plan_daily_summary(vendor_id: str, summary: Dict[str, Any]) -> List[Dispatch]:
    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.DAILY_SUMMARY,
                message="Your daily performance summary is ready",
                user_id=vendor_id,
                data={"summary": summary},
            ),
        )
    ]


def plan_batch(vendor_ids: Iterable[str], notification: Dict[str, Any]) -> List[Dispatch]:
    message = notification.get("message", "")
    priority = notification.get("priority", "low")
    return [
        Dispatch(
            user_topic(vendor_id),
            Event(
                kind=EventKind.BATCH_NOTIFICATION,
                message=message,
                priority=priority,
                user_id=vendor_id,
                data={key: value for key, value in notification.items() if key not in ("message", "priority")},
            ),
        )
        for vendor_id in dict.fromkeys(vendor_ids)
    ]


# ============================================================================
# MARKETPLACE FEEDS
# ============================================================================

def plan_daily_digest(digest: Dict[str, Any]) -> List[Dispatch]:
    return [
        Dispatch(
            PUBLIC_TOPIC,
            Event(kind=EventKind.DAILY_DIGEST, message="Your daily car market update", data=digest),
        )
    ]


def plan_market_trends(trending: List[Dict[str, Any]]) -> List[Dispatch]:
    if not trending:
        return []
    return [
        Dispatch(
            PUBLIC_TOPIC,
            Event(kind=EventKind.MARKET_TRENDS, message="Hot in the market today", data={"trending": trending}),
        )
    ]


# ============================================================================
# MESSAGES
# ============================================================================

def plan_new_message(message: Message) -> List[Dispatch]:
    """A buyer's message goes to every connected vendor."""
    return [
        Dispatch(
            role_topic("vendor"),
            Event(
                kind=EventKind.NEW_MESSAGE,
                message=f"New message from {message.user_name}: {message.subject}",
                priority="medium",
                user_id=message.user_id,
                listing_id=message.car_id,
                data={"message_id": message.id, "subject": message.subject, "from": message.user_name},
            ),
        )
    ]


def plan_message_reply(message: Message, reply: str, sender_name: str) -> List[Dispatch]:
    return [
        Dispatch(
            user_topic(message.user_id),
            Event(
                kind=EventKind.MESSAGE_REPLY,
                message=f"{sender_name} replied to \"{message.subject}\"",
                priority="medium",
                user_id=message.user_id,
                listing_id=message.car_id,
                data={"message_id": message.id, "reply": reply, "from": sender_name},
            ),
        )
    ]


# ============================================================================
# ENGINE
# ============================================================================

class EventFanOut:
    """
    Runs fan-out plans through a TopicRouter.

    Each public method corresponds to one kind of committed mutation and
    returns the number of deliveries made.
    """

    def __init__(self, router: TopicRouter, thresholds: Thresholds = DEFAULT_THRESHOLDS):
        self.router = router
        self.thresholds = thresholds

    async def dispatch(self, dispatches: Sequence[Dispatch]) -> int:
        delivered = 0
        for item in dispatches:
            delivered += await self.router.publish(item.topic, item.event)
        if dispatches:
            logger.debug(
                "Fan-out complete",
                extra={"dispatches": len(dispatches), "delivered": delivered},
            )
        return delivered

    async def listing_created(self, listing: Listing) -> int:
        return await self.dispatch(plan_listing_created(listing))

    async def price_changed(self, listing: Listing, old_price: float, new_price: float) -> int:
        return await self.dispatch(plan_price_change(listing, old_price, new_price, self.thresholds))

    async def status_changed(self, listing: Listing, previous_status: str) -> int:
        return await self.dispatch(plan_status_change(listing, previous_status, self.thresholds))

    async def listing_removed(self, listing: Listing) -> int:
        return await self.dispatch(plan_listing_removed(listing))

    async def inquiry_recorded(
        self,
        listing: Listing,
        inquirer: str,
        previous_inquiries: int,
        current_inquiries: int,
        message: Optional[str] = None,
    ) -> int:
        return await self.dispatch(
            plan_inquiry(listing, inquirer, previous_inquiries, current_inquiries, message, self.thresholds)
        )

    async def listing_viewed(self, listing: Listing, previous_views: int, current_views: int) -> int:
        return await self.dispatch(plan_view(listing, previous_views, current_views, self.thresholds))

    async def similar_listings(self, viewer_id: str, viewed: Listing, similar: Sequence[Listing]) -> int:
        return await self.dispatch(plan_similar_listings(viewer_id, viewed, similar))

    async def bulk_updated(self, vendor_id: str, updated_count: int, updates: Dict[str, Any]) -> int:
        return await self.dispatch(plan_bulk_update(vendor_id, updated_count, updates))

    async def inventory_alert(self, vendor_id: str, alert_type: str, data: Dict[str, Any]) -> int:
        return await self.dispatch(plan_inventory_alert(vendor_id, alert_type, data))

    async def sales_achievement(self, vendor_id: str, achievement: str, data: Dict[str, Any]) -> int:
        return await self.dispatch(plan_sales_achievement(vendor_id, achievement, data))

    async def competitor_pricing(
        self, vendor_id: str, listing: Listing, market_avg_price: float, comparable_count: int = 0
    ) -> int:
        return await self.dispatch(
            plan_competitor_pricing(vendor_id, listing, market_avg_price, comparable_count, self.thresholds)
        )

    async def market_insight(self, vendor_id: str, insight: Dict[str, Any]) -> int:
        return await self.dispatch(plan_market_insight(vendor_id, insight))

    async def daily_summary(self, vendor_id: str, summary: Dict[str, Any]) -> int:
        return await self.dispatch(plan_daily_summary(vendor_id, summary))

    async def batch(self, vendor_ids: Iterable[str], notification: Dict[str, Any]) -> int:
        return await self.dispatch(plan_batch(vendor_ids, notification))

    async def daily_digest(self, digest: Dict[str, Any]) -> int:
        return await self.dispatch(plan_daily_digest(digest))

    async def market_trends(self, trending: List[Dict[str, Any]]) -> int:
        return await self.dispatch(plan_market_trends(trending))

    async def message_sent(self, message: Message) -> int:
        return await self.dispatch(plan_new_message(message))

    async def message_replied(self, message: Message, reply: str, sender_name: str) -> int:
        return await self.dispatch(plan_message_reply(message, reply, sender_name))
