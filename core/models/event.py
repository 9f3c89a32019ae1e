"""
Event Schema - Transient notifications pushed to live subscribers.

Events are never persisted. They are built by the fan-out engine and
delivered by the topic router at most once to each joined connection.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.common import Priority, utc_now


class EventKind(str, Enum):
    """Wire names of every event the fan-out engine can emit."""
    NEW_LISTING = "new-listing"
    PRICE_ALERT = "price-alert"
    NEW_INQUIRY = "new-inquiry"
    PERFORMANCE_MILESTONE = "performance-milestone"
    INVENTORY_UPDATE = "inventory-update"
    LISTING_REMOVED = "listing-removed"
    SIMILAR_LISTINGS = "similar-listings"
    SALES_ACHIEVEMENT = "sales-achievement"
    INVENTORY_ALERT = "inventory-alert"
    PRICING_ALERT = "pricing-alert"
    MARKET_INSIGHT = "market-insight"
    DAILY_SUMMARY = "daily-summary"
    DAILY_DIGEST = "daily-digest"
    MARKET_TRENDS = "market-trends"
    NEW_MESSAGE = "new-message"
    MESSAGE_REPLY = "message-reply"
    BATCH_NOTIFICATION = "batch-notification"


class Event(BaseModel):
    """
    Immutable typed event.

    Attributes:
        kind: Event type, used as the wire event name
        message: Human readable text
        priority: low, medium or high
        timestamp: Creation time (UTC)
        listing_id: Listing the event is about, if any
        user_id: User the event is about, if any
        data: Kind-specific payload fields
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    message: str
    priority: Priority = "low"
    timestamp: datetime = Field(default_factory=utc_now)
    listing_id: Optional[str] = None
    user_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.kind.value

    def to_payload(self) -> Dict[str, Any]:
        """Flatten into the JSON body sent to subscribers."""
        payload: Dict[str, Any] = dict(self.model_dump(mode="json")["data"])
        payload["type"] = self.kind.value
        payload["message"] = self.message
        payload["priority"] = self.priority
        payload["timestamp"] = self.timestamp.isoformat()
        if self.listing_id is not None:
            payload["car_id"] = self.listing_id
        if self.user_id is not None:
            payload["user_id"] = self.user_id
        return payload
