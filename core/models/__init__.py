"""
CarHub Core Models

Exports for listing, user, message, event and analytics models.
"""

# Shared helpers
from core.models.common import (
    Priority,
    PRIORITY_ORDER,
    utc_now,
    ensure_aware,
    new_id,
    pagination,
)

# Listing models (vehicle inventory)
from core.models.listing import (
    # Enums
    ListingStatus,
    Condition,
    FuelType,
    Transmission,
    BodyType,
    # Nested models
    Coordinates,
    Location,
    PriceHistoryEntry,
    ListingImage,
    # Main model and request schemas
    Listing,
    ListingCreate,
    ListingUpdate,
    BulkUpdateFields,
    BulkUpdateRequest,
    # Factory functions
    create_listing,
    listing_view,
    # Constants
    LISTING_STATUSES,
    BULK_UPDATABLE_FIELDS,
    LISTINGS_COLLECTION,
)

# Users and resolved identities
from core.models.user import Role, User, Identity, RegisterRequest, LoginRequest, USERS_COLLECTION

# Conversations
from core.models.message import (
    MessageStatus,
    ConversationEntry,
    Message,
    MessageCreate,
    MessageReply,
    MessageStatusUpdate,
    MESSAGES_COLLECTION,
)

# Realtime events
from core.models.event import EventKind, Event

# Analytics read models
from core.models.analytics import (
    Urgency,
    Lead,
    PricingRecommendation,
    MarketOpportunity,
    Advisory,
    Recommendations,
)

__all__ = [
    "Priority",
    "PRIORITY_ORDER",
    "utc_now",
    "ensure_aware",
    "new_id",
    "pagination",
    # Listing models
    "ListingStatus",
    "Condition",
    "FuelType",
    "Transmission",
    "BodyType",
    "Coordinates",
    "Location",
    "PriceHistoryEntry",
    "ListingImage",
    "Listing",
    "ListingCreate",
    "ListingUpdate",
    "BulkUpdateFields",
    "BulkUpdateRequest",
    "create_listing",
    "listing_view",
    "LISTING_STATUSES",
    "BULK_UPDATABLE_FIELDS",
    "LISTINGS_COLLECTION",
    # User models
    "Role",
    "User",
    "Identity",
    "RegisterRequest",
    "LoginRequest",
    "USERS_COLLECTION",
    # Message models
    "MessageStatus",
    "ConversationEntry",
    "Message",
    "MessageCreate",
    "MessageReply",
    "MessageStatusUpdate",
    "MESSAGES_COLLECTION",
    # Events
    "EventKind",
    "Event",
    # Analytics
    "Urgency",
    "Lead",
    "PricingRecommendation",
    "MarketOpportunity",
    "Advisory",
    "Recommendations",
]
