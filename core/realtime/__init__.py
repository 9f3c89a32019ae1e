"""
Realtime Module

Topic-based publish/subscribe for live marketplace notifications.

Architecture:
    - topics: topic naming and who may join what
    - TopicRouter: owned registry of connections and topic memberships
    - EventFanOut: maps committed mutations to topic deliveries

Usage:
    from core.realtime import TopicRouter, EventFanOut

    router = TopicRouter(authenticator)
    fanout = EventFanOut(router)
    await fanout.listing_created(listing)
"""

from core.realtime.router import Connection, TopicRouter
from core.realtime.fanout import Dispatch, EventFanOut
from core.realtime.topics import (
    PUBLIC_TOPIC,
    user_topic,
    role_topic,
    location_topic,
    make_topic,
    body_type_topic,
    can_join,
)

__all__ = [
    "Connection",
    "TopicRouter",
    "Dispatch",
    "EventFanOut",
    "PUBLIC_TOPIC",
    "user_topic",
    "role_topic",
    "location_topic",
    "make_topic",
    "body_type_topic",
    "can_join",
]
