"""
Request-scoped dependencies.

Components are created once by the application lifespan and live on
app.state; route handlers reach them through these functions.
"""
from typing import Optional

from fastapi import Depends, Request

from core.accounts import AccountService
from core.analytics.engine import AnalyticsEngine
from core.errors import PermissionDeniedError
from core.listings import ListingService
from core.messages import MessageService
from core.models.user import Identity
from core.search import SearchService


def get_listings(request: Request) -> ListingService:
    return request.app.state.listings


def get_search(request: Request) -> SearchService:
    return request.app.state.search


def get_messages(request: Request) -> MessageService:
    return request.app.state.messages


def get_analytics(request: Request) -> AnalyticsEngine:
    return request.app.state.analytics


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def current_identity(request: Request) -> Identity:
    """Resolve the Authorization header; AuthenticationError maps to 401."""
    return request.app.state.authenticator.resolve(request.headers.get("Authorization"))


def optional_identity(request: Request) -> Optional[Identity]:
    return request.app.state.authenticator.try_resolve(request.headers.get("Authorization"))


def vendor_identity(identity: Identity = Depends(current_identity)) -> Identity:
    if not identity.is_vendor:
        raise PermissionDeniedError("Vendor access required")
    return identity
