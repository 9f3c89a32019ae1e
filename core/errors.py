"""
Error taxonomy shared by the store, realtime and analytics layers.

- NotFoundError: referenced listing/user/message does not exist
- PermissionDeniedError: ownership, role or topic access violation
- AuthenticationError: missing or invalid bearer credential
- ConflictError: a unique value (account email) is already taken
- StoreUnavailableError: the document store could not serve the request
- DeliveryError: one subscriber's channel failed (isolated by the router)
"""
from typing import Optional


class MarketplaceError(Exception):
    """Base class for all application errors."""


class NotFoundError(MarketplaceError):
    """A referenced entity is absent."""

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        detail = f"{entity} not found" if entity_id is None else f"{entity} '{entity_id}' not found"
        super().__init__(detail)


class PermissionDeniedError(MarketplaceError):
    """The caller is not allowed to perform this action."""


class AuthenticationError(MarketplaceError):
    """The bearer credential is missing, expired or invalid."""


class ConflictError(MarketplaceError):
    """The entity clashes with an existing one."""


class StoreUnavailableError(MarketplaceError):
    """The entity store failed; surfaced to callers as a service failure."""


class DeliveryError(MarketplaceError):
    """Sending an event to a single connection failed."""

    def __init__(self, connection_id: str, reason: str):
        self.connection_id = connection_id
        super().__init__(f"Delivery to {connection_id} failed: {reason}")
