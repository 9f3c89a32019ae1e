"""
Listing Service - the mutation boundary for vehicle listings.

Every write follows the same two phases:
    1. commit the change to the entity store
    2. hand the committed state to the fan-out engine

Phase 2 runs only after phase 1 succeeded, and a failure in phase 2 is
logged without touching the committed data.
"""
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.errors import NotFoundError, PermissionDeniedError
from core.logging import get_logger
from core.models.common import pagination, utc_now
from core.models.listing import (
    LISTINGS_COLLECTION,
    BulkUpdateRequest,
    Listing,
    ListingCreate,
    ListingStatus,
    ListingUpdate,
    create_listing,
    listing_view,
)
from core.models.user import Identity
from core.realtime.fanout import EventFanOut
from core.search import SearchService, contains, sort_spec
from core.store import EntityStore

logger = get_logger("listings")

# Engagement counters only ever change through $inc
_COUNTER_FIELDS = ("views", "inquiries", "favorites")


class ListingService:
    """Create, read, update and engage with listings."""

    def __init__(
        self,
        store: EntityStore,
        fanout: EventFanOut,
        search: Optional[SearchService] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.fanout = fanout
        self.search = search or SearchService(store)
        self.clock = clock

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _after_commit(self, action: str, listing_id: Optional[str], publish: Awaitable[int]) -> None:
        try:
            await publish
        except Exception:
            logger.exception(
                f"Fan-out after {action} failed",
                extra={"action": action, "listing_id": listing_id},
            )

    @staticmethod
    def _require_owner(listing: Listing, identity: Identity) -> None:
        if listing.seller != identity.user_id:
            raise PermissionDeniedError("Not authorized")

    async def get(self, listing_id: str) -> Listing:
        document = await self.store.find_one(LISTINGS_COLLECTION, {"_id": listing_id})
        if document is None:
            raise NotFoundError("Car", listing_id)
        return Listing.from_db(document)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def create(self, identity: Identity, payload: ListingCreate) -> Listing:
        listing = create_listing(identity.user_id, payload, identity.role, self.clock())
        await self.store.insert_one(LISTINGS_COLLECTION, listing.to_dict_for_db())
        logger.info(
            f"Listed {listing.title}",
            extra={"listing_id": listing.id, "seller": identity.user_id, "price": listing.price},
        )
        await self._after_commit("create", listing.id, self.fanout.listing_created(listing))
        return listing

    async def update(self, identity: Identity, listing_id: str, payload: ListingUpdate) -> Listing:
        """
        Apply a partial update. A price change is appended to the price
        history and may raise a price alert.

        Raises:
            NotFoundError: If the listing does not exist
            PermissionDeniedError: If the caller does not own it
        """
        listing = await self.get(listing_id)
        self._require_owner(listing, identity)
        now = self.clock()

        old_price = None
        new_price = None
        for field in payload.model_fields_set:
            value = getattr(payload, field)
            if value is None:
                continue
            if field == "price":
                new_price = value
                old_price = listing.change_price(value, now)
            else:
                setattr(listing, field, value)
        listing.last_updated = now
        listing = Listing.model_validate(listing.model_dump(by_alias=True))

        document = listing.to_dict_for_db()
        for field in ("_id", *_COUNTER_FIELDS):
            document.pop(field, None)
        await self.store.update_one(LISTINGS_COLLECTION, {"_id": listing_id}, {"$set": document})

        if old_price is not None:
            await self._after_commit(
                "price change", listing_id, self.fanout.price_changed(listing, old_price, new_price)
            )
        return listing

    async def change_status(self, identity: Identity, listing_id: str, status: ListingStatus) -> Listing:
        listing = await self.get(listing_id)
        self._require_owner(listing, identity)
        previous = listing.change_status(status, self.clock())

        await self.store.update_one(
            LISTINGS_COLLECTION,
            {"_id": listing_id},
            {"$set": {"status": listing.status, "sold_at": listing.sold_at, "last_updated": listing.last_updated}},
        )
        logger.info(
            "Listing status changed",
            extra={"listing_id": listing_id, "from": previous, "to": status},
        )
        await self._after_commit("status change", listing_id, self.fanout.status_changed(listing, previous))
        return listing

    async def delete(self, identity: Identity, listing_id: str) -> None:
        listing = await self.get(listing_id)
        self._require_owner(listing, identity)
        await self.store.delete_one(LISTINGS_COLLECTION, {"_id": listing_id})
        logger.info("Listing deleted", extra={"listing_id": listing_id})
        await self._after_commit("delete", listing_id, self.fanout.listing_removed(listing))

    # ========================================================================
    # ENGAGEMENT
    # ========================================================================

    async def view(self, listing_id: str, viewer: Optional[Identity] = None) -> Dict[str, Any]:
        """
        Read a listing, counting the view.

        The seller hears about the view milestone; an authenticated viewer
        other than the seller is sent similar listings.
        """
        document = await self.store.find_one_and_update(
            LISTINGS_COLLECTION, {"_id": listing_id}, {"$inc": {"views": 1}}
        )
        if document is None:
            raise NotFoundError("Car", listing_id)
        listing = Listing.from_db(document)

        await self._after_commit(
            "view", listing_id, self.fanout.listing_viewed(listing, listing.views - 1, listing.views)
        )
        similar = await self.search.similar(listing, limit=4)
        if viewer is not None and viewer.user_id != listing.seller:
            await self._after_commit(
                "view", listing_id, self.fanout.similar_listings(viewer.user_id, listing, similar[:3])
            )
        return {"car": listing, "similar_cars": similar}

    async def favorite(self, listing_id: str) -> int:
        document = await self.store.find_one_and_update(
            LISTINGS_COLLECTION, {"_id": listing_id}, {"$inc": {"favorites": 1}}
        )
        if document is None:
            raise NotFoundError("Car", listing_id)
        return document["favorites"]

    async def record_inquiry(self, identity: Identity, listing_id: str, message: Optional[str] = None) -> Listing:
        """
        Count an inquiry and notify the seller.

        The post-increment counter decides whether this inquiry crossed the
        milestone, so concurrent inquiries each see a distinct value.
        """
        document = await self.store.find_one_and_update(
            LISTINGS_COLLECTION,
            {"_id": listing_id},
            {"$inc": {"inquiries": 1}, "$set": {"last_updated": self.clock()}},
        )
        if document is None:
            raise NotFoundError("Car", listing_id)
        listing = Listing.from_db(document)
        await self._after_commit(
            "inquiry",
            listing_id,
            self.fanout.inquiry_recorded(
                listing, identity.display_name, listing.inquiries - 1, listing.inquiries, message
            ),
        )
        return listing

    # ========================================================================
    # VENDOR INVENTORY
    # ========================================================================

    async def bulk_update(self, identity: Identity, request: BulkUpdateRequest) -> int:
        """
        Patch many listings at once. Only the caller's own listings match.

        Raises:
            ValueError: If no allowed field is present or a value is invalid

        Returns:
            Number of listings modified
        """
        updates = request.allowed_updates()
        if not updates:
            raise ValueError("No valid updates provided")

        now = self.clock()
        owned = {"_id": {"$in": request.listing_ids}, "seller": identity.user_id}

        # Side effects that depend on each listing's current state go first,
        # while status and price still hold their old values
        if updates.get("status") == "sold":
            await self.store.update_many(
                LISTINGS_COLLECTION, {**owned, "status": {"$ne": "sold"}}, {"$set": {"sold_at": now}}
            )
        if "price" in updates:
            await self.store.update_many(
                LISTINGS_COLLECTION,
                {**owned, "price": {"$ne": updates["price"]}},
                {"$push": {"price_history": {"price": updates["price"], "date": now}}},
            )

        update: Dict[str, Any] = {"$set": {**updates, "last_updated": now}}
        if "status" in updates and updates["status"] != "sold":
            update["$set"]["sold_at"] = None
        modified = await self.store.update_many(LISTINGS_COLLECTION, owned, update)
        logger.info(
            f"Bulk updated {modified} cars",
            extra={"vendor_id": identity.user_id, "requested": len(request.listing_ids), "fields": list(updates)},
        )
        await self._after_commit("bulk update", None, self.fanout.bulk_updated(identity.user_id, modified, updates))
        return modified

    async def seller_listings(self, seller_id: str) -> List[Dict[str, Any]]:
        documents = await self.store.find(
            LISTINGS_COLLECTION, {"seller": seller_id}, sort=[("listed_at", -1)]
        )
        return [listing_view(doc) for doc in documents]

    async def inventory(
        self,
        vendor_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        sort_by: str = "listed_at",
        sort_order: str = "desc",
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        page = max(page, 1)
        query: Dict[str, Any] = {"seller": vendor_id}
        if status:
            query["status"] = status
        if search:
            query["$or"] = [{"make": contains(search)}, {"model": contains(search)}]

        documents = await self.store.find(
            LISTINGS_COLLECTION, query, sort=sort_spec(sort_by, sort_order),
            skip=(page - 1) * limit, limit=limit,
        )
        total = await self.store.count_documents(LISTINGS_COLLECTION, query)
        return {"cars": [listing_view(doc) for doc in documents], "pagination": pagination(page, limit, total)}
