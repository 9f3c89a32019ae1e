"""
Entity Store - the document store the core reads and writes through.

EntityStore is the contract the listing service, search and the analytics
engine depend on. MongoEntityStore implements it on pymongo's async
client; tests substitute an in-memory double.

Every driver failure is re-raised as StoreUnavailableError so callers see
one error type regardless of the backend.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from core.errors import ConflictError, StoreUnavailableError
from core.logging import get_logger
from core.models.listing import LISTINGS_COLLECTION
from core.models.message import MESSAGES_COLLECTION
from core.models.user import USERS_COLLECTION

logger = get_logger("store")

SortSpec = Sequence[Tuple[str, int]]
Document = Dict[str, Any]

COLLECTIONS = (LISTINGS_COLLECTION, USERS_COLLECTION, MESSAGES_COLLECTION)


class EntityStore(ABC):
    """Filter, aggregate and update operations over named collections."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
        projection: Optional[Document] = None,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def find_one(self, collection: str, filter: Document) -> Optional[Document]:
        ...

    @abstractmethod
    async def aggregate(self, collection: str, pipeline: List[Document]) -> List[Document]:
        ...

    @abstractmethod
    async def insert_one(self, collection: str, document: Document) -> str:
        """Raises ConflictError when a unique index rejects the document."""

    @abstractmethod
    async def update_one(self, collection: str, filter: Document, update: Document) -> int:
        """Returns the number of matched documents (0 or 1)."""

    @abstractmethod
    async def update_many(self, collection: str, filter: Document, update: Document) -> int:
        """Returns the number of modified documents."""

    @abstractmethod
    async def find_one_and_update(
        self,
        collection: str,
        filter: Document,
        update: Document,
        return_before: bool = False,
    ) -> Optional[Document]:
        ...

    @abstractmethod
    async def delete_one(self, collection: str, filter: Document) -> int:
        ...

    @abstractmethod
    async def count_documents(self, collection: str, filter: Optional[Document] = None) -> int:
        ...

    @abstractmethod
    async def distinct(
        self, collection: str, key: str, filter: Optional[Document] = None
    ) -> List[Any]:
        ...


class MongoEntityStore(EntityStore):
    """EntityStore backed by a pymongo AsyncDatabase."""

    def __init__(self, database: AsyncDatabase):
        self.database = database

    def _collection(self, name: str):
        return self.database[name]

    def _unavailable(self, operation: str, collection: str, error: PyMongoError) -> StoreUnavailableError:
        logger.error(
            f"Store operation {operation} failed",
            extra={"collection": collection, "error": str(error)},
        )
        return StoreUnavailableError(f"{operation} on {collection} failed: {error}")

    async def find(self, collection, filter=None, sort=None, skip=0, limit=0, projection=None):
        try:
            cursor = self._collection(collection).find(filter or {}, projection)
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list()
        except PyMongoError as e:
            raise self._unavailable("find", collection, e) from e

    async def find_one(self, collection, filter):
        try:
            return await self._collection(collection).find_one(filter)
        except PyMongoError as e:
            raise self._unavailable("find_one", collection, e) from e

    async def aggregate(self, collection, pipeline):
        try:
            cursor = await self._collection(collection).aggregate(pipeline)
            return await cursor.to_list()
        except PyMongoError as e:
            raise self._unavailable("aggregate", collection, e) from e

    async def insert_one(self, collection, document):
        try:
            result = await self._collection(collection).insert_one(document)
            return result.inserted_id
        except DuplicateKeyError as e:
            raise ConflictError(f"Duplicate key in {collection}") from e
        except PyMongoError as e:
            raise self._unavailable("insert_one", collection, e) from e

    async def update_one(self, collection, filter, update):
        try:
            result = await self._collection(collection).update_one(filter, update)
            return result.matched_count
        except PyMongoError as e:
            raise self._unavailable("update_one", collection, e) from e

    async def update_many(self, collection, filter, update):
        try:
            result = await self._collection(collection).update_many(filter, update)
            return result.modified_count
        except PyMongoError as e:
            raise self._unavailable("update_many", collection, e) from e

    async def find_one_and_update(self, collection, filter, update, return_before=False):
        return_document = ReturnDocument.BEFORE if return_before else ReturnDocument.AFTER
        try:
            return await self._collection(collection).find_one_and_update(
                filter, update, return_document=return_document
            )
        except PyMongoError as e:
            raise self._unavailable("find_one_and_update", collection, e) from e

    async def delete_one(self, collection, filter):
        try:
            result = await self._collection(collection).delete_one(filter)
            return result.deleted_count
        except PyMongoError as e:
            raise self._unavailable("delete_one", collection, e) from e

    async def count_documents(self, collection, filter=None):
        try:
            return await self._collection(collection).count_documents(filter or {})
        except PyMongoError as e:
            raise self._unavailable("count_documents", collection, e) from e

    async def distinct(self, collection, key, filter=None):
        try:
            return await self._collection(collection).distinct(key, filter or {})
        except PyMongoError as e:
            raise self._unavailable("distinct", collection, e) from e

    async def ensure_indexes(self) -> None:
        """
        Create the indexes search and analytics rely on.

        Mirrors the listing indexes: text search over make/model/description,
        and the categorical/seller fields used by filters and groupings.
        """
        listings = self._collection(LISTINGS_COLLECTION)
        try:
            await listings.create_index(
                [("make", "text"), ("model", "text"), ("description", "text")],
                name="listing_text",
            )
            await listings.create_index([("make", 1), ("model", 1), ("year", 1)])
            await listings.create_index([("seller", 1), ("status", 1)])
            await listings.create_index([("location.city", 1), ("location.state", 1)])
            await listings.create_index([("price", 1)])
            await listings.create_index([("listed_at", -1)])
            await self._collection(USERS_COLLECTION).create_index("email", unique=True)
            await self._collection(MESSAGES_COLLECTION).create_index([("user_id", 1), ("created_at", -1)])
            logger.info("Indexes ensured", extra={"collections": list(COLLECTIONS)})
        except PyMongoError as e:
            raise self._unavailable("create_index", LISTINGS_COLLECTION, e) from e
