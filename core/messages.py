"""
Message Service - conversations between buyers and vendors.

Buyers open conversations and add follow-ups; vendors reply and triage.
New messages are pushed to every connected vendor, replies to the buyer's
personal topic.
"""
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.errors import NotFoundError, PermissionDeniedError
from core.logging import get_logger
from core.models.common import utc_now
from core.models.listing import LISTINGS_COLLECTION
from core.models.message import (
    MESSAGES_COLLECTION,
    ConversationEntry,
    Message,
    MessageCreate,
    MessageStatus,
)
from core.models.user import Identity
from core.realtime.fanout import EventFanOut
from core.store import EntityStore

logger = get_logger("messages")


class MessageService:

    def __init__(self, store: EntityStore, fanout: EventFanOut, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.fanout = fanout
        self.clock = clock

    async def _after_commit(self, action: str, message_id: str, publish: Awaitable[int]) -> None:
        try:
            await publish
        except Exception:
            logger.exception(
                f"Fan-out after {action} failed",
                extra={"action": action, "message_id": message_id},
            )

    @staticmethod
    def _require_vendor(identity: Identity) -> None:
        if not identity.is_vendor:
            raise PermissionDeniedError("Vendor access required")

    async def get(self, message_id: str) -> Message:
        document = await self.store.find_one(MESSAGES_COLLECTION, {"_id": message_id})
        if document is None:
            raise NotFoundError("Message", message_id)
        return Message.model_validate(document)

    async def send(self, identity: Identity, payload: MessageCreate) -> Message:
        """
        Open a conversation.

        Raises:
            NotFoundError: If payload references a listing that does not exist
        """
        if payload.car_id is not None:
            listing = await self.store.find_one(LISTINGS_COLLECTION, {"_id": payload.car_id})
            if listing is None:
                raise NotFoundError("Car", payload.car_id)

        now = self.clock()
        message = Message(
            user_id=identity.user_id,
            user_name=identity.display_name,
            user_email=identity.email or "",
            car_id=payload.car_id,
            subject=payload.subject,
            message=payload.message,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert_one(MESSAGES_COLLECTION, message.to_dict_for_db())
        logger.info("Message received", extra={"message_id": message.id, "user_id": identity.user_id})
        await self._after_commit("send", message.id, self.fanout.message_sent(message))
        return message

    async def _append(
        self, message_id: str, entry: ConversationEntry, status: MessageStatus
    ) -> Message:
        document = await self.store.find_one_and_update(
            MESSAGES_COLLECTION,
            {"_id": message_id},
            {
                "$push": {"conversation": entry.model_dump()},
                "$set": {"status": status, "updated_at": entry.timestamp},
            },
        )
        if document is None:
            raise NotFoundError("Message", message_id)
        return Message.model_validate(document)

    async def reply(self, identity: Identity, message_id: str, text: str) -> Message:
        """Vendor reply; the buyer is notified on their personal topic."""
        self._require_vendor(identity)
        entry = ConversationEntry(
            sender="admin", message=text, sender_name=identity.display_name, timestamp=self.clock()
        )
        message = await self._append(message_id, entry, "replied")
        await self._after_commit(
            "reply", message_id, self.fanout.message_replied(message, text, identity.display_name)
        )
        return message

    async def user_reply(self, identity: Identity, message_id: str, text: str) -> Message:
        """Buyer follow-up on their own conversation; vendors see it as unread again."""
        existing = await self.get(message_id)
        if existing.user_id != identity.user_id:
            raise PermissionDeniedError("Not authorized")
        entry = ConversationEntry(
            sender="user", message=text, sender_name=identity.display_name, timestamp=self.clock()
        )
        message = await self._append(message_id, entry, "unread")
        await self._after_commit("follow-up", message_id, self.fanout.message_sent(message))
        return message

    async def set_status(self, identity: Identity, message_id: str, status: MessageStatus) -> Message:
        self._require_vendor(identity)
        document = await self.store.find_one_and_update(
            MESSAGES_COLLECTION,
            {"_id": message_id},
            {"$set": {"status": status, "updated_at": self.clock()}},
        )
        if document is None:
            raise NotFoundError("Message", message_id)
        return Message.model_validate(document)

    async def for_user(self, identity: Identity) -> List[Message]:
        documents = await self.store.find(
            MESSAGES_COLLECTION, {"user_id": identity.user_id}, sort=[("created_at", -1)]
        )
        return [Message.model_validate(doc) for doc in documents]

    async def all(self, identity: Identity, status: Optional[MessageStatus] = None) -> Dict[str, Any]:
        """Every conversation, newest first, with the unread count."""
        self._require_vendor(identity)
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        documents = await self.store.find(MESSAGES_COLLECTION, query, sort=[("created_at", -1)])
        unread = await self.store.count_documents(MESSAGES_COLLECTION, {"status": "unread"})
        return {"messages": [Message.model_validate(doc) for doc in documents], "unread_count": unread}
