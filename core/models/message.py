"""
Message Schema - Buyer to vendor conversations.

A message opens a conversation about an optional listing; replies from
either side are appended to its conversation log.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.common import new_id, utc_now


MessageStatus = Literal["unread", "read", "replied"]
SenderKind = Literal["user", "admin"]

MESSAGES_COLLECTION = "messages"


class ConversationEntry(BaseModel):
    sender: SenderKind
    message: str = Field(..., min_length=1)
    sender_name: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class Message(BaseModel):
    """A conversation stored in the 'messages' collection."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")
    user_id: str
    user_name: str
    user_email: str
    car_id: Optional[str] = None
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    status: MessageStatus = "unread"
    conversation: List[ConversationEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_dict_for_db(self) -> dict:
        return self.model_dump(by_alias=True)


class MessageCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)
    car_id: Optional[str] = None


class MessageReply(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


class MessageStatusUpdate(BaseModel):
    status: MessageStatus
