"""Buyer/vendor conversation endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends

from core.messages import MessageService
from core.models.message import MessageCreate, MessageReply, MessageStatus, MessageStatusUpdate
from core.models.user import Identity
from services.api.dependencies import current_identity, get_messages, vendor_identity

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("", status_code=201)
async def send_message(
    payload: MessageCreate,
    identity: Identity = Depends(current_identity),
    messages: MessageService = Depends(get_messages),
):
    message = await messages.send(identity, payload)
    return {"message": "Message sent successfully", "data": message.model_dump(mode="json")}


@router.get("/user")
async def my_messages(
    identity: Identity = Depends(current_identity),
    messages: MessageService = Depends(get_messages),
):
    return {"messages": [message.model_dump(mode="json") for message in await messages.for_user(identity)]}


@router.get("/admin")
async def all_messages(
    status: Optional[MessageStatus] = None,
    vendor: Identity = Depends(vendor_identity),
    messages: MessageService = Depends(get_messages),
):
    result = await messages.all(vendor, status)
    return {
        "messages": [message.model_dump(mode="json") for message in result["messages"]],
        "unread_count": result["unread_count"],
    }


@router.post("/{message_id}/reply")
async def reply(
    message_id: str,
    payload: MessageReply,
    vendor: Identity = Depends(vendor_identity),
    messages: MessageService = Depends(get_messages),
):
    message = await messages.reply(vendor, message_id, payload.message)
    return {"message": "Reply sent successfully", "data": message.model_dump(mode="json")}


@router.post("/{message_id}/user-reply")
async def user_reply(
    message_id: str,
    payload: MessageReply,
    identity: Identity = Depends(current_identity),
    messages: MessageService = Depends(get_messages),
):
    message = await messages.user_reply(identity, message_id, payload.message)
    return {"message": "Reply sent successfully", "data": message.model_dump(mode="json")}


@router.patch("/{message_id}/status")
async def change_status(
    message_id: str,
    payload: MessageStatusUpdate,
    vendor: Identity = Depends(vendor_identity),
    messages: MessageService = Depends(get_messages),
):
    message = await messages.set_status(vendor, message_id, payload.status)
    return {"message": "Status updated", "data": message.model_dump(mode="json")}
