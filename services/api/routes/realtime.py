"""
WebSocket transport for the topic router.

Client frames:
    {"action": "join", "topic": "make:toyota"}
    {"action": "leave", "topic": "make:toyota"}
    {"action": "joinLocation", "city": "Austin", "state": "TX"}
    {"action": "joinInterests", "makes": ["Toyota"], "body_types": ["suv"]}
    {"action": "joinUserRoom", "user_id": "..."}
    {"action": "joinRoleRoom", "role": "vendor"}

Server frames are {"event": <name>, "data": <payload>}.
"""
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field

from core.errors import PermissionDeniedError
from core.logging import get_logger
from core.models.common import new_id
from core.realtime import (
    Connection,
    TopicRouter,
    body_type_topic,
    location_topic,
    make_topic,
    role_topic,
    user_topic,
)

logger = get_logger("websocket")

router = APIRouter(tags=["realtime"])


class WebSocketConnection(Connection):
    """A router connection backed by a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        super().__init__(new_id())
        self.websocket = websocket

    async def send(self, event: str, payload: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": payload})

    async def close(self) -> None:
        await self.websocket.close()


class ClientFrame(BaseModel):
    """A client frame. Fields that an action needs are checked by topics_for()."""
    model_config = ConfigDict(extra="ignore")

    action: str
    topic: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    makes: List[str] = Field(default_factory=list)
    body_types: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None
    role: Optional[str] = None

    def require(self, *names: str) -> List[str]:
        values = [getattr(self, name) for name in names]
        missing = [name for name, value in zip(names, values) if not value]
        if missing:
            raise ValueError(f"{self.action} requires {', '.join(missing)}")
        return values


def topics_for(frame: ClientFrame) -> List[str]:
    """
    Topics named by a join frame.

    Raises:
        ValueError: If the action is unknown or its fields are missing
    """
    action = frame.action
    if action == "join":
        return frame.require("topic")
    if action == "joinLocation":
        return [location_topic(*frame.require("city", "state"))]
    if action == "joinInterests":
        return [make_topic(make) for make in frame.makes] + [
            body_type_topic(body_type) for body_type in frame.body_types
        ]
    if action == "joinUserRoom":
        return [user_topic(*frame.require("user_id"))]
    if action == "joinRoleRoom":
        return [role_topic(*frame.require("role"))]
    raise ValueError(f"Unknown action: {action}")


async def handle_frame(topics: TopicRouter, connection: WebSocketConnection, raw: Dict[str, Any]) -> None:
    try:
        frame = ClientFrame.model_validate(raw)
        if frame.action == "leave":
            (topic,) = frame.require("topic")
        else:
            requested = topics_for(frame)
    except ValueError as e:
        await connection.send("error", {"message": f"Invalid frame: {e}"})
        return

    if frame.action == "leave":
        topics.leave(connection, topic)
        await connection.send("left", {"topic": topic})
        return

    joined = []
    for topic in requested:
        try:
            topics.join(connection, topic)
            joined.append(topic)
        except PermissionDeniedError as e:
            await connection.send("error", {"message": str(e), "topic": topic})
    if joined:
        await connection.send("joined", {"topics": joined})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = None):
    await websocket.accept()
    topics: TopicRouter = websocket.app.state.router
    connection = WebSocketConnection(websocket)
    topics.connect(connection, token)
    await connection.send(
        "connected",
        {
            "connection_id": connection.id,
            "authenticated": connection.is_authenticated,
            "topics": sorted(topics.topics_of(connection)),
        },
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await connection.send("error", {"message": "Frames must be JSON"})
                continue
            if not isinstance(frame, dict):
                await connection.send("error", {"message": "Frames must be JSON objects"})
                continue
            await handle_frame(topics, connection, frame)
    except WebSocketDisconnect:
        logger.debug("Client disconnected", extra={"connection_id": connection.id})
    finally:
        topics.disconnect(connection)
