# fyzo_chat/domain/events.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class Event(BaseModel):
    pass


class ChatEvent(Event):
    chat_id: int
    actor_id: int
    # connection that triggered the action; None for REST calls without X-Connection-Id
    origin_connection_id: str | None = None


class MessageCreated(ChatEvent):
    message: dict[str, Any]


class MessagesRead(ChatEvent):
    message_ids: list[int]
    read_at: datetime


class MessageDeleted(ChatEvent):
    message_id: int
    for_everyone: bool
    content: str | None = None
