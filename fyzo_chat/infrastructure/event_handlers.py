# fyzo_chat/infrastructure/event_handlers.py
import logging
from typing import Any

from redis.exceptions import RedisError

from fyzo_chat.domain.events import (
    ChatEvent,
    MessageCreated,
    MessageDeleted,
    MessagesRead,
)
from fyzo_chat.infrastructure.connection_registry import ConnectionRegistry
from fyzo_chat.infrastructure.redis_client import RedisClient


class EventHandlers:
    def __init__(
        self,
        registry: ConnectionRegistry,
        redis_client: RedisClient,
        logger: logging.Logger,
    ):
        self.registry = registry
        self.redis_client = redis_client
        self.logger = logger

    async def publish_chat_event(
        self, event_name: str, event: ChatEvent, data: dict[str, Any]
    ) -> None:
        # socket actions exclude the originating connection, REST actions every connection of the actor
        if event.origin_connection_id:
            await self.registry.broadcast_to_room(
                event.chat_id,
                event_name,
                data,
                exclude_connection_id=event.origin_connection_id,
            )
        else:
            await self.registry.broadcast_to_room(
                event.chat_id, event_name, data, exclude_user_id=event.actor_id
            )
        await self.mirror_to_redis(event.chat_id, event_name, data)

    async def mirror_to_redis(
        self, chat_id: int, event_name: str, data: dict[str, Any]
    ) -> None:
        try:
            await self.redis_client.publish_chat_event(chat_id, event_name, data)
        except (RedisError, RuntimeError) as e:
            channel_name = RedisClient.channel_for(chat_id)
            self.logger.warning(f"Could not mirror {event_name} to {channel_name}: {e!s}")

    async def publish_message_created(self, event: MessageCreated):
        await self.publish_chat_event("message:new", event, event.message)

    async def publish_messages_read(self, event: MessagesRead):
        await self.publish_chat_event(
            "message:read",
            event,
            {
                "chat_id": event.chat_id,
                "user_id": event.actor_id,
                "message_ids": event.message_ids,
                "read_at": event.read_at.isoformat(),
            },
        )

    async def publish_message_deleted(self, event: MessageDeleted):
        await self.publish_chat_event(
            "message:delete",
            event,
            {
                "chat_id": event.chat_id,
                "message_id": event.message_id,
                "user_id": event.actor_id,
                "for_everyone": event.for_everyone,
                "content": event.content,
            },
        )
