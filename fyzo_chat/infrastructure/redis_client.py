# fyzo_chat/infrastructure/redis_client.py
import json
import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError


class RedisClient:
    """Pub/sub mirror of chat events for processes outside this one.

    Every chat has one channel, ``chat:{chat_id}``; payloads use the same
    ``{"event", "data"}`` frame the websocket clients receive.
    """

    CHANNEL_PREFIX = "chat"

    def __init__(self, host: str, port: int, logger: logging.Logger, db: int = 0):
        self.host = host
        self.port = port
        self.db = db
        self.client: redis.Redis | None = None
        self.logger = logger

    async def connect(self):
        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            decode_responses=True,
        )
        try:
            await self.client.ping()
            self.logger.info(
                f"Successfully connected to Redis at {self.host}:{self.port}"
            )
        except redis.ConnectionError as e:
            self.logger.error(f"Failed to connect to Redis: {e!s}")
            self.logger.error(f"Redis host: {self.host}, Redis port: {self.port}")
            raise e

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.client = None
            self.logger.info("Disconnected from Redis")

    async def is_healthy(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            self.logger.warning(f"Redis health check failed: {e!s}")
            return False

    @classmethod
    def channel_for(cls, chat_id: int) -> str:
        return f"{cls.CHANNEL_PREFIX}:{chat_id}"

    async def publish(self, channel: str, message: str) -> int:
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        receivers = await self.client.publish(channel, message)
        self.logger.debug(f"Published message to channel {channel}")
        return receivers

    async def publish_chat_event(
        self, chat_id: int, event_name: str, data: dict[str, Any]
    ) -> int:
        frame = json.dumps({"event": event_name, "data": data}, default=str)
        return await self.publish(self.channel_for(chat_id), frame)
