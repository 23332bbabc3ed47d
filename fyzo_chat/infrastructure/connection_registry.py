# fyzo_chat/infrastructure/connection_registry.py
"""In-memory directory of live websocket connections.

Maps connection ids to the authenticated user and the chat rooms the
connection is subscribed to. The registry is owned by the application and
handed to the event handlers and realtime sessions; nothing here is
persisted, a reconnecting client rebuilds its rooms from chat membership.

Map updates happen under a single ``asyncio.Lock``. Fan-out takes a snapshot
of the targets and sends outside the lock, concurrently, and never raises:
a connection that fails to receive is logged and skipped.
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from fastapi import WebSocket


@dataclass
class Connection:
    connection_id: str
    user_id: int
    websocket: WebSocket
    rooms: set[int] = field(default_factory=set)


class ConnectionRegistry:
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.connections: dict[str, Connection] = {}
        self.user_connections: dict[int, set[str]] = defaultdict(set)
        self.rooms: dict[int, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, connection_id: str, user_id: int, websocket: WebSocket) -> bool:
        """Bind a connection to a user. Returns True for the user's first connection."""
        async with self._lock:
            first = not self.user_connections.get(user_id)
            self.connections[connection_id] = Connection(connection_id, user_id, websocket)
            self.user_connections[user_id].add(connection_id)
        self.logger.info(f"Connection {connection_id} registered for user {user_id}")
        return first

    async def unregister(self, connection_id: str) -> tuple[Optional[Connection], bool]:
        """Drop a connection and its rooms. The flag is True when it was the user's last one."""
        async with self._lock:
            connection = self.connections.pop(connection_id, None)
            if connection is None:
                return None, False
            for chat_id in connection.rooms:
                members = self.rooms.get(chat_id)
                if members is not None:
                    members.discard(connection_id)
                    if not members:
                        del self.rooms[chat_id]
            user_connections = self.user_connections.get(connection.user_id, set())
            user_connections.discard(connection_id)
            last = not user_connections
            if last:
                self.user_connections.pop(connection.user_id, None)
        self.logger.info(
            f"Connection {connection_id} unregistered for user {connection.user_id}"
        )
        return connection, last

    async def join_room(self, connection_id: str, chat_id: int) -> bool:
        async with self._lock:
            connection = self.connections.get(connection_id)
            if connection is None:
                return False
            connection.rooms.add(chat_id)
            self.rooms[chat_id].add(connection_id)
        return True

    async def leave_room(self, connection_id: str, chat_id: int) -> bool:
        async with self._lock:
            connection = self.connections.get(connection_id)
            if connection is None or chat_id not in connection.rooms:
                return False
            connection.rooms.discard(chat_id)
            members = self.rooms.get(chat_id)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self.rooms[chat_id]
        return True

    def is_subscribed(self, connection_id: str, chat_id: int) -> bool:
        connection = self.connections.get(connection_id)
        return connection is not None and chat_id in connection.rooms

    def rooms_for(self, connection_id: str) -> set[int]:
        connection = self.connections.get(connection_id)
        return set(connection.rooms) if connection else set()

    def is_online(self, user_id: int) -> bool:
        return bool(self.user_connections.get(user_id))

    def online_user_ids(self, candidates: Optional[Iterable[int]] = None) -> set[int]:
        online = {user_id for user_id, ids in self.user_connections.items() if ids}
        if candidates is None:
            return online
        return online & set(candidates)

    def connection_ids_for_user(self, user_id: int) -> set[str]:
        return set(self.user_connections.get(user_id, set()))

    async def send(self, connection_id: str, event: str, data: dict[str, Any]) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False
        return await self._deliver(connection, {"event": event, "data": data})

    async def broadcast_to_room(
        self,
        chat_id: int,
        event: str,
        data: dict[str, Any],
        exclude_connection_id: Optional[str] = None,
        exclude_user_id: Optional[int] = None,
    ) -> int:
        targets = []
        for connection_id in list(self.rooms.get(chat_id, ())):
            connection = self.connections.get(connection_id)
            if connection is None or connection_id == exclude_connection_id:
                continue
            if exclude_user_id is not None and connection.user_id == exclude_user_id:
                continue
            targets.append(connection)
        return await self._fan_out(targets, {"event": event, "data": data})

    async def broadcast(
        self, event: str, data: dict[str, Any], exclude_user_id: Optional[int] = None
    ) -> int:
        targets = [
            connection
            for connection in list(self.connections.values())
            if connection.user_id != exclude_user_id
        ]
        return await self._fan_out(targets, {"event": event, "data": data})

    async def _fan_out(self, targets: list[Connection], frame: dict[str, Any]) -> int:
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._deliver(connection, frame) for connection in targets)
        )
        delivered = sum(results)
        self.logger.debug(f"Delivered {frame['event']} to {delivered}/{len(targets)} connections")
        return delivered

    async def _deliver(self, connection: Connection, frame: dict[str, Any]) -> bool:
        try:
            await connection.websocket.send_json(frame)
            return True
        except Exception as e:
            # closed sockets are cleaned up by their own receive loop
            self.logger.debug(
                f"Dropped {frame['event']} for connection {connection.connection_id}: {e!s}"
            )
            return False
