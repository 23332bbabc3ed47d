# fyzo_chat/api/realtime.py
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.security.utils import get_authorization_scheme_param
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.domain.exceptions import ChatServiceError
from fyzo_chat.gateways.chat_gateway import ChatGateway
from fyzo_chat.gateways.creator_gateway import CreatorGateway
from fyzo_chat.gateways.identity_gateway import IdentityGateway
from fyzo_chat.gateways.message_gateway import MessageGateway
from fyzo_chat.infrastructure import schemas
from fyzo_chat.infrastructure.connection_registry import ConnectionRegistry
from fyzo_chat.infrastructure.database import Database
from fyzo_chat.infrastructure.event_dispatcher import EventDispatcher
from fyzo_chat.infrastructure.uow import UnitOfWork
from fyzo_chat.interactors.chat_interactor import ChatInteractor
from fyzo_chat.interactors.identity_interactor import IdentityInteractor
from fyzo_chat.interactors.message_interactor import MessageInteractor

router = APIRouter()


class SocketScope:
    """Interactors sharing one database session, opened per socket event."""

    def __init__(self, session: AsyncSession, event_dispatcher: EventDispatcher):
        uow = UnitOfWork(session)
        chat_gateway = ChatGateway(session, uow)
        self.chat = ChatInteractor(uow, chat_gateway, CreatorGateway(session, uow))
        self.message = MessageInteractor(
            uow, MessageGateway(session, uow), chat_gateway, event_dispatcher
        )


class RealtimeSession:
    """One authenticated websocket connection.

    Owns the receive loop and the per-connection event table. Every client
    event runs against its own database session; failures are answered with
    an ``error`` frame and the connection stays open.
    """

    def __init__(
        self,
        websocket: WebSocket,
        identity: schemas.Identity,
        registry: ConnectionRegistry,
        database: Database,
        event_dispatcher: EventDispatcher,
        logger: logging.Logger,
        connection_id: Optional[str] = None,
    ):
        self.websocket = websocket
        self.identity = identity
        self.registry = registry
        self.database = database
        self.event_dispatcher = event_dispatcher
        self.logger = logger
        self.connection_id = connection_id or uuid.uuid4().hex
        self.handlers = {
            "user:join": self.on_user_join,
            "chat:join": self.on_chat_join,
            "chat:leave": self.on_chat_leave,
            "typing:start": self.on_typing_start,
            "typing:stop": self.on_typing_stop,
            "message:send": self.on_message_send,
            "message:read": self.on_message_read,
            "message:delete": self.on_message_delete,
        }

    @property
    def user_id(self) -> int:
        return self.identity.user_id

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[SocketScope]:
        async with self.database.session() as session:
            yield SocketScope(session, self.event_dispatcher)

    async def run(self) -> None:
        try:
            await self.open()
            while True:
                await self.handle(await self.receive())
        except WebSocketDisconnect as e:
            self.logger.debug(f"Connection {self.connection_id} closed with code {e.code}")
        finally:
            await self.close()

    async def receive(self) -> str | bytes:
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        # binary frames carry the same JSON envelope as text frames
        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes") or b""
        return raw

    async def open(self) -> None:
        first = await self.registry.register(
            self.connection_id, self.user_id, self.websocket
        )
        async with self.scope() as scope:
            chat_ids = await scope.chat.get_chat_ids_for_user(self.user_id)
            partner_ids = await scope.chat.get_partner_ids(self.user_id)
        for chat_id in chat_ids:
            await self.registry.join_room(self.connection_id, chat_id)

        await self.emit(
            "connection:ready",
            {
                "connection_id": self.connection_id,
                "user_id": self.user_id,
                "chat_ids": chat_ids,
                "online_user_ids": sorted(self.registry.online_user_ids(partner_ids)),
            },
        )
        if first:
            self.logger.info(f"User {self.user_id} is online")
            await self.registry.broadcast(
                "user:online", {"user_id": self.user_id}, exclude_user_id=self.user_id
            )

    async def close(self) -> None:
        connection, last = await self.registry.unregister(self.connection_id)
        if connection is not None and last:
            self.logger.info(f"User {self.user_id} is offline")
            await self.registry.broadcast(
                "user:offline", {"user_id": self.user_id}, exclude_user_id=self.user_id
            )

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        await self.registry.send(self.connection_id, event, data)

    async def emit_error(self, event: Optional[str], status_code: int, message: str) -> None:
        await self.emit("error", {"event": event, "status": status_code, "message": message})

    async def handle(self, raw: str | bytes) -> None:
        try:
            frame = schemas.SocketFrame.model_validate_json(raw)
        except ValidationError:
            await self.emit_error(None, 400, "Malformed frame")
            return

        handler = self.handlers.get(frame.event)
        if handler is None:
            await self.emit_error(frame.event, 400, f"Unknown event {frame.event}")
            return

        try:
            await handler(frame.data)
        except ChatServiceError as e:
            await self.emit_error(frame.event, e.status_code, e.message)
        except ValidationError as e:
            await self.emit_error(frame.event, 400, f"Invalid payload: {e.error_count()} error(s)")
        except Exception:
            self.logger.exception(
                f"Unhandled error on {frame.event} for connection {self.connection_id}"
            )
            await self.emit_error(frame.event, 500, "Internal server error")

    async def on_user_join(self, data: dict[str, Any]) -> None:
        async with self.scope() as scope:
            chat_ids = await scope.chat.get_chat_ids_for_user(self.user_id)
        for chat_id in chat_ids:
            if not self.registry.is_subscribed(self.connection_id, chat_id):
                await self.registry.join_room(self.connection_id, chat_id)
        await self.emit("user:joined", {"chat_ids": chat_ids})

    async def on_chat_join(self, data: dict[str, Any]) -> None:
        ref = schemas.ChatRef.model_validate(data)
        async with self.scope() as scope:
            await scope.chat.get_chat(ref.chat_id, self.user_id)
        await self.registry.join_room(self.connection_id, ref.chat_id)
        await self.emit("chat:joined", {"chat_id": ref.chat_id})

    async def on_chat_leave(self, data: dict[str, Any]) -> None:
        ref = schemas.ChatRef.model_validate(data)
        await self.registry.leave_room(self.connection_id, ref.chat_id)
        await self.emit("chat:left", {"chat_id": ref.chat_id})

    async def on_typing_start(self, data: dict[str, Any]) -> None:
        await self.relay_typing("typing:start", data)

    async def on_typing_stop(self, data: dict[str, Any]) -> None:
        await self.relay_typing("typing:stop", data)

    async def relay_typing(self, event: str, data: dict[str, Any]) -> None:
        signal = schemas.TypingSignal.model_validate(data)
        if not self.registry.is_subscribed(self.connection_id, signal.chat_id):
            return
        async with self.scope() as scope:
            if await scope.chat.is_blocked(signal.chat_id, self.user_id):
                return
        await self.registry.broadcast_to_room(
            signal.chat_id,
            event,
            {"chat_id": signal.chat_id, "user_id": self.user_id},
            exclude_connection_id=self.connection_id,
        )

    async def on_message_send(self, data: dict[str, Any]) -> None:
        frame = schemas.MessageSendFrame.model_validate(data)
        async with self.scope() as scope:
            if frame.message_id is not None:
                message = await scope.message.relay_message(
                    frame.chat_id,
                    frame.message_id,
                    self.user_id,
                    origin_connection_id=self.connection_id,
                )
            else:
                payload = schemas.MessageCreate.model_validate(
                    frame.model_dump(exclude={"chat_id", "message_id"})
                )
                message = await scope.message.send_message(
                    frame.chat_id,
                    self.user_id,
                    payload,
                    origin_connection_id=self.connection_id,
                )
        await self.emit("message:sent", message.model_dump(mode="json"))

    async def on_message_read(self, data: dict[str, Any]) -> None:
        frame = schemas.MessageReadFrame.model_validate(data)
        async with self.scope() as scope:
            await scope.message.mark_as_read(
                frame.chat_id,
                self.user_id,
                frame.message_ids,
                origin_connection_id=self.connection_id,
            )

    async def on_message_delete(self, data: dict[str, Any]) -> None:
        frame = schemas.MessageDeleteFrame.model_validate(data)
        async with self.scope() as scope:
            await scope.message.delete_message(
                frame.chat_id,
                frame.message_id,
                self.user_id,
                for_everyone=frame.for_everyone,
                origin_connection_id=self.connection_id,
            )


def extract_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    scheme, credentials = get_authorization_scheme_param(
        websocket.headers.get("authorization")
    )
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def resolve_identity(
    database: Database, security_service, token: Optional[str]
) -> Optional[schemas.Identity]:
    async with database.session() as session:
        uow = UnitOfWork(session)
        identity_interactor = IdentityInteractor(
            uow, IdentityGateway(session, uow), security_service
        )
        return await identity_interactor.resolve(token)


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, token: Optional[str] = None):
    state = websocket.app.state
    identity = await resolve_identity(
        state.database, state.security_service, extract_token(websocket, token)
    )
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = RealtimeSession(
        websocket,
        identity,
        state.connection_registry,
        state.database,
        state.event_dispatcher,
        state.logger,
    )
    await session.run()
