# fyzo_chat/interactors/message_interactor.py
from typing import Optional

from fyzo_chat.domain.enums import MessageType
from fyzo_chat.domain.events import MessageCreated, MessageDeleted, MessagesRead
from fyzo_chat.domain.exceptions import BadRequestError, ForbiddenError, NotFoundError
from fyzo_chat.gateways.interfaces import IChatGateway, IMessageGateway
from fyzo_chat.infrastructure import schemas
from fyzo_chat.infrastructure.event_dispatcher import EventDispatcher
from fyzo_chat.infrastructure.models import utcnow
from fyzo_chat.infrastructure.uow import UnitOfWork
from fyzo_chat.interactors.chat_interactor import load_participant_chat


def validate_message_payload(payload: schemas.MessageCreate) -> None:
    if payload.type == MessageType.TEXT:
        if not payload.content or not payload.content.strip():
            raise BadRequestError("Message content is required")
    elif not payload.media_url:
        raise BadRequestError("Media URL is required for non-text messages")


def summarize(payload: schemas.MessageCreate) -> str:
    if payload.type == MessageType.TEXT:
        return payload.content
    return f"Sent {payload.type.value}"


class MessageInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        message_gateway: IMessageGateway,
        chat_gateway: IChatGateway,
        event_dispatcher: EventDispatcher,
    ):
        self.uow = uow
        self.message_gateway = message_gateway
        self.chat_gateway = chat_gateway
        self.event_dispatcher = event_dispatcher

    async def send_message(
        self,
        chat_id: int,
        sender_id: int,
        payload: schemas.MessageCreate,
        origin_connection_id: Optional[str] = None,
    ) -> schemas.Message:
        validate_message_payload(payload)
        chat = await load_participant_chat(self.chat_gateway, chat_id, sender_id)
        if chat.is_blocked:
            raise ForbiddenError("This chat is blocked")
        if payload.reply_to is not None:
            target = await self.message_gateway.get_message(payload.reply_to, chat_id)
            if target is None:
                raise BadRequestError("Replied message not found in this chat")

        # role comes from the participant record, never from the client
        sender = chat.get_participant(sender_id)
        now = utcnow()
        message = await self.message_gateway.create_message(
            chat_id, sender_id, sender.role, payload, now
        )

        chat.set_last_message(summarize(payload), sender_id, payload.type.value, now)
        other = chat.get_other_participant(sender_id)
        if other is not None:
            other.unread_count = (other.unread_count or 0) + 1
        self.uow.register_dirty(chat)
        await self.uow.commit()

        created = await self.message_gateway.get_message(message.id)
        result = schemas.Message.from_model(created._model)
        await self.event_dispatcher.dispatch(
            MessageCreated(
                chat_id=chat_id,
                actor_id=sender_id,
                origin_connection_id=origin_connection_id,
                message=result.model_dump(mode="json"),
            )
        )
        return result

    async def relay_message(
        self,
        chat_id: int,
        message_id: int,
        requester_id: int,
        origin_connection_id: Optional[str] = None,
    ) -> schemas.Message:
        """Fan out a message that was already persisted through the REST surface."""
        await load_participant_chat(self.chat_gateway, chat_id, requester_id)
        message = await self.message_gateway.get_message(message_id, chat_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.sender_id != requester_id:
            raise ForbiddenError("Only the sender can announce a message")
        result = schemas.Message.from_model(message._model)
        await self.event_dispatcher.dispatch(
            MessageCreated(
                chat_id=chat_id,
                actor_id=requester_id,
                origin_connection_id=origin_connection_id,
                message=result.model_dump(mode="json"),
            )
        )
        return result

    async def get_messages(
        self,
        chat_id: int,
        requester_id: int,
        page: int = 1,
        limit: int = 50,
        origin_connection_id: Optional[str] = None,
    ) -> tuple[list[schemas.Message], schemas.Pagination]:
        """Return one page in chronological order and mark it read.

        Fetching counts as reading: every returned message gets a receipt for
        the requester and their unread counter for the chat drops to zero.
        """
        chat = await load_participant_chat(self.chat_gateway, chat_id, requester_id)
        messages = await self.message_gateway.get_page(
            chat_id, requester_id, skip=(page - 1) * limit, limit=limit
        )
        total = await self.message_gateway.count_visible(chat_id, requester_id)

        now = utcnow()
        newly_read = []
        for message in messages:
            if message.mark_as_read(requester_id, now):
                newly_read.append(message.id)
                self.uow.register_dirty(message)
        participant = chat.get_participant(requester_id)
        if participant.unread_count:
            participant.unread_count = 0
            self.uow.register_dirty(chat)
        await self.uow.commit()

        result = [schemas.Message.from_model(message._model) for message in reversed(messages)]
        if newly_read:
            await self.event_dispatcher.dispatch(
                MessagesRead(
                    chat_id=chat_id,
                    actor_id=requester_id,
                    origin_connection_id=origin_connection_id,
                    message_ids=newly_read,
                    read_at=now,
                )
            )
        return result, schemas.Pagination.build(page, limit, total)

    async def mark_as_read(
        self,
        chat_id: int,
        requester_id: int,
        message_ids: list[int],
        origin_connection_id: Optional[str] = None,
    ) -> schemas.MarkReadResult:
        chat = await load_participant_chat(self.chat_gateway, chat_id, requester_id)
        now = utcnow()
        newly_read = []
        for message in await self.message_gateway.get_unread_by_ids(
            chat_id, requester_id, message_ids
        ):
            if message.mark_as_read(requester_id, now):
                newly_read.append(message.id)
                self.uow.register_dirty(message)
        participant = chat.get_participant(requester_id)
        participant.unread_count = 0
        self.uow.register_dirty(chat)
        await self.uow.commit()

        if newly_read:
            await self.event_dispatcher.dispatch(
                MessagesRead(
                    chat_id=chat_id,
                    actor_id=requester_id,
                    origin_connection_id=origin_connection_id,
                    message_ids=newly_read,
                    read_at=now,
                )
            )
        return schemas.MarkReadResult(chat_id=chat_id, message_ids=newly_read)

    async def delete_message(
        self,
        chat_id: int,
        message_id: int,
        requester_id: int,
        for_everyone: bool = False,
        origin_connection_id: Optional[str] = None,
    ) -> schemas.MessageDeleteResult:
        await load_participant_chat(self.chat_gateway, chat_id, requester_id)
        message = await self.message_gateway.get_message(message_id, chat_id)
        if message is None:
            raise NotFoundError("Message not found")

        if for_everyone:
            if message.sender_id != requester_id:
                raise ForbiddenError("You can only delete your own messages for everyone")
            changed = message.delete_for_everyone()
        else:
            changed = message.delete_for(requester_id)

        if changed:
            self.uow.register_dirty(message)
            await self.uow.commit()
            await self.event_dispatcher.dispatch(
                MessageDeleted(
                    chat_id=chat_id,
                    actor_id=requester_id,
                    origin_connection_id=origin_connection_id,
                    message_id=message_id,
                    for_everyone=for_everyone,
                    content=message.content if for_everyone else None,
                )
            )
        return schemas.MessageDeleteResult(
            chat_id=chat_id,
            message_id=message_id,
            for_everyone=for_everyone,
            is_deleted=message.is_deleted,
        )
