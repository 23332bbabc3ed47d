# fyzo_chat/interactors/chat_interactor.py
from sqlalchemy.exc import IntegrityError

from fyzo_chat.domain.exceptions import BadRequestError, ForbiddenError, NotFoundError
from fyzo_chat.gateways.interfaces import IChatGateway, ICreatorGateway
from fyzo_chat.infrastructure import schemas
from fyzo_chat.infrastructure.models import utcnow
from fyzo_chat.infrastructure.uow import UnitOfWork, UoWModel


async def load_participant_chat(
    chat_gateway: IChatGateway, chat_id: int, user_id: int
) -> UoWModel:
    """Fetch a chat the user takes part in, or raise NotFound / Forbidden."""
    chat = await chat_gateway.get_chat(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    if not chat.is_participant(user_id):
        raise ForbiddenError("Access denied")
    return chat


class ChatInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        chat_gateway: IChatGateway,
        creator_gateway: ICreatorGateway,
    ):
        self.uow = uow
        self.chat_gateway = chat_gateway
        self.creator_gateway = creator_gateway

    async def get_or_create_chat(self, user_id: int, creator_id: int) -> schemas.Chat:
        creator = await self.creator_gateway.get_creator(creator_id)
        if creator is None:
            raise NotFoundError("Creator not found")
        if creator.user_id == user_id:
            raise BadRequestError("You cannot start a chat with yourself")

        chat = await self.chat_gateway.find_chat(creator_id, user_id)
        if chat is None:
            new_chat = await self.chat_gateway.create_chat(creator._model, user_id)
            try:
                await self.uow.commit()
            except IntegrityError:
                # a concurrent request created the pair first
                await self.uow.rollback()
                chat = await self.chat_gateway.find_chat(creator_id, user_id)
                if chat is None:
                    raise
            else:
                chat = await self.chat_gateway.get_chat(new_chat.id)
        return schemas.Chat.from_model(chat._model)

    async def get_my_chats(
        self, user_id: int, page: int = 1, limit: int = 50
    ) -> tuple[list[schemas.Chat], schemas.Pagination]:
        chats = await self.chat_gateway.get_chats_for_user(
            user_id, skip=(page - 1) * limit, limit=limit
        )
        total = await self.chat_gateway.count_chats_for_user(user_id)
        return (
            [schemas.Chat.from_model(chat._model) for chat in chats],
            schemas.Pagination.build(page, limit, total),
        )

    async def get_chat(self, chat_id: int, user_id: int) -> schemas.Chat:
        chat = await load_participant_chat(self.chat_gateway, chat_id, user_id)
        return schemas.Chat.from_model(chat._model)

    async def toggle_block(self, chat_id: int, user_id: int) -> schemas.BlockStatus:
        chat = await load_participant_chat(self.chat_gateway, chat_id, user_id)
        if chat.is_blocked:
            if chat.blocked_by is not None and chat.blocked_by != user_id:
                raise ForbiddenError(
                    "Only the participant who blocked this chat can unblock it"
                )
            chat.is_blocked = False
            chat.blocked_by = None
        else:
            chat.is_blocked = True
            chat.blocked_by = user_id
        chat.updated_at = utcnow()
        await self.uow.commit()
        return schemas.BlockStatus(is_blocked=chat.is_blocked, blocked_by=chat.blocked_by)

    async def get_unread_total(self, user_id: int) -> int:
        return await self.chat_gateway.get_unread_total(user_id)

    async def get_chat_ids_for_user(self, user_id: int) -> list[int]:
        return await self.chat_gateway.get_chat_ids_for_user(user_id)

    async def get_partner_ids(self, user_id: int) -> list[int]:
        return await self.chat_gateway.get_partner_ids(user_id)

    async def is_blocked(self, chat_id: int, user_id: int) -> bool:
        chat = await load_participant_chat(self.chat_gateway, chat_id, user_id)
        return bool(chat.is_blocked)
