# fyzo_chat/gateways/chat_gateway.py
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from fyzo_chat.domain.enums import ParticipantRole
from fyzo_chat.gateways.interfaces import IChatGateway
from fyzo_chat.infrastructure import models
from fyzo_chat.infrastructure.data_mappers import ChatMapper
from fyzo_chat.infrastructure.models import utcnow
from fyzo_chat.infrastructure.uow import UnitOfWork, UoWModel


class ChatGateway(IChatGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Chat] = ChatMapper(session)

    async def get_chat(self, chat_id: int) -> Optional[UoWModel]:
        stmt = (
            select(models.Chat)
            .filter(models.Chat.id == chat_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chat = result.scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def find_chat(self, creator_id: int, user_id: int) -> Optional[UoWModel]:
        stmt = (
            select(models.Chat)
            .filter(models.Chat.creator_id == creator_id, models.Chat.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chat = result.scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def create_chat(self, creator: models.Creator, user_id: int) -> UoWModel:
        now = utcnow()
        db_chat = models.Chat(
            creator_id=creator.id,
            user_id=user_id,
            is_active=True,
            is_blocked=False,
            created_at=now,
            updated_at=now,
            participants=[
                models.ChatParticipant(
                    user_id=user_id,
                    role=ParticipantRole.USER.value,
                    joined_at=now,
                    unread_count=0,
                ),
                models.ChatParticipant(
                    user_id=creator.user_id,
                    role=ParticipantRole.CREATOR.value,
                    joined_at=now,
                    unread_count=0,
                ),
            ],
        )
        return self.uow.register_new(db_chat)

    async def get_chats_for_user(
        self, user_id: int, skip: int = 0, limit: int = 50
    ) -> List[UoWModel]:
        stmt = (
            select(models.Chat)
            .filter(
                models.Chat.participants.any(models.ChatParticipant.user_id == user_id),
                models.Chat.is_active.is_(True),
            )
            .order_by(models.Chat.updated_at.desc(), models.Chat.id.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chats = result.scalars().all()
        return [UoWModel(chat, self.uow) for chat in chats]

    async def count_chats_for_user(self, user_id: int) -> int:
        stmt = select(func.count(models.Chat.id)).filter(
            models.Chat.participants.any(models.ChatParticipant.user_id == user_id),
            models.Chat.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_chat_ids_for_user(self, user_id: int) -> List[int]:
        stmt = (
            select(models.ChatParticipant.chat_id)
            .filter(models.ChatParticipant.user_id == user_id)
            .order_by(models.ChatParticipant.chat_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_partner_ids(self, user_id: int) -> List[int]:
        other = aliased(models.ChatParticipant)
        stmt = (
            select(other.user_id)
            .join(
                models.ChatParticipant,
                models.ChatParticipant.chat_id == other.chat_id,
            )
            .filter(models.ChatParticipant.user_id == user_id, other.user_id != user_id)
            .distinct()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_unread_total(self, user_id: int) -> int:
        stmt = (
            select(func.coalesce(func.sum(models.ChatParticipant.unread_count), 0))
            .join(models.Chat, models.Chat.id == models.ChatParticipant.chat_id)
            .filter(
                models.ChatParticipant.user_id == user_id,
                models.Chat.is_active.is_(True),
            )
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
