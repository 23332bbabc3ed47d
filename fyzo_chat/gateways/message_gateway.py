# fyzo_chat/gateways/message_gateway.py
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.gateways.interfaces import IMessageGateway
from fyzo_chat.infrastructure import models, schemas
from fyzo_chat.infrastructure.data_mappers import MessageMapper
from fyzo_chat.infrastructure.uow import UnitOfWork, UoWModel


class MessageGateway(IMessageGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Message] = MessageMapper(session)

    @staticmethod
    def _visible_to(user_id: int):
        return ~models.Message.deletions.any(models.MessageDeletion.user_id == user_id)

    async def get_message(
        self, message_id: int, chat_id: int | None = None
    ) -> UoWModel | None:
        stmt = select(models.Message).filter(models.Message.id == message_id)
        if chat_id is not None:
            stmt = stmt.filter(models.Message.chat_id == chat_id)
        stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        message = result.scalar_one_or_none()
        return UoWModel(message, self.uow) if message else None

    async def get_page(
        self, chat_id: int, user_id: int, skip: int = 0, limit: int = 50
    ) -> list[UoWModel]:
        # newest first; callers reverse for chronological delivery
        stmt = (
            select(models.Message)
            .filter(models.Message.chat_id == chat_id, self._visible_to(user_id))
            .order_by(models.Message.created_at.desc(), models.Message.id.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        messages = result.scalars().all()
        return [UoWModel(message, self.uow) for message in messages]

    async def count_visible(self, chat_id: int, user_id: int) -> int:
        stmt = select(func.count(models.Message.id)).filter(
            models.Message.chat_id == chat_id, self._visible_to(user_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_unread_by_ids(
        self, chat_id: int, user_id: int, message_ids: list[int]
    ) -> list[UoWModel]:
        if not message_ids:
            return []
        stmt = (
            select(models.Message)
            .filter(
                models.Message.id.in_(message_ids),
                models.Message.chat_id == chat_id,
                ~models.Message.read_receipts.any(
                    models.MessageReadReceipt.user_id == user_id
                ),
            )
            .order_by(models.Message.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        messages = result.scalars().all()
        return [UoWModel(message, self.uow) for message in messages]

    async def create_message(
        self,
        chat_id: int,
        sender_id: int,
        sender_role: str,
        payload: schemas.MessageCreate,
        created_at: datetime,
    ) -> UoWModel:
        db_message = models.Message(
            chat_id=chat_id,
            sender_id=sender_id,
            sender_role=sender_role,
            content=payload.content,
            type=payload.type.value,
            media_url=payload.media_url,
            media_metadata=(
                payload.media_metadata.model_dump(exclude_none=True)
                if payload.media_metadata
                else None
            ),
            reply_to_id=payload.reply_to,
            is_deleted=False,
            created_at=created_at,
            # the sender has read their own message
            read_receipts=[
                models.MessageReadReceipt(user_id=sender_id, read_at=created_at)
            ],
            deletions=[],
        )
        return self.uow.register_new(db_message)
