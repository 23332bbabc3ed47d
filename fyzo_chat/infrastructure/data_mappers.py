# fyzo_chat/infrastructure/data_mappers.py

from typing import Generic, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.infrastructure import models

ModelT = TypeVar("ModelT")
ModelT_contra = TypeVar("ModelT_contra", contravariant=True)


class DataMapper(Protocol[ModelT_contra]):
    async def insert(self, model: ModelT_contra):
        raise NotImplementedError

    async def update(self, model: ModelT_contra):
        raise NotImplementedError


class SessionMapper(Generic[ModelT]):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, model: ModelT):
        self.session.add(model)
        await self.session.flush()

    async def update(self, model: ModelT):
        # already attached; the flush picks up attribute and collection changes
        self.session.add(model)
        await self.session.flush()


class ChatMapper(SessionMapper[models.Chat]):
    pass


class MessageMapper(SessionMapper[models.Message]):
    pass


class AuthSessionMapper(SessionMapper[models.AuthSession]):
    pass
