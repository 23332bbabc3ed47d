# fyzo_chat/infrastructure/uow.py

from typing import Any, Dict, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.infrastructure.data_mappers import DataMapper


class UoWModel:
    def __init__(self, model: Any, uow: "UnitOfWork"):
        self.__dict__["_model"] = model
        self.__dict__["_uow"] = uow

    def __getattr__(self, key):
        return getattr(self._model, key)

    def __setattr__(self, key, value):
        setattr(self._model, key, value)
        # new models are inserted as a whole, nothing to mark
        if id(self._model) not in self._uow.new:
            self._uow.register_dirty(self._model)


class UnitOfWork:
    """Collects new and changed models and writes them in one commit.

    Chats and messages are never hard-deleted, so there is no deleted set:
    soft deletion is an ordinary update.
    """

    def __init__(self, session: Optional[AsyncSession] = None) -> None:
        self.session = session
        self.dirty: Dict[int, Any] = {}
        self.new: Dict[int, Any] = {}
        self.mappers: Dict[Type, DataMapper] = {}

    def register_dirty(self, model: Any) -> None:
        if isinstance(model, UoWModel):
            model = model._model
        model_id = id(model)
        if model_id not in self.new:
            self.dirty[model_id] = model

    def register_new(self, model: Any) -> UoWModel:
        if isinstance(model, UoWModel):
            model = model._model
        self.new[id(model)] = model
        return UoWModel(model, self)

    def clear(self) -> None:
        self.new.clear()
        self.dirty.clear()

    async def commit(self) -> None:
        for model in self.new.values():
            await self.mappers[type(model)].insert(model)
        for model in self.dirty.values():
            await self.mappers[type(model)].update(model)
        self.clear()
        if self.session is not None:
            await self.session.commit()

    async def rollback(self) -> None:
        self.clear()
        if self.session is not None:
            await self.session.rollback()
