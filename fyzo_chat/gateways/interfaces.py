# fyzo_chat/gateways/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from fyzo_chat.infrastructure import models, schemas
from fyzo_chat.infrastructure.uow import UoWModel


class IChatGateway(ABC):
    @abstractmethod
    async def get_chat(self, chat_id: int) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def find_chat(self, creator_id: int, user_id: int) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def create_chat(self, creator: models.Creator, user_id: int) -> UoWModel:
        pass

    @abstractmethod
    async def get_chats_for_user(
        self, user_id: int, skip: int = 0, limit: int = 50
    ) -> List[UoWModel]:
        pass

    @abstractmethod
    async def count_chats_for_user(self, user_id: int) -> int:
        pass

    @abstractmethod
    async def get_chat_ids_for_user(self, user_id: int) -> List[int]:
        pass

    @abstractmethod
    async def get_partner_ids(self, user_id: int) -> List[int]:
        pass

    @abstractmethod
    async def get_unread_total(self, user_id: int) -> int:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def get_message(
        self, message_id: int, chat_id: Optional[int] = None
    ) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_page(
        self, chat_id: int, user_id: int, skip: int = 0, limit: int = 50
    ) -> List[UoWModel]:
        pass

    @abstractmethod
    async def count_visible(self, chat_id: int, user_id: int) -> int:
        pass

    @abstractmethod
    async def get_unread_by_ids(
        self, chat_id: int, user_id: int, message_ids: List[int]
    ) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_message(
        self,
        chat_id: int,
        sender_id: int,
        sender_role: str,
        payload: schemas.MessageCreate,
        created_at: datetime,
    ) -> UoWModel:
        pass


class ICreatorGateway(ABC):
    @abstractmethod
    async def get_creator(self, creator_id: int) -> Optional[UoWModel]:
        pass


class IIdentityGateway(ABC):
    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_active_session(self, token: str) -> Optional[UoWModel]:
        pass
