# fyzo_chat/gateways/creator_gateway.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.gateways.interfaces import ICreatorGateway
from fyzo_chat.infrastructure import models
from fyzo_chat.infrastructure.uow import UnitOfWork, UoWModel


class CreatorGateway(ICreatorGateway):
    """Read-only view of the creator directory owned by the onboarding service."""

    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow

    async def get_creator(self, creator_id: int) -> UoWModel | None:
        stmt = select(models.Creator).filter(models.Creator.id == creator_id)
        result = await self.session.execute(stmt)
        creator = result.scalar_one_or_none()
        return UoWModel(creator, self.uow) if creator else None
