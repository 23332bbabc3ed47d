# fyzo_chat/gateways/identity_gateway.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.gateways.interfaces import IIdentityGateway
from fyzo_chat.infrastructure import models
from fyzo_chat.infrastructure.data_mappers import AuthSessionMapper
from fyzo_chat.infrastructure.models import utcnow
from fyzo_chat.infrastructure.uow import UnitOfWork, UoWModel


class IdentityGateway(IIdentityGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.AuthSession] = AuthSessionMapper(session)

    async def get_user(self, user_id: int) -> UoWModel | None:
        stmt = select(models.User).filter(models.User.id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None

    async def get_active_session(self, token: str) -> UoWModel | None:
        stmt = select(models.AuthSession).filter(
            models.AuthSession.token == token,
            models.AuthSession.is_active.is_(True),
            models.AuthSession.expires_at > utcnow(),
        )
        result = await self.session.execute(stmt)
        auth_session = result.scalar_one_or_none()
        return UoWModel(auth_session, self.uow) if auth_session else None
