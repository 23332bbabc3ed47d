# fyzo_chat/interactors/identity_interactor.py

from fyzo_chat.gateways.interfaces import IIdentityGateway
from fyzo_chat.infrastructure import schemas
from fyzo_chat.infrastructure.models import utcnow
from fyzo_chat.infrastructure.security import SecurityService
from fyzo_chat.infrastructure.uow import UnitOfWork


class IdentityInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        identity_gateway: IIdentityGateway,
        security_service: SecurityService,
    ):
        self.uow = uow
        self.identity_gateway = identity_gateway
        self.security_service = security_service

    async def resolve(self, token: str | None) -> schemas.Identity | None:
        """Turn a bearer token into the caller's identity.

        The token must decode, belong to an active unexpired session of the
        same user, and the user must be active.
        """
        if not token:
            return None
        user_id = self.security_service.decode_access_token(token)
        if user_id is None:
            return None
        auth_session = await self.identity_gateway.get_active_session(token)
        if auth_session is None or auth_session.user_id != user_id:
            return None
        user = await self.identity_gateway.get_user(user_id)
        if user is None or not user.is_active:
            return None

        auth_session.last_activity = utcnow()
        await self.uow.commit()
        return schemas.Identity(user_id=user.id, role=user.role)
