# fyzo_chat/api/dependencies.py
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fyzo_chat.config import AppConfig
from fyzo_chat.gateways.chat_gateway import ChatGateway
from fyzo_chat.gateways.creator_gateway import CreatorGateway
from fyzo_chat.gateways.identity_gateway import IdentityGateway
from fyzo_chat.gateways.message_gateway import MessageGateway
from fyzo_chat.infrastructure import schemas
from fyzo_chat.infrastructure.event_dispatcher import EventDispatcher
from fyzo_chat.infrastructure.security import SecurityService
from fyzo_chat.infrastructure.uow import UnitOfWork
from fyzo_chat.interactors.chat_interactor import ChatInteractor
from fyzo_chat.interactors.identity_interactor import IdentityInteractor
from fyzo_chat.interactors.message_interactor import MessageInteractor

# tokens are issued by the identity service; tokenUrl only documents it
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_uow(session: AsyncSession = Depends(get_session)) -> UnitOfWork:
    return UnitOfWork(session)


async def get_chat_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return ChatGateway(session, uow)


async def get_message_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return MessageGateway(session, uow)


async def get_creator_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return CreatorGateway(session, uow)


async def get_identity_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return IdentityGateway(session, uow)


async def get_identity_interactor(
    uow: UnitOfWork = Depends(get_uow),
    identity_gateway: IdentityGateway = Depends(get_identity_gateway),
    security_service: SecurityService = Depends(get_security_service),
):
    return IdentityInteractor(uow, identity_gateway, security_service)


async def get_chat_interactor(
    uow: UnitOfWork = Depends(get_uow),
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
    creator_gateway: CreatorGateway = Depends(get_creator_gateway),
):
    return ChatInteractor(uow, chat_gateway, creator_gateway)


async def get_message_interactor(
    uow: UnitOfWork = Depends(get_uow),
    message_gateway: MessageGateway = Depends(get_message_gateway),
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    return MessageInteractor(uow, message_gateway, chat_gateway, event_dispatcher)


async def get_current_identity(
    token: str | None = Depends(oauth2_scheme),
    identity_interactor: IdentityInteractor = Depends(get_identity_interactor),
) -> schemas.Identity:
    identity = await identity_interactor.resolve(token)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized to access this route. Please login.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_origin_connection_id(
    x_connection_id: str | None = Header(None),
) -> str | None:
    return x_connection_id
