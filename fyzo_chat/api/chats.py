# fyzo_chat/api/chats.py

from fastapi import APIRouter, Depends, Query

from fyzo_chat.api.dependencies import (
    get_chat_interactor,
    get_config,
    get_current_identity,
    get_message_interactor,
    get_origin_connection_id,
)
from fyzo_chat.config import AppConfig
from fyzo_chat.infrastructure import schemas
from fyzo_chat.interactors.chat_interactor import ChatInteractor
from fyzo_chat.interactors.message_interactor import MessageInteractor

router = APIRouter()


def page_size(requested: int | None, default: int, config: AppConfig) -> int:
    return min(requested or default, config.MAX_PAGE_SIZE)


@router.post("/get-or-create", response_model=schemas.ApiResponse[schemas.Chat])
async def get_or_create_chat(
    request: schemas.GetOrCreateChatRequest,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
):
    chat = await chat_interactor.get_or_create_chat(identity.user_id, request.creator_id)
    return schemas.ApiResponse(data=chat)


@router.get("/", response_model=schemas.ApiResponse[list[schemas.Chat]])
async def get_my_chats(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    config: AppConfig = Depends(get_config),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
):
    chats, pagination = await chat_interactor.get_my_chats(
        identity.user_id, page=page, limit=page_size(limit, config.CHATS_PAGE_SIZE, config)
    )
    return schemas.ApiResponse(data=chats, pagination=pagination)


@router.get("/unread-count", response_model=schemas.ApiResponse[schemas.UnreadTotal])
async def get_unread_count(
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
):
    total = await chat_interactor.get_unread_total(identity.user_id)
    return schemas.ApiResponse(data=schemas.UnreadTotal(unread_count=total))


@router.get("/{chat_id}", response_model=schemas.ApiResponse[schemas.Chat])
async def get_chat(
    chat_id: int,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
):
    chat = await chat_interactor.get_chat(chat_id, identity.user_id)
    return schemas.ApiResponse(data=chat)


@router.get(
    "/{chat_id}/messages", response_model=schemas.ApiResponse[list[schemas.Message]]
)
async def get_chat_messages(
    chat_id: int,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    config: AppConfig = Depends(get_config),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
    origin_connection_id: str | None = Depends(get_origin_connection_id),
):
    messages, pagination = await message_interactor.get_messages(
        chat_id,
        identity.user_id,
        page=page,
        limit=page_size(limit, config.MESSAGES_PAGE_SIZE, config),
        origin_connection_id=origin_connection_id,
    )
    return schemas.ApiResponse(data=messages, pagination=pagination)


@router.post(
    "/{chat_id}/messages",
    status_code=201,
    response_model=schemas.ApiResponse[schemas.Message],
)
async def send_message(
    chat_id: int,
    message: schemas.MessageCreate,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
    origin_connection_id: str | None = Depends(get_origin_connection_id),
):
    created = await message_interactor.send_message(
        chat_id, identity.user_id, message, origin_connection_id=origin_connection_id
    )
    return schemas.ApiResponse(data=created)


@router.put("/{chat_id}/mark-read", response_model=schemas.ApiResponse[schemas.MarkReadResult])
async def mark_messages_as_read(
    chat_id: int,
    request: schemas.MarkReadRequest | None = None,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
    origin_connection_id: str | None = Depends(get_origin_connection_id),
):
    message_ids = request.message_ids if request else []
    result = await message_interactor.mark_as_read(
        chat_id, identity.user_id, message_ids, origin_connection_id=origin_connection_id
    )
    return schemas.ApiResponse(message="Messages marked as read", data=result)


@router.delete(
    "/{chat_id}/messages/{message_id}",
    response_model=schemas.ApiResponse[schemas.MessageDeleteResult],
)
async def delete_message(
    chat_id: int,
    message_id: int,
    delete_for_everyone: bool = Query(False),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
    origin_connection_id: str | None = Depends(get_origin_connection_id),
):
    result = await message_interactor.delete_message(
        chat_id,
        message_id,
        identity.user_id,
        for_everyone=delete_for_everyone,
        origin_connection_id=origin_connection_id,
    )
    return schemas.ApiResponse(message="Message deleted successfully", data=result)


@router.put("/{chat_id}/block", response_model=schemas.ApiResponse[schemas.BlockStatus])
async def toggle_block_chat(
    chat_id: int,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    identity: schemas.Identity = Depends(get_current_identity),
):
    block_status = await chat_interactor.toggle_block(chat_id, identity.user_id)
    message = (
        "Chat blocked successfully"
        if block_status.is_blocked
        else "Chat unblocked successfully"
    )
    return schemas.ApiResponse(message=message, data=block_status)
