# fyzo_chat/infrastructure/schemas.py
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from fyzo_chat.domain.enums import MAX_MESSAGE_LENGTH, MessageType, ParticipantRole
from fyzo_chat.infrastructure import models

DataT = TypeVar("DataT")


class Identity(BaseModel):
    user_id: int
    role: str


class UserBasic(BaseModel):
    id: int
    name: str
    profile_image: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CreatorBasic(BaseModel):
    id: int
    user_id: int
    display_name: str | None = None
    profile_photo: str | None = None
    verification_status: str
    primary_category: str | None = None

    model_config = ConfigDict(from_attributes=True)


class Participant(BaseModel):
    user_id: int
    role: ParticipantRole
    joined_at: datetime
    user: UserBasic | None = None

    model_config = ConfigDict(from_attributes=True)


class LastMessage(BaseModel):
    content: str | None = None
    sender_id: int | None = None
    timestamp: datetime | None = None
    type: MessageType = MessageType.TEXT


class Chat(BaseModel):
    id: int
    creator_id: int
    participants: list[Participant] = Field(default_factory=list)
    creator: CreatorBasic | None = None
    last_message: LastMessage | None = None
    unread_count: dict[str, int] = Field(default_factory=dict)
    is_active: bool
    is_blocked: bool
    blocked_by: int | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, chat: models.Chat) -> "Chat":
        return cls(
            id=chat.id,
            creator_id=chat.creator_id,
            participants=[Participant.model_validate(p) for p in chat.participants],
            creator=CreatorBasic.model_validate(chat.creator) if chat.creator else None,
            last_message=chat.last_message,
            unread_count=chat.unread_counts(),
            is_active=chat.is_active,
            is_blocked=chat.is_blocked,
            blocked_by=chat.blocked_by,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
        )


class GetOrCreateChatRequest(BaseModel):
    creator_id: int


class BlockStatus(BaseModel):
    is_blocked: bool
    blocked_by: int | None = None


class UnreadTotal(BaseModel):
    unread_count: int


class Dimensions(BaseModel):
    width: int | None = None
    height: int | None = None


class MediaMetadata(BaseModel):
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    duration: float | None = None
    dimensions: Dimensions | None = None


class MessageCreate(BaseModel):
    content: str | None = Field(None, max_length=MAX_MESSAGE_LENGTH)
    type: MessageType = MessageType.TEXT
    media_url: str | None = None
    media_metadata: MediaMetadata | None = None
    reply_to: int | None = None


class ReadReceipt(BaseModel):
    user_id: int
    read_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessagePreview(BaseModel):
    id: int
    content: str | None = None
    sender_id: int
    type: MessageType

    model_config = ConfigDict(from_attributes=True)


class Message(BaseModel):
    id: int
    chat_id: int
    sender_id: int
    sender_role: ParticipantRole
    sender: UserBasic | None = None
    content: str | None = None
    type: MessageType
    media_url: str | None = None
    media_metadata: MediaMetadata | None = None
    read_by: list[ReadReceipt] = Field(default_factory=list)
    is_deleted: bool
    reply_to: MessagePreview | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, message: models.Message) -> "Message":
        return cls(
            id=message.id,
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            sender_role=message.sender_role,
            sender=UserBasic.model_validate(message.sender) if message.sender else None,
            content=message.content,
            type=message.type,
            media_url=message.media_url,
            media_metadata=message.media_metadata,
            read_by=[ReadReceipt.model_validate(r) for r in message.read_receipts],
            is_deleted=message.is_deleted,
            reply_to=(
                MessagePreview.model_validate(message.reply_to)
                if message.reply_to
                else None
            ),
            created_at=message.created_at,
            updated_at=message.updated_at,
        )


class MarkReadRequest(BaseModel):
    message_ids: list[int] = Field(default_factory=list)


class MarkReadResult(BaseModel):
    chat_id: int
    message_ids: list[int]


class MessageDeleteResult(BaseModel):
    chat_id: int
    message_id: int
    for_everyone: bool
    is_deleted: bool


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=-(-total // limit))


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = True
    message: str | None = None
    data: DataT | None = None
    pagination: Pagination | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: list[Any] | None = None


class SocketFrame(BaseModel):
    event: str
    data: dict[str, Any] = Field(default_factory=dict)


class ChatRef(BaseModel):
    chat_id: int


class TypingSignal(ChatRef):
    pass


class MessageSendFrame(MessageCreate):
    chat_id: int
    message_id: int | None = None


class MessageReadFrame(ChatRef):
    message_ids: list[int] = Field(default_factory=list)


class MessageDeleteFrame(ChatRef):
    message_id: int
    for_everyone: bool = False
