# fyzo_chat/infrastructure/models.py
from datetime import UTC, datetime
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fyzo_chat.domain.enums import DELETED_MESSAGE_CONTENT, MessageType
from fyzo_chat.infrastructure.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    role: Mapped[str] = mapped_column(String, default="user")
    profile_image: Mapped[str] = mapped_column(String, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    __table_args__ = (Index("ix_auth_sessions_user_active", "user_id", "is_active"),)

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    token: Mapped[str] = mapped_column(String, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    user: Mapped[User] = relationship("User", lazy="joined")


class Creator(Base):
    __tablename__ = "creators"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), unique=True, index=True
    )
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    profile_photo: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    verification_status: Mapped[str] = mapped_column(String, default="pending")
    primary_category: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    user: Mapped[User] = relationship("User", lazy="joined")


class ChatParticipant(Base):
    __tablename__ = "chat_participants"

    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_chat_participant"),
        CheckConstraint("unread_count >= 0", name="ck_unread_count_non_negative"),
        Index("ix_chat_participants_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    chat_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    role: Mapped[str] = mapped_column(String)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    unread_count: Mapped[int] = mapped_column(Integer, default=0)

    chat: Mapped["Chat"] = relationship("Chat", back_populates="participants")
    user: Mapped[User] = relationship("User", lazy="joined")


class Chat(Base):
    __tablename__ = "chats"

    __table_args__ = (
        # one chat per (user, creator) pair
        UniqueConstraint("creator_id", "user_id", name="uq_chat_creator_user"),
        Index("ix_chats_updated_at", "updated_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    creator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("creators.id"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    last_message_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_message_sender_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    last_message_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_message_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False)
    blocked_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    participants: Mapped[List[ChatParticipant]] = relationship(
        "ChatParticipant",
        back_populates="chat",
        lazy="selectin",
        order_by="ChatParticipant.id",
        cascade="all, delete-orphan",
    )
    creator: Mapped[Creator] = relationship("Creator", lazy="joined")

    def participant_ids(self) -> list[int]:
        return [p.user_id for p in self.participants]

    def get_participant(self, user_id: int) -> Optional[ChatParticipant]:
        return next((p for p in self.participants if p.user_id == user_id), None)

    def is_participant(self, user_id: int) -> bool:
        return self.get_participant(user_id) is not None

    def get_other_participant(self, user_id: int) -> Optional[ChatParticipant]:
        return next((p for p in self.participants if p.user_id != user_id), None)

    def unread_counts(self) -> dict[str, int]:
        return {str(p.user_id): p.unread_count or 0 for p in self.participants}

    def set_last_message(
        self, content: str, sender_id: int, message_type: str, timestamp: datetime
    ) -> None:
        self.last_message_content = content
        self.last_message_sender_id = sender_id
        self.last_message_type = message_type
        self.last_message_at = timestamp
        self.updated_at = timestamp

    @property
    def last_message(self) -> Optional[dict[str, Any]]:
        if self.last_message_at is None:
            return None
        return {
            "content": self.last_message_content,
            "sender_id": self.last_message_sender_id,
            "timestamp": self.last_message_at,
            "type": self.last_message_type,
        }


class Message(Base):
    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_chat_created", "chat_id", "created_at"),
        Index("ix_messages_sender", "sender_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    chat_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), index=True
    )
    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    sender_role: Mapped[str] = mapped_column(String)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String, default=MessageType.TEXT.value)
    media_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    media_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    reply_to_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("messages.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    sender: Mapped[User] = relationship("User", lazy="joined")
    reply_to: Mapped[Optional["Message"]] = relationship(
        "Message", remote_side="Message.id", lazy="selectin"
    )
    read_receipts: Mapped[List["MessageReadReceipt"]] = relationship(
        "MessageReadReceipt",
        back_populates="message",
        lazy="selectin",
        order_by="MessageReadReceipt.id",
        cascade="all, delete-orphan",
    )
    deletions: Mapped[List["MessageDeletion"]] = relationship(
        "MessageDeletion",
        back_populates="message",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def is_read_by(self, user_id: int) -> bool:
        return any(r.user_id == user_id for r in self.read_receipts)

    def mark_as_read(self, user_id: int, read_at: Optional[datetime] = None) -> bool:
        if self.is_read_by(user_id):
            return False
        self.read_receipts.append(
            MessageReadReceipt(user_id=user_id, read_at=read_at or utcnow())
        )
        return True

    def is_deleted_for(self, user_id: int) -> bool:
        return any(d.user_id == user_id for d in self.deletions)

    def delete_for(self, user_id: int) -> bool:
        if self.is_deleted_for(user_id):
            return False
        self.deletions.append(MessageDeletion(user_id=user_id, deleted_at=utcnow()))
        return True

    def delete_for_everyone(self) -> bool:
        if self.is_deleted:
            return False
        self.is_deleted = True
        self.content = DELETED_MESSAGE_CONTENT
        self.updated_at = utcnow()
        return True

    @property
    def deleted_for(self) -> list[int]:
        return [d.user_id for d in self.deletions]


class MessageReadReceipt(Base):
    __tablename__ = "message_read_receipts"

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_read_receipt_message_user"),
        Index("ix_read_receipts_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messages.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    message: Mapped[Message] = relationship("Message", back_populates="read_receipts")


class MessageDeletion(Base):
    __tablename__ = "message_deletions"

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_deletion_message_user"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messages.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    message: Mapped[Message] = relationship("Message", back_populates="deletions")
