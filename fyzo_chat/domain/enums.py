# fyzo_chat/domain/enums.py
from enum import Enum


class ParticipantRole(str, Enum):
    USER = "user"
    CREATOR = "creator"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"


DELETED_MESSAGE_CONTENT = "This message was deleted"
MAX_MESSAGE_LENGTH = 5000
