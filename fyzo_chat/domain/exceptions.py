# fyzo_chat/domain/exceptions.py


class ChatServiceError(Exception):
    """Base class for errors surfaced to the caller with a status code."""

    status_code: int = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
        self.message = message


class NotFoundError(ChatServiceError):
    status_code = 404


class ForbiddenError(ChatServiceError):
    status_code = 403


class BadRequestError(ChatServiceError):
    status_code = 400
