"""
Error taxonomy for the messaging service.

Every domain and authorization failure is raised as a MessagelyError
subclass and rendered by the HTTP layer as {"status": ..., "message": ...}.
"""

from fastapi import status


class MessagelyError(Exception):
    """Base class for failures scoped to a single request."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"status": self.status_code, "message": self.message}


class BadRequest(MessagelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class Unauthorized(MessagelyError):
    """
    Any authorization failure. The public message is always the same so
    callers cannot tell which check rejected them.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class NotFound(MessagelyError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(MessagelyError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"
