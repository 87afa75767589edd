"""
Error kinds raised by the chat core.

Every kind carries a stable ``kind`` string and the HTTP status the gateway
answers with. Handlers in ``chat_api.main`` turn them into
``{"error": ..., "kind": ...}`` responses.
"""
from __future__ import annotations

from fastapi import status


class ChatError(Exception):
    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(ChatError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized: Invalid or expired token."


class Forbidden(ChatError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden."


class NotFound(ChatError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class InvalidArgument(ChatError):
    kind = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class UploadFailed(ChatError):
    kind = "upload_failed"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to upload attachment."


class RateLimited(ChatError):
    kind = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests."


class Internal(ChatError):
    pass
