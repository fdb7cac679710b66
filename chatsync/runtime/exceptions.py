"""Errors raised by the chat server client.

Errors fall into two classes. Client errors (HTTP 4xx) mean the request
itself is unacceptable, usually because the credentials are no longer valid;
retrying cannot help. Everything else is treated as transient.
"""

from __future__ import annotations

from typing import Any, Mapping

__all__ = [
    "ApiError",
    "ClientApiError",
    "NetworkError",
    "ServerApiError",
    "is_client_error",
]


class ApiError(Exception):
    """Base class for failed server calls."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.data = dict(data or {})

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class ClientApiError(ApiError):
    """The server rejected the request (HTTP 4xx). Terminal."""


class ServerApiError(ApiError):
    """The server failed or answered with something unusable. Transient."""


class NetworkError(ApiError):
    """The request never produced a response. Transient."""


def is_client_error(exc: BaseException) -> bool:
    return isinstance(exc, ClientApiError)
