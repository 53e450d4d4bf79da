# restbuilder/types.py
"""Core type definitions and data structures for restbuilder.

This module defines the transport-agnostic request/response descriptors that
flow between the builder and a connection provider, plus type aliases for the
outcome handlers and client factories.
"""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field


class HttpMethod(str, Enum):
    """HTTP methods supported by the builder."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class ConnectionRequest(BaseModel):
    """Encapsulates a single outbound call before it is handed to the transport.

    Instances are created by a connection provider and may be adjusted by
    behaviors (e.g. accept headers) until the request is dispatched.
    """

    method: HttpMethod
    base_address: str
    relative_uri: str
    content: str | None = None
    accept_content_types: list[str] = Field(
        default_factory=lambda: ["application/json"]
    )
    accept_encodings: list[str] = Field(default_factory=lambda: ["utf-8"])

    model_config = ConfigDict(validate_assignment=True)

    @property
    def url(self) -> str:
        """The absolute URL: base address joined with the relative URI."""
        return join_url(self.base_address, self.relative_uri)

    def build_request(self, client: httpx.AsyncClient) -> httpx.Request:
        """Builds an httpx.Request on ``client`` so its default headers apply."""
        headers: dict[str, str] = {}
        if self.content is not None and self.accept_content_types:
            headers["Content-Type"] = self.accept_content_types[0]
        return client.build_request(
            method=self.method.value,
            url=self.url,
            content=self.content,
            headers=headers,
        )


class ConnectionRequestResponse(BaseModel):
    """Outcome of one transport call, produced once per attempt."""

    is_success: bool
    status_code: int
    response_string: str | None = None
    error_reason: str | None = None

    model_config = ConfigDict(frozen=True)


def join_url(base_address: str, relative_uri: str) -> str:
    """Joins a base address and a relative URI with exactly one slash."""
    return f"{base_address.rstrip('/')}/{relative_uri.lstrip('/')}"


ErrorHandler = Callable[[int], Awaitable[None] | None]
"""Type alias for an error handler.

Called with the HTTP status code when the call fails (410 for transport
errors). May be a plain function or a coroutine function.
"""

SuccessHandler = Callable[[int], Awaitable[None] | None]
"""Type alias for a success handler, called with the HTTP status code."""

TimeoutHandler = Callable[[], Awaitable[None] | None]
"""Type alias for a timeout handler, called without arguments."""

ClientFactory = Callable[[bool], httpx.AsyncClient]
"""Type alias for a connection provider's client factory.

Args:
    has_handlers (bool): The provider's ``has_handlers`` flag at the time the
        client is requested.
Return:
    httpx.AsyncClient: The client used for exactly one call.
"""

Body = Any
"""Any object the body serializer understands (models, dataclasses, dicts)."""
