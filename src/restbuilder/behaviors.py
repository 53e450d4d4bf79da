"""Behaviors: pluggable interceptors around a single call.

A behavior can act at two points of an execution:

1. ``on_client_creation`` runs before any request is built. Typical use is
   replacing the provider's client factory, e.g. to add an auth handler.
2. ``on_request_created`` runs after the provider assembled the
   `ConnectionRequest` and before it is dispatched. Typical use is changing
   the accept headers.

Within each point behaviors run in registration order.
"""

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .log_config import logger
from .types import ConnectionRequest

if TYPE_CHECKING:
    from .providers import ConnectionProvider


@runtime_checkable
class Behavior(Protocol):
    """Protocol defining the interface for request behaviors."""

    def on_client_creation(
        self, provider: "ConnectionProvider", base_address: str
    ) -> None:
        """
        Called once per execution before the request is assembled.

        Args:
            provider: The connection provider that will execute the call.
            base_address: The base address the call is made against.
        """
        ...

    def on_request_created(self, connection_request: ConnectionRequest) -> None:
        """
        Called once per execution right before dispatch.

        Args:
            connection_request: The request; it may be modified in place.
        """
        ...


class BaseBehavior:
    """Behavior with no-op hooks. Subclass and override what you need."""

    def on_client_creation(
        self, provider: "ConnectionProvider", base_address: str
    ) -> None:
        """Does nothing by default."""

    def on_request_created(self, connection_request: ConnectionRequest) -> None:
        """Does nothing by default."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class HeaderAdaptationBehavior(BaseBehavior):
    """Overrides the accept content types and/or encodings of a request.

    Attributes:
        _accept_content_types: Replacement ``Accept`` values, or None to keep.
        _accept_encodings: Replacement ``Accept-Encoding`` values, or None to keep.
    """

    def __init__(
        self,
        accept_content_types: Iterable[str] | None = None,
        accept_encodings: Iterable[str] | None = None,
    ):
        self._accept_content_types = (
            list(accept_content_types) if accept_content_types is not None else None
        )
        self._accept_encodings = (
            list(accept_encodings) if accept_encodings is not None else None
        )

    def on_request_created(self, connection_request: ConnectionRequest) -> None:
        if self._accept_content_types is not None:
            connection_request.accept_content_types = list(self._accept_content_types)
        if self._accept_encodings is not None:
            connection_request.accept_encodings = list(self._accept_encodings)
        logger.trace(
            f"Adapted headers: accept={connection_request.accept_content_types}, "
            f"encodings={connection_request.accept_encodings}"
        )

    def __repr__(self) -> str:
        return (
            f"HeaderAdaptationBehavior(accept_content_types={self._accept_content_types}, "
            f"accept_encodings={self._accept_encodings})"
        )


class BehaviorChain:
    """Ordered collection of behaviors with identity-based deduplication."""

    def __init__(self) -> None:
        self._behaviors: list[Behavior] = []

    def add(self, behavior: Behavior) -> bool:
        """Registers ``behavior``.

        Returns:
            bool: False if this exact instance was already registered, in
                which case nothing changes.
        """
        if any(existing is behavior for existing in self._behaviors):
            logger.debug(f"Behavior {behavior!r} already registered, ignoring.")
            return False
        self._behaviors.append(behavior)
        return True

    def client_created(self, provider: "ConnectionProvider", base_address: str) -> None:
        for behavior in self._behaviors:
            logger.trace(f"on_client_creation: {behavior!r}")
            behavior.on_client_creation(provider, base_address)

    def request_created(self, connection_request: ConnectionRequest) -> None:
        for behavior in self._behaviors:
            logger.trace(f"on_request_created: {behavior!r}")
            behavior.on_request_created(connection_request)

    def __iter__(self) -> Iterator[Behavior]:
        return iter(self._behaviors)

    def __len__(self) -> int:
        return len(self._behaviors)
