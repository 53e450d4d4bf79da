"""Connection providers: the transport seam of restbuilder.

The builder never talks to the network itself. It asks a connection provider
to assemble a `ConnectionRequest`, lets behaviors adjust it, and then hands it
back to the provider for execution. `HttpxConnectionProvider` is the default
implementation on top of ``httpx.AsyncClient``.
"""

import ssl
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import certifi
import httpx

from .cancellation import CancellationToken
from .config import RestBuilderSettings, get_settings
from .exceptions import RequestCancelledError
from .log_config import logger
from .types import ClientFactory, ConnectionRequest, ConnectionRequestResponse, HttpMethod


@runtime_checkable
class ConnectionProvider(Protocol):
    """Protocol defining what the builder needs from a transport.

    Attributes:
        has_handlers: True once a behavior has installed a customised client
            factory for the current provider, so other behaviors do not wrap
            the client a second time.
        create_client: Factory invoked once per call to obtain the client.
    """

    has_handlers: bool
    create_client: ClientFactory

    def create_request(
        self,
        method: HttpMethod,
        base_address: str,
        relative_uri: str,
        content: str | None,
    ) -> ConnectionRequest:
        """Assembles a request descriptor. Performs no I/O."""
        ...

    def configure_headers(
        self, connection_request: ConnectionRequest, client: httpx.AsyncClient
    ) -> None:
        """Applies the request's accept lists onto the client's default headers."""
        ...

    async def process_request(
        self,
        connection_request: ConnectionRequest,
        cancellation_token: CancellationToken,
    ) -> ConnectionRequestResponse:
        """
        Performs the network exchange for one request.

        Raises:
            RequestCancelledError: If the call was cancelled or timed out.
        """
        ...


class BaseConnectionProvider(ABC):
    """Shared state and request assembly for connection providers.

    Subclasses supply the default client and the actual exchange.
    """

    def __init__(self, settings: RestBuilderSettings | None = None):
        self._settings = settings or get_settings()
        self.has_handlers: bool = False
        self.create_client: ClientFactory = self.create_default_client

    @property
    def settings(self) -> RestBuilderSettings:
        return self._settings

    def create_request(
        self,
        method: HttpMethod,
        base_address: str,
        relative_uri: str,
        content: str | None,
    ) -> ConnectionRequest:
        return ConnectionRequest(
            method=method,
            base_address=base_address,
            relative_uri=relative_uri,
            content=content,
            accept_content_types=list(self._settings.accept_content_types),
            accept_encodings=list(self._settings.accept_encodings),
        )

    @abstractmethod
    def create_default_client(self, has_handlers: bool) -> httpx.AsyncClient: ...

    @abstractmethod
    def configure_headers(
        self, connection_request: ConnectionRequest, client: httpx.AsyncClient
    ) -> None: ...

    @abstractmethod
    async def process_request(
        self,
        connection_request: ConnectionRequest,
        cancellation_token: CancellationToken,
    ) -> ConnectionRequestResponse: ...


class HttpxConnectionProvider(BaseConnectionProvider):
    """Connection provider that executes calls with ``httpx.AsyncClient``.

    By default a fresh client is created for every call and closed when the
    call completes. A pre-configured client can be shared instead; the
    provider never closes a client it was given.

    Attributes:
        _shared_client: Optional caller-owned client returned by the default
            factory instead of a fresh one.
    """

    def __init__(
        self,
        settings: RestBuilderSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(settings)
        self._shared_client = http_client

    def _ssl_verification(self) -> ssl.SSLContext | bool:
        if not self._settings.verify_ssl:
            return False
        try:
            return ssl.create_default_context(cafile=certifi.where())
        except (OSError, ssl.SSLError):
            logger.warning(
                "certifi bundle failed to load. Using default SSL verification."
            )
            return True

    def create_default_client(self, has_handlers: bool) -> httpx.AsyncClient:
        """Creates the client used when no behavior replaced the factory.

        Resets ``has_handlers`` because the returned client carries no
        custom handlers.
        """
        self.has_handlers = False
        if self._shared_client is not None:
            return self._shared_client
        # No transport timeout: the call is bounded by its cancellation token.
        return self.build_client()

    def build_client(self, auth: httpx.Auth | None = None) -> httpx.AsyncClient:
        """Builds a new client with the provider's TLS and User-Agent settings.

        Behaviors use this to wrap the client with an ``httpx.Auth`` handler.
        """
        return httpx.AsyncClient(
            auth=auth,
            timeout=None,
            verify=self._ssl_verification(),
            headers={"User-Agent": self._settings.user_agent},
        )

    def configure_headers(
        self, connection_request: ConnectionRequest, client: httpx.AsyncClient
    ) -> None:
        for header, values in (
            ("Accept", connection_request.accept_content_types),
            ("Accept-Encoding", connection_request.accept_encodings),
        ):
            client.headers.pop(header, None)
            if values:
                client.headers[header] = ", ".join(values)
        logger.trace(f"Client headers configured: {client.headers}")

    async def send(
        self, client: httpx.AsyncClient, request: httpx.Request
    ) -> httpx.Response:
        """Sends ``request``. Override to intercept the raw exchange."""
        return await client.send(request)

    async def process_request(
        self,
        connection_request: ConnectionRequest,
        cancellation_token: CancellationToken,
    ) -> ConnectionRequestResponse:
        if cancellation_token.is_cancellation_requested:
            raise RequestCancelledError(
                f"Cancellation requested before sending {connection_request.url}"
            )

        client = self.create_client(self.has_handlers)
        try:
            self.configure_headers(connection_request, client)
            request = connection_request.build_request(client)
            logger.debug(f"Sending request: {request.method} {request.url}")
            if request.content:
                logger.trace(f"Request Body: {request.content.decode()}")

            try:
                response = await self.send(client, request)
            except httpx.TimeoutException as e:
                logger.error(f"Request timed out: {request.url}")
                raise RequestCancelledError(
                    f"Request timed out: {request.url}"
                ) from e

            logger.debug(
                f"Received response: {response.status_code} for {request.url}"
            )
            if response.is_success:
                return ConnectionRequestResponse(
                    is_success=True,
                    status_code=response.status_code,
                    response_string=response.text,
                )
            return ConnectionRequestResponse(
                is_success=False,
                status_code=response.status_code,
                error_reason=response.text or response.reason_phrase,
            )
        finally:
            if client is not self._shared_client and not client.is_closed:
                await client.aclose()
