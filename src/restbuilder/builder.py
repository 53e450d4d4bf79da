"""Fluent builder that assembles and executes one REST call.

Typical use:

```python
definition = EndpointDefinition.build("https://api.example.com", "Routes", "Request/{id}")
result = await (
    RestApiClientBuilder.build()
    .behavior(HeaderAdaptationBehavior(accept_content_types=["application/xml"]))
    .from_definition(definition)
    .get()
    .with_uri_argument("id", 100)
    .on_error(lambda status: print("failed with", status))
    .execute(timeout_ms=2000)
)
```

A builder is single use. It moves from ``CONFIGURING`` to ``EXECUTING`` and
ends in exactly one of ``SUCCEEDED``, ``FAILED`` or ``TIMED_OUT``.
"""

import asyncio
import inspect
import time
from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from http import HTTPStatus
from typing import Any, Self

import httpx
import pydantic_core

from .behaviors import Behavior, BehaviorChain
from .cancellation import CancellationToken
from .config import RestBuilderSettings, get_settings
from .endpoint import EndpointDefinition
from .exceptions import (
    AuthError,
    InvalidArgumentError,
    InvalidOperationError,
    RequestCancelledError,
)
from .log_config import logger
from .models import RestApiCallResult
from .providers import ConnectionProvider, HttpxConnectionProvider
from .types import (
    Body,
    ConnectionRequest,
    ConnectionRequestResponse,
    ErrorHandler,
    HttpMethod,
    SuccessHandler,
    TimeoutHandler,
    join_url,
)
from .uri import resolve_uri_arguments

TRANSPORT_FAILURE_STATUS = HTTPStatus.GONE
"""Status reported to error handlers when the transport itself failed."""


class BuilderState(Enum):
    """Lifecycle of an `ApiBuilder`."""

    CONFIGURING = "configuring"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class RestApiClientBuilder:
    """Entry points for building REST calls."""

    @staticmethod
    def build(settings: RestBuilderSettings | None = None) -> "ApiBuilder":
        """Starts a builder whose base address comes from the endpoint definition."""
        return ApiBuilder(None, settings=settings)

    @staticmethod
    def build_for(
        base_address: Any, settings: RestBuilderSettings | None = None
    ) -> "ApiBuilder":
        """Starts a builder that calls ``base_address``.

        The given address takes precedence over the endpoint definition's.
        """
        return ApiBuilder(base_address, settings=settings)


def _json_fallback(value: Any) -> Any:
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_body(body: Body) -> str:
    """Serializes a request body to JSON text (pydantic aliases are honoured)."""
    return pydantic_core.to_json(body, by_alias=True, fallback=_json_fallback).decode()


class ApiBuilder:
    """Stateful fluent builder for a single REST call.

    Attributes:
        _settings: Settings used for defaults (timeout, headers).
        _base_address: Address the call is made against.
        _connection_provider: Transport used to execute the call.
        _behaviors: Registered behaviors, in registration order.
        _definition: The endpoint being called.
        _method: Selected HTTP method.
        _body: Body object for POST/PUT.
        _uri_arguments: Placeholder name to value.
        _query_argument_name: Variable name for the GET query object.
        _query_argument: The GET query object.
        _error_handler: Called with the status code on failure.
        _success_handler: Called with the status code on success.
        _timeout_handler: Called when the call timed out.
        _state: Current `BuilderState`.
    """

    def __init__(
        self,
        base_address: Any = None,
        *,
        settings: RestBuilderSettings | None = None,
        connection_provider: ConnectionProvider | None = None,
    ):
        self._settings = settings or get_settings()
        self._base_address: str | None = (
            str(base_address) if base_address is not None else None
        )
        self._connection_provider: ConnectionProvider = (
            connection_provider or HttpxConnectionProvider(self._settings)
        )
        self._behaviors = BehaviorChain()
        self._definition: EndpointDefinition | None = None
        self._method: HttpMethod | None = None
        self._body: Body = None
        self._uri_arguments: dict[str, Any] = {}
        self._query_argument_name: str | None = None
        self._query_argument: Any = None
        self._error_handler: ErrorHandler | None = None
        self._success_handler: SuccessHandler | None = None
        self._timeout_handler: TimeoutHandler | None = None
        self._state = BuilderState.CONFIGURING

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def connection_provider(self) -> ConnectionProvider:
        return self._connection_provider

    def _ensure_configuring(self) -> None:
        if self._state is not BuilderState.CONFIGURING:
            raise InvalidOperationError(
                f"The builder is {self._state.value}; it can no longer be configured"
            )

    # --- Definition phase ---

    def use_connection_provider(self, provider: ConnectionProvider) -> Self:
        """Replaces the default httpx transport."""
        self._ensure_configuring()
        if provider is None:
            raise InvalidArgumentError("A connection provider is required")
        self._connection_provider = provider
        return self

    def behavior(self, behavior: Behavior) -> Self:
        """Registers a behavior. Registering the same instance twice is a no-op."""
        self._ensure_configuring()
        if behavior is None:
            raise InvalidArgumentError("A behavior is required")
        self._behaviors.add(behavior)
        return self

    def from_definition(self, definition: EndpointDefinition) -> Self:
        """Binds the endpoint to call.

        If the builder was started without a base address, the definition's
        base address is used.
        """
        self._ensure_configuring()
        if definition is None:
            raise InvalidArgumentError("An endpoint definition is required")
        self._definition = definition
        if self._base_address is None:
            self._base_address = definition.base_address
        logger.debug(
            f"Builder bound to /{definition.api_version}/{definition.controller} "
            f"on {self._base_address}"
        )
        return self

    # --- Method phase ---

    def _select_method(self, method: HttpMethod, body: Body = None) -> Self:
        self._ensure_configuring()
        if self._definition is None:
            raise InvalidOperationError(
                "Bind an endpoint definition with from_definition() before selecting a method"
            )
        if self._method is not None:
            raise InvalidOperationError(
                f"HTTP method already set to {self._method.value}"
            )
        self._method = method
        self._body = body
        return self

    def get(self) -> Self:
        return self._select_method(HttpMethod.GET)

    def post(self, body: Body) -> Self:
        """Selects POST with ``body`` as JSON payload.

        Raises:
            InvalidArgumentError: If ``body`` is None.
        """
        if body is None:
            raise InvalidArgumentError("POST requires a body")
        return self._select_method(HttpMethod.POST, body)

    def put(self, body: Body) -> Self:
        """Selects PUT with ``body`` as JSON payload.

        Raises:
            InvalidArgumentError: If ``body`` is None.
        """
        if body is None:
            raise InvalidArgumentError("PUT requires a body")
        return self._select_method(HttpMethod.PUT, body)

    def delete(self) -> Self:
        return self._select_method(HttpMethod.DELETE)

    # --- Arguments ---

    def with_uri_argument(self, name: str, value: Any) -> Self:
        """Registers a value for the ``{name}`` placeholder. Last write wins."""
        self._ensure_configuring()
        key = (name or "").strip("{}")
        if not key:
            raise InvalidArgumentError("A URI argument needs a name")
        self._uri_arguments[key] = value
        return self

    def with_query_argument(self, name: str, query_object: Any) -> Self:
        """Registers the object flattened into the query string of a GET call.

        Raises:
            InvalidOperationError: If the method is not GET or a query object
                was already registered.
            InvalidArgumentError: If either argument is missing.
        """
        self._ensure_configuring()
        if self._method is not HttpMethod.GET:
            raise InvalidOperationError("Query arguments are only supported for GET")
        if self._query_argument is not None:
            raise InvalidOperationError("You can only provide 1 query object")
        if name is None or query_object is None:
            raise InvalidArgumentError("Both arguments should be filled!")
        self._query_argument_name = name
        self._query_argument = query_object
        return self

    # --- Outcome handlers ---

    def _check_handler_slot(self, category: str, current: Callable | None) -> None:
        self._ensure_configuring()
        if current is not None:
            raise InvalidOperationError(f"An {category} handler is already registered")

    def on_error(self, handler: ErrorHandler) -> Self:
        self._check_handler_slot("error", self._error_handler)
        self._error_handler = handler
        return self

    def on_success(self, handler: SuccessHandler) -> Self:
        self._check_handler_slot("success", self._success_handler)
        self._success_handler = handler
        return self

    def on_timeout(self, handler: TimeoutHandler) -> Self:
        self._check_handler_slot("timeout", self._timeout_handler)
        self._timeout_handler = handler
        return self

    # --- Execution ---

    def _relative_uri(self) -> str:
        assert self._definition is not None
        if self._method is HttpMethod.GET and self._query_argument is not None:
            relative_uri = self._definition.get_uri(
                self._query_argument_name, self._query_argument
            )
        else:
            relative_uri = self._definition.get_uri()
        return resolve_uri_arguments(relative_uri, self._uri_arguments)

    async def execute(
        self,
        timeout_ms: int | None = None,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> RestApiCallResult:
        """Executes the call and classifies its outcome.

        Args:
            timeout_ms: Timeout for the whole call. Defaults to the configured
                ``request_timeout_ms`` (5000).
            cancellation_token: Caller-owned token used instead of a timeout.
                It is never closed by the builder.

        Returns:
            RestApiCallResult: The outcome. Failures and timeouts are reported
                here and through the handlers, never raised.

        Raises:
            InvalidOperationError: If the builder is incomplete or was executed.
            InvalidArgumentError: If both a timeout and a token are given.
            ArgumentMissingError: If URI arguments do not match the placeholders.
        """
        self._ensure_configuring()
        if self._definition is None or self._method is None:
            raise InvalidOperationError(
                "An endpoint definition and an HTTP method are required before execution"
            )
        if self._base_address is None:
            raise InvalidOperationError(
                "No base address: pass one to build_for() or to the endpoint definition"
            )
        if timeout_ms is not None and cancellation_token is not None:
            raise InvalidArgumentError("Pass either timeout_ms or cancellation_token")

        self._state = BuilderState.EXECUTING
        started = time.perf_counter()
        owns_token = cancellation_token is None
        token = cancellation_token or CancellationToken(
            timeout_ms if timeout_ms is not None else self._settings.request_timeout_ms
        )
        result = RestApiCallResult()
        try:
            content = (
                serialize_body(self._body)
                if self._method in (HttpMethod.POST, HttpMethod.PUT)
                else None
            )
            relative_uri = self._relative_uri()
            result.uri = join_url(self._base_address, relative_uri)
            await self._dispatch(relative_uri, content, token, result)
        except Exception:
            if self._state is BuilderState.EXECUTING:
                self._state = BuilderState.FAILED
            raise
        finally:
            result.elapsed = timedelta(seconds=time.perf_counter() - started)
            if owns_token:
                token.close()
        logger.debug(
            f"{self._method.value} {result.uri} finished as {self._state.value} "
            f"in {result.elapsed.total_seconds():.3f}s"
        )
        return result

    async def _dispatch(
        self,
        relative_uri: str,
        content: str | None,
        token: CancellationToken,
        result: RestApiCallResult,
    ) -> None:
        assert self._method is not None and self._base_address is not None
        provider = self._connection_provider
        self._behaviors.client_created(provider, self._base_address)
        request = provider.create_request(
            self._method, self._base_address, relative_uri, content
        )
        self._behaviors.request_created(request)

        try:
            response = await self._process(provider, request, token)
        except (RequestCancelledError, httpx.TimeoutException) as e:
            logger.warning(f"Call to {result.uri} timed out: {e}")
            self._state = BuilderState.TIMED_OUT
            result.errors.append(self._timeout_message(token))
            await self._invoke(self._timeout_handler)
            return
        except (httpx.HTTPError, AuthError, OSError) as e:
            logger.warning(f"Transport failure for {result.uri}: {e}")
            self._state = BuilderState.FAILED
            result.errors.append(str(e) or type(e).__name__)
            await self._invoke(self._error_handler, int(TRANSPORT_FAILURE_STATUS))
            return

        if response.is_success:
            self._state = BuilderState.SUCCEEDED
            result.is_succeeded = True
            result.content = response.response_string
            await self._invoke(self._success_handler, response.status_code)
        else:
            logger.warning(
                f"Call to {result.uri} failed with status {response.status_code}"
            )
            self._state = BuilderState.FAILED
            result.errors.append(
                response.error_reason or f"Request failed with status {response.status_code}"
            )
            await self._invoke(self._error_handler, response.status_code)

    async def _process(
        self,
        provider: ConnectionProvider,
        request: ConnectionRequest,
        token: CancellationToken,
    ) -> ConnectionRequestResponse:
        """Runs the provider call, racing it against the cancellation token."""
        dispatch = asyncio.ensure_future(provider.process_request(request, token))
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {dispatch, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancelled.cancel()
            if not dispatch.done():
                dispatch.cancel()

        if dispatch in done:
            return dispatch.result()
        # Let the provider unwind (e.g. close its client) before reporting.
        await asyncio.gather(dispatch, return_exceptions=True)
        if cancelled.exception() is not None:
            # The wait itself failed; that is not a cancellation.
            cancelled.result()
        if not token.is_cancellation_requested:
            raise InvalidOperationError(
                f"Cancellation wait for {request.url} ended without a cancellation request"
            )
        raise RequestCancelledError(f"Cancellation requested for {request.url}")

    @staticmethod
    def _timeout_message(token: CancellationToken) -> str:
        if token.timeout_ms is not None:
            return f"Request timed out after {token.timeout_ms} ms"
        return "Request was cancelled before it completed"

    @staticmethod
    async def _invoke(handler: Callable[..., Any] | None, *args: Any) -> None:
        if handler is None:
            return
        outcome = handler(*args)
        if inspect.isawaitable(outcome):
            await outcome

    def __repr__(self) -> str:
        method = self._method.value if self._method else None
        return (
            f"ApiBuilder(base_address={self._base_address!r}, method={method}, "
            f"state={self._state.value})"
        )
