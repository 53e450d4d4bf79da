"""Shared fixtures and test doubles for the restbuilder test suite."""

import asyncio
from dataclasses import dataclass

import httpx
import pytest

from restbuilder.cancellation import CancellationToken
from restbuilder.config import RestBuilderSettings
from restbuilder.endpoint import EndpointDefinition
from restbuilder.providers import BaseConnectionProvider
from restbuilder.types import ConnectionRequest, ConnectionRequestResponse, HttpMethod

BASE_URI = "http://localhost-faulted"


@dataclass
class CriteriaDef:
    value: str | None = None
    condition: str | None = None


@dataclass
class SearchCriteria:
    page: int | None = None
    page_size: int | None = None
    sub_object: CriteriaDef | None = None


class FakeConnectionProvider(BaseConnectionProvider):
    """Provider that records calls and replays a canned outcome.

    Attributes:
        response: Returned from `process_request` when no exception is set.
        exception: Raised from `process_request` when set.
        delay: Seconds to sleep before answering, to simulate a slow server.
        events: Shared list the provider appends its steps to.
    """

    def __init__(
        self,
        response: ConnectionRequestResponse | None = None,
        *,
        exception: BaseException | None = None,
        delay: float = 0.0,
        events: list[str] | None = None,
        settings: RestBuilderSettings | None = None,
    ):
        super().__init__(settings)
        self.response = response or ConnectionRequestResponse(
            is_success=True, status_code=200, response_string="{}"
        )
        self.exception = exception
        self.delay = delay
        self.events = events if events is not None else []
        self.created_requests: list[ConnectionRequest] = []
        self.processed_requests: list[ConnectionRequest] = []
        self.received_tokens: list[CancellationToken] = []
        self.was_cancelled = False

    def create_default_client(self, has_handlers: bool) -> httpx.AsyncClient:
        self.has_handlers = False
        return httpx.AsyncClient()

    def create_request(
        self,
        method: HttpMethod,
        base_address: str,
        relative_uri: str,
        content: str | None,
    ) -> ConnectionRequest:
        self.events.append("create_request")
        request = super().create_request(method, base_address, relative_uri, content)
        self.created_requests.append(request)
        return request

    def configure_headers(
        self, connection_request: ConnectionRequest, client: httpx.AsyncClient
    ) -> None:
        pass

    async def process_request(
        self,
        connection_request: ConnectionRequest,
        cancellation_token: CancellationToken,
    ) -> ConnectionRequestResponse:
        self.events.append("process_request")
        self.processed_requests.append(connection_request)
        self.received_tokens.append(cancellation_token)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.was_cancelled = True
                raise
        if self.exception is not None:
            raise self.exception
        return self.response


def error_response(status_code: int = 400, reason: str = "Bad Request"):
    return ConnectionRequestResponse(
        is_success=False, status_code=status_code, error_reason=reason
    )


@pytest.fixture
def search_criteria() -> SearchCriteria:
    return SearchCriteria(
        page=1,
        page_size=10,
        sub_object=CriteriaDef(value="1-ABC-123", condition="StartsWith"),
    )


@pytest.fixture
def search_definition() -> EndpointDefinition:
    return EndpointDefinition.build(BASE_URI, "Routes", "Search")


@pytest.fixture
def failing_provider() -> FakeConnectionProvider:
    return FakeConnectionProvider(error_response())


@pytest.fixture
def succeeding_provider() -> FakeConnectionProvider:
    return FakeConnectionProvider(
        ConnectionRequestResponse(
            is_success=True, status_code=200, response_string='{"id": 1}'
        )
    )
