"""Tests for the httpx connection provider."""

import ssl

import httpx
import pytest

from restbuilder.builder import RestApiClientBuilder
from restbuilder.cancellation import CancellationToken
from restbuilder.config import RestBuilderSettings
from restbuilder.endpoint import EndpointDefinition
from restbuilder.exceptions import RequestCancelledError
from restbuilder.providers import ConnectionProvider, HttpxConnectionProvider
from restbuilder.types import HttpMethod

from .conftest import BASE_URI, FakeConnectionProvider, SearchCriteria

API_URL = "http://localhost-faulted/api/I/Users"


@pytest.fixture
def provider():
    return HttpxConnectionProvider(RestBuilderSettings())


def make_request(provider, method=HttpMethod.GET, content=None):
    return provider.create_request(method, BASE_URI, "/api/I/Users", content)


def test_providers_satisfy_protocol(provider):
    """Test both the httpx and the fake provider match the ConnectionProvider protocol."""
    assert isinstance(provider, ConnectionProvider)
    assert isinstance(FakeConnectionProvider(), ConnectionProvider)


def test_create_request_uses_settings_defaults():
    """Test new requests carry the configured accept lists."""
    settings = RestBuilderSettings(
        accept_content_types=["application/xml"], accept_encodings=["gzip"]
    )
    request = HttpxConnectionProvider(settings).create_request(
        HttpMethod.PUT, BASE_URI, "/api/I/Users", '{"a": 1}'
    )
    assert request.method is HttpMethod.PUT
    assert request.url == API_URL
    assert request.content == '{"a": 1}'
    assert request.accept_content_types == ["application/xml"]
    assert request.accept_encodings == ["gzip"]


def test_create_request_does_not_share_lists(provider):
    """Test changing a request's accept list leaves the settings untouched."""
    request = make_request(provider)
    request.accept_content_types.append("text/plain")
    assert provider.settings.accept_content_types == ["application/json"]


@pytest.mark.asyncio
async def test_configure_headers_replaces_accept_headers(provider):
    """Test accept lists are joined into the client's default headers."""
    request = make_request(provider)
    request.accept_content_types = ["application/json", "text/plain"]
    async with httpx.AsyncClient(headers={"Accept": "*/*"}) as client:
        provider.configure_headers(request, client)
        assert client.headers["Accept"] == "application/json, text/plain"
        assert client.headers["Accept-Encoding"] == "utf-8"


@pytest.mark.asyncio
async def test_configure_headers_removes_empty_lists(provider):
    """Test an empty accept list removes the header."""
    request = make_request(provider)
    request.accept_encodings = []
    async with httpx.AsyncClient() as client:
        provider.configure_headers(request, client)
        assert "Accept-Encoding" not in client.headers


def test_create_default_client_resets_handlers(provider):
    """Test the default client factory clears the has_handlers flag."""
    provider.has_handlers = True
    client = provider.create_default_client(True)
    assert isinstance(client, httpx.AsyncClient)
    assert provider.has_handlers is False


def test_ssl_verification_respects_settings():
    """Test TLS verification uses certifi unless disabled."""
    assert isinstance(
        HttpxConnectionProvider(RestBuilderSettings())._ssl_verification(),
        ssl.SSLContext,
    )
    assert (
        HttpxConnectionProvider(RestBuilderSettings(verify_ssl=False))._ssl_verification()
        is False
    )


@pytest.mark.asyncio
async def test_process_request_success(provider, httpx_mock):
    """Test a 2xx response returns the body and sends the expected headers."""
    httpx_mock.add_response(url=API_URL, method="GET", json=[{"id": 1}])

    response = await provider.process_request(make_request(provider), CancellationToken())

    assert response.is_success
    assert response.status_code == 200
    assert response.response_string == '[{"id":1}]'
    assert response.error_reason is None
    sent = httpx_mock.get_request()
    assert sent.headers["Accept"] == "application/json"
    assert sent.headers["Accept-Encoding"] == "utf-8"
    assert sent.headers["User-Agent"] == "restbuilder/0.1.0"


@pytest.mark.asyncio
async def test_process_request_failure_uses_body(provider, httpx_mock):
    """Test a non-2xx response reports the response body as error reason."""
    httpx_mock.add_response(url=API_URL, status_code=422, text="Name is required")

    response = await provider.process_request(make_request(provider), CancellationToken())

    assert not response.is_success
    assert response.status_code == 422
    assert response.error_reason == "Name is required"
    assert response.response_string is None


@pytest.mark.asyncio
async def test_process_request_failure_without_body_uses_reason_phrase(
    provider, httpx_mock
):
    """Test an empty error body falls back to the reason phrase."""
    httpx_mock.add_response(url=API_URL, status_code=404)

    response = await provider.process_request(make_request(provider), CancellationToken())

    assert response.error_reason == "Not Found"


@pytest.mark.asyncio
async def test_process_request_sends_content(provider, httpx_mock):
    """Test body content is sent with the first accept type as content type."""
    httpx_mock.add_response(url=API_URL, method="POST", status_code=201)

    await provider.process_request(
        make_request(provider, HttpMethod.POST, '{"name":"ann"}'), CancellationToken()
    )

    sent = httpx_mock.get_request()
    assert sent.method == "POST"
    assert sent.content == b'{"name":"ann"}'
    assert sent.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_process_request_transport_timeout(provider, httpx_mock):
    """Test an httpx timeout becomes RequestCancelledError."""
    httpx_mock.add_exception(httpx.ReadTimeout("Unable to read within timeout"))

    with pytest.raises(RequestCancelledError, match="Request timed out"):
        await provider.process_request(make_request(provider), CancellationToken())


@pytest.mark.asyncio
async def test_process_request_transport_error_propagates(provider, httpx_mock):
    """Test connection errors are raised for the builder to classify."""
    httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

    with pytest.raises(httpx.ConnectError):
        await provider.process_request(make_request(provider), CancellationToken())


@pytest.mark.asyncio
async def test_process_request_already_cancelled(provider):
    """Test nothing is sent when the token is already cancelled."""
    token = CancellationToken()
    token.cancel()
    with pytest.raises(RequestCancelledError):
        await provider.process_request(make_request(provider), token)


@pytest.mark.asyncio
async def test_process_request_closes_fresh_client(provider, httpx_mock):
    """Test a client created for the call is closed afterwards."""
    httpx_mock.add_response(url=API_URL)
    created: list[httpx.AsyncClient] = []

    def factory(has_handlers):
        created.append(provider.build_client())
        return created[-1]

    provider.create_client = factory
    await provider.process_request(make_request(provider), CancellationToken())

    assert len(created) == 1
    assert created[0].is_closed


@pytest.mark.asyncio
async def test_process_request_keeps_shared_client_open(httpx_mock):
    """Test a caller-supplied client is reused and never closed."""
    httpx_mock.add_response(url=API_URL, is_reusable=True)
    async with httpx.AsyncClient() as client:
        provider = HttpxConnectionProvider(RestBuilderSettings(), http_client=client)
        await provider.process_request(make_request(provider), CancellationToken())
        await provider.process_request(make_request(provider), CancellationToken())
        assert not client.is_closed
    assert len(httpx_mock.get_requests()) == 2


@pytest.mark.asyncio
async def test_builder_end_to_end_get_with_query(httpx_mock):
    """Test a GET with query object through the default provider."""
    httpx_mock.add_response(json={"items": []})
    definition = EndpointDefinition.build(BASE_URI, "Routes", "Search")

    result = await (
        RestApiClientBuilder.build()
        .from_definition(definition)
        .get()
        .with_query_argument("model", SearchCriteria(page=1, page_size=10))
        .execute()
    )

    assert result.is_succeeded
    assert result.json_content() == {"items": []}
    assert httpx_mock.get_request().url == httpx.URL(
        "http://localhost-faulted/api/I/Routes/Search?model.page=1&model.pageSize=10"
    )


@pytest.mark.asyncio
async def test_builder_end_to_end_put(httpx_mock):
    """Test a PUT with body through the default provider."""
    httpx_mock.add_response(method="PUT", url="http://localhost-faulted/api/I/Users/Update/7")
    definition = EndpointDefinition.build(BASE_URI, "Users", "Update/{id}")

    result = await (
        RestApiClientBuilder.build()
        .from_definition(definition)
        .put({"name": "ann"})
        .with_uri_argument("id", 7)
        .execute()
    )

    assert result.is_succeeded
    assert httpx_mock.get_request().content == b'{"name":"ann"}'


@pytest.mark.asyncio
async def test_builder_end_to_end_transport_error(httpx_mock):
    """Test a connection failure is reported as status 410."""
    httpx_mock.add_exception(httpx.ConnectError("Connection refused"))
    statuses: list[int] = []
    definition = EndpointDefinition.build(BASE_URI, "Users")

    result = await (
        RestApiClientBuilder.build()
        .from_definition(definition)
        .delete()
        .on_error(statuses.append)
        .execute()
    )

    assert not result.is_succeeded
    assert result.errors == ["Connection refused"]
    assert statuses == [410]
