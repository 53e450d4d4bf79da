"""OAuth2 client-credentials support for restbuilder.

The behaviors in this module install a client factory on an
`HttpxConnectionProvider` so every client it creates carries an
``httpx.Auth`` handler. The handler exchanges a client id and secret for a
bearer token at the token endpoint, caches the token until it expires, and
adds ``Authorization: Bearer <token>`` to each request.
"""

import asyncio
import math
import time
from collections.abc import AsyncGenerator, Generator
from typing import Any, Self
from urllib.parse import urlsplit

import httpx
from cachetools import TLRUCache
from pydantic import BaseModel, ValidationError

from .behaviors import BaseBehavior
from .config import get_settings
from .exceptions import AuthError, ConfigurationError
from .log_config import logger
from .providers import ConnectionProvider, HttpxConnectionProvider

TOKEN_EXPIRY_MARGIN_SECONDS = 30.0
"""Tokens are dropped from the cache this long before they really expire."""


class ClientCredentialSettings(BaseModel):
    """Settings for the OAuth2 client-credentials flow.

    Attributes:
        token_endpoint_uri: The URL of the OAuth2 token endpoint.
        client_id: The OAuth2 client ID.
        client_secret: The OAuth2 client secret.
    """

    token_endpoint_uri: str | None = None
    client_id: str | None = None
    client_secret: str | None = None


class Auth0ClientCredentialSettings(ClientCredentialSettings):
    """Client-credentials settings for Auth0, which also needs an audience."""

    audience: str | None = None


class AccessToken(BaseModel):
    """Token endpoint response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: float | None = None
    refresh_token: str | None = None


def _token_expiry(_key: str, token: AccessToken, now: float) -> float:
    if token.expires_in is None:
        return math.inf
    return now + token.expires_in - TOKEN_EXPIRY_MARGIN_SECONDS


class ClientCredentialsTokenAuth(httpx.Auth):
    """``httpx.Auth`` implementation of the OAuth2 client-credentials grant.

    Credentials are sent as form post parameters. Fetching is guarded by a
    lock so concurrent requests on one handler trigger a single token request.

    Attributes:
        _settings: The client-credentials settings.
        _token_request_timeout: Timeout in seconds for the token request.
        _tokens: Single-entry cache holding the current token until expiry.
        _fetch_lock: An asyncio.Lock to prevent concurrent token requests.
    """

    _CACHE_KEY = "access_token"

    def __init__(
        self,
        settings: ClientCredentialSettings,
        *,
        token_request_timeout: float | None = None,
    ):
        if not all(
            [settings.token_endpoint_uri, settings.client_id, settings.client_secret]
        ):
            raise ConfigurationError(
                f"{type(self).__name__} requires 'token_endpoint_uri', 'client_id', and 'client_secret'."
            )
        self._settings = settings
        self._token_request_timeout = (
            token_request_timeout
            if token_request_timeout is not None
            else get_settings().token_request_timeout
        )
        self._tokens: TLRUCache[str, AccessToken] = TLRUCache(
            maxsize=1, ttu=_token_expiry, timer=time.monotonic
        )
        self._fetch_lock = asyncio.Lock()
        logger.debug(f"{type(self).__name__} initialized.")

    @property
    def token_url(self) -> str:
        assert self._settings.token_endpoint_uri is not None
        return self._settings.token_endpoint_uri

    @property
    def cached_token(self) -> AccessToken | None:
        return self._tokens.get(self._CACHE_KEY)

    def invalidate(self) -> None:
        """Drops the cached token so the next request fetches a new one."""
        self._tokens.pop(self._CACHE_KEY, None)

    async def _post_token_request(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            url=self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._settings.client_id,
                "client_secret": self._settings.client_secret,
            },
        )

    async def _fetch_access_token(self) -> str:
        """Fetches a new access token from the token endpoint.

        Returns:
            The fetched access token as a string.

        Raises:
            AuthError: If token fetching fails due to HTTP errors, network issues,
                       or an invalid response from the token endpoint.
        """
        async with self._fetch_lock:
            # Another request may have fetched a token while we waited.
            cached = self.cached_token
            if cached is not None:
                return cached.access_token

            logger.info(f"Fetching new access token from {self.token_url}")
            try:
                async with httpx.AsyncClient(
                    timeout=self._token_request_timeout
                ) as client:
                    response = await self._post_token_request(client)
                    response.raise_for_status()
                token = AccessToken.model_validate(response.json())
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"HTTP error fetching token: {e.response.status_code} - {e.response.text}"
                )
                raise AuthError(
                    f"Failed to fetch access token: {e.response.status_code} - {e.response.text}"
                ) from e
            except httpx.RequestError as e:
                logger.error(f"Error fetching token: {e}")
                raise AuthError(f"Failed to fetch access token: {e}") from e
            except (ValueError, ValidationError) as e:
                logger.error(f"Invalid token response from {self.token_url}: {e}")
                raise AuthError("Access token not found in token response.") from e

            self._tokens[self._CACHE_KEY] = token
            logger.info("Successfully fetched new access token.")
            return token.access_token

    async def get_access_token(self) -> str:
        """Returns the cached token, fetching a new one when missing or expired."""
        cached = self.cached_token
        if cached is not None:
            return cached.access_token
        return await self._fetch_access_token()

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        logger.trace(f"Authenticating request using {type(self).__name__}.")
        token = await self.get_access_token()
        request.headers["Authorization"] = f"Bearer {token}"
        yield request

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError(f"{type(self).__name__} requires an httpx.AsyncClient")


class Auth0ClientCredentialsTokenAuth(ClientCredentialsTokenAuth):
    """Client-credentials handler for Auth0 tenants.

    Auth0 expects a JSON body with the ``audience`` of the API. A bare tenant
    address such as ``https://tenant.eu.auth0.com`` is completed with the
    ``/oauth/token`` path.
    """

    def __init__(
        self,
        settings: Auth0ClientCredentialSettings,
        *,
        token_request_timeout: float | None = None,
    ):
        if not settings.audience:
            raise ConfigurationError(
                "Auth0ClientCredentialsTokenAuth requires an 'audience'."
            )
        super().__init__(settings, token_request_timeout=token_request_timeout)
        self._audience: str = settings.audience

    @property
    def token_url(self) -> str:
        url = super().token_url
        if urlsplit(url).path in ("", "/"):
            return f"{url.rstrip('/')}/oauth/token"
        return url

    async def _post_token_request(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            url=self.token_url,
            json={
                "grant_type": "client_credentials",
                "client_id": self._settings.client_id,
                "client_secret": self._settings.client_secret,
                "audience": self._audience,
            },
        )


class OAuth2ClientCredentialsBehavior(BaseBehavior):
    """Behavior that authorizes calls with an OAuth2 client-credentials token.

    On client creation it replaces the provider's client factory with one that
    builds clients carrying a `ClientCredentialsTokenAuth` handler, and marks
    the provider as having handlers. The handler is kept by the behavior, so
    the token is reused across calls that share the behavior instance.
    """

    def __init__(self, auth: ClientCredentialsTokenAuth):
        self._auth = auth

    @classmethod
    def create(cls, settings: ClientCredentialSettings, **kwargs: Any) -> Self:
        """Creates the behavior for ``settings``.

        Raises:
            ConfigurationError: If the settings are incomplete.
        """
        return cls(ClientCredentialsTokenAuth(settings, **kwargs))

    @property
    def auth(self) -> ClientCredentialsTokenAuth:
        return self._auth

    def on_client_creation(
        self, provider: ConnectionProvider, base_address: str
    ) -> None:
        if not isinstance(provider, HttpxConnectionProvider):
            logger.warning(
                f"{type(self).__name__} only supports HttpxConnectionProvider, "
                f"got {type(provider).__name__}; client left unchanged."
            )
            return
        if provider.has_handlers:
            logger.debug(
                f"Provider already has handlers, {type(self).__name__} not applied."
            )
            return

        auth = self._auth

        def create_authorized_client(has_handlers: bool) -> httpx.AsyncClient:
            return provider.build_client(auth=auth)

        provider.create_client = create_authorized_client
        provider.has_handlers = True
        logger.debug(f"{type(self).__name__} installed for {base_address}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(token_url={self._auth.token_url!r})"


class Auth0ClientCredentialBehavior(OAuth2ClientCredentialsBehavior):
    """`OAuth2ClientCredentialsBehavior` variant for Auth0 token endpoints."""

    @classmethod
    def create(cls, settings: Auth0ClientCredentialSettings, **kwargs: Any) -> Self:
        return cls(Auth0ClientCredentialsTokenAuth(settings, **kwargs))
