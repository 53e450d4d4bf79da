"""Endpoint definitions for controller/action style routes.

An `EndpointDefinition` describes one logical route such as
``/api/I/Users/Details/{id}``. It is immutable and only produces relative
URIs; base address resolution and placeholder filling happen in the builder.

Example:
    ```python
    users = EndpointDefinition.build("https://api.example.com", "Users", "Details/{id}")
    result = await users.get().with_uri_argument("id", 42).execute()
    ```
"""

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator

from .config import get_settings
from .exceptions import InvalidArgumentError
from .query import build_query_string
from .types import Body

if TYPE_CHECKING:
    from .builder import ApiBuilder


class EndpointDefinition(BaseModel):
    """Immutable description of a route: version, controller and action.

    Attributes:
        api_version: Route prefix, e.g. ``"api/I"``.
        controller: Controller segment of the route.
        action_with_arguments: Action segment, may contain ``{name}`` placeholders.
        base_address: Optional absolute origin the route lives on.
    """

    model_config = ConfigDict(frozen=True)

    api_version: str
    controller: str
    action_with_arguments: str = ""
    base_address: str | None = None

    @field_validator("controller")
    @classmethod
    def _controller_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("controller must not be blank")
        return value

    @classmethod
    def build(
        cls,
        base_address: Any,
        controller: str,
        action_with_arguments: str = "",
        *,
        api_version: str | None = None,
    ) -> "EndpointDefinition":
        """Factory method for building an `EndpointDefinition`.

        Args:
            base_address: Base address to use, or None to take it from the builder.
                Anything with a URL string form (str, httpx.URL) is accepted.
            controller: Controller name in the path.
            action_with_arguments: Action name with ``{placeholders}`` if any.
            api_version: Route prefix. Defaults to the configured ``api_version``.

        Raises:
            InvalidArgumentError: If the controller is missing or blank.
        """
        if not controller or not controller.strip():
            raise InvalidArgumentError("An endpoint definition requires a controller")
        return cls(
            api_version=api_version or get_settings().api_version,
            controller=controller,
            action_with_arguments=action_with_arguments or "",
            base_address=str(base_address) if base_address is not None else None,
        )

    def get_uri(
        self,
        query_argument_name: str | None = None,
        query_object: Any = None,
    ) -> str:
        """Builds the relative URI of this endpoint.

        Args:
            query_argument_name: Variable name the API binds the query object to.
            query_object: Object flattened into the query string.

        Returns:
            str: ``/{api_version}/{controller}[/{action}][?{query}]``. The action
                segment is not escaped, so placeholders survive for later
                substitution.

        Raises:
            InvalidArgumentError: If only one of the query arguments is given.
        """
        if (query_argument_name is None) != (query_object is None):
            raise InvalidArgumentError("Both arguments should be empty or filled!")

        relative_uri = f"/{self.api_version}/{self.controller}"
        if self.action_with_arguments.strip():
            relative_uri = f"{relative_uri}/{self.action_with_arguments}"

        if query_argument_name is not None:
            query = build_query_string(query_argument_name, query_object)
            if query:
                relative_uri = f"{relative_uri}?{query}"
        return relative_uri

    def _builder(self) -> "ApiBuilder":
        from .builder import RestApiClientBuilder

        return RestApiClientBuilder.build_for(self.base_address).from_definition(self)

    def get(self) -> "ApiBuilder":
        """Starts a new builder for a GET call on this endpoint."""
        return self._builder().get()

    def post(self, body: Body) -> "ApiBuilder":
        """Starts a new builder for a POST call with ``body`` as JSON payload."""
        return self._builder().post(body)

    def put(self, body: Body) -> "ApiBuilder":
        """Starts a new builder for a PUT call with ``body`` as JSON payload."""
        return self._builder().put(body)

    def delete(self) -> "ApiBuilder":
        """Starts a new builder for a DELETE call on this endpoint."""
        return self._builder().delete()
