# restbuilder/models.py
"""Result model returned by every execution of a builder.

`RestApiCallResult` is the polling counterpart to the outcome handlers: both
observe the same classification of a call into success, error or timeout.
"""

from datetime import timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, Field, TypeAdapter

from .exceptions import InvalidOperationError

T = TypeVar("T")


class RestApiCallResult(BaseModel):
    """Outcome of a single REST call.

    Attributes:
        is_succeeded: True when the server answered with a 2xx status.
        errors: Error messages, in the order they occurred. Empty on success.
        content: Raw response body of a successful call, otherwise None.
        uri: The absolute URI that was requested. Set before dispatch, so it
            is available for failed and timed-out calls too.
        elapsed: Wall-clock duration of the whole execution.
    """

    is_succeeded: bool = False
    errors: list[str] = Field(default_factory=list)
    content: str | None = None
    uri: str | None = None
    elapsed: timedelta = timedelta(0)

    def parse(self, model_type: type[T]) -> T:
        """Deserializes `content` as JSON into ``model_type``.

        Works for pydantic models, dataclasses, TypedDicts and builtin types.

        Raises:
            InvalidOperationError: If there is no content to parse.
            pydantic.ValidationError: If the content does not match ``model_type``.
        """
        if self.content is None:
            raise InvalidOperationError("The call returned no content to parse")
        return TypeAdapter(model_type).validate_json(self.content)

    def json_content(self) -> Any:
        """Returns `content` decoded as untyped JSON (dicts, lists, scalars)."""
        return self.parse(Any)

    def get_error_message(self) -> str:
        """Joins all errors into one newline-separated string."""
        return "\n".join(self.errors)
