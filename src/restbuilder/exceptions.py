"""Custom exception classes for the restbuilder library.

Only configuration and URI-resolution problems are raised to the caller.
HTTP failures, transport errors and timeouts are reported through
`restbuilder.models.RestApiCallResult` and the registered outcome handlers.
"""


class RestBuilderError(Exception):
    """Base exception class for all restbuilder errors."""

    def __init__(self, message: str):
        """Initializes the base exception.

        Args:
            message: The error message.
        """
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidArgumentError(RestBuilderError, ValueError):
    """Raised when a fluent call receives an unusable argument.

    Examples are a ``None`` body passed to ``post``/``put`` or a query argument
    given without its name.
    """


class InvalidOperationError(RestBuilderError, RuntimeError):
    """Raised when a builder operation is not allowed in the current state.

    Registering a second handler for the same outcome, a second query object,
    or selecting an HTTP method twice all end up here.
    """


class ArgumentMissingError(RestBuilderError, LookupError):
    """Raised when URI placeholders and supplied URI arguments do not match."""

    def __init__(self, message: str, *, expected: int, supplied: int):
        """Initializes the ArgumentMissingError.

        Args:
            message: The error message.
            expected: Number of placeholders found in the URI template.
            supplied: Number of URI arguments registered on the builder.
        """
        super().__init__(message)
        self.expected = expected
        self.supplied = supplied

    def __str__(self) -> str:
        return f"{self.message} (placeholders: {self.expected}, arguments: {self.supplied})"


class RequestCancelledError(RestBuilderError):
    """Signals that a request was cancelled before a response arrived.

    Connection providers raise this when the cancellation token fires or the
    transport times out; the builder turns it into a timed-out result.
    """


class ConfigurationError(RestBuilderError):
    """Represents an error in the library's configuration."""


class AuthError(RestBuilderError):
    """Raised when an authentication error occurs, e.g., fetching a token fails."""
