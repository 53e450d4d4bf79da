"""Placeholder substitution for relative URI templates.

Templates carry ``{name}`` tokens (e.g. ``/api/I/Users/Details/{id}``) that
are filled from the URI arguments registered on a builder.
"""

import re
from collections.abc import Mapping
from typing import Any

from .exceptions import ArgumentMissingError
from .log_config import logger

PLACEHOLDER_PATTERN = re.compile(r"\{[A-Za-z_][A-Za-z0-9_]*\}")


def count_placeholders(uri_text: str) -> int:
    """Returns the number of well-formed ``{identifier}`` tokens in ``uri_text``."""
    return len(PLACEHOLDER_PATTERN.findall(uri_text))


def resolve_uri_arguments(relative_uri: str, arguments: Mapping[str, Any]) -> str:
    """Substitutes URI arguments into a relative URI template.

    Argument names may be given with or without braces, so ``"id"`` and
    ``"{id}"`` both fill ``{id}``.

    Args:
        relative_uri: The relative URI containing zero or more placeholders.
        arguments: Mapping of placeholder name to value. Values are rendered
            with ``str()``; ``None`` renders as an empty string.

    Returns:
        str: The resolved URI. Returned unchanged when ``arguments`` is empty.

    Raises:
        ArgumentMissingError: If the number of placeholders differs from the
            number of supplied arguments.
    """
    if not arguments:
        return relative_uri

    expected = count_placeholders(relative_uri)
    if expected != len(arguments):
        raise ArgumentMissingError(
            "Not all arguments are given", expected=expected, supplied=len(arguments)
        )

    resolved = relative_uri
    for name, value in arguments.items():
        key = name.strip("{}")
        resolved = resolved.replace(f"{{{key}}}", "" if value is None else str(value))

    logger.trace(f"Resolved URI template {relative_uri} to {resolved}")
    return resolved
