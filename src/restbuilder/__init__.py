"""restbuilder: Fluent builder for REST calls against controller/action style APIs.

This package builds and executes single HTTP calls from endpoint definitions
such as ``/api/I/{controller}/{action}``. It provides URI placeholder and
query-object handling, a pluggable connection provider (httpx by default),
behaviors for auth and header adaptation, per-call timeouts and structured
results.
"""

__version__ = "0.1.0"

# Import core modules for easy access
from . import (
    auth,
    behaviors,
    builder,
    cancellation,
    config,
    endpoint,
    exceptions,
    log_config,
    models,
    providers,
    query,
    types,
    uri,
)
from .behaviors import BaseBehavior, HeaderAdaptationBehavior
from .builder import ApiBuilder, RestApiClientBuilder
from .cancellation import CancellationToken
from .endpoint import EndpointDefinition
from .models import RestApiCallResult

__all__ = [
    "__version__",
    "auth",
    "behaviors",
    "builder",
    "cancellation",
    "config",
    "endpoint",
    "exceptions",
    "log_config",
    "models",
    "providers",
    "query",
    "types",
    "uri",
    "ApiBuilder",
    "BaseBehavior",
    "CancellationToken",
    "EndpointDefinition",
    "HeaderAdaptationBehavior",
    "RestApiCallResult",
    "RestApiClientBuilder",
]
