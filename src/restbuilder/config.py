# restbuilder/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RestBuilderSettings(BaseSettings):
    """
    Manages user-configurable defaults for restbuilder, primarily loaded from
    environment variables (prefixed with ``RESTBUILDER_``) or a .env file.

    Builders, endpoint definitions and connection providers read their
    defaults from here unless an explicit value or settings instance is given.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "secrets.env"),
        env_file_encoding="utf-8",
        env_prefix="RESTBUILDER_",
        extra="ignore",
        case_sensitive=False,
    )

    # --- Call Settings ---
    request_timeout_ms: int = Field(
        default=5000,
        gt=0,
        description="Default timeout for a single call in milliseconds",
    )
    api_version: str = Field(
        default="api/I",
        description="Route prefix placed before the controller segment",
    )

    # --- Transport Settings ---
    user_agent: str = Field(
        default="restbuilder/0.1.0",
        description="User-Agent header for requests",
    )
    verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates using the certifi bundle",
    )
    accept_content_types: list[str] = Field(
        default_factory=lambda: ["application/json"],
        description="Default Accept header values for new connection requests",
    )
    accept_encodings: list[str] = Field(
        default_factory=lambda: ["utf-8"],
        description="Default Accept-Encoding header values for new connection requests",
    )

    # --- Auth Settings ---
    token_request_timeout: float = Field(
        default=15.0,
        description="Timeout in seconds for OAuth2 token endpoint requests",
    )


@lru_cache
def get_settings() -> RestBuilderSettings:
    """
    Provides access to the restbuilder settings.

    Settings are loaded from environment variables or .env/secrets.env files.
    The instance is cached for performance.

    Returns:
        RestBuilderSettings: The settings instance.
    """
    return RestBuilderSettings()
