"""Tests for restbuilder settings."""

import pytest
from pydantic import ValidationError

from restbuilder.config import RestBuilderSettings, get_settings


def test_settings_defaults():
    """Test the defaults used by builders and providers."""
    settings = RestBuilderSettings()
    assert settings.request_timeout_ms == 5000
    assert settings.api_version == "api/I"
    assert settings.user_agent == "restbuilder/0.1.0"
    assert settings.verify_ssl is True
    assert settings.accept_content_types == ["application/json"]
    assert settings.accept_encodings == ["utf-8"]
    assert settings.token_request_timeout == 15.0


def test_settings_from_environment(monkeypatch):
    """Test RESTBUILDER_ prefixed environment variables override defaults."""
    monkeypatch.setenv("RESTBUILDER_REQUEST_TIMEOUT_MS", "250")
    monkeypatch.setenv("RESTBUILDER_API_VERSION", "api/v2")
    monkeypatch.setenv("RESTBUILDER_ACCEPT_CONTENT_TYPES", '["application/xml"]')
    monkeypatch.setenv("RESTBUILDER_VERIFY_SSL", "false")

    settings = RestBuilderSettings()

    assert settings.request_timeout_ms == 250
    assert settings.api_version == "api/v2"
    assert settings.accept_content_types == ["application/xml"]
    assert settings.verify_ssl is False


def test_settings_reject_non_positive_timeout():
    """Test the request timeout must be positive."""
    with pytest.raises(ValidationError):
        RestBuilderSettings(request_timeout_ms=0)


def test_get_settings_is_cached():
    """Test get_settings returns one shared instance."""
    assert get_settings() is get_settings()
