"""Unit tests for application settings.

Tests verify environment variable binding through aliases, the grouped
configuration views and the engine configuration derived from settings.
"""

import pytest
from pydantic import ValidationError

from free_agent.agent_core.runtime.models import EngineConfig
from free_agent.core.config import LoggingConfig, Settings, ToolServiceConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Settings built inside a test see only the variables the test sets."""
    for name in list(Settings.model_fields):
        alias = Settings.model_fields[name].alias
        if alias:
            monkeypatch.delenv(alias, raising=False)
    monkeypatch.chdir("/")
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings()

    assert settings.server_port == 8000
    assert settings.max_iterations == 50
    assert settings.parse_retry_limit == 3
    assert settings.auto_retry_parse_failures is False
    assert settings.tool_cache_ttl_seconds == 300.0
    assert settings.tool_service_url is None


def test_environment_variables_bind_through_aliases(clean_env):
    clean_env.setenv("FREE_AGENT_MAX_ITERATIONS", "7")
    clean_env.setenv("FREE_AGENT_AUTO_RETRY_PARSE_FAILURES", "true")
    clean_env.setenv("FREE_AGENT_TOOL_SERVICE_URL", "http://mock-tools")
    clean_env.setenv("FREE_AGENT_TOOL_SERVICE_TOKEN", "secret")

    settings = Settings()

    assert settings.max_iterations == 7
    assert settings.auto_retry_parse_failures is True
    tool_service = settings.tool_service
    assert isinstance(tool_service, ToolServiceConfig)
    assert tool_service.url == "http://mock-tools"
    assert tool_service.token == "secret"
    assert tool_service.timeout == 60.0


def test_logging_view(clean_env):
    settings = Settings(log_level="debug", log_format="json")

    cfg = settings.logging
    assert isinstance(cfg, LoggingConfig)
    assert cfg.level == "debug"
    assert cfg.format == "json"
    assert cfg.enable_file is False


def test_invalid_budget_is_rejected(clean_env):
    clean_env.setenv("FREE_AGENT_MAX_ITERATIONS", "0")

    with pytest.raises(ValidationError):
        Settings()


def test_engine_config_from_settings(clean_env):
    settings = Settings(
        default_model="test",
        max_iterations=12,
        attribute_threshold_chars=100,
        tool_cache_ttl_seconds=None,
        max_children=2,
    )

    config = EngineConfig.from_settings(settings)

    assert config.default_model == "test"
    assert config.max_iterations == 12
    assert config.attribute_threshold_chars == 100
    assert config.tool_cache_ttl_seconds is None
    assert config.max_children == 2
    assert config.child_max_iterations == 20
