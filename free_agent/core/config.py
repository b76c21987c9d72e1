"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class ToolServiceConfig(BaseModel):
    """Remote tool service configuration."""

    url: Optional[str] = Field(
        default=None,
        alias="FREE_AGENT_TOOL_SERVICE_URL",
        description="Base URL of the remote tool service (functions are posted to <url>/functions/v1/<name>)",
    )
    token: Optional[str] = Field(
        default=None, alias="FREE_AGENT_TOOL_SERVICE_TOKEN", description="Bearer token for the remote tool service"
    )
    timeout: float = Field(
        default=60.0, alias="FREE_AGENT_TOOL_SERVICE_TIMEOUT", description="Remote tool request timeout in seconds"
    )

    model_config = {"populate_by_name": True}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="FREE_AGENT_LOG_LEVEL", description="Root console log level")
    format: str = Field(default="detailed", alias="FREE_AGENT_LOG_FORMAT", description="simple, detailed or json")
    file_dir: str = Field(default="logs", alias="FREE_AGENT_LOG_FILE_DIR", description="Directory for log files")
    enable_file: bool = Field(
        default=False, alias="FREE_AGENT_ENABLE_FILE_LOGGING", description="Write a DEBUG log file as well"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="Free Agent server host address to bind to",
        alias="FREE_AGENT_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="Free Agent server port number",
        alias="FREE_AGENT_SERVER_PORT",
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(default="INFO", alias="FREE_AGENT_LOG_LEVEL")
    log_format: str = Field(default="detailed", alias="FREE_AGENT_LOG_FORMAT")
    log_file_dir: str = Field(default="logs", alias="FREE_AGENT_LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="FREE_AGENT_ENABLE_FILE_LOGGING")

    # =====================================================================
    # Engine Configuration
    # =====================================================================
    default_model: str = Field(
        default="google-gla:gemini-2.5-flash",
        description="Model selector used when a session does not name one",
        alias="FREE_AGENT_DEFAULT_MODEL",
    )
    max_iterations: int = Field(default=50, ge=1, alias="FREE_AGENT_MAX_ITERATIONS")
    parse_retry_limit: int = Field(
        default=3,
        ge=1,
        description="Malformed reasoning responses tolerated before the session errors",
        alias="FREE_AGENT_PARSE_RETRY_LIMIT",
    )
    auto_retry_parse_failures: bool = Field(
        default=False,
        description="Re-run a failed iteration immediately instead of pausing",
        alias="FREE_AGENT_AUTO_RETRY_PARSE_FAILURES",
    )
    attribute_threshold_chars: int = Field(
        default=8000,
        ge=1,
        description="Tool results rendered longer than this are stored as attributes",
        alias="FREE_AGENT_ATTRIBUTE_THRESHOLD_CHARS",
    )
    tool_cache_ttl_seconds: Optional[float] = Field(
        default=300.0,
        description="Lifetime of idempotent tool cache entries (unset for no expiry)",
        alias="FREE_AGENT_TOOL_CACHE_TTL_SECONDS",
    )
    blackboard_tail: int = Field(default=50, ge=1, alias="FREE_AGENT_BLACKBOARD_TAIL")
    scratchpad_snapshot_chars: int = Field(default=50_000, ge=1, alias="FREE_AGENT_SCRATCHPAD_SNAPSHOT_CHARS")
    previous_result_chars: int = Field(default=8000, ge=1, alias="FREE_AGENT_PREVIOUS_RESULT_CHARS")
    max_children: int = Field(default=5, ge=1, alias="FREE_AGENT_MAX_CHILDREN")
    child_max_iterations: int = Field(default=20, ge=1, alias="FREE_AGENT_CHILD_MAX_ITERATIONS")

    # =====================================================================
    # Remote Tool Service
    # =====================================================================
    tool_service_url: Optional[str] = Field(default=None, alias="FREE_AGENT_TOOL_SERVICE_URL")
    tool_service_token: Optional[str] = Field(default=None, alias="FREE_AGENT_TOOL_SERVICE_TOKEN")
    tool_service_timeout: float = Field(default=60.0, alias="FREE_AGENT_TOOL_SERVICE_TIMEOUT")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def tool_service(self) -> ToolServiceConfig:
        """Get remote tool service configuration from environment variables."""
        return ToolServiceConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
