"""
pushstream Settings
===================

Service configuration read from ``PUSHSTREAM_*`` environment variables or a
``.env`` file: server binding, CORS origins, event stream routes and logging.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    """Configuration of the example event stream service."""

    # Identity reported by / and /health
    app_name: str = Field(default="pushstream", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # uvicorn binding for the development runner
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Origins the browser EventSource may connect from
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Event stream routes
    sse_enabled: bool = Field(default=True, description="Enable Server-Sent Events")
    sse_path: str = Field(default="/sse/pong", description="Path of the ping/pong event stream")
    sse_ping_path: str = Field(
        default="/sse/ping", description="Path that notifies every ping/pong stream"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Optional rotating log file")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Restrict to the three deployment profiles."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise to an upper-case stdlib level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("allowed_hosts", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v: Union[str, List[str]]) -> List[str]:
        """Accept a JSON list or a comma-separated string."""
        if isinstance(v, str):
            # ["*"] or ["https://a.example", "https://b.example"]
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # "*" or "https://a.example,https://b.example"
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    @field_validator("sse_path", "sse_ping_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure route paths are absolute."""
        if not v.startswith("/"):
            raise ValueError("Route paths must start with '/'")
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="PUSHSTREAM_"
    )


# Built lazily so tests can set the environment first
settings = None


def get_settings() -> Settings:
    """Return the process-wide settings, building them on first use."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Rebuild the settings after the environment changed."""
    global settings
    settings = Settings()
    return settings
