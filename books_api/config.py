"""
API configuration settings.
Read from environment variables and an optional .env file.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Golib Books API"
    api_version: str = "1.0.0"
    api_description: str = "A REST API for creating, reading, updating and deleting books"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Database Settings
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "Golib"
    mongodb_collection: str = "book"

    # Request handling
    request_timeout: float = Field(default=10.0, description="Seconds allowed per request for store calls, 0 disables")
    disconnect_poll_interval: float = Field(default=0.1, description="Seconds between client disconnect checks, 0 disables")

    # Identifier generation
    id_strategy: str = "uuid"
    id_max_attempts: int = 3

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 0 or v > 300:
            raise ValueError("request_timeout must be between 0 and 300 seconds")
        return v

    @field_validator("disconnect_poll_interval")
    @classmethod
    def validate_poll_interval(cls, v):
        if v < 0 or v > 10:
            raise ValueError("disconnect_poll_interval must be between 0 and 10 seconds")
        return v

    @field_validator("id_strategy")
    @classmethod
    def validate_id_strategy(cls, v):
        """Ensure the id strategy is known."""
        valid_strategies = ["uuid", "timestamp"]
        if v.lower() not in valid_strategies:
            raise ValueError(f"id_strategy must be one of: {valid_strategies}")
        return v.lower()

    @field_validator("id_max_attempts")
    @classmethod
    def validate_id_max_attempts(cls, v):
        if v < 1 or v > 10:
            raise ValueError("id_max_attempts must be between 1 and 10")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    def request_timeout_or_none(self) -> Optional[float]:
        """Request timeout in seconds, or None when disabled."""
        return self.request_timeout or None


# Global config instance
config = APIConfig()
