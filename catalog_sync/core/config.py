"""
Catalog Sync Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Library settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Catalog API configuration
    API_BASE_URL: str = Field(
        default="http://localhost:3000/api", description="Catalog REST API base URL"
    )
    API_TOKEN: Optional[str] = Field(
        default=None, description="Bearer token forwarded on every API request"
    )
    API_TIMEOUT_SECONDS: float = Field(
        default=10.0, gt=0, le=300, description="HTTP request timeout in seconds"
    )

    # Pagination and cache configuration
    PAGE_SIZE: int = Field(
        default=10, ge=1, le=100, description="Products requested per page"
    )
    PAGE_STALE_TIME_SECONDS: int = Field(
        default=3600,
        ge=1,
        le=86400,
        description="Seconds before a cached product page is considered stale",
    )
    PRODUCT_STALE_TIME_SECONDS: int = Field(
        default=3600,
        ge=1,
        le=86400,
        description="Seconds before a cached product is considered stale",
    )

    # Logging configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(
        default=False, description="Render structured logs as JSON lines"
    )

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate API base URL scheme and strip trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)}")
        return level

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def api_base_url(self) -> str:
        """Alias for API_BASE_URL."""
        return self.API_BASE_URL

    @property
    def page_size(self) -> int:
        """Alias for PAGE_SIZE."""
        return self.PAGE_SIZE


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
