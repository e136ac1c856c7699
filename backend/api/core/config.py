"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storefront platform app credentials (session tokens are signed with the secret)
    shopify_api_key: str = Field(default="", description="App API key (session token audience)")
    shopify_api_secret: str = Field(default="", description="App API secret (session token key)")
    session_token_leeway: int = Field(default=10, description="Clock skew allowed on tokens, seconds")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: str | None = Field(default="require", description="asyncpg ssl mode, empty to disable")

    # Server URLs
    frontend_url: str = Field(default="http://localhost:3000", description="Admin frontend URL for CORS")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    test_shop: str = Field(
        default="test-shop.myshopify.com",
        description="Shop used when no session token is sent in development",
    )

    # Storefront caching (seconds)
    storefront_cache_seconds: int = Field(default=60, description="Cache-Control max-age for timer reads")
    storefront_error_cache_seconds: int = Field(
        default=30, description="Cache-Control max-age for failed timer reads"
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Keep-Alive
    enable_keep_alive: bool = Field(default=True, description="Enable heartbeat keep-alive task")
    keep_alive_interval: int = Field(default=300, description="Heartbeat interval in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("database_ssl")
    @classmethod
    def empty_ssl_disables(cls, v: str | None) -> str | None:
        return v or None

    @property
    def cors_origins(self) -> list[str]:
        """Explicit CORS origins (the admin frontend)"""
        return [self.frontend_url]

    @property
    def cors_origin_regex(self) -> str:
        """Storefront and admin origins of the commerce platform, plus localhost"""
        return r"^https://([a-z0-9-]+\.)*(myshopify|shopify)\.com$|^https?://localhost(:\d+)?$"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
