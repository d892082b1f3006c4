"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

import json
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Selfquestion"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - loaded from environment

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    # Azure Cosmos DB
    # Either the endpoint (RBAC via DefaultAzureCredential) or a connection
    # string (local emulator) must be configured.
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None
    AZURE_COSMOS_DATABASE: str = "selfquestion"
    AZURE_COSMOS_DISABLE_SSL: bool = False

    # Authentication
    JWT_ALGORITHM: str = "HS256"
    ADMIN_TOKEN_EXPIRE_HOURS: int = 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    AUTHOR_TOKEN_EXPIRE_DAYS: int = 30

    # Environment-configured super admin (disabled while the password is empty)
    SUPER_ADMIN_USERNAME: str = "admin"
    SUPER_ADMIN_PASSWORD: str = ""

    # Hashing
    # Salt appended to client IPs before hashing them into fingerprints
    IP_SALT: str = "default-salt"
    PASSWORD_HASH_METHOD: str = "pbkdf2:sha256:600000"

    # Public URLs handed back to content authors
    PUBLIC_BASE_URL: str = "http://localhost:3001"

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3001"

    # Cookies are sent with the Secure flag in production unless overridden
    COOKIE_SECURE_OVERRIDE: bool | None = None

    # Abuse limits (per client fingerprint per day)
    GUESTBOOK_DAILY_LIMIT: int = 5
    REQUEST_DAILY_LIMIT: int = 10

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def cookie_secure(self) -> bool:
        """Whether auth cookies carry the Secure flag."""
        if self.COOKIE_SECURE_OVERRIDE is not None:
            return self.COOKIE_SECURE_OVERRIDE
        return self.is_production

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
