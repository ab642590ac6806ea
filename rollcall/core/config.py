"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional, Union
import os

from rollcall.core import constants


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Database - Support both full URL and individual components
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: Optional[str] = None
    POSTGRES_DB: Optional[str] = None

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = constants.ACCESS_TOKEN_EXPIRE_MINUTES
    TOKEN_BYTES: int = constants.CHECKIN_TOKEN_BYTES

    # CORS - Can be a list or comma-separated string
    CORS_ORIGINS: Union[list, str] = ["*"]  # In production, specify your domain

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    # Application
    APP_TITLE: str = "Rollcall Check-in Service"
    APP_DESCRIPTION: str = "Event check-in state, moderation and QR tokens"
    APP_VERSION: str = "1.0.0"

    # Environment
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # Optimistic concurrency on check-in aggregates
    CHECKIN_MAX_RETRIES: int = constants.CHECKIN_MAX_RETRIES
    CHECKIN_RETRY_MAX_WAIT: float = constants.CHECKIN_RETRY_MAX_WAIT

    # Audit trail pagination
    AUDIT_PAGE_SIZE: int = constants.AUDIT_PAGE_SIZE
    AUDIT_MAX_PAGE_SIZE: int = constants.AUDIT_MAX_PAGE_SIZE

    # Database Connection Pool Configuration
    DB_POOL_SIZE: int = 15  # Venue entry bursts are many short writes
    DB_MAX_OVERFLOW: int = 25

    def get_database_url(self) -> str:
        """
        Get database URL from either DATABASE_URL or individual components.
        Priority: DATABASE_URL > individual components > default (dev only)
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if all([self.POSTGRES_USER, self.POSTGRES_PASSWORD,
                self.POSTGRES_HOST, self.POSTGRES_DB]):
            port = self.POSTGRES_PORT or "5432"
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{port}/{self.POSTGRES_DB}"
            )

        # Development fallback only
        if self.ENVIRONMENT == "development":
            return "sqlite:///rollcall.db"

        raise ValueError(
            "Database configuration missing. Provide either DATABASE_URL or "
            "all of: POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB"
        )

    def validate_production_config(self) -> None:
        """Validate that production-critical settings are properly configured."""
        if self.ENVIRONMENT == "production":
            issues = []

            if self.SECRET_KEY == "your-secret-key-change-in-production":
                issues.append("SECRET_KEY must be changed from default value")

            if self.CORS_ORIGINS == ["*"]:
                issues.append("CORS_ORIGINS should be restricted to specific domains")

            if self.TOKEN_BYTES < 16:
                issues.append("TOKEN_BYTES must be at least 16 for QR check-in tokens")

            if issues:
                raise ValueError(
                    "Production configuration errors:\n" +
                    "\n".join(f"  - {issue}" for issue in issues)
                )


settings = Settings()

# Validate production configuration on startup
if os.getenv("ENVIRONMENT") == "production":
    settings.validate_production_config()
