"""
Configuration settings for SuperNanny Backend.

Uses Pydantic Settings for environment variable management.
"""

import os
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Environment
    ENV: str = Field(default="development", env="ENV")
    DEBUG: bool = Field(default=False, env="DEBUG")
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")

    # Logging Control
    ENABLE_FILE_LOGGING: bool = Field(default=True, env="ENABLE_FILE_LOGGING")
    ENABLE_REQUEST_LOGGING: bool = Field(default=True, env="ENABLE_REQUEST_LOGGING")

    # Application
    APP_NAME: str = Field(default="SuperNanny Backend", env="APP_NAME")
    VERSION: str = Field(default="1.2.0", env="VERSION")

    # Server
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=8080, env="PORT")

    origins: List[str] = [
        "http://localhost:3000",  # frontend URL
        "http://localhost:5173",
    ]

    DATABASE_URL: Optional[str] = Field(default=None, env="DATABASE_URL")
    PRODUCTION_DATABASE_URL: Optional[str] = Field(default=None, env="PRODUCTION_DATABASE_URL")

    @property
    def database_url(self) -> str:
        if self.ENV == "development":
            return self.DATABASE_URL or ""
        return self.PRODUCTION_DATABASE_URL or ""

    DATABASE_POOL_SIZE: int = Field(default=10, env="DATABASE_POOL_SIZE")
    DATABASE_MAX_OVERFLOW: int = Field(default=20, env="DATABASE_MAX_OVERFLOW")

    # Security
    SECRET_KEY: str = Field(
        default="secret-key",
        env="SECRET_KEY"
    )
    ALGORITHM: str = Field(default="HS256", env="ALGORITHM")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=60 * 24 * 14,  # 14 days
        env="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # Marketplace
    PLATFORM_FEE_PERCENT: int = Field(default=15, env="PLATFORM_FEE_PERCENT")

    # Payments (Stripe)
    ENABLE_PAYMENTS: bool = Field(default=False, env="ENABLE_PAYMENTS")
    STRIPE_SECRET_KEY: Optional[str] = Field(default=None, env="STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(default=None, env="STRIPE_WEBHOOK_SECRET")
    STRIPE_PUBLISHABLE_KEY: Optional[str] = Field(default=None, env="STRIPE_PUBLISHABLE_KEY")
    STRIPE_API_BASE: str = Field(default="https://api.stripe.com/v1", env="STRIPE_API_BASE")
    PAYMENT_CURRENCY: str = Field(default="ils", env="PAYMENT_CURRENCY")

    # Sentry (Optional)
    SENTRY_DSN: Optional[str] = Field(default=None, env="SENTRY_DSN")
    SENTRY_ENVIRONMENT: str = Field(default="development", env="SENTRY_ENVIRONMENT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


def get_env_file() -> str:
    """Get the appropriate environment file based on ENV setting."""
    env_file = f".env.{os.getenv('ENV', 'development')}"
    if os.path.exists(env_file):
        return env_file
    return ".env"


settings = Settings(_env_file=get_env_file())
