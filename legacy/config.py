"""Application configuration"""

import logging
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Legacy API"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # "development" or "production"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Database
    database_path: str = "/app/data/legacy.json"

    # Security
    secret_key: str = "dev-secret-change-me"
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    # Mock authentication: unknown emails are registered on first login
    auto_register_on_login: bool = True

    # Real-time events retained per vault for reconnecting clients
    realtime_history_size: int = 100

    # Vault defaults
    default_vault_theme: str = "rose"
    default_cover_image: str = "/placeholder.svg"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def validate_production_settings(settings: Settings) -> list:
    """Validate that all required settings are configured for production"""
    errors = []

    if settings.secret_key == "dev-secret-change-me":
        errors.append("SECRET_KEY must be changed from default value")

    if settings.auto_register_on_login:
        errors.append("AUTO_REGISTER_ON_LOGIN should be disabled in production")

    return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    base_settings = Settings()

    if base_settings.environment == "production":
        for error in validate_production_settings(base_settings):
            logger.warning(f"Production config warning: {error}")

    return base_settings


# Convenience access
settings = get_settings()
