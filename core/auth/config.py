from pydantic_settings import BaseSettings
from functools import lru_cache


class AuthSettings(BaseSettings):
    """Authentication settings."""

    # JWT Configuration
    JWT_SECRET_KEY: str = "change-this-secret-key-in-production-minimum-32-characters"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24

    # Password Requirements
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_DIGITS: bool = True

    # Default Admin User (for initial setup)
    DEFAULT_ADMIN_NAME: str = "Admin User"
    DEFAULT_ADMIN_EMAIL: str = "admin@invest.com"
    DEFAULT_ADMIN_PASSWORD: str = "Admin123!"
    CREATE_DEFAULT_ADMIN: bool = True

    class Config:
        env_prefix = "AUTH_"
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_auth_settings():
    """Get cached auth settings instance."""
    return AuthSettings()
