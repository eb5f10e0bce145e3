from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration - required from .env
    DATABASE_URL: str

    # Token signing key - required from .env
    SECRET_KEY: str

    LOG_LEVEL: str = "INFO"

    # bcrypt rounds; tests run with the minimum (4)
    BCRYPT_WORK_FACTOR: int = 12

    JWT_ALGORITHM: str = "HS256"

    # 0 means tokens carry no exp claim
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 0

    # Re-check that the token's username still exists on every LoggedIn check
    REVALIDATE_TOKEN_USER: bool = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
