"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Smart Classroom Moderation API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Database - REQUIRED
    DATABASE_URL: str

    # Redis - REQUIRED
    REDIS_URL: str
    CACHE_OPERATION_TIMEOUT_SECONDS: float = 0.5

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # Server-to-server operations; ops endpoints are disabled while empty
    ADMIN_API_KEY: str = ""

    # CORS
    CORS_ORIGINS: list[str] = []

    # Moderation Settings
    MODERATION_WARNING_THRESHOLD: int = 3
    MODERATION_AUTO_LOCK_SECONDS: int = 24 * 3600
    MODERATION_CHATBOT_LOCK_SECONDS: int = 12 * 3600
    MODERATION_MAX_LOCK_SECONDS: int = 365 * 24 * 3600
    MODERATION_GLOBAL_LOCK_SECONDS: int = 365 * 24 * 3600
    MODERATION_EVENTS_CHANNEL: str = "moderation-events"

    # Appeal Settings
    APPEAL_RATE_LIMIT: int = 5
    APPEAL_RATE_WINDOW_SECONDS: int = 3600

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
