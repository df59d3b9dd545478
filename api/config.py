"""
Configuration settings for the Reading Tracker API.
Uses pydantic-settings for type-safe environment variable management.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Database
    DATABASE_URL: str = "postgresql://reading_user:changeme@db:5432/reading_tracker"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # JWT Authentication (tokens are issued by the auth service)
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Reading sessions
    # Heartbeats closer together than this are coalesced (no write)
    HEARTBEAT_MIN_INTERVAL_SECONDS: float = 1.0
    # Session durations above this are treated as anomalies and clamped
    MAX_SESSION_DURATION_SECONDS: int = 12 * 3600

    # Leaderboard
    LEADERBOARD_MAX_ENTRIES: int = 100
    SETTLEMENT_HOUR_UTC: int = 0

    # Logging
    LOG_LEVEL: str = "INFO"

    # Milestones
    MILESTONES_DEFAULT_LIMIT: int = 20


# Global settings instance
settings = Settings()
