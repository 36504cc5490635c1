"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets (JWT key, SMTP password) out of source code.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from egp_api.config import settings
    print(settings.SECRET_KEY)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the e-GP identity service.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign session JWTs
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "PNG e-GP Identity API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Base URL of the portal frontend, used to build links in emails
    APP_URL: str = "http://localhost:3000"

    # --- Database ---
    # SQLite for development; swap to a PostgreSQL (asyncpg) URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/egp.db"

    # --- Sessions ---
    # REQUIRED: No default: forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    # Lifetime of both the JWT and its server-side session row
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8

    # --- One-time tokens ---
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24
    RESET_TOKEN_EXPIRE_HOURS: int = 1

    # --- Mail ---
    # "console" logs outgoing mail instead of delivering it; "smtp" delivers
    MAIL_BACKEND: str = "console"
    MAIL_FROM: str = "noreply@png-egp.gov.pg"
    MAIL_FROM_NAME: str = "PNG e-GP"
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_STARTTLS: bool = True
    SMTP_USE_TLS: bool = False  # implicit TLS (port 465)
    SMTP_TIMEOUT_SECONDS: float = 10.0

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str | None = None

    # --- HTTP ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]
    # Headers consulted (in order) for the real client IP behind a proxy
    TRUSTED_PROXY_HEADERS: list[str] = ["X-Forwarded-For", "X-Real-IP"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
