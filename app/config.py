"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This pattern keeps secrets out of source code — the .env file is
gitignored, and .env.example provides a safe template for developers.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from app.config import settings
    print(settings.SESSION_COOKIE_NAME)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the PoolOps identity service.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign session tokens and OAuth state
      - TOKEN_ENCRYPTION_KEY: Fernet key for encrypting cached provider tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "PoolOps API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/poolops.db"

    # --- Sessions ---
    # REQUIRED: No default — forces the developer to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "poolops_session"
    SESSION_MAX_AGE_MINUTES: int = 60 * 24 * 7
    SESSION_COOKIE_SECURE: bool = False

    # --- Provider token encryption ---
    # REQUIRED: Fernet key for OAuth access/refresh tokens cached on users
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    TOKEN_ENCRYPTION_KEY: str

    # --- OAuth identity reconciliation ---
    OAUTH_DEFAULT_ROLE: str = "client"
    OAUTH_REACTIVATE_ON_EMAIL_MATCH: bool = True
    OAUTH_TOKEN_TTL_SECONDS: int = 3600
    ORG_SLUG_MAX_ATTEMPTS: int = 5
    RECONCILE_MAX_ATTEMPTS: int = 3

    # --- Google OAuth ---
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/auth/google/callback"
    OAUTH_STATE_TTL_MINUTES: int = 10

    # --- CORS ---
    # Origins allowed to make cross-origin requests (frontend URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
