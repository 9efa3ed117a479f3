# memorial/core/config.py
"""
Production-ready configuration using pydantic-settings.

Security considerations:
- SESSION_SECRET must be set in production; startup fails otherwise
- In development a random per-process secret is generated (never a fixed default)
- CORS_ORIGINS parsed from comma-separated env var, never defaults to "*"
- Database URLs normalized for async drivers automatically
"""
import logging
import secrets
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

MIN_PRODUCTION_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """
    Strictly typed application settings.

    Priority for loading:
    1. Environment variables (highest priority)
    2. .env file (via pydantic-settings)
    3. Default values (lowest priority, dev-safe only)
    """

    # ─────────────────────────────────────────────────────────────
    # Application metadata
    # ─────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Memorial Board"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────────────────
    # Admin sessions
    # SESSION_SECRET signs the admin session cookie (HMAC-SHA256).
    # The cookie lifetime is the only expiry the session has.
    # ─────────────────────────────────────────────────────────────
    SESSION_SECRET: Optional[str] = None
    SESSION_COOKIE_NAME: str = "admin_session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 8
    ADMIN_LOGIN_PATH: str = "/admin/login"

    # One-time creation of the first approver. Unset → bootstrap disabled.
    BOOTSTRAP_SECRET: Optional[str] = None

    # ─────────────────────────────────────────────────────────────
    # Moderation
    # ─────────────────────────────────────────────────────────────
    MODERATION_TOKEN_BYTES: int = 32
    # False → the first resolution of a message is final for email links
    TOKEN_LINKS_CAN_OVERRIDE: bool = True

    # ─────────────────────────────────────────────────────────────
    # Database Configuration
    # Priority: DATABASE_URL env var → SQLite fallback for local dev
    # ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./memorial.db"
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """
        Normalize database URLs for async SQLAlchemy compatibility.

        Conversions:
        - postgres://     → postgresql+asyncpg://
        - postgresql://   → postgresql+asyncpg://
        - sqlite:///      → sqlite+aiosqlite:///
        """
        if v is None:
            return "sqlite+aiosqlite:///./memorial.db"

        url = v.strip()

        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)

        if url.startswith("postgresql://") and "+asyncpg" not in url:
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if url.startswith("sqlite:///") and "+aiosqlite" not in url:
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

        return url

    # ─────────────────────────────────────────────────────────────
    # CORS Configuration
    # Empty string → empty list (NOT "*")
    # ─────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # ─────────────────────────────────────────────────────────────
    # Outbound collaborators (CAPTCHA, email, image host)
    # ─────────────────────────────────────────────────────────────
    APP_BASE_URL: str = "http://localhost:8000"
    ADMIN_EMAIL: Optional[str] = None
    EMAIL_FROM: str = "Memorial Board <notifications@example.com>"
    RESEND_API_KEY: Optional[str] = None
    TURNSTILE_SECRET_KEY: Optional[str] = None
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "memorial-board"
    OUTBOUND_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def ensure_session_secret(self) -> "Settings":
        """
        Refuse to run production without a real signing secret.

        Outside production a random secret is generated for this process,
        so sessions simply do not survive a restart.
        """
        if self.SESSION_SECRET:
            if self.is_production and len(self.SESSION_SECRET) < MIN_PRODUCTION_SECRET_LENGTH:
                raise ValueError(
                    f"SESSION_SECRET must be at least {MIN_PRODUCTION_SECRET_LENGTH} characters in production"
                )
            return self

        if self.is_production:
            raise ValueError("SESSION_SECRET must be set in production")

        logger.warning("SESSION_SECRET is not set; using a random per-process secret")
        self.SESSION_SECRET = secrets.token_urlsafe(48)
        return self

    @property
    def BACKEND_CORS_ORIGINS(self) -> List[str]:
        if not self.CORS_ORIGINS or not self.CORS_ORIGINS.strip():
            return []

        return [
            origin.strip()
            for origin in self.CORS_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database (local development)."""
        return "sqlite" in self.DATABASE_URL.lower()

    @property
    def admin_login_url(self) -> str:
        return f"{self.APP_BASE_URL.rstrip('/')}{self.ADMIN_LOGIN_PATH}"


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance.

    Settings are loaded once per process and treated as read-only afterwards.
    """
    return Settings()


settings = get_settings()
