"""App settings — loaded from environment."""
from __future__ import annotations

import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # API
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "8000"))

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///affiliates.db")

    # Auth
    JWT_SECRET = os.getenv("JWT_SECRET", "affiliates-dev-secret-change-in-prod")

    # Admin API key (program admin, conversion approval, platform stats)
    ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "")

    # Affiliate links: redirect URLs are {AFFILIATE_BASE_URL}/aff/{code}
    AFFILIATE_BASE_URL = os.getenv("AFFILIATE_BASE_URL", "http://localhost:8080")
    AFFILIATE_CODE_LENGTH = int(os.getenv("AFFILIATE_CODE_LENGTH", "10"))
    AFFILIATE_CODE_ATTEMPTS = int(os.getenv("AFFILIATE_CODE_ATTEMPTS", "5"))

    # Attribution token carrier
    AFFILIATE_COOKIE_NAME = os.getenv("AFFILIATE_COOKIE_NAME", "affiliate_code")
    DEFAULT_ATTRIBUTION_WINDOW_DAYS = int(os.getenv("DEFAULT_ATTRIBUTION_WINDOW_DAYS", "30"))

    # Admin listings
    ADMIN_PAGE_SIZE = int(os.getenv("ADMIN_PAGE_SIZE", "15"))

    # CORS origins (comma-separated, or * for dev)
    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")
    ]

    # Observability
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

    # Logging
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
