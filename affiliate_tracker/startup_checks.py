"""Startup validation — catch misconfigurations before the app serves traffic."""
from __future__ import annotations

import logging
import sys

from config.settings import settings

logger = logging.getLogger(__name__)

_DEFAULT_JWT_SECRET = "affiliates-dev-secret-change-in-prod"


def validate_settings() -> list[str]:
    """Validate configuration. Returns list of warnings (empty = all good).

    Raises SystemExit for critical misconfigurations in production.
    """
    warnings: list[str] = []
    is_prod = settings.DATABASE_URL and "sqlite" not in settings.DATABASE_URL

    if is_prod and settings.JWT_SECRET == _DEFAULT_JWT_SECRET:
        logger.critical("JWT_SECRET is still the default! Set a real secret for production.")
        sys.exit(1)

    if settings.JWT_SECRET == _DEFAULT_JWT_SECRET:
        warnings.append("JWT_SECRET is the development default")

    if is_prod and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to * — restrict in production")

    if not settings.ADMIN_API_KEY:
        warnings.append("ADMIN_API_KEY not set — program admin and conversion approval disabled")

    if "localhost" in settings.AFFILIATE_BASE_URL:
        warnings.append("AFFILIATE_BASE_URL points at localhost — affiliate links won't work publicly")

    if not 1 <= settings.DEFAULT_ATTRIBUTION_WINDOW_DAYS <= 365:
        warnings.append("DEFAULT_ATTRIBUTION_WINDOW_DAYS outside 1–365")

    for w in warnings:
        logger.warning("%s", w)

    if not warnings:
        logger.info("All startup checks passed")

    return warnings
