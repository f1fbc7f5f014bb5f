"""Affiliate domain errors.

Each error carries the HTTP status and error code the API renders it with, so
services raise them without knowing about FastAPI.
"""
from __future__ import annotations


class AffiliateError(Exception):
    status_code = 400
    code = "affiliate_error"
    default_message = "Affiliate request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AffiliateError):
    status_code = 422
    code = "invalid_input"
    default_message = "Invalid input"


class NoAttributionCode(AffiliateError):
    status_code = 400
    code = "no_attribution_code"
    default_message = "No affiliate code found"


class InvalidLink(AffiliateError):
    """Unknown or inactive link/program. Callers only ever see the generic message."""
    status_code = 404
    code = "invalid_link"
    default_message = "Invalid affiliate link"


class LinkNotFound(InvalidLink):
    pass


class LinkInactive(InvalidLink):
    pass


class ProgramNotFound(AffiliateError):
    status_code = 404
    code = "program_not_found"
    default_message = "Affiliate program not found"


class ProgramInactive(AffiliateError):
    status_code = 400
    code = "program_inactive"
    default_message = "Program is not active"


class ProgramInUse(AffiliateError):
    status_code = 409
    code = "program_in_use"
    default_message = "Program has affiliate links and cannot be deleted"


class DuplicateConversion(AffiliateError):
    status_code = 409
    code = "duplicate_conversion"
    default_message = "Conversion already tracked"


class ConversionNotFound(AffiliateError):
    status_code = 404
    code = "conversion_not_found"
    default_message = "Conversion not found"


class InvalidTransition(AffiliateError):
    status_code = 422
    code = "invalid_transition"
    default_message = "Status transition not allowed"
