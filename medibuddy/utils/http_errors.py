"""
Mapping from pipeline errors to HTTP responses.
"""
import logging

from fastapi import HTTPException

from medibuddy.errors import (
    ConfigurationError,
    MediBuddyError,
    NoConditionsExtracted,
    NoMedicalData,
    NotFound,
    ParseError,
    RateLimitExceeded,
    UpstreamApiError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    RateLimitExceeded: 429,
    NotFound: 404,
    NoMedicalData: 422,
    NoConditionsExtracted: 422,
    ParseError: 502,
    UpstreamApiError: 502,
    ConfigurationError: 503,
}


def status_code_for(error: MediBuddyError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def to_http_exception(error: MediBuddyError) -> HTTPException:
    """HTTPException whose detail is the error's {kind, message}."""
    status_code = status_code_for(error)
    if status_code >= 500:
        logger.error(f"{error.kind}: {error.message}")
    else:
        logger.info(f"{error.kind}: {error.message}")
    return HTTPException(status_code=status_code, detail=error.to_dict())


def bad_request(error: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail={"kind": "invalid_request", "message": str(error)})
