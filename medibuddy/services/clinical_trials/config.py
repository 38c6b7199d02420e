"""
Clinical Trials Service - Configuration Constants

Registry-specific constants for the ClinicalTrials.gov API v2 client.
"""
from medibuddy.config import (
    CLINICAL_TRIALS_API_URL,
    CLINICAL_TRIALS_STUDY_URL,
    CLINICAL_TRIALS_USER_AGENT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    RATE_LIMIT_BURST,
    RATE_LIMIT_REQUESTS_PER_MINUTE,
    REQUESTS_TIMEOUT,
)

STUDIES_URL = f"{CLINICAL_TRIALS_API_URL}/studies"

# Sliding window length for admission control
RATE_LIMIT_WINDOW_SECONDS = 60.0

# Internal status filter -> registry overallStatus enum
STATUS_TO_REGISTRY = {
    "recruiting": "RECRUITING",
    "active": "ACTIVE_NOT_RECRUITING",
    "completed": "COMPLETED",
    "not_yet_recruiting": "NOT_YET_RECRUITING",
}

REQUEST_HEADERS = {
    "Accept": "application/json",
    "User-Agent": CLINICAL_TRIALS_USER_AGENT,
}

NO_DESCRIPTION = "No description available"
NOT_SPECIFIED = "Not specified"
UNKNOWN = "Unknown"

__all__ = [
    "CLINICAL_TRIALS_API_URL",
    "CLINICAL_TRIALS_STUDY_URL",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "RATE_LIMIT_BURST",
    "RATE_LIMIT_REQUESTS_PER_MINUTE",
    "REQUESTS_TIMEOUT",
    "STUDIES_URL",
    "RATE_LIMIT_WINDOW_SECONDS",
    "STATUS_TO_REGISTRY",
    "REQUEST_HEADERS",
    "NO_DESCRIPTION",
    "NOT_SPECIFIED",
    "UNKNOWN",
]
