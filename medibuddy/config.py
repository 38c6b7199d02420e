"""
Configuration module for the MediBuddy trial matching backend.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

# ClinicalTrials.gov API v2
CLINICAL_TRIALS_API_URL = os.getenv("CLINICAL_TRIALS_API_URL", "https://clinicaltrials.gov/api/v2")
CLINICAL_TRIALS_STUDY_URL = "https://clinicaltrials.gov/study"
CLINICAL_TRIALS_USER_AGENT = os.getenv("CLINICAL_TRIALS_USER_AGENT", "MediBuddy-Clinical-Trial-Matcher/1.0")
REQUESTS_TIMEOUT = float(os.getenv("REQUESTS_TIMEOUT", "30"))
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# Rate limiting (sliding 60s window). Burst limit is reported, not enforced.
RATE_LIMIT_REQUESTS_PER_MINUTE = int(os.getenv("RATE_LIMIT_REQUESTS_PER_MINUTE", "100"))
RATE_LIMIT_BURST = int(os.getenv("RATE_LIMIT_BURST", "10"))

# Cache settings (reported through the stats endpoint)
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
CACHE_MAX_SIZE = int(os.getenv("CACHE_MAX_SIZE", "1000"))

# Retry configuration
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_BASE_DELAY_MS = int(os.getenv("RETRY_BASE_DELAY_MS", "1000"))
RETRY_JITTER_MS = 200

# LLM providers
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4")
GEMINI_API_URL = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_REPORT_MODEL = os.getenv("GEMINI_REPORT_MODEL", "gemini-2.5-flash")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

# Which provider handles which job
ENTITY_PROVIDER = os.getenv("ENTITY_PROVIDER", "openai").lower()
REPORT_PROVIDER = os.getenv("REPORT_PROVIDER", "gemini").lower()

# Matching
PATIENT_AGE_WINDOW = 5
DEFAULT_MATCH_STATUS = "recruiting"
DEFAULT_RELEVANCE_SCORE = 0.5


def get_openai_api_key() -> str:
    """Read lazily so a missing key only fails the call that needs it."""
    return os.getenv("OPENAI_API_KEY", "").strip()


def get_gemini_api_key() -> str:
    return (os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_GEMINI_API_KEY") or "").strip()


def get_rate_limit_config() -> dict:
    """Rate limit and cache settings as exposed by the stats endpoint."""
    return {
        "baseUrl": CLINICAL_TRIALS_API_URL,
        "rateLimit": {
            "requestsPerMinute": RATE_LIMIT_REQUESTS_PER_MINUTE,
            "burstLimit": RATE_LIMIT_BURST,
        },
        "cacheConfig": {
            "ttl": CACHE_TTL_SECONDS,
            "maxSize": CACHE_MAX_SIZE,
        },
    }
