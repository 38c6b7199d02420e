"""
Error kinds surfaced by the matching pipeline.

Every public operation either returns a full result or raises one of these.
`kind` is machine-readable; `message` is for humans.
"""
from typing import Any, Dict, Optional


class MediBuddyError(Exception):
    """Base class for pipeline errors."""
    kind = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class RateLimitExceeded(MediBuddyError):
    """Admission denied by the registry rate limiter. Never retried."""
    kind = "rate_limit_exceeded"

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message)


class UpstreamApiError(MediBuddyError):
    """Non-2xx (or transport failure) from the registry, an LLM or transcription."""
    kind = "upstream_api_error"

    def __init__(self, message: str, status_code: Optional[int] = None, service: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.service = service

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.service:
            data["service"] = self.service
        return data


class ParseError(MediBuddyError):
    """LLM output could not be parsed as JSON, fenced fallback included."""
    kind = "parse_error"


class NoMedicalData(MediBuddyError):
    kind = "no_medical_data"

    def __init__(
        self,
        message: str = (
            "No medical data available. Please ensure the consultation has either "
            "transcription or extracted medical entities."
        ),
    ):
        super().__init__(message)


class NoConditionsExtracted(MediBuddyError):
    kind = "no_conditions_extracted"

    def __init__(
        self,
        message: str = (
            "No medical conditions found in consultation data. Please ensure the "
            "consultation contains medical information or extract medical entities first."
        ),
    ):
        super().__init__(message)


class NotFound(MediBuddyError):
    """Missing consultation, patient, trial or match record."""
    kind = "not_found"


class ConfigurationError(MediBuddyError):
    """A provider API key (or similar setting) is missing at the call site."""
    kind = "configuration_error"
