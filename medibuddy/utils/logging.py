"""
Structured JSON Logging
Logging setup with PHI-bearing fields kept out of log records.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from medibuddy import config

# Record attributes never copied into JSON output (transcripts, reports, raw LLM text).
PHI_FIELDS = {"transcription", "transcript", "report", "report_content", "raw_response", "patient_response"}

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info", "taskName",
}


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Log format:
    {
        "ts": "2024-01-01T00:00:00Z",
        "level": "INFO",
        "logger": "medibuddy.services.clinical_trials.api_client",
        "message": "...",
        "consultation_id": "...",
        "nct_id": "..."
    }
    """

    def __init__(self, json_output: bool = None, fmt: str = None):
        super().__init__(fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        self.json_output = config.LOG_JSON if json_output is None else json_output

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        if not self.json_output:
            return super().format(record)

        log_data = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = self.formatException(record.exc_info)

        # Extra fields passed through `extra=`
        redactions = 0
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if key in PHI_FIELDS:
                redactions += 1
                continue
            log_data[key] = value
        if redactions:
            log_data["phi_redactions"] = redactions

        return json.dumps(log_data, default=str)


def setup_structured_logging(level: str = None) -> logging.Logger:
    """Setup structured logging on the root logger."""
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJSONFormatter())
    root_logger.addHandler(handler)

    log_level = (level or config.LOG_LEVEL).upper()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    return root_logger
