"""
Consent status state machine for trial matches.

Any status may follow any other. Every transition appends a new history
entry; the current status is always read from the last entry.
"""
import time
from typing import Optional

from medibuddy.schemas.matches import CONSENT_STATUSES, ConsentHistoryEntry, TrialMatch

INITIAL_MATCH_NOTE = "Initial match from real-time search"


def now_ms() -> int:
    return int(time.time() * 1000)


def initial_entry(note: Optional[str] = INITIAL_MATCH_NOTE, timestamp: Optional[int] = None) -> ConsentHistoryEntry:
    """The pending entry every new match starts with."""
    return ConsentHistoryEntry(
        status="pending",
        timestamp=timestamp if timestamp is not None else now_ms(),
        changed_by="system",
        note=note,
    )


def transition(
    match: TrialMatch,
    status: str,
    changed_by: str,
    note: Optional[str] = None,
    user_id: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> TrialMatch:
    """
    Return a copy of `match` with one more history entry.

    Raises:
        ValueError: Unknown consent status
    """
    if status not in CONSENT_STATUSES:
        raise ValueError(f"Invalid consent status: {status}")

    timestamp = timestamp if timestamp is not None else now_ms()
    entry = ConsentHistoryEntry(
        status=status,
        timestamp=timestamp,
        changed_by=changed_by,
        note=note,
        user_id=user_id,
    )
    return match.model_copy(update={
        "consent_status_history": [*match.consent_status_history, entry],
        "updated_at": timestamp,
    })
