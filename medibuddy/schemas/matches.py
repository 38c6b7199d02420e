"""
Trial match schemas, including the consent status history.
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

ConsentStatus = Literal["pending", "approved", "declined", "enrolled"]
NotificationStatus = Literal["pending", "sent", "viewed"]
ChangedBy = Literal["system", "patient", "doctor"]

CONSENT_STATUSES = ("pending", "approved", "declined", "enrolled")


class ConsentHistoryEntry(BaseModel):
    """One consent transition. Entries are never modified once appended."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: ConsentStatus
    timestamp: int
    changed_by: ChangedBy
    note: Optional[str] = None
    user_id: Optional[str] = None


class TrialMatch(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    patient_id: str
    trial_id: str
    consultation_id: str
    relevance_score: float = Field(ge=0.0, le=1.0)
    match_reason: str = ""
    notification_status: NotificationStatus = "pending"
    consent_status_history: List[ConsentHistoryEntry] = Field(default_factory=list)
    doctor_notes: Optional[str] = None
    patient_response: Optional[str] = None
    response_date: Optional[int] = None
    match_date: int
    created_at: int
    updated_at: Optional[int] = None

    @computed_field
    @property
    def consent_status(self) -> ConsentStatus:
        """Always the status of the most recent history entry."""
        if not self.consent_status_history:
            return "pending"
        return self.consent_status_history[-1].status


class ScoreComponent(BaseModel):
    score: float
    reason: str


class ScoredTrial(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    trial_id: str
    relevance_score: float = Field(ge=0.0, le=1.0)
    score_components: Dict[str, ScoreComponent] = Field(default_factory=dict)
    matching_factors: List[str] = Field(default_factory=list)
