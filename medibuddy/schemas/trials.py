"""
Clinical trial schemas: search parameters, mapped registry trials, local trials.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TrialStatusFilter = Literal["recruiting", "active", "completed", "not_yet_recruiting"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgeRange(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    min: int
    max: int


class TrialSearchParams(_CamelModel):
    """Parameters for a ClinicalTrials.gov search."""
    conditions: List[str] = Field(default_factory=list)
    age_range: Optional[AgeRange] = None
    gender: Optional[str] = None
    location: Optional[str] = None
    status: Optional[TrialStatusFilter] = None
    phase: Optional[List[str]] = None
    study_type: Optional[str] = None
    max_results: Optional[int] = Field(default=None, ge=1)


class MappedClinicalTrial(_CamelModel):
    """Flat view of a registry study (or of a local trial). Immutable."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    nct_id: str
    title: str
    description: str
    sponsor: str
    phase: str
    status: str
    conditions: List[str] = Field(default_factory=list)
    eligibility_criteria: List[str] = Field(default_factory=list)
    exclusion_criteria: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    age_range: Optional[AgeRange] = None
    gender_restriction: Optional[str] = None
    study_type: str
    last_updated: int
    source_url: str


class LocalTrial(_CamelModel):
    """A trial stored in the local key-value store."""
    id: str
    title: str
    description: str = ""
    sponsor: str = "Unknown"
    phase: str = "Not specified"
    status: str = "recruiting"
    nct_id: Optional[str] = None
    target_conditions: List[str] = Field(default_factory=list)
    eligibility_criteria: List[str] = Field(default_factory=list)
    exclusion_criteria: List[str] = Field(default_factory=list)
    locations: Optional[List[str]] = None
    location: str = "Not specified"
    age_range: Optional[AgeRange] = None
    gender_restriction: Optional[str] = None
    contact_info: str = ""
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class TrialToSave(_CamelModel):
    """A search result selected for saving as a local trial plus a match."""
    nct_id: str
    title: str
    description: str = ""
    sponsor: str = "Unknown"
    phase: str = "Not specified"
    status: str = "recruiting"
    conditions: List[str] = Field(default_factory=list)
    source_url: str = ""
    locations: List[str] = Field(default_factory=list)
    relevance_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    age_range: Optional[AgeRange] = None
    gender_restriction: Optional[str] = None
    eligibility_criteria: List[str] = Field(default_factory=list)
    exclusion_criteria: List[str] = Field(default_factory=list)


class RegistrySearchResult(_CamelModel):
    """Unfiltered registry response, mapped."""
    trials: List[MappedClinicalTrial] = Field(default_factory=list)
    total_count: int = 0
    next_page_token: Optional[str] = None
    search_params: TrialSearchParams
    timestamp: int


class CombinedTrialResult(_CamelModel):
    """Registry results (filtered) merged with local trials."""
    trials: List[MappedClinicalTrial] = Field(default_factory=list)
    real_time_count: int = 0
    local_count: int = 0
    total_count: int = 0
    conditions: List[str] = Field(default_factory=list)
    data_source: str = ""
    search_params: TrialSearchParams
    timestamp: int
