"""
Patient and consultation schemas.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .entities import StructuredEntities


class PatientProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0)
    gender: Optional[str] = None
    location: Optional[str] = None


class Consultation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    patient_id: str
    transcription: Optional[str] = None
    structured_data: Optional[StructuredEntities] = None
    medical_report: Optional[str] = None
    report_generated_at: Optional[int] = None
    matched_trial_ids: List[str] = Field(default_factory=list)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("structured_data", mode="before")
    @classmethod
    def _normalize_structured_data(cls, value: Any) -> Optional[StructuredEntities]:
        """Stored entities may be in either extraction shape; read them as rich entities."""
        if value is None:
            return None
        from medibuddy.services.extraction.entity_normalizer import normalize_rich_entities

        return normalize_rich_entities(value)
