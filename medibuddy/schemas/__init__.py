from .entities import (
    Allergy,
    Comorbidity,
    Condition,
    Medication,
    SimpleCondition,
    SimpleStructuredEntities,
    StructuredEntities,
    Symptom,
)
from .matches import ConsentHistoryEntry, ScoredTrial, TrialMatch
from .patients import Consultation, PatientProfile
from .trials import (
    AgeRange,
    CombinedTrialResult,
    LocalTrial,
    MappedClinicalTrial,
    RegistrySearchResult,
    TrialSearchParams,
    TrialToSave,
)

__all__ = [
    "Allergy",
    "Comorbidity",
    "Condition",
    "Medication",
    "SimpleCondition",
    "SimpleStructuredEntities",
    "StructuredEntities",
    "Symptom",
    "ConsentHistoryEntry",
    "ScoredTrial",
    "TrialMatch",
    "Consultation",
    "PatientProfile",
    "AgeRange",
    "CombinedTrialResult",
    "LocalTrial",
    "MappedClinicalTrial",
    "RegistrySearchResult",
    "TrialSearchParams",
    "TrialToSave",
]
