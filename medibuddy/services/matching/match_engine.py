"""
Match engine: search parameter derivation, eligibility filtering and merging
of registry results with locally stored trials.

Everything here is pure; the I/O lives in TrialMatchingService.
"""
import logging
import time
from typing import Iterable, List, Optional, Tuple

from medibuddy.config import DEFAULT_PAGE_SIZE, DEFAULT_MATCH_STATUS, PATIENT_AGE_WINDOW
from medibuddy.errors import NoConditionsExtracted, NoMedicalData
from medibuddy.schemas.patients import Consultation, PatientProfile
from medibuddy.schemas.trials import (
    AgeRange,
    CombinedTrialResult,
    LocalTrial,
    MappedClinicalTrial,
    RegistrySearchResult,
    TrialSearchParams,
)
from medibuddy.services.extraction.condition_extractor import extract_conditions

from .filters import filter_trials

logger = logging.getLogger(__name__)

SOURCE_STRUCTURED = "structured medical entities"
SOURCE_TRANSCRIPTION = "transcription analysis"

LOCAL_STUDY_TYPE = "Local"
LOCAL_URL_PREFIX = "local://"


def derive_conditions(consultation: Consultation) -> Tuple[List[str], str]:
    """
    Conditions to search for, and where they came from.

    Structured condition names win; otherwise the transcript is scanned.

    Raises:
        NoMedicalData: No structured conditions and no transcript
        NoConditionsExtracted: Transcript yielded no conditions
    """
    structured = consultation.structured_data
    if structured is not None and structured.conditions:
        return structured.condition_names(), SOURCE_STRUCTURED

    if consultation.transcription:
        conditions = extract_conditions(consultation.transcription)
        if not conditions:
            raise NoConditionsExtracted()
        return conditions, SOURCE_TRANSCRIPTION

    raise NoMedicalData()


def build_search_params(conditions: List[str], patient: Optional[PatientProfile] = None) -> TrialSearchParams:
    """Registry search for recruiting trials within +/- 5 years of the patient's age."""
    age_range = None
    if patient is not None and patient.age is not None:
        age_range = AgeRange(min=patient.age - PATIENT_AGE_WINDOW, max=patient.age + PATIENT_AGE_WINDOW)

    return TrialSearchParams(
        conditions=list(conditions),
        age_range=age_range,
        gender=patient.gender if patient else None,
        location=patient.location if patient else None,
        status=DEFAULT_MATCH_STATUS,
        max_results=DEFAULT_PAGE_SIZE,
    )


def to_local_view(trial: LocalTrial, now_ms: Optional[int] = None) -> MappedClinicalTrial:
    """Present a stored trial in the registry trial shape."""
    last_updated = trial.updated_at or trial.created_at or now_ms or int(time.time() * 1000)
    return MappedClinicalTrial(
        nct_id=trial.id,
        title=trial.title,
        description=trial.description,
        sponsor=trial.sponsor,
        phase=trial.phase,
        status=trial.status,
        conditions=trial.target_conditions,
        eligibility_criteria=trial.eligibility_criteria,
        exclusion_criteria=trial.exclusion_criteria,
        locations=trial.locations or [trial.location],
        age_range=trial.age_range,
        gender_restriction=trial.gender_restriction,
        study_type=LOCAL_STUDY_TYPE,
        last_updated=last_updated,
        source_url=f"{LOCAL_URL_PREFIX}{trial.id}",
    )


def is_local_view(trial: MappedClinicalTrial) -> bool:
    return trial.source_url.startswith(LOCAL_URL_PREFIX)


def merge_trials(
    registry_trials: List[MappedClinicalTrial],
    local_trials: Iterable[LocalTrial],
    now_ms: Optional[int] = None,
) -> List[MappedClinicalTrial]:
    """
    Registry trials first, in order, then local trials not already present.

    A local trial counts as present when any registry NCT ID occurs in its
    title. Local trials that carry an NCT ID but don't repeat it in the title
    are therefore kept as duplicates.
    """
    merged = list(registry_trials)
    for local in local_trials:
        if any(rt.nct_id and rt.nct_id in local.title for rt in registry_trials):
            logger.debug(f"Local trial {local.id} already present in registry results")
            continue
        merged.append(to_local_view(local, now_ms))
    return merged


def find_matches(
    conditions: List[str],
    patient: Optional[PatientProfile],
    local_trials: List[LocalTrial],
    registry_result: Optional[RegistrySearchResult],
    data_source: str = "",
    now_ms: Optional[int] = None,
) -> CombinedTrialResult:
    """
    Filter registry results by the search's age/gender/phase and merge in local trials.

    Local trials are not filtered. `local_count` is the number of local
    trials considered, not the number appended. With no registry result
    (the search failed) only local trials are returned.
    """
    now_ms = now_ms or int(time.time() * 1000)
    if registry_result is not None:
        search_params = registry_result.search_params
        registry_trials = registry_result.trials
    else:
        search_params = build_search_params(conditions, patient)
        registry_trials = []

    eligible = filter_trials(registry_trials, search_params)
    merged = merge_trials(eligible, local_trials, now_ms)

    logger.info(
        f"Combined {len(merged)} trials ({len(eligible)} from ClinicalTrials.gov, {len(local_trials)} local)"
    )
    return CombinedTrialResult(
        trials=merged,
        real_time_count=len(eligible),
        local_count=len(local_trials),
        total_count=len(merged),
        conditions=list(conditions),
        data_source=data_source,
        search_params=search_params,
        timestamp=now_ms,
    )
