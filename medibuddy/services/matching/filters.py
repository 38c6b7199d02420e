"""
Eligibility filters applied to registry results.

Each filter is a plain predicate over a MappedClinicalTrial; a trial with no
restriction on a dimension always passes that filter.
"""
import re
from typing import Iterable, List, Optional

from medibuddy.schemas.trials import AgeRange, MappedClinicalTrial, TrialSearchParams

# Shorthand patient genders and the registry value they satisfy
GENDER_ALIASES = {
    "f": "female",
    "m": "male",
}

_OPEN_GENDERS = {"all", "any"}
_PHASE_TOKEN = re.compile(r"[^a-z0-9]")


def age_ranges_overlap(patient_range: AgeRange, trial_range: Optional[AgeRange]) -> bool:
    """True when the trial has no age range, or the two ranges overlap (bounds inclusive)."""
    if trial_range is None:
        return True
    return patient_range.min <= trial_range.max and patient_range.max >= trial_range.min


def _canonical_gender(gender: str) -> str:
    gender = gender.strip().lower()
    return GENDER_ALIASES.get(gender, gender)


def gender_matches(patient_gender: Optional[str], restriction: Optional[str]) -> bool:
    """
    Case-insensitive gender eligibility.

    No restriction, no patient gender, or an "all"/"any" restriction pass.
    "f" and "female" (and "m" and "male") are treated as the same value.
    """
    if not restriction or not patient_gender:
        return True
    restriction = restriction.strip().lower()
    if restriction in _OPEN_GENDERS:
        return True
    return _canonical_gender(patient_gender) == _canonical_gender(restriction)


def _phase_key(phase: str) -> str:
    # "Phase 2", "PHASE2" and "phase_2" all compare as "phase2"
    return _PHASE_TOKEN.sub("", phase.lower())


def phase_matches(trial_phase: str, phases: Optional[Iterable[str]]) -> bool:
    """True when no phases are requested or the trial lists one of them."""
    wanted = [_phase_key(p) for p in phases or [] if p and p.strip()]
    if not wanted:
        return True
    trial_phases = {_phase_key(p) for p in (trial_phase or "").split(",")}
    return any(p in trial_phases for p in wanted)


def filter_trials(trials: Iterable[MappedClinicalTrial], search_params: TrialSearchParams) -> List[MappedClinicalTrial]:
    """Apply the age, gender and phase filters for whichever params are set."""
    result = []
    for trial in trials:
        if search_params.age_range is not None and not age_ranges_overlap(search_params.age_range, trial.age_range):
            continue
        if search_params.gender and not gender_matches(search_params.gender, trial.gender_restriction):
            continue
        if search_params.phase and not phase_matches(trial.phase, search_params.phase):
            continue
        result.append(trial)
    return result
