"""
Weighted relevance scoring of a trial against a patient's structured data.

Each component scores up to its weight; the weights sum to 100 and the total
is reported as a relevance score in [0, 1].
"""
import logging
from typing import Dict, Iterable, List, Optional

from medibuddy.schemas.entities import StructuredEntities
from medibuddy.schemas.matches import ScoreComponent, ScoredTrial
from medibuddy.schemas.patients import PatientProfile
from medibuddy.schemas.trials import MappedClinicalTrial

from .filters import gender_matches

logger = logging.getLogger(__name__)

WEIGHTS = {
    "condition": 40,
    "age": 15,
    "gender": 10,
    "medication": 15,
    "comorbidity": 10,
    "location": 5,
    "allergy": 5,
}
TOTAL_WEIGHT = sum(WEIGHTS.values())

# Trials scoring below this are not stored as matches
MIN_RELEVANCE_SCORE = 0.5

# Years outside the trial's age range at which the age score reaches zero
AGE_PENALTY_YEARS = 5


def score_conditions(patient_conditions: Iterable[str], trial: MappedClinicalTrial) -> ScoreComponent:
    """Fraction of the trial's conditions the patient has (substring match either way)."""
    names = [c.lower() for c in patient_conditions if c]
    matched = [
        condition for condition in trial.conditions
        if any(name in condition.lower() or condition.lower() in name for name in names)
    ]
    if not matched:
        return ScoreComponent(score=0, reason="No matching conditions")

    ratio = len(matched) / len(trial.conditions)
    return ScoreComponent(
        score=WEIGHTS["condition"] * ratio,
        reason=f"Matched {len(matched)} condition(s): {', '.join(matched)}",
    )


def score_age(age: Optional[int], trial: MappedClinicalTrial) -> ScoreComponent:
    weight = WEIGHTS["age"]
    if trial.age_range is None or age is None:
        return ScoreComponent(score=weight / 2, reason="Age criteria not applicable")

    low, high = trial.age_range.min, trial.age_range.max
    if low <= age <= high:
        return ScoreComponent(score=weight, reason=f"Patient age ({age}) within trial range ({low}-{high})")

    closest = min(abs(age - low), abs(age - high))
    penalty = min(closest / AGE_PENALTY_YEARS, 1)
    return ScoreComponent(
        score=max(0.0, weight * (1 - penalty)),
        reason=f"Patient age ({age}) outside trial range ({low}-{high})",
    )


def score_gender(gender: Optional[str], trial: MappedClinicalTrial) -> ScoreComponent:
    weight = WEIGHTS["gender"]
    if not trial.gender_restriction or not gender:
        return ScoreComponent(score=weight, reason="No gender restrictions")
    if gender_matches(gender, trial.gender_restriction):
        return ScoreComponent(score=weight, reason=f"Gender criteria met ({gender})")
    return ScoreComponent(score=0, reason=f"Gender criteria not met ({trial.gender_restriction} required)")


def _exclusion_hits(terms: List[str], trial: MappedClinicalTrial) -> int:
    lowered = [t.lower() for t in terms if t]
    return sum(
        1 for criterion in trial.exclusion_criteria
        if any(term in criterion.lower() for term in lowered)
    )


def _score_exclusions(
    key: str,
    terms: List[str],
    trial: MappedClinicalTrial,
    empty_score: float,
    empty_reason: str,
    conflict_reason: str,
    clear_reason: str,
) -> ScoreComponent:
    weight = WEIGHTS[key]
    if not terms:
        return ScoreComponent(score=empty_score, reason=empty_reason)

    hits = _exclusion_hits(terms, trial)
    if hits:
        penalty = min(hits / 2, 1)
        return ScoreComponent(score=weight * (1 - penalty), reason=conflict_reason)
    return ScoreComponent(score=weight, reason=clear_reason)


def score_medications(medications: List[str], trial: MappedClinicalTrial) -> ScoreComponent:
    return _score_exclusions(
        "medication", medications, trial,
        empty_score=WEIGHTS["medication"] / 2,
        empty_reason="No medication data available",
        conflict_reason="Some medications may conflict with trial requirements",
        clear_reason="No medication conflicts identified",
    )


def score_comorbidities(comorbidities: List[str], trial: MappedClinicalTrial) -> ScoreComponent:
    return _score_exclusions(
        "comorbidity", comorbidities, trial,
        empty_score=WEIGHTS["comorbidity"],
        empty_reason="No comorbidities to evaluate",
        conflict_reason="Some comorbidities may conflict with trial eligibility",
        clear_reason="No comorbidity conflicts identified",
    )


def score_allergies(allergies: List[str], trial: MappedClinicalTrial) -> ScoreComponent:
    return _score_exclusions(
        "allergy", allergies, trial,
        empty_score=WEIGHTS["allergy"],
        empty_reason="No allergies to evaluate",
        conflict_reason="Some allergies may conflict with trial eligibility",
        clear_reason="No allergy conflicts identified",
    )


def score_location(location: Optional[str], trial: MappedClinicalTrial) -> ScoreComponent:
    weight = WEIGHTS["location"]
    if not location or not trial.locations:
        return ScoreComponent(score=weight / 2, reason="Location criteria not applicable")

    wanted = location.strip().lower()
    if any(wanted in site.lower() or site.lower() in wanted for site in trial.locations):
        return ScoreComponent(score=weight, reason=f"Trial site near {location}")
    return ScoreComponent(score=0, reason="No trial site in patient location")


def matching_factors(components: Dict[str, ScoreComponent]) -> List[str]:
    """Human-readable factors for components that scored well."""
    factors = []
    if components["condition"].score > 0:
        factors.append("Primary condition match")
    if components["age"].score > WEIGHTS["age"] * 0.8:
        factors.append("Age criteria match")
    if components["gender"].score > 0:
        factors.append("Gender criteria match")
    if components["medication"].score > WEIGHTS["medication"] * 0.8:
        factors.append("Medication compatibility")
    if components["comorbidity"].score > WEIGHTS["comorbidity"] * 0.8:
        factors.append("No conflicting comorbidities")
    if components["location"].score > WEIGHTS["location"] * 0.8:
        factors.append("Trial site in patient location")
    if components["allergy"].score > WEIGHTS["allergy"] * 0.8:
        factors.append("No conflicting allergies")
    return factors


def score_trial(
    trial: MappedClinicalTrial,
    entities: StructuredEntities,
    patient: Optional[PatientProfile] = None,
) -> ScoredTrial:
    """Score one trial for a patient."""
    age = patient.age if patient else None
    gender = patient.gender if patient else None
    location = patient.location if patient else None

    components = {
        "condition": score_conditions(entities.condition_names(), trial),
        "age": score_age(age, trial),
        "gender": score_gender(gender, trial),
        "medication": score_medications(entities.medication_names(), trial),
        "comorbidity": score_comorbidities(entities.comorbidity_names(), trial),
        "location": score_location(location, trial),
        "allergy": score_allergies(entities.allergy_names(), trial),
    }
    total = sum(component.score for component in components.values())
    relevance = min(1.0, max(0.0, total / TOTAL_WEIGHT))

    return ScoredTrial(
        trial_id=trial.nct_id,
        relevance_score=relevance,
        score_components=components,
        matching_factors=matching_factors(components),
    )


def rank_trials(
    trials: Iterable[MappedClinicalTrial],
    entities: StructuredEntities,
    patient: Optional[PatientProfile] = None,
    min_score: float = MIN_RELEVANCE_SCORE,
) -> List[ScoredTrial]:
    """Score all trials, keep those at or above min_score, best first."""
    scored = [score_trial(trial, entities, patient) for trial in trials]
    kept = [s for s in scored if s.relevance_score >= min_score]
    kept.sort(key=lambda s: s.relevance_score, reverse=True)
    logger.info(f"Scored {len(scored)} trials, {len(kept)} at or above {min_score:.2f}")
    return kept


def match_reason(scored: ScoredTrial) -> str:
    return ", ".join(scored.matching_factors)
