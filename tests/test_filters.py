"""
Tests for age, gender and phase eligibility filters.
"""
import pytest

from conftest import make_study
from medibuddy.schemas.trials import AgeRange, TrialSearchParams
from medibuddy.services.clinical_trials.parser import map_study
from medibuddy.services.matching.filters import (
    age_ranges_overlap,
    filter_trials,
    gender_matches,
    phase_matches,
)


@pytest.mark.parametrize(
    "patient,trial,expected",
    [
        ((40, 50), (18, 65), True),
        ((60, 70), (18, 65), True),
        ((13, 23), (18, 65), True),
        ((66, 76), (18, 65), False),
        ((5, 15), (18, 65), False),
        ((65, 75), (18, 65), True),
    ],
)
def test_age_ranges_overlap(patient, trial, expected):
    assert age_ranges_overlap(AgeRange(min=patient[0], max=patient[1]), AgeRange(min=trial[0], max=trial[1])) is expected


def test_no_trial_age_range_passes():
    assert age_ranges_overlap(AgeRange(min=0, max=5), None) is True


@pytest.mark.parametrize(
    "patient,restriction,expected",
    [
        ("female", "female", True),
        ("Female", "FEMALE", True),
        ("f", "female", True),
        ("male", "female", False),
        ("m", "MALE", True),
        ("female", "all", True),
        ("male", "ALL", True),
        ("male", None, True),
        (None, "female", True),
    ],
)
def test_gender_matches(patient, restriction, expected):
    assert gender_matches(patient, restriction) is expected


@pytest.mark.parametrize(
    "trial_phase,phases,expected",
    [
        ("PHASE2", ["Phase 2"], True),
        ("PHASE1, PHASE2", ["phase_2"], True),
        ("PHASE3", ["Phase 2"], False),
        ("Not specified", None, True),
        ("PHASE3", [], True),
    ],
)
def test_phase_matches(trial_phase, phases, expected):
    assert phase_matches(trial_phase, phases) is expected


def test_filter_trials_applies_all_dimensions():
    adult = map_study(make_study(nct_id="NCT00000001", min_age="18 Years", max_age="65 Years", sex="ALL"))
    pediatric = map_study(make_study(nct_id="NCT00000002", min_age="2 Years", max_age="12 Years"))
    male_only = map_study(make_study(nct_id="NCT00000003", sex="MALE"))
    phase3 = map_study(make_study(nct_id="NCT00000004", phases=["PHASE3"]))

    params = TrialSearchParams(
        conditions=["diabetes"],
        age_range=AgeRange(min=40, max=50),
        gender="female",
        phase=["PHASE2"],
    )

    result = filter_trials([adult, pediatric, male_only, phase3], params)

    assert [t.nct_id for t in result] == ["NCT00000001"]


def test_filter_trials_without_criteria_keeps_everything():
    trials = [map_study(make_study(nct_id=f"NCT0000000{i}")) for i in range(3)]

    assert filter_trials(trials, TrialSearchParams(conditions=["x"])) == trials
