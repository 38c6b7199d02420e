"""
Tests for ClinicalTrials.gov query parameter building.
"""
import pytest

from medibuddy.schemas.trials import TrialSearchParams
from medibuddy.services.clinical_trials.query_builder import CTGovQueryBuilder, build_search_query


def test_conditions_or_joined():
    params = build_search_query(TrialSearchParams(conditions=["diabetes", "hypertension"]))

    assert params["query.cond"] == "diabetes OR hypertension"
    assert params["pageSize"] == 50
    assert params["format"] == "json"
    assert "filter.overallStatus" not in params


@pytest.mark.parametrize(
    "status,expected",
    [
        ("recruiting", "RECRUITING"),
        ("active", "ACTIVE_NOT_RECRUITING"),
        ("completed", "COMPLETED"),
        ("not_yet_recruiting", "NOT_YET_RECRUITING"),
    ],
)
def test_status_mapping(status, expected):
    params = build_search_query(TrialSearchParams(conditions=["asthma"], status=status))

    assert params["filter.overallStatus"] == expected


def test_page_size_clamped():
    assert build_search_query(TrialSearchParams(conditions=["asthma"], max_results=500))["pageSize"] == 100
    assert build_search_query(TrialSearchParams(conditions=["asthma"], max_results=20))["pageSize"] == 20


def test_location_study_type_and_page_token():
    params = build_search_query(
        TrialSearchParams(conditions=["asthma"], location="Boston", study_type="INTERVENTIONAL"),
        page_token="abc123",
    )

    assert params["query.locn"] == "Boston"
    assert params["query.type"] == "INTERVENTIONAL"
    assert params["pageToken"] == "abc123"


def test_empty_conditions_rejected():
    with pytest.raises(ValueError):
        build_search_query(TrialSearchParams(conditions=[]))


def test_blank_condition_terms_ignored():
    params = CTGovQueryBuilder().add_condition("  ").add_condition("asthma").build()

    assert params["query.cond"] == "asthma"
