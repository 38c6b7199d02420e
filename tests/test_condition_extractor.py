"""
Tests for rule-based condition extraction.
"""
import pytest

from medibuddy.services.extraction.condition_extractor import canonicalize, extract_conditions


@pytest.mark.parametrize("text", ["", None])
def test_empty_text(text):
    assert extract_conditions(text) == []


def test_diagnosis_with_conjunction():
    """Conjoined diagnoses are split into separate conditions"""
    text = "Patient diagnosed with diabetes and hypertension, no allergies"

    assert extract_conditions(text) == ["diabetes", "hypertension"]


def test_keyword_variants_are_canonicalized():
    text = "Known diabetic with high blood pressure. History of carcinoma."

    assert extract_conditions(text) == ["diabetes", "hypertension", "cancer"]


def test_uncanonicalized_keyword_keeps_matched_text():
    assert extract_conditions("The patient has asthma") == ["asthma"]


def test_diagnostic_phrase_canonicalized():
    assert extract_conditions("She is suffering from high blood pressure") == ["hypertension"]


def test_free_text_phrase_kept():
    assert extract_conditions("Diagnosed with celiac disease") == ["celiac disease"]


def test_excluded_words_reject_phrase():
    assert extract_conditions("He has an appointment tomorrow") == []


def test_short_phrase_rejected():
    assert extract_conditions("diagnosed with xy") == []


def test_case_insensitive_and_deduplicated():
    text = "DIABETES noted. Patient has diabetes."

    assert extract_conditions(text) == ["diabetes"]


def test_canonicalize():
    assert canonicalize("cardiovascular") == "heart disease"
    assert canonicalize("tumor") == "cancer"
    assert canonicalize("gout") == "gout"
