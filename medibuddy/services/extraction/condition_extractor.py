"""
Rule-based condition extraction from consultation transcripts.

Only used when no structured condition list exists for a consultation.
Two passes over the lowercased text: a keyword table, then diagnostic
phrasing ("diagnosed with X", "suffering from X", ...).
"""
import re
from typing import List, Optional, Pattern, Tuple

# (pattern, canonical term). A canonical of None keeps the matched text.
CONDITION_KEYWORDS: List[Tuple[Pattern, Optional[str]]] = [
    (re.compile(r"\b(diabetes|diabetic)\b"), "diabetes"),
    (re.compile(r"\b(hypertension|high blood pressure)\b"), "hypertension"),
    (re.compile(r"\b(asthma|asthmatic)\b"), None),
    (re.compile(r"\b(cancer|carcinoma|tumor|malignancy)\b"), "cancer"),
    (re.compile(r"\b(heart disease|cardiac|cardiovascular)\b"), "heart disease"),
    (re.compile(r"\b(arthritis|joint pain)\b"), None),
    (re.compile(r"\b(depression|anxiety|mental health)\b"), None),
    (re.compile(r"\b(migraine|headache)\b"), None),
    (re.compile(r"\b(obesity|overweight)\b"), None),
    (re.compile(r"\b(pneumonia|lung infection)\b"), None),
    (re.compile(r"\b(stroke|cerebrovascular)\b"), None),
    (re.compile(r"\b(kidney disease|renal)\b"), None),
    (re.compile(r"\b(liver disease|hepatic)\b"), None),
    (re.compile(r"\b(epilepsy|seizure)\b"), None),
    (re.compile(r"\b(copd|chronic obstructive)\b"), None),
    (re.compile(r"\b(fibromyalgia|chronic pain)\b"), None),
    (re.compile(r"\b(osteoporosis|bone loss)\b"), None),
    (re.compile(r"\b(thyroid|hyperthyroid|hypothyroid)\b"), None),
    (re.compile(r"\b(alzheimer|dementia)\b"), None),
    (re.compile(r"\b(parkinson|parkinsons)\b"), None),
]

DIAGNOSIS_PATTERNS: List[Pattern] = [
    re.compile(r"diagnosed with ([a-z\s]+)"),
    re.compile(r"\bhas ([a-z\s]+)"),
    re.compile(r"suffering from ([a-z\s]+)"),
    re.compile(r"condition is ([a-z\s]+)"),
    re.compile(r"patient has ([a-z\s]+)"),
]

EXCLUDED_TERMS = ("appointment", "medication", "treatment")

MIN_PHRASE_LENGTH = 2
MAX_PHRASE_LENGTH = 50

_CONJUNCTION = re.compile(r"\s+(?:and|or)\s+")


def canonicalize(term: str) -> str:
    """Map a keyword variant to its group's standard term."""
    for pattern, canonical in CONDITION_KEYWORDS:
        if canonical and pattern.fullmatch(term):
            return canonical
    return term


def _accept_phrase(phrase: str) -> bool:
    return (
        MIN_PHRASE_LENGTH < len(phrase) < MAX_PHRASE_LENGTH
        and not any(term in phrase for term in EXCLUDED_TERMS)
    )


def _append(conditions: List[str], condition: str) -> None:
    if condition and condition not in conditions:
        conditions.append(condition)


def extract_conditions(transcription: str) -> List[str]:
    """
    Extract condition names from free text.

    Returns:
        Lowercased, de-duplicated conditions in first-seen order
        (keyword table order first, then diagnostic phrases).
    """
    if not transcription:
        return []

    text = transcription.lower()
    conditions: List[str] = []

    for pattern, canonical in CONDITION_KEYWORDS:
        for match in pattern.finditer(text):
            _append(conditions, canonical or match.group(0).strip())

    for pattern in DIAGNOSIS_PATTERNS:
        for match in pattern.finditer(text):
            phrase = match.group(1).strip()
            if not _accept_phrase(phrase):
                continue
            # "diabetes and hypertension" yields each condition separately
            for part in _CONJUNCTION.split(phrase):
                part = part.strip()
                if len(part) > MIN_PHRASE_LENGTH:
                    _append(conditions, canonicalize(part))

    return conditions
