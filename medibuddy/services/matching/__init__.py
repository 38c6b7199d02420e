"""
Trial matching: eligibility filters, local/registry merge, scoring and consent.
"""

from .consent import initial_entry, transition
from .filters import age_ranges_overlap, filter_trials, gender_matches, phase_matches
from .match_engine import (
    build_search_params,
    derive_conditions,
    find_matches,
    merge_trials,
    to_local_view,
)
from .scoring import MIN_RELEVANCE_SCORE, WEIGHTS, rank_trials, score_trial

__all__ = [
    "initial_entry",
    "transition",
    "age_ranges_overlap",
    "filter_trials",
    "gender_matches",
    "phase_matches",
    "build_search_params",
    "derive_conditions",
    "find_matches",
    "merge_trials",
    "to_local_view",
    "MIN_RELEVANCE_SCORE",
    "WEIGHTS",
    "rank_trials",
    "score_trial",
]
