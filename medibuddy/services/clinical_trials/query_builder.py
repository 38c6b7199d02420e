"""
ClinicalTrials.gov API v2 Query Builder

Turns TrialSearchParams into the registry's query-string parameters.
"""
import logging
from typing import Any, Dict, List, Optional

from medibuddy.schemas.trials import TrialSearchParams

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, STATUS_TO_REGISTRY

logger = logging.getLogger(__name__)


class CTGovQueryBuilder:
    """Builder for ClinicalTrials.gov API v2 study searches."""

    def __init__(self):
        self.params: Dict[str, Any] = {}
        self.condition_terms: List[str] = []
        self.page_size: int = DEFAULT_PAGE_SIZE

    def add_condition(self, condition: str) -> "CTGovQueryBuilder":
        """Add a condition term. Terms are OR-joined into query.cond."""
        condition = (condition or "").strip()
        if condition:
            self.condition_terms.append(condition)
        return self

    def add_status(self, status: Optional[str]) -> "CTGovQueryBuilder":
        """
        Add an overall status filter.

        Args:
            status: Internal status (recruiting, active, completed, not_yet_recruiting).
                Values outside the map are passed through unchanged.
        """
        if status:
            self.params["filter.overallStatus"] = STATUS_TO_REGISTRY.get(status, status)
        return self

    def add_location(self, location: Optional[str]) -> "CTGovQueryBuilder":
        if location:
            self.params["query.locn"] = location
        return self

    def add_study_type(self, study_type: Optional[str]) -> "CTGovQueryBuilder":
        if study_type:
            self.params["query.type"] = study_type
        return self

    def set_max_results(self, max_results: Optional[int]) -> "CTGovQueryBuilder":
        """Page size, defaulting to 50 and clamped to the API maximum of 100."""
        self.page_size = min(max_results or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
        return self

    def build(self) -> Dict[str, Any]:
        """
        Build the final query parameters.

        Raises:
            ValueError: If no condition terms were added
        """
        if not self.condition_terms:
            raise ValueError("At least one condition is required for a registry search")

        params = self.params.copy()
        params["query.cond"] = " OR ".join(self.condition_terms)
        params["pageSize"] = self.page_size
        params["format"] = "json"
        return params


def build_search_query(search_params: TrialSearchParams, page_token: Optional[str] = None) -> Dict[str, Any]:
    """Build registry query parameters from TrialSearchParams."""
    builder = CTGovQueryBuilder()
    for condition in search_params.conditions:
        builder.add_condition(condition)
    builder.add_status(search_params.status)
    builder.add_location(search_params.location)
    builder.add_study_type(search_params.study_type)
    builder.set_max_results(search_params.max_results)

    params = builder.build()
    if page_token:
        params["pageToken"] = page_token
    return params
