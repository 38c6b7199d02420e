"""
Clinical Trials Service - rate-limited ClinicalTrials.gov API v2 client
"""

from .api_client import RegistryClient, get_registry_client
from .parser import map_study, parse_age, parse_search_response
from .query_builder import CTGovQueryBuilder, build_search_query
from .rate_limiter import RateLimiter

__all__ = [
    "RegistryClient",
    "get_registry_client",
    "map_study",
    "parse_age",
    "parse_search_response",
    "CTGovQueryBuilder",
    "build_search_query",
    "RateLimiter",
]
