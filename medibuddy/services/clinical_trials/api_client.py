"""
Clinical Trials Service - API Client Module

Async client for ClinicalTrials.gov API v2 searches and single-study lookups.
Every public call passes the shared rate limiter before any network I/O, and
HTTP failures are retried with exponential backoff.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from medibuddy.config import MAX_RETRIES, RETRY_BASE_DELAY_MS
from medibuddy.errors import NotFound, RateLimitExceeded, UpstreamApiError
from medibuddy.schemas.trials import MappedClinicalTrial, RegistrySearchResult, TrialSearchParams
from medibuddy.services.retry import with_retry

from .config import REQUEST_HEADERS, REQUESTS_TIMEOUT, STUDIES_URL
from .parser import map_study, parse_search_response
from .query_builder import build_search_query
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RegistryClient:
    """ClinicalTrials.gov client guarded by a RateLimiter and retried on upstream errors."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = STUDIES_URL,
        timeout: float = REQUESTS_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        base_delay_ms: int = RETRY_BASE_DELAY_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            rate_limiter: Shared admission control (a private one is created if omitted)
            base_url: Studies endpoint
            timeout: Per-request timeout in seconds
            max_retries: Retries for upstream failures
            base_delay_ms: Backoff base delay
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep: Backoff sleep function
        """
        self.rate_limiter = rate_limiter or RateLimiter()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self._transport = transport
        self._sleep = sleep

    def _admit(self) -> None:
        if not self.rate_limiter.admit():
            raise RateLimitExceeded()

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Single GET; non-2xx and transport failures become UpstreamApiError."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params, headers=REQUEST_HEADERS)
        except httpx.RequestError as e:
            raise UpstreamApiError(f"ClinicalTrials.gov request failed: {e}", service="clinicaltrials.gov") from e

        if response.status_code == 404:
            raise NotFound(f"ClinicalTrials.gov resource not found: {url}")
        if response.status_code >= 400:
            raise UpstreamApiError(
                f"ClinicalTrials.gov API error: {response.status_code} {response.text[:500]}",
                status_code=response.status_code,
                service="clinicaltrials.gov",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamApiError(
                f"ClinicalTrials.gov returned invalid JSON: {e}",
                status_code=response.status_code,
                service="clinicaltrials.gov",
            ) from e

        if not isinstance(data, dict):
            raise UpstreamApiError(
                f"ClinicalTrials.gov returned a {type(data).__name__} instead of a JSON object",
                status_code=response.status_code,
                service="clinicaltrials.gov",
            )
        return data

    async def _get_with_retry(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await with_retry(
            lambda: self._get_json(url, params),
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            retry_on=(UpstreamApiError,),
            sleep=self._sleep,
            label="ClinicalTrials.gov request",
        )

    async def search(self, search_params: TrialSearchParams, page_token: Optional[str] = None) -> RegistrySearchResult:
        """
        Search the registry.

        Returns the unfiltered mapped trials plus the server-reported totalCount,
        which may exceed the number of trials returned.

        Raises:
            RateLimitExceeded: Admission denied (no request is sent)
            UpstreamApiError: Registry failure after retries
            ValueError: No conditions in search_params
        """
        params = build_search_query(search_params, page_token=page_token)
        self._admit()

        logger.info(
            f"Searching ClinicalTrials.gov: query.cond='{params['query.cond']}' pageSize={params['pageSize']}"
        )
        data = await self._get_with_retry(self.base_url, params)

        trials = parse_search_response(data)
        total_count = data.get("totalCount")
        if not isinstance(total_count, int) or isinstance(total_count, bool):
            total_count = len(trials)
        next_page_token = data.get("nextPageToken")
        if not isinstance(next_page_token, str):
            next_page_token = None

        logger.info(f"Fetched {len(trials)} trials from ClinicalTrials.gov (totalCount={total_count})")
        return RegistrySearchResult(
            trials=trials,
            total_count=total_count,
            next_page_token=next_page_token,
            search_params=search_params,
            timestamp=int(time.time() * 1000),
        )

    async def fetch_by_nct_id(self, nct_id: str) -> MappedClinicalTrial:
        """
        Fetch one study by NCT ID.

        Raises:
            RateLimitExceeded: Admission denied
            NotFound: Registry has no such study
            UpstreamApiError: Registry failure after retries
        """
        nct_id = (nct_id or "").strip().upper()
        if not nct_id:
            raise NotFound("NCT ID is required")

        self._admit()
        data = await self._get_with_retry(f"{self.base_url}/{nct_id}", {"format": "json"})

        # Single-study endpoint returns the study itself; tolerate a search-shaped body too.
        if "studies" in data:
            studies = data.get("studies")
            if not isinstance(studies, list) or not studies:
                raise NotFound(f"Trial with NCT ID {nct_id} not found")
            study = studies[0]
        else:
            study = data

        try:
            return map_study(study)
        except ValueError as e:
            raise NotFound(f"Trial with NCT ID {nct_id} not found") from e

    def stats(self) -> dict:
        return self.rate_limiter.stats()

    def clear_cache(self) -> dict:
        """Reset rate limit state. There is no response cache to drop."""
        self.rate_limiter.clear()
        return {"success": True, "message": "Trial cache cleared"}


_registry_client: Optional[RegistryClient] = None


def get_registry_client() -> RegistryClient:
    """Get the process-wide registry client (shares one rate limiter)."""
    global _registry_client
    if _registry_client is None:
        _registry_client = RegistryClient()
    return _registry_client
