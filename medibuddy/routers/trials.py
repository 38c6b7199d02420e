"""
Clinical trials search router.

Endpoints for:
- /api/trials/search - Live ClinicalTrials.gov search, filtered by age/gender/phase
- /api/trials/{nct_id} - Single study by NCT ID
- /api/trials/stats - Rate limiter state
- /api/trials/cache/clear - Reset rate limiter state
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from medibuddy.config import get_rate_limit_config
from medibuddy.errors import MediBuddyError
from medibuddy.schemas.trials import TrialSearchParams
from medibuddy.services.clinical_trials import RegistryClient, get_registry_client
from medibuddy.services.matching.filters import filter_trials
from medibuddy.utils.http_errors import bad_request, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["trials"])


@router.post("/api/trials/search")
async def search_trials(
    request: TrialSearchParams,
    registry: RegistryClient = Depends(get_registry_client),
) -> Dict[str, Any]:
    """
    Search ClinicalTrials.gov.

    Results are filtered by the request's age range, gender and phases.
    `totalCount` is the registry's count before filtering.
    """
    if not request.conditions:
        raise HTTPException(
            status_code=400,
            detail={"kind": "invalid_request", "message": "At least one condition is required"},
        )
    try:
        result = await registry.search(request)
    except MediBuddyError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise bad_request(e)

    trials = filter_trials(result.trials, request)
    logger.info(f"Search returned {len(trials)} of {len(result.trials)} trials after filtering")
    return {
        "trials": [t.model_dump(by_alias=True) for t in trials],
        "totalCount": result.total_count,
        "nextPageToken": result.next_page_token,
        "searchParams": request.model_dump(by_alias=True, exclude_none=True),
        "timestamp": result.timestamp,
    }


@router.get("/api/trials/stats")
async def trial_api_stats(registry: RegistryClient = Depends(get_registry_client)) -> Dict[str, Any]:
    """Rate limiter usage plus the configured limits."""
    return {**registry.stats(), **get_rate_limit_config()}


@router.post("/api/trials/cache/clear")
async def clear_trial_cache(registry: RegistryClient = Depends(get_registry_client)) -> Dict[str, Any]:
    return registry.clear_cache()


@router.get("/api/trials/{nct_id}")
async def get_trial_details(nct_id: str, registry: RegistryClient = Depends(get_registry_client)) -> Dict[str, Any]:
    try:
        trial = await registry.fetch_by_nct_id(nct_id)
    except MediBuddyError as e:
        raise to_http_exception(e)
    return trial.model_dump(by_alias=True)
