"""
Consultation router: realtime trial matching, saving matches, entity
extraction and SOAP reports for a stored consultation.
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from medibuddy.errors import MediBuddyError
from medibuddy.schemas.trials import TrialToSave
from medibuddy.services.extraction.entity_extraction_service import (
    EntityExtractionService,
    get_entity_extraction_service,
)
from medibuddy.services.extraction.report_service import MedicalReportService, get_medical_report_service
from medibuddy.services.trial_matching_service import TrialMatchingService, get_trial_matching_service
from medibuddy.utils.http_errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consultations", tags=["consultations"])


class SaveMatchesRequest(BaseModel):
    """Search results selected for saving"""
    trials: List[TrialToSave] = Field(..., description="Trials to save as local trials with pending matches")


@router.post("/{consultation_id}/matches")
async def find_matching_trials(
    consultation_id: str,
    service: TrialMatchingService = Depends(get_trial_matching_service),
) -> Dict[str, Any]:
    """
    Realtime matching against ClinicalTrials.gov plus local trials.

    If the registry search fails, the local matches are still returned and
    the failure is listed under `errors`.
    """
    try:
        outcome = await service.find_matching_trials_partial(consultation_id)
    except MediBuddyError as e:
        raise to_http_exception(e)

    return {
        "result": outcome["result"].model_dump(by_alias=True),
        "errors": outcome["errors"],
    }


@router.get("/{consultation_id}/matches")
async def get_saved_trials(
    consultation_id: str,
    service: TrialMatchingService = Depends(get_trial_matching_service),
) -> List[Dict[str, Any]]:
    """Saved matches for the consultation, each with its local trial."""
    saved = await service.get_saved_trials_for_consultation(consultation_id)
    return [
        {"match": item["match"].model_dump(by_alias=True), "trial": item["trial"].model_dump(by_alias=True)}
        for item in saved
    ]


@router.post("/{consultation_id}/matches/save")
async def save_matching_trials(
    consultation_id: str,
    request: SaveMatchesRequest,
    service: TrialMatchingService = Depends(get_trial_matching_service),
) -> Dict[str, Any]:
    try:
        return await service.save_search_results(consultation_id, request.trials)
    except MediBuddyError as e:
        raise to_http_exception(e)


@router.post("/{consultation_id}/entities")
async def extract_consultation_entities(
    consultation_id: str,
    run_matching: bool = True,
    service: EntityExtractionService = Depends(get_entity_extraction_service),
) -> Dict[str, Any]:
    try:
        entities = await service.extract_for_consultation(consultation_id, run_matching=run_matching)
    except MediBuddyError as e:
        raise to_http_exception(e)
    return {"consultationId": consultation_id, "structuredData": entities.model_dump(by_alias=True)}


@router.post("/{consultation_id}/report")
async def generate_report(
    consultation_id: str,
    service: MedicalReportService = Depends(get_medical_report_service),
) -> Dict[str, Any]:
    try:
        return await service.generate_medical_report(consultation_id)
    except MediBuddyError as e:
        raise to_http_exception(e)


@router.get("/{consultation_id}/report")
async def get_report(
    consultation_id: str,
    service: MedicalReportService = Depends(get_medical_report_service),
) -> Dict[str, Any]:
    try:
        report = await service.get_medical_report(consultation_id)
    except MediBuddyError as e:
        raise to_http_exception(e)
    if report is None:
        raise HTTPException(
            status_code=404,
            detail={"kind": "not_found", "message": "No medical report generated for this consultation"},
        )
    return report
