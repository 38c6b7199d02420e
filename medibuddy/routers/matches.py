"""
Trial match notifications and consent workflow.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from medibuddy.errors import MediBuddyError
from medibuddy.schemas.matches import ConsentStatus
from medibuddy.services.notification_service import NotificationService, get_notification_service
from medibuddy.services.trial_matching_service import TrialMatchingService, get_trial_matching_service
from medibuddy.utils.http_errors import bad_request, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["matches"])


class NotifyRequest(BaseModel):
    match_ids: List[str] = Field(..., description="Matches to send to their patients")
    doctor_notes: Optional[str] = None


class ConsentRequest(BaseModel):
    consent_status: ConsentStatus
    patient_response: Optional[str] = None


class StatusRequest(BaseModel):
    status: ConsentStatus
    doctor_notes: Optional[str] = None


@router.post("/api/matches/notify")
async def send_notifications(
    request: NotifyRequest,
    service: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    return await service.send_trial_notifications(request.match_ids, request.doctor_notes)


@router.get("/api/matches")
async def list_matches(
    consent_status: Optional[ConsentStatus] = None,
    service: NotificationService = Depends(get_notification_service),
) -> List[Dict[str, Any]]:
    """Matches for the doctor view, optionally by consent status."""
    return await service.list_by_consent_status(consent_status)


@router.post("/api/matches/{match_id}/viewed")
async def mark_viewed(match_id: str, service: NotificationService = Depends(get_notification_service)) -> Dict[str, Any]:
    try:
        return await service.mark_viewed(match_id)
    except MediBuddyError as e:
        raise to_http_exception(e)


@router.post("/api/matches/{match_id}/consent")
async def update_consent(
    match_id: str,
    request: ConsentRequest,
    service: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    """Patient consent decision; appended to the match's consent history."""
    try:
        match = await service.update_patient_consent(match_id, request.consent_status, request.patient_response)
    except MediBuddyError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise bad_request(e)
    return {"success": True, "match": match.model_dump(by_alias=True)}


@router.post("/api/matches/{match_id}/status")
async def update_status(
    match_id: str,
    request: StatusRequest,
    service: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    try:
        match = await service.update_match_status(match_id, request.status, request.doctor_notes)
    except MediBuddyError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise bad_request(e)
    return {"matchId": match.id, "match": match.model_dump(by_alias=True)}


@router.get("/api/matches/{match_id}/consent-history")
async def consent_history(
    match_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> List[Dict[str, Any]]:
    try:
        return await service.get_consent_history(match_id)
    except MediBuddyError as e:
        raise to_http_exception(e)


@router.get("/api/patients/{patient_id}/notifications")
async def patient_notifications(
    patient_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    """A patient's trial notifications with unread and action-required counts."""
    notifications = await service.get_patient_notifications(patient_id)
    return {
        "notifications": notifications,
        "unreadCount": await service.get_unread_count(patient_id),
        "actionRequiredCount": await service.get_action_required_count(patient_id),
    }


@router.get("/api/patients/{patient_id}/matches")
async def patient_matches(
    patient_id: str,
    service: TrialMatchingService = Depends(get_trial_matching_service),
) -> List[Dict[str, Any]]:
    matches = await service.list_matches_for_patient(patient_id)
    return [match.model_dump(by_alias=True) for match in matches]
