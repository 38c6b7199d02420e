"""
Notification Service

Doctor-to-patient trial notifications and the consent workflow on trial
matches. Each match's read-modify-write is serialized with a per-match
asyncio Lock so concurrent consent updates never lose a history entry. A
lock lives only while some caller holds or waits on it.
"""
import asyncio
import logging
import time
import weakref
from typing import Any, Dict, List, Optional

from medibuddy.errors import NotFound
from medibuddy.schemas.matches import CONSENT_STATUSES, TrialMatch
from medibuddy.schemas.patients import PatientProfile
from medibuddy.schemas.trials import LocalTrial
from medibuddy.services.matching.consent import transition
from medibuddy.services.store import MATCHES, PATIENTS, TRIALS, KeyValueStore, get_store

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dump_match(match: TrialMatch) -> Dict[str, Any]:
    return match.model_dump(by_alias=True, exclude={"consent_status"})


class NotificationService:
    """Trial match notifications and consent tracking."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store or get_store()
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, match_id: str) -> asyncio.Lock:
        return self._locks.setdefault(match_id, asyncio.Lock())

    async def _load_match(self, match_id: str) -> TrialMatch:
        record = await self.store.get(MATCHES, match_id)
        if record is None:
            raise NotFound("Trial match not found")
        return TrialMatch.model_validate(record)

    async def _save_match(self, match: TrialMatch) -> None:
        await self.store.put(MATCHES, match.id, _dump_match(match))

    async def get_match(self, match_id: str) -> TrialMatch:
        return await self._load_match(match_id)

    async def send_trial_notifications(self, match_ids: List[str], doctor_notes: Optional[str] = None) -> Dict[str, Any]:
        """
        Mark matches as sent to the patient.

        Missing matches are reported per ID instead of failing the batch.
        """
        results = []
        for match_id in match_ids:
            async with self._lock_for(match_id):
                record = await self.store.get(MATCHES, match_id)
                if record is None:
                    results.append({"id": match_id, "success": False, "error": "Match not found"})
                    continue
                match = TrialMatch.model_validate(record).model_copy(update={
                    "notification_status": "sent",
                    "doctor_notes": doctor_notes,
                    "updated_at": _now_ms(),
                })
                await self._save_match(match)
                results.append({"id": match_id, "success": True})

        success_count = sum(1 for r in results if r["success"])
        failed_count = len(results) - success_count
        logger.info(f"Sent {success_count} trial notifications ({failed_count} failed)")
        return {
            "success": failed_count == 0,
            "successCount": success_count,
            "failedCount": failed_count,
            "results": results,
        }

    async def mark_viewed(self, match_id: str) -> Dict[str, Any]:
        """Move a sent notification to viewed. Other states are left alone."""
        async with self._lock_for(match_id):
            match = await self._load_match(match_id)
            if match.notification_status == "sent":
                match = match.model_copy(update={"notification_status": "viewed", "updated_at": _now_ms()})
                await self._save_match(match)
        return {"success": True}

    async def update_patient_consent(
        self,
        match_id: str,
        consent_status: str,
        patient_response: Optional[str] = None,
    ) -> TrialMatch:
        """
        Record the patient's consent decision.

        Raises:
            NotFound: No such match
            ValueError: Unknown consent status
        """
        async with self._lock_for(match_id):
            match = await self._load_match(match_id)
            now = _now_ms()
            match = transition(
                match,
                consent_status,
                changed_by="patient",
                note=patient_response,
                user_id=match.patient_id,
                timestamp=now,
            ).model_copy(update={"patient_response": patient_response, "response_date": now})
            await self._save_match(match)

        logger.info(f"Patient consent for match {match_id} set to {consent_status}")
        return match

    async def update_match_status(
        self,
        match_id: str,
        status: str,
        doctor_notes: Optional[str] = None,
    ) -> TrialMatch:
        """Doctor-side status change; recorded in the same consent history."""
        async with self._lock_for(match_id):
            match = await self._load_match(match_id)
            now = _now_ms()
            match = transition(
                match,
                status,
                changed_by="doctor",
                note=doctor_notes,
                timestamp=now,
            ).model_copy(update={"doctor_notes": doctor_notes, "response_date": now})
            await self._save_match(match)

        logger.info(f"Doctor set match {match_id} status to {status}")
        return match

    async def get_consent_history(self, match_id: str) -> List[Dict[str, Any]]:
        """History entries, oldest first, with the user's name where known."""
        match = await self._load_match(match_id)
        history = []
        for entry in match.consent_status_history:
            item = entry.model_dump(by_alias=True, exclude_none=True)
            if entry.user_id:
                user = await self.store.get(PATIENTS, entry.user_id)
                item["userName"] = (user or {}).get("name") or "Unknown"
            history.append(item)
        return history

    async def list_by_consent_status(self, consent_status: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Matches (optionally with one consent status) with their trial and
        patient, most recently updated first. Matches whose trial or patient
        is gone are skipped.
        """
        if consent_status is not None and consent_status not in CONSENT_STATUSES:
            raise ValueError(f"Invalid consent status: {consent_status}")

        matches = [TrialMatch.model_validate(r) for r in await self.store.list(MATCHES)]
        if consent_status is not None:
            matches = [m for m in matches if m.consent_status == consent_status]

        enriched = []
        for match in matches:
            trial_record, patient_record = await asyncio.gather(
                self.store.get(TRIALS, match.trial_id),
                self.store.get(PATIENTS, match.patient_id),
            )
            if trial_record is None or patient_record is None:
                continue
            patient = PatientProfile.model_validate(patient_record)
            enriched.append({
                "match": match.model_dump(by_alias=True),
                "trial": LocalTrial.model_validate(trial_record).model_dump(by_alias=True),
                "patient": patient.model_dump(by_alias=True, include={"id", "name", "age", "gender"}),
            })

        enriched.sort(key=lambda e: e["match"].get("updatedAt") or 0, reverse=True)
        return enriched

    async def _patient_matches(self, patient_id: str) -> List[TrialMatch]:
        records = await self.store.list(MATCHES, lambda r: r.get("patientId") == patient_id)
        return [TrialMatch.model_validate(r) for r in records]

    async def get_patient_notifications(self, patient_id: str) -> List[Dict[str, Any]]:
        """A patient's matches joined with trial details, newest first."""
        notifications = []
        for match in await self._patient_matches(patient_id):
            trial_record = await self.store.get(TRIALS, match.trial_id)
            if trial_record is None:
                continue
            trial = LocalTrial.model_validate(trial_record)
            notifications.append({
                "id": match.id,
                "trialId": trial.id,
                "trialTitle": trial.title,
                "trialDescription": trial.description,
                "trialPhase": trial.phase,
                "trialSponsor": trial.sponsor,
                "trialStatus": trial.status,
                "nctId": trial.nct_id,
                "matchDate": match.match_date,
                "relevanceScore": match.relevance_score,
                "notificationStatus": match.notification_status,
                "consentStatus": match.consent_status,
                "matchReason": match.match_reason,
                "doctorNotes": match.doctor_notes,
                "responseDate": match.response_date,
                "eligibilityCriteria": trial.eligibility_criteria,
                "ageRange": trial.age_range.model_dump() if trial.age_range else None,
                "location": trial.location,
                "locations": trial.locations,
                "contactInfo": trial.contact_info,
            })

        notifications.sort(key=lambda n: n["matchDate"] or 0, reverse=True)
        return notifications

    async def get_unread_count(self, patient_id: str) -> int:
        """Notifications sent but not yet viewed."""
        return sum(1 for m in await self._patient_matches(patient_id) if m.notification_status == "sent")

    async def get_action_required_count(self, patient_id: str) -> int:
        """Matches still waiting for the patient's consent."""
        return sum(1 for m in await self._patient_matches(patient_id) if m.consent_status == "pending")


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
