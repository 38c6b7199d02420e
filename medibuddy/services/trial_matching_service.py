"""
Trial Matching Service

Loads a consultation and its patient, derives search conditions, queries
ClinicalTrials.gov and the local trial store concurrently, and merges the
results. Also persists selected results as local trials with pending matches.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from medibuddy.config import DEFAULT_RELEVANCE_SCORE
from medibuddy.errors import MediBuddyError, NotFound
from medibuddy.schemas.matches import TrialMatch
from medibuddy.schemas.patients import Consultation, PatientProfile
from medibuddy.schemas.trials import CombinedTrialResult, LocalTrial, TrialToSave
from medibuddy.services.clinical_trials import RegistryClient, get_registry_client
from medibuddy.services.matching.consent import initial_entry
from medibuddy.services.matching.match_engine import (
    build_search_params,
    derive_conditions,
    find_matches,
    to_local_view,
)
from medibuddy.services.matching.scoring import match_reason, rank_trials
from medibuddy.services.store import (
    CONSULTATIONS,
    MATCHES,
    PATIENTS,
    TRIALS,
    KeyValueStore,
    get_store,
    new_id,
)

logger = logging.getLogger(__name__)

# Local trials offered for matching
ACTIVE_TRIAL_STATUSES = ("recruiting", "active")

REGISTRY_STAGE = "registry_search"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _stored_status(status: str) -> str:
    """Collapse a registry status into the local trial statuses."""
    status = (status or "").lower()
    if "active" in status or "recruiting" in status:
        return "recruiting"
    if "completed" in status:
        return "completed"
    return "active"


class TrialMatchingService:
    """Realtime and local trial matching for consultations."""

    def __init__(self, store: Optional[KeyValueStore] = None, registry_client: Optional[RegistryClient] = None):
        self.store = store or get_store()
        self.registry_client = registry_client or get_registry_client()

    async def get_consultation(self, consultation_id: str) -> Consultation:
        record = await self.store.get(CONSULTATIONS, consultation_id)
        if record is None:
            raise NotFound("Consultation not found. Please ensure the consultation exists.")
        return Consultation.model_validate(record)

    async def get_patient(self, patient_id: str) -> PatientProfile:
        record = await self.store.get(PATIENTS, patient_id)
        if record is None:
            raise NotFound("Patient data not found. Please ensure the patient profile exists.")
        return PatientProfile.model_validate(record)

    async def list_active_trials(self) -> List[LocalTrial]:
        records = await self.store.list(TRIALS, lambda r: r.get("status") in ACTIVE_TRIAL_STATUSES)
        return [LocalTrial.model_validate(r) for r in records]

    async def _match(self, consultation_id: str, allow_partial: bool) -> Tuple[CombinedTrialResult, List[Dict[str, Any]]]:
        consultation = await self.get_consultation(consultation_id)
        patient = await self.get_patient(consultation.patient_id)

        conditions, data_source = derive_conditions(consultation)
        logger.info(f"Derived {len(conditions)} conditions from {data_source} for consultation {consultation_id}")

        search_params = build_search_params(conditions, patient)
        local_trials, registry_result = await asyncio.gather(
            self.list_active_trials(),
            self.registry_client.search(search_params),
            return_exceptions=True,
        )
        if isinstance(local_trials, BaseException):
            raise local_trials

        errors = []
        if isinstance(registry_result, BaseException):
            if not allow_partial or not isinstance(registry_result, MediBuddyError):
                raise registry_result
            logger.warning(f"Registry search failed for consultation {consultation_id}: {registry_result.message}")
            errors.append({"stage": REGISTRY_STAGE, **registry_result.to_dict()})
            registry_result = None

        result = find_matches(conditions, patient, local_trials, registry_result, data_source=data_source)
        return result, errors

    async def find_matching_trials_realtime(self, consultation_id: str) -> CombinedTrialResult:
        """
        Match a consultation against ClinicalTrials.gov and the local trials.

        Raises:
            NotFound: Consultation or patient missing
            NoMedicalData / NoConditionsExtracted: Nothing to search for
            RateLimitExceeded / UpstreamApiError: Registry search failed
        """
        result, _ = await self._match(consultation_id, allow_partial=False)
        return result

    async def find_matching_trials_partial(self, consultation_id: str) -> Dict[str, Any]:
        """
        Like find_matching_trials_realtime, but a registry failure still returns
        the local matches plus an error entry for the failed stage.

        Returns:
            {"result": CombinedTrialResult, "errors": [{"stage", "kind", "message"}]}
        """
        result, errors = await self._match(consultation_id, allow_partial=True)
        return {"result": result, "errors": errors}

    async def save_search_results(self, consultation_id: str, trials: List[TrialToSave]) -> Dict[str, Any]:
        """
        Store selected search results as local trials, each with a pending match.

        The consultation's matched trial IDs are replaced by the saved IDs.
        """
        consultation = await self.get_consultation(consultation_id)
        now = _now_ms()
        saved_trial_ids: List[str] = []
        match_ids: List[str] = []

        for trial in trials:
            trial_id = new_id("trial_")
            local = LocalTrial(
                id=trial_id,
                title=trial.title,
                description=trial.description,
                sponsor=trial.sponsor,
                phase=trial.phase,
                status=_stored_status(trial.status),
                nct_id=trial.nct_id,
                target_conditions=trial.conditions,
                eligibility_criteria=trial.eligibility_criteria,
                exclusion_criteria=trial.exclusion_criteria,
                locations=trial.locations,
                location=trial.locations[0] if trial.locations else "Not specified",
                age_range=trial.age_range,
                gender_restriction=trial.gender_restriction,
                contact_info=trial.source_url,
                created_at=now,
                updated_at=now,
            )
            await self.store.put(TRIALS, trial_id, local.model_dump(by_alias=True))
            saved_trial_ids.append(trial_id)

            relevance = trial.relevance_score if trial.relevance_score is not None else DEFAULT_RELEVANCE_SCORE
            match = TrialMatch(
                id=new_id("match_"),
                patient_id=consultation.patient_id,
                trial_id=trial_id,
                consultation_id=consultation_id,
                relevance_score=relevance,
                match_reason=(
                    f"Matched from real-time search on {datetime.now(timezone.utc).isoformat()}"
                ),
                consent_status_history=[initial_entry(timestamp=now)],
                match_date=now,
                created_at=now,
                updated_at=now,
            )
            await self.store.put(MATCHES, match.id, match.model_dump(by_alias=True, exclude={"consent_status"}))
            match_ids.append(match.id)

        await self._set_matched_trials(consultation_id, saved_trial_ids, now)
        logger.info(f"Saved {len(saved_trial_ids)} trials for consultation {consultation_id}")
        return {
            "savedTrialIds": saved_trial_ids,
            "matchIds": match_ids,
            "totalSaved": len(saved_trial_ids),
        }

    async def match_local_trials(self, consultation_id: str) -> Dict[str, Any]:
        """
        Score the local active trials against the consultation's structured
        data and store a pending match for each one scoring at least 0.5.
        Trials already matched to this consultation are skipped.
        """
        consultation = await self.get_consultation(consultation_id)
        if consultation.structured_data is None:
            raise NotFound("No structured medical data found for this consultation")
        patient = await self.get_patient(consultation.patient_id)

        local_trials = await self.list_active_trials()
        if not local_trials:
            logger.info("No active trials found in the local store")
            return {"matchedTrials": [], "matchCount": 0}

        views = {trial.id: to_local_view(trial) for trial in local_trials}
        ranked = rank_trials(views.values(), consultation.structured_data, patient)

        existing = await self.store.list(MATCHES, lambda r: r.get("consultationId") == consultation_id)
        existing_trial_ids = {r.get("trialId") for r in existing}

        now = _now_ms()
        for scored in ranked:
            if scored.trial_id in existing_trial_ids:
                continue
            match = TrialMatch(
                id=new_id("match_"),
                patient_id=patient.id,
                trial_id=scored.trial_id,
                consultation_id=consultation_id,
                relevance_score=scored.relevance_score,
                match_reason=match_reason(scored),
                consent_status_history=[initial_entry(note=None, timestamp=now)],
                match_date=now,
                created_at=now,
            )
            await self.store.put(MATCHES, match.id, match.model_dump(by_alias=True, exclude={"consent_status"}))

        matched_ids = [scored.trial_id for scored in ranked]
        await self._set_matched_trials(consultation_id, matched_ids, now)
        return {
            "matchedTrials": [scored.model_dump(by_alias=True) for scored in ranked],
            "matchCount": len(ranked),
        }

    async def _set_matched_trials(self, consultation_id: str, trial_ids: List[str], now: int) -> None:
        updated = await self.store.update(CONSULTATIONS, consultation_id, {
            "matchedTrialIds": trial_ids,
            "updatedAt": now,
        })
        if updated is None:
            raise NotFound("Consultation not found. Please ensure the consultation exists.")

    async def list_matches_for_consultation(self, consultation_id: str) -> List[TrialMatch]:
        records = await self.store.list(MATCHES, lambda r: r.get("consultationId") == consultation_id)
        return [TrialMatch.model_validate(r) for r in records]

    async def list_matches_for_patient(self, patient_id: str) -> List[TrialMatch]:
        records = await self.store.list(MATCHES, lambda r: r.get("patientId") == patient_id)
        return [TrialMatch.model_validate(r) for r in records]

    async def get_saved_trials_for_consultation(self, consultation_id: str) -> List[Dict[str, Any]]:
        """
        The consultation's matches, each with its local trial.

        Matches whose trial no longer exists are skipped.

        Returns:
            [{"match": TrialMatch, "trial": LocalTrial}]
        """
        matches = await self.list_matches_for_consultation(consultation_id)
        trial_records = await asyncio.gather(*(self.store.get(TRIALS, m.trial_id) for m in matches))

        saved = []
        for match, trial_record in zip(matches, trial_records):
            if trial_record is None:
                logger.debug(f"Match {match.id} points at missing trial {match.trial_id}")
                continue
            saved.append({"match": match, "trial": LocalTrial.model_validate(trial_record)})
        return saved


_trial_matching_service: Optional[TrialMatchingService] = None


def get_trial_matching_service() -> TrialMatchingService:
    global _trial_matching_service
    if _trial_matching_service is None:
        _trial_matching_service = TrialMatchingService()
    return _trial_matching_service
