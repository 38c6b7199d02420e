"""
Shared fixtures for the MediBuddy backend tests.
"""
import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from medibuddy.services.clinical_trials.api_client import RegistryClient
from medibuddy.services.clinical_trials.rate_limiter import RateLimiter
from medibuddy.services.store import InMemoryKeyValueStore


def make_study(
    nct_id: str = "NCT01234567",
    title: str = "Metformin in Type 2 Diabetes",
    conditions: Optional[List[str]] = None,
    min_age: Optional[str] = "18 Years",
    max_age: Optional[str] = "65 Years",
    sex: Optional[str] = "ALL",
    phases: Optional[List[str]] = None,
    status: str = "RECRUITING",
    criteria: Optional[str] = None,
) -> Dict[str, Any]:
    """A registry study record shaped like the API v2 response."""
    eligibility: Dict[str, Any] = {
        "eligibilityCriteria": criteria if criteria is not None else (
            "Inclusion Criteria:\n* Adults with type 2 diabetes\n\n"
            "Exclusion Criteria:\n* Pregnancy\n* Insulin therapy\n"
        ),
    }
    if min_age is not None:
        eligibility["minimumAge"] = min_age
    if max_age is not None:
        eligibility["maximumAge"] = max_age
    if sex is not None:
        eligibility["sex"] = sex

    return {
        "protocolSection": {
            "identificationModule": {"nctId": nct_id, "briefTitle": title},
            "statusModule": {"overallStatus": status, "lastUpdateDate": "2024-03-15"},
            "descriptionModule": {"briefSummary": "A study of metformin."},
            "conditionsModule": {"conditions": conditions or ["Type 2 Diabetes"]},
            "designModule": {"phases": phases or ["PHASE2"], "studyType": "INTERVENTIONAL"},
            "eligibilityModule": eligibility,
            "contactsLocationsModule": {
                "locations": [
                    {"city": "Boston", "state": "Massachusetts", "country": "United States"},
                ],
            },
            "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Example University"}},
        }
    }


def search_response(studies: List[Dict[str, Any]], total_count: Optional[int] = None, next_page_token=None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"studies": studies}
    if total_count is not None:
        body["totalCount"] = total_count
    if next_page_token:
        body["nextPageToken"] = next_page_token
    return body


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sample_study():
    return make_study()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def registry_factory(recording_sleep):
    """
    Build a RegistryClient over an httpx.MockTransport.

    The handler receives each httpx.Request; `requests` collects them.
    """
    requests: List[httpx.Request] = []

    def build(handler: Callable[[httpx.Request], httpx.Response], rate_limiter: Optional[RateLimiter] = None, **kwargs):
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return RegistryClient(
            rate_limiter=rate_limiter or RateLimiter(),
            transport=httpx.MockTransport(recording_handler),
            sleep=recording_sleep,
            **kwargs,
        )

    build.requests = requests
    return build


def json_response(body: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body), headers={"Content-Type": "application/json"})


async def seed_patient(store, patient_id: str = "patient_1", **fields) -> Dict[str, Any]:
    record = {"id": patient_id, "name": "Jane Doe", "age": 45, "gender": "female", "location": "Boston", **fields}
    await store.put("patients", patient_id, record)
    return record


async def seed_consultation(store, consultation_id: str = "consult_1", patient_id: str = "patient_1", **fields) -> Dict[str, Any]:
    record = {"id": consultation_id, "patientId": patient_id, "matchedTrialIds": [], **fields}
    await store.put("consultations", consultation_id, record)
    return record


async def seed_trial(store, trial_id: str = "trial_1", **fields) -> Dict[str, Any]:
    record = {
        "id": trial_id,
        "title": "Local Diabetes Study",
        "description": "Locally registered study",
        "status": "recruiting",
        "targetConditions": ["Diabetes"],
        "location": "Boston",
        **fields,
    }
    await store.put("trials", trial_id, record)
    return record


async def seed_match(store, match_id: str = "match_1", patient_id: str = "patient_1", trial_id: str = "trial_1", **fields) -> Dict[str, Any]:
    record = {
        "id": match_id,
        "patientId": patient_id,
        "trialId": trial_id,
        "consultationId": "consult_1",
        "relevanceScore": 0.8,
        "matchReason": "Primary condition match",
        "notificationStatus": "pending",
        "consentStatusHistory": [
            {"status": "pending", "timestamp": 1000, "changedBy": "system", "note": "Initial match from real-time search"},
        ],
        "matchDate": 1000,
        "createdAt": 1000,
        **fields,
    }
    await store.put("matches", match_id, record)
    return record
