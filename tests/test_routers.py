"""
API tests with FastAPI TestClient and dependency overrides.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import json_response, make_study, search_response, seed_match, seed_patient, seed_trial
from medibuddy.errors import (
    ConfigurationError,
    NoConditionsExtracted,
    NotFound,
    ParseError,
    RateLimitExceeded,
    UpstreamApiError,
)
from medibuddy.main import app
from medibuddy.services.clinical_trials import get_registry_client
from medibuddy.services.clinical_trials.rate_limiter import RateLimiter
from medibuddy.services.extraction.entity_extraction_service import get_entity_extraction_service
from medibuddy.services.extraction.report_service import get_medical_report_service
from medibuddy.services.notification_service import NotificationService, get_notification_service
from medibuddy.services.trial_matching_service import TrialMatchingService, get_trial_matching_service


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _override(dependency, value):
    app.dependency_overrides[dependency] = lambda: value


def test_health(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_search_filters_results(client, registry_factory):
    studies = [
        make_study(nct_id="NCT00000001", sex="ALL"),
        make_study(nct_id="NCT00000002", sex="MALE"),
    ]
    _override(get_registry_client, registry_factory(lambda request: json_response(search_response(studies, total_count=37))))

    response = client.post("/api/trials/search", json={"conditions": ["diabetes"], "gender": "female"})

    assert response.status_code == 200
    body = response.json()
    assert [t["nctId"] for t in body["trials"]] == ["NCT00000001"]
    assert body["totalCount"] == 37
    assert body["trials"][0]["ageRange"] == {"min": 18, "max": 65}


def test_search_requires_conditions(client):
    response = client.post("/api/trials/search", json={"conditions": []})

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "invalid_request"


def test_search_rate_limited(client, registry_factory, clock):
    """Rate-limited search returns 429 without calling the registry"""
    limiter = RateLimiter(requests_per_minute=0, clock=clock)
    _override(get_registry_client, registry_factory(lambda request: json_response({}), rate_limiter=limiter))

    response = client.post("/api/trials/search", json={"conditions": ["diabetes"]})

    assert response.status_code == 429
    assert response.json()["detail"]["kind"] == "rate_limit_exceeded"
    assert registry_factory.requests == []


def test_trial_details_not_found(client, registry_factory):
    _override(get_registry_client, registry_factory(lambda request: httpx.Response(404)))

    response = client.get("/api/trials/NCT00000000")

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


def test_stats_and_clear(client, registry_factory, clock):
    limiter = RateLimiter(requests_per_minute=100, clock=clock)
    limiter.admit()
    _override(get_registry_client, registry_factory(lambda request: json_response({}), rate_limiter=limiter))

    stats = client.get("/api/trials/stats").json()
    assert stats["requestsInLastMinute"] == 1
    assert stats["rateLimit"]["requestsPerMinute"] == 100

    assert client.post("/api/trials/cache/clear").json()["success"] is True
    assert client.get("/api/trials/stats").json()["requestsInLastMinute"] == 0


@pytest.mark.parametrize(
    "error,status_code",
    [
        (NotFound("Consultation not found. Please ensure the consultation exists."), 404),
        (NoConditionsExtracted(), 422),
        (RateLimitExceeded(), 429),
        (UpstreamApiError("registry down", status_code=500), 502),
        (ParseError("bad json"), 502),
        (ConfigurationError("gemini API key not configured"), 503),
    ],
)
def test_matching_error_mapping(client, error, status_code):
    """Pipeline errors map to HTTP status codes with {kind, message} detail"""
    service = MagicMock(find_matching_trials_partial=AsyncMock(side_effect=error))
    _override(get_trial_matching_service, service)

    response = client.post("/api/consultations/consult_1/matches")

    assert response.status_code == status_code
    assert response.json()["detail"] == error.to_dict()


def test_save_matches_validates_relevance(client):
    service = MagicMock(save_search_results=AsyncMock(return_value={"savedTrialIds": [], "matchIds": [], "totalSaved": 0}))
    _override(get_trial_matching_service, service)

    bad = client.post("/api/consultations/c1/matches/save", json={"trials": [{"nctId": "NCT1", "title": "x", "relevanceScore": 1.5}]})
    good = client.post("/api/consultations/c1/matches/save", json={"trials": [{"nctId": "NCT1", "title": "x", "relevanceScore": 0.9}]})

    assert bad.status_code == 422
    assert good.status_code == 200
    saved = service.save_search_results.call_args.args[1]
    assert saved[0].relevance_score == 0.9


def test_extract_entities_endpoint(client):
    entities = MagicMock()
    entities.model_dump.return_value = {"conditions": [{"name": "Asthma"}]}
    service = MagicMock(extract_for_consultation=AsyncMock(return_value=entities))
    _override(get_entity_extraction_service, service)

    response = client.post("/api/consultations/c1/entities?run_matching=false")

    assert response.status_code == 200
    assert response.json()["structuredData"] == {"conditions": [{"name": "Asthma"}]}
    service.extract_for_consultation.assert_awaited_once_with("c1", run_matching=False)


def test_report_missing(client):
    _override(get_medical_report_service, MagicMock(get_medical_report=AsyncMock(return_value=None)))

    response = client.get("/api/consultations/c1/report")

    assert response.status_code == 404


def test_normalize_endpoint(client):
    response = client.post(
        "/api/entities/normalize",
        json={"payload": {"conditions": ["Asthma", 3], "allergies": [{"name": "Latex"}]}, "schema": "rich"},
    )

    assert response.status_code == 200
    entities = response.json()["entities"]
    assert [c["name"] for c in entities["conditions"]] == ["Asthma", "Unknown condition"]
    assert entities["allergies"][0]["allergen"] == "Latex"


def test_conditions_endpoint(client):
    response = client.post("/api/entities/conditions", json={"text": "Patient diagnosed with diabetes and hypertension"})

    assert response.json() == {"conditions": ["diabetes", "hypertension"], "count": 2}


def test_consent_workflow(client, store):
    """Notify, view, consent and doctor status update through the API"""
    asyncio.run(seed_patient(store))
    asyncio.run(seed_trial(store))
    asyncio.run(seed_match(store))
    _override(get_notification_service, NotificationService(store=store))

    notify = client.post("/api/matches/notify", json={"match_ids": ["match_1"], "doctor_notes": "Consider this"})
    assert notify.json()["successCount"] == 1

    inbox = client.get("/api/patients/patient_1/notifications").json()
    assert inbox["unreadCount"] == 1
    assert inbox["actionRequiredCount"] == 1

    assert client.post("/api/matches/match_1/viewed").json() == {"success": True}

    consent = client.post("/api/matches/match_1/consent", json={"consent_status": "approved", "patient_response": "Yes"})
    assert consent.status_code == 200
    assert consent.json()["match"]["consentStatus"] == "approved"

    status = client.post("/api/matches/match_1/status", json={"status": "enrolled"})
    assert status.json()["matchId"] == "match_1"

    history = client.get("/api/matches/match_1/consent-history").json()
    assert [h["status"] for h in history] == ["pending", "approved", "enrolled"]

    assert client.post("/api/matches/match_1/consent", json={"consent_status": "maybe"}).status_code == 422
    assert client.get("/api/matches/missing/consent-history").status_code == 404


def test_saved_matches_endpoints(client, store):
    """Saved matches read back per consultation and per patient"""
    asyncio.run(seed_trial(store))
    asyncio.run(seed_match(store))
    asyncio.run(seed_match(store, "match_orphan", trial_id="trial_gone"))
    _override(get_trial_matching_service, TrialMatchingService(store=store, registry_client=MagicMock()))

    response = client.get("/api/consultations/consult_1/matches")

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 1
    assert body[0]["match"]["id"] == "match_1"
    assert body[0]["match"]["consentStatus"] == "pending"
    assert body[0]["trial"]["title"] == "Local Diabetes Study"

    response = client.get("/api/patients/patient_1/matches")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == ["match_1", "match_orphan"]
