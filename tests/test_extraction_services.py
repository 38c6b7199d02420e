"""
Tests for LLM entity extraction and SOAP report generation with a mocked provider.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import seed_consultation, seed_patient
from medibuddy.errors import NoMedicalData, NotFound, ParseError, UpstreamApiError
from medibuddy.services.extraction.entity_extraction_service import EntityExtractionService
from medibuddy.services.extraction.prompts import SOAP_SECTION_HEADERS
from medibuddy.services.extraction.report_service import MedicalReportService
from medibuddy.services.llm_provider import LLMProvider, LLMResponse

TRANSCRIPT = "Patient diagnosed with type 2 diabetes. Takes metformin 500mg twice daily. Allergic to penicillin."


def _llm(*texts, provider="openai"):
    llm = MagicMock()
    llm.chat = AsyncMock(side_effect=[
        text if isinstance(text, Exception) else LLMResponse(text=text, model="test-model", provider=provider)
        for text in texts
    ])
    return llm


async def _drain_background_tasks(service):
    for task in list(service._background_tasks):
        await task


def _extraction_service(store, llm, provider=LLMProvider.OPENAI, matching=None):
    return EntityExtractionService(
        store=store,
        provider=provider,
        llm=llm,
        trial_matching_service=matching or MagicMock(match_local_trials=AsyncMock(return_value={"matchCount": 0})),
        base_delay_ms=0,
    )


@pytest.mark.asyncio
async def test_simple_extraction_lifted_to_rich(store):
    simple = {
        "conditions": [{"name": "Type 2 Diabetes", "severity": "moderate"}],
        "medications": ["Metformin 500mg"],
        "allergies": ["Penicillin"],
        "vitals": {"bloodPressure": "130/85"},
    }
    llm = _llm(json.dumps(simple))
    service = _extraction_service(store, llm)

    entities = await service.extract_entities(TRANSCRIPT)

    assert entities.condition_names() == ["Type 2 Diabetes"]
    assert entities.conditions[0].status == "active"
    assert entities.medication_names() == ["Metformin 500mg"]
    assert entities.allergy_names() == ["Penicillin"]
    kwargs = llm.chat.call_args.kwargs
    assert kwargs["json_mode"] is True
    assert kwargs["max_tokens"] == 2000
    assert kwargs["temperature"] == 0.1
    assert TRANSCRIPT in kwargs["message"]


@pytest.mark.asyncio
async def test_rich_extraction_from_fenced_output(store):
    rich = {"conditions": [{"name": "Asthma", "severity": "mild", "status": "chronic"}]}
    llm = _llm(f"```json\n{json.dumps(rich)}\n```", provider="gemini")
    service = _extraction_service(store, llm, provider=LLMProvider.GEMINI)

    entities = await service.extract_entities("Patient has asthma")

    assert entities.conditions[0].status == "chronic"
    assert llm.chat.call_args.kwargs["json_mode"] is False


@pytest.mark.asyncio
async def test_extraction_retries_upstream_errors(store):
    llm = _llm(UpstreamApiError("overloaded", status_code=503), '{"conditions": ["Gout"]}')
    service = _extraction_service(store, llm)

    entities = await service.extract_entities("Patient has gout")

    assert entities.condition_names() == ["Gout"]
    assert llm.chat.await_count == 2


@pytest.mark.asyncio
async def test_extraction_parse_error(store):
    service = _extraction_service(store, _llm("I could not find any entities."))

    with pytest.raises(ParseError):
        await service.extract_entities(TRANSCRIPT)


@pytest.mark.asyncio
async def test_empty_transcript(store):
    llm = _llm()
    service = _extraction_service(store, llm)

    with pytest.raises(NoMedicalData):
        await service.extract_entities("   ")
    llm.chat.assert_not_called()


@pytest.mark.asyncio
async def test_extract_for_consultation_stores_and_schedules_matching(store):
    """Extraction stores entities and starts background matching"""
    await seed_patient(store)
    await seed_consultation(store, transcription=TRANSCRIPT)
    matching = MagicMock(match_local_trials=AsyncMock(return_value={"matchCount": 2}))
    service = _extraction_service(store, _llm('{"conditions": ["Diabetes"]}'), matching=matching)

    await service.extract_for_consultation("consult_1")
    await _drain_background_tasks(service)

    stored = await store.get("consultations", "consult_1")
    assert stored["structuredData"]["conditions"][0]["name"] == "Diabetes"
    matching.match_local_trials.assert_awaited_once_with("consult_1")


@pytest.mark.asyncio
async def test_background_matching_failure_does_not_propagate(store):
    """Background matching errors are logged, not raised"""
    await seed_consultation(store, transcription=TRANSCRIPT)
    matching = MagicMock(match_local_trials=AsyncMock(side_effect=NotFound("Patient data not found")))
    service = _extraction_service(store, _llm('{"conditions": ["Diabetes"]}'), matching=matching)

    entities = await service.extract_for_consultation("consult_1")
    await _drain_background_tasks(service)

    assert entities.condition_names() == ["Diabetes"]


@pytest.mark.asyncio
async def test_extract_for_missing_consultation(store):
    with pytest.raises(NotFound):
        await _extraction_service(store, _llm()).extract_for_consultation("nope")


@pytest.mark.asyncio
async def test_generate_medical_report(store):
    await seed_consultation(
        store,
        transcription=TRANSCRIPT,
        structuredData={"conditions": [{"name": "Diabetes", "severity": "moderate", "status": "active"}]},
    )
    llm = _llm("**S (Subjective):** ...", provider="gemini")
    service = MedicalReportService(store=store, provider=LLMProvider.GEMINI, llm=llm)

    report = await service.generate_medical_report("consult_1")

    assert report["content"] == "**S (Subjective):** ..."
    kwargs = llm.chat.call_args.kwargs
    assert kwargs["model"] == "gemini-2.5-flash"
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 2048
    assert kwargs["topK"] == 40
    assert kwargs["topP"] == 0.95
    assert all(header in kwargs["message"] for header in SOAP_SECTION_HEADERS)
    assert '"name": "Diabetes"' in kwargs["message"]

    stored = await service.get_medical_report("consult_1")
    assert stored == report


@pytest.mark.asyncio
async def test_report_with_openai_drops_gemini_settings(store):
    await seed_consultation(store, transcription=TRANSCRIPT)
    llm = _llm("report")
    service = MedicalReportService(store=store, provider=LLMProvider.OPENAI, llm=llm)

    await service.generate_medical_report("consult_1")

    kwargs = llm.chat.call_args.kwargs
    assert "topK" not in kwargs
    assert "No additional structured data" in kwargs["message"]


@pytest.mark.asyncio
async def test_report_errors(store):
    await seed_consultation(store, "no_transcript")
    await seed_consultation(store, "empty_output", transcription=TRANSCRIPT)
    service = MedicalReportService(store=store, provider=LLMProvider.GEMINI, llm=_llm(""))

    with pytest.raises(NotFound):
        await service.generate_medical_report("nope")
    with pytest.raises(NoMedicalData):
        await service.generate_medical_report("no_transcript")
    with pytest.raises(UpstreamApiError):
        await service.generate_medical_report("empty_output")
    assert await service.get_medical_report("empty_output") is None


@pytest.mark.asyncio
async def test_extraction_keeps_other_consultation_fields(store):
    """Extraction writes only structuredData on the consultation"""
    await seed_patient(store)
    await seed_consultation(store, transcription=TRANSCRIPT, medicalReport="Earlier report", matchedTrialIds=["trial_1"])
    extraction = _extraction_service(store, _llm('{"conditions": ["Gout"]}'))

    await extraction.extract_for_consultation("consult_1", run_matching=False)

    stored = await store.get("consultations", "consult_1")
    assert stored["medicalReport"] == "Earlier report"
    assert stored["matchedTrialIds"] == ["trial_1"]
    assert stored["structuredData"]["conditions"][0]["name"] == "Gout"
