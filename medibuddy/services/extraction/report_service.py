"""
Medical Report Service

Generates a SOAP-format report (plus ICD-10 codes) from a consultation
transcript and stores the text verbatim on the consultation.
"""
import logging
import time
from typing import Any, Dict, Optional, Union

from medibuddy.config import GEMINI_REPORT_MODEL, REPORT_PROVIDER
from medibuddy.errors import NoMedicalData, NotFound, UpstreamApiError
from medibuddy.schemas.patients import Consultation
from medibuddy.services.llm_provider import LLMProvider, LLMProviderBase, get_llm_provider
from medibuddy.services.store import CONSULTATIONS, KeyValueStore, get_store

from .prompts import build_soap_report_prompt

logger = logging.getLogger(__name__)

REPORT_GENERATION_CONFIG = {
    "temperature": 0.3,
    "max_tokens": 2048,
    "topK": 40,
    "topP": 0.95,
}


class MedicalReportService:
    """SOAP report generation and retrieval."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        provider: Union[LLMProvider, str] = REPORT_PROVIDER,
        llm: Optional[LLMProviderBase] = None,
        model: Optional[str] = None,
    ):
        self.store = store or get_store()
        self.provider = LLMProvider(provider)
        self.llm = llm or get_llm_provider(self.provider)
        if model:
            self.model = model
        elif self.provider == LLMProvider.GEMINI:
            self.model = GEMINI_REPORT_MODEL
        else:
            self.model = None

    async def _load(self, consultation_id: str) -> Consultation:
        record = await self.store.get(CONSULTATIONS, consultation_id)
        if record is None:
            raise NotFound("Consultation not found")
        return Consultation.model_validate(record)

    async def generate_medical_report(self, consultation_id: str) -> Dict[str, Any]:
        """
        Generate and store the report.

        Raises:
            NotFound: No such consultation
            NoMedicalData: No transcript to report on
            ConfigurationError: Provider key missing
            UpstreamApiError: Provider failure or empty output
        """
        consultation = await self._load(consultation_id)
        if not consultation.transcription:
            raise NoMedicalData("No transcription available for this consultation")

        prompt = build_soap_report_prompt(consultation.transcription, consultation.structured_data)
        config = dict(REPORT_GENERATION_CONFIG)
        if self.provider != LLMProvider.GEMINI:
            # topK/topP are Gemini generation settings
            config.pop("topK")
            config.pop("topP")

        response = await self.llm.chat(message=prompt, model=self.model, **config)
        if not response.text:
            raise UpstreamApiError(f"No report generated from {self.provider.value} API", service=self.provider.value)

        generated_at = int(time.time() * 1000)
        updated = await self.store.update(CONSULTATIONS, consultation_id, {
            "medicalReport": response.text,
            "reportGeneratedAt": generated_at,
            "updatedAt": generated_at,
        })
        if updated is None:
            raise NotFound("Consultation not found")
        logger.info(f"Stored medical report for consultation {consultation_id}")
        return {"content": response.text, "generatedAt": generated_at}

    async def get_medical_report(self, consultation_id: str) -> Optional[Dict[str, Any]]:
        """Stored report and its generation time, or None if none was generated."""
        consultation = await self._load(consultation_id)
        if not consultation.medical_report:
            return None
        return {
            "content": consultation.medical_report,
            "generatedAt": consultation.report_generated_at,
        }


_medical_report_service: Optional[MedicalReportService] = None


def get_medical_report_service() -> MedicalReportService:
    global _medical_report_service
    if _medical_report_service is None:
        _medical_report_service = MedicalReportService()
    return _medical_report_service
