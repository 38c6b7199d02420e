"""
Entity Extraction Service

Runs LLM entity extraction over a consultation transcript, normalizes the
result with the provider's schema and stores it on the consultation. Trial
matching is then kicked off in the background; its failure never affects
the extraction result.
"""
import asyncio
import logging
import time
from typing import Optional, Set, Union

from medibuddy.config import ENTITY_PROVIDER
from medibuddy.errors import NoMedicalData, NotFound, UpstreamApiError
from medibuddy.schemas.entities import StructuredEntities
from medibuddy.schemas.patients import Consultation
from medibuddy.services.llm_provider import LLMProvider, LLMProviderBase, get_llm_provider
from medibuddy.services.retry import with_retry
from medibuddy.services.store import CONSULTATIONS, KeyValueStore, get_store
from medibuddy.services.trial_matching_service import TrialMatchingService, get_trial_matching_service

from .entity_normalizer import EntitySchema, to_structured_entities
from .json_parser import parse_llm_json
from .prompts import ENTITY_SYSTEM_PROMPT, build_rich_entity_prompt, build_simple_entity_prompt

logger = logging.getLogger(__name__)

# OpenAI is asked for the simple shape, Gemini for the rich one
PROVIDER_SCHEMAS = {
    LLMProvider.OPENAI: EntitySchema.SIMPLE,
    LLMProvider.GEMINI: EntitySchema.RICH,
}

EXTRACTION_MAX_TOKENS = 2000
EXTRACTION_TEMPERATURE = 0.1


class EntityExtractionService:
    """LLM-backed structured entity extraction for consultations."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        provider: Union[LLMProvider, str] = ENTITY_PROVIDER,
        llm: Optional[LLMProviderBase] = None,
        trial_matching_service: Optional[TrialMatchingService] = None,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
    ):
        self.store = store or get_store()
        self.provider = LLMProvider(provider)
        self.llm = llm or get_llm_provider(self.provider)
        self.trial_matching_service = trial_matching_service or get_trial_matching_service()
        self._retry_kwargs = {}
        if max_retries is not None:
            self._retry_kwargs["max_retries"] = max_retries
        if base_delay_ms is not None:
            self._retry_kwargs["base_delay_ms"] = base_delay_ms
        self._background_tasks: Set[asyncio.Task] = set()

    @property
    def schema(self) -> EntitySchema:
        return PROVIDER_SCHEMAS[self.provider]

    async def extract_entities(self, transcription: str) -> StructuredEntities:
        """
        Extract and normalize entities from a transcript.

        Raises:
            NoMedicalData: Empty transcript
            ConfigurationError: Provider key missing
            UpstreamApiError: Provider failed after retries
            ParseError: Provider output is not JSON
        """
        if not transcription or not transcription.strip():
            raise NoMedicalData("No transcription found for this consultation")

        if self.schema == EntitySchema.SIMPLE:
            prompt = build_simple_entity_prompt(transcription)
            system_message = ENTITY_SYSTEM_PROMPT
        else:
            prompt = build_rich_entity_prompt(transcription)
            system_message = None

        async def call_llm():
            return await self.llm.chat(
                message=prompt,
                system_message=system_message,
                max_tokens=EXTRACTION_MAX_TOKENS,
                temperature=EXTRACTION_TEMPERATURE,
                json_mode=self.schema == EntitySchema.SIMPLE,
            )

        response = await with_retry(
            call_llm,
            retry_on=(UpstreamApiError,),
            label=f"{self.provider.value} entity extraction",
            **self._retry_kwargs,
        )
        raw = parse_llm_json(response.text)
        entities = to_structured_entities(raw, self.schema)
        logger.info(
            f"Extracted {len(entities.conditions)} conditions, {len(entities.medications)} medications "
            f"via {self.provider.value}"
        )
        return entities

    async def extract_for_consultation(self, consultation_id: str, run_matching: bool = True) -> StructuredEntities:
        """
        Extract entities for a stored consultation and save them on it.

        Raises:
            NotFound: No such consultation
            NoMedicalData: Consultation has no transcript
        """
        record = await self.store.get(CONSULTATIONS, consultation_id)
        if record is None:
            raise NotFound("Consultation not found")
        consultation = Consultation.model_validate(record)
        if not consultation.transcription:
            raise NoMedicalData("No transcription found for this consultation")

        entities = await self.extract_entities(consultation.transcription)

        updated = await self.store.update(CONSULTATIONS, consultation_id, {
            "structuredData": entities.model_dump(by_alias=True),
            "updatedAt": int(time.time() * 1000),
        })
        if updated is None:
            raise NotFound("Consultation not found")

        if run_matching:
            self.schedule_matching(consultation_id)
        return entities

    def schedule_matching(self, consultation_id: str) -> asyncio.Task:
        """Start local trial matching without waiting for it."""
        task = asyncio.create_task(self._run_matching_safe(consultation_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _run_matching_safe(self, consultation_id: str) -> None:
        try:
            result = await self.trial_matching_service.match_local_trials(consultation_id)
            logger.info(f"Background matching for consultation {consultation_id}: {result['matchCount']} matches")
        except Exception as e:
            logger.error(f"Background trial matching failed for consultation {consultation_id}: {e}")


_entity_extraction_service: Optional[EntityExtractionService] = None


def get_entity_extraction_service() -> EntityExtractionService:
    global _entity_extraction_service
    if _entity_extraction_service is None:
        _entity_extraction_service = EntityExtractionService()
    return _entity_extraction_service
