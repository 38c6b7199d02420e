"""
Entity utilities: normalize a raw extraction payload, or pull conditions
out of free text with the rule-based extractor.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from medibuddy.services.extraction.condition_extractor import extract_conditions
from medibuddy.services.extraction.entity_normalizer import EntitySchema, normalize_entities

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entities", tags=["entities"])


class NormalizeRequest(BaseModel):
    payload: Any = Field(None, description="Raw entity JSON as returned by an extraction provider")
    entity_schema: EntitySchema = Field(EntitySchema.RICH, alias="schema", description="simple or rich")


class ConditionsRequest(BaseModel):
    text: str = Field("", description="Free-text transcript")


@router.post("/normalize")
async def normalize(request: NormalizeRequest) -> Dict[str, Any]:
    """Normalize any payload into the canonical entity shape. Never fails on payload content."""
    entities = normalize_entities(request.payload, request.entity_schema)
    return {"schema": request.entity_schema.value, "entities": entities.model_dump(by_alias=True)}


@router.post("/conditions")
async def conditions_from_text(request: ConditionsRequest) -> Dict[str, Any]:
    conditions = extract_conditions(request.text)
    return {"conditions": conditions, "count": len(conditions)}
