"""
Entity normalization for AI-extracted payloads.

Providers return whatever JSON they like. Each normalizer accepts anything
(dicts, lists, None, pydantic models) and always returns the canonical,
fully-defaulted model. Normalizing an already normalized value is a no-op.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from medibuddy.schemas.entities import (
    CONDITION_STATUSES,
    DEFAULT_SEVERITY,
    DEFAULT_STATUS,
    SEVERITIES,
    Allergy,
    Comorbidity,
    Condition,
    Medication,
    SimpleCondition,
    SimpleStructuredEntities,
    StructuredEntities,
    Symptom,
)

logger = logging.getLogger(__name__)

UNKNOWN_CONDITION = "Unknown condition"


class EntitySchema(str, Enum):
    """Entity payload shape. OpenAI extraction uses SIMPLE, Gemini uses RICH."""
    SIMPLE = "simple"
    RICH = "rich"


def _as_payload(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, BaseModel):
        return raw.model_dump(by_alias=True)
    if isinstance(raw, dict):
        return raw
    if raw is not None:
        logger.warning(f"Unrecognized entity payload type {type(raw).__name__}, using defaults")
    return {}


def _list_field(payload: Dict[str, Any], key: str) -> List[Any]:
    value = payload.get(key)
    return value if isinstance(value, list) else []


def _map_field(payload: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, dict):
            return dict(value)
    return {}


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _severity(value: Any) -> str:
    value = _text(value).lower()
    return value if value in SEVERITIES else DEFAULT_SEVERITY


def _status(value: Any) -> str:
    value = _text(value).lower()
    return value if value in CONDITION_STATUSES else DEFAULT_STATUS


def _name_of(item: Any, *keys: str) -> str:
    """Name of a string element, or of the first named field of an object element."""
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        for key in keys:
            name = _text(item.get(key))
            if name:
                return name
    return ""


# Rich (object-per-entity) shape

def _rich_condition(item: Any) -> Optional[Condition]:
    if isinstance(item, str):
        return Condition(name=item.strip()) if item.strip() else None
    if isinstance(item, dict):
        return Condition(
            name=_text(item.get("name")) or UNKNOWN_CONDITION,
            severity=_severity(item.get("severity")),
            status=_status(item.get("status")),
        )
    return Condition(name=UNKNOWN_CONDITION)


def _rich_medication(item: Any) -> Optional[Medication]:
    name = _name_of(item, "name")
    if not name:
        return None
    if isinstance(item, str):
        return Medication(name=name)
    return Medication(
        name=name,
        dosage=_text(item.get("dosage")),
        frequency=_text(item.get("frequency")),
        route=_text(item.get("route")),
    )


def _rich_allergy(item: Any) -> Optional[Allergy]:
    allergen = _name_of(item, "allergen", "name")
    if not allergen:
        return None
    if isinstance(item, str):
        return Allergy(allergen=allergen)
    return Allergy(
        allergen=allergen,
        reaction=_text(item.get("reaction")),
        severity=_severity(item.get("severity")),
    )


def _rich_symptom(item: Any) -> Optional[Symptom]:
    name = _name_of(item, "name")
    if not name:
        return None
    if isinstance(item, str):
        return Symptom(name=name)
    return Symptom(
        name=name,
        severity=_severity(item.get("severity")),
        duration=_text(item.get("duration")),
        onset=_text(item.get("onset")),
    )


def _rich_comorbidity(item: Any) -> Optional[Comorbidity]:
    name = _name_of(item, "name")
    if not name:
        return None
    if isinstance(item, str):
        return Comorbidity(name=name)
    return Comorbidity(name=name, status=_status(item.get("status")))


def _collect(items: List[Any], convert) -> list:
    return [entity for entity in (convert(item) for item in items) if entity is not None]


def normalize_rich_entities(raw: Any) -> StructuredEntities:
    """
    Normalize a rich (object-per-entity) payload.

    Bare strings become entities named after the string. Objects keep their
    recognised sub-fields; invalid severity/status fall back to moderate/active.
    Conditions that are neither string nor object become "Unknown condition";
    such elements in the other lists are dropped.
    """
    payload = _as_payload(raw)
    return StructuredEntities(
        conditions=_collect(_list_field(payload, "conditions"), _rich_condition),
        medications=_collect(_list_field(payload, "medications"), _rich_medication),
        allergies=_collect(_list_field(payload, "allergies"), _rich_allergy),
        symptoms=_collect(_list_field(payload, "symptoms"), _rich_symptom),
        comorbidities=_collect(_list_field(payload, "comorbidities"), _rich_comorbidity),
        vitals=_map_field(payload, "vitals"),
        lab_results=_map_field(payload, "labResults", "lab_results"),
    )


# Simple (string list) shape

def _simple_condition(item: Any) -> Optional[SimpleCondition]:
    if isinstance(item, str):
        return SimpleCondition(name=item.strip()) if item.strip() else None
    if isinstance(item, dict):
        return SimpleCondition(
            name=_text(item.get("name")) or UNKNOWN_CONDITION,
            severity=_severity(item.get("severity")),
        )
    return SimpleCondition(name=UNKNOWN_CONDITION)


def _string_list(items: List[Any], *keys: str) -> List[str]:
    names = (_name_of(item, *keys) for item in items)
    return [name for name in names if name]


def normalize_simple_entities(raw: Any) -> SimpleStructuredEntities:
    """Normalize a simple payload: condition objects plus plain string lists."""
    payload = _as_payload(raw)
    return SimpleStructuredEntities(
        conditions=_collect(_list_field(payload, "conditions"), _simple_condition),
        medications=_string_list(_list_field(payload, "medications"), "name"),
        allergies=_string_list(_list_field(payload, "allergies"), "allergen", "name"),
        symptoms=_string_list(_list_field(payload, "symptoms"), "name"),
        comorbidities=_string_list(_list_field(payload, "comorbidities"), "name"),
        vitals=_map_field(payload, "vitals"),
        lab_results=_map_field(payload, "labResults", "lab_results"),
    )


def normalize_entities(
    raw: Any,
    schema: EntitySchema = EntitySchema.RICH,
) -> Union[StructuredEntities, SimpleStructuredEntities]:
    """Normalize a payload with the normalizer for the given schema."""
    if EntitySchema(schema) == EntitySchema.SIMPLE:
        return normalize_simple_entities(raw)
    return normalize_rich_entities(raw)


def to_structured_entities(raw: Any, schema: EntitySchema = EntitySchema.RICH) -> StructuredEntities:
    """Normalize and lift into the rich shape used for storage."""
    normalized = normalize_entities(raw, schema)
    if isinstance(normalized, SimpleStructuredEntities):
        return normalized.to_rich()
    return normalized
