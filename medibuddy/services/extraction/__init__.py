"""
Medical entity extraction: rule-based conditions, LLM output parsing and
entity normalization.

The LLM-backed services live in entity_extraction_service and
report_service and are imported from there directly.
"""

from .condition_extractor import extract_conditions
from .entity_normalizer import (
    EntitySchema,
    normalize_entities,
    normalize_rich_entities,
    normalize_simple_entities,
    to_structured_entities,
)
from .json_parser import parse_llm_json

__all__ = [
    "extract_conditions",
    "EntitySchema",
    "normalize_entities",
    "normalize_rich_entities",
    "normalize_simple_entities",
    "to_structured_entities",
    "parse_llm_json",
]
