"""
JSON parsing for LLM responses.

Models sometimes wrap their JSON in a markdown fence even when told not to.
"""
import json
import logging
import re
from typing import Any

from medibuddy.errors import ParseError

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_BARE_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")


def parse_llm_json(text: Any) -> Any:
    """
    Parse LLM output as JSON.

    Tries the whole text first, then the first ```json fenced block, then the
    first bare fenced block.

    Raises:
        ParseError: No parseable JSON found
    """
    if not isinstance(text, str) or not text.strip():
        raise ParseError("LLM returned an empty response")

    try:
        return json.loads(text.strip())
    except json.JSONDecodeError:
        pass

    for fence in (_JSON_FENCE, _BARE_FENCE):
        match = fence.search(text)
        if not match:
            continue
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError as e:
            logger.warning(f"Fenced block in LLM response is not valid JSON: {e}")
            raise ParseError(f"Failed to parse fenced JSON from LLM response: {e}") from e

    raise ParseError("Failed to parse LLM response as JSON")
