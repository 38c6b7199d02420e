"""
Clinical Trials Service - Parser Module

Maps ClinicalTrials.gov API v2 study records into MappedClinicalTrial.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from medibuddy.schemas.trials import AgeRange, MappedClinicalTrial

from .config import CLINICAL_TRIALS_STUDY_URL, NO_DESCRIPTION, NOT_SPECIFIED, UNKNOWN

logger = logging.getLogger(__name__)

_FIRST_INT = re.compile(r"(\d+)")
_EXCLUSION_HEADER = re.compile(r"exclusion\s+criteria\s*:?", re.IGNORECASE)
_BULLET_PREFIX = re.compile(r"^\s*(?:[*\-•]|\d+[.)])\s*")
_LOCATION_SEPARATORS = set(", ")


def parse_age(age_string: Optional[str]) -> Optional[int]:
    """Extract the first integer from an age string like "18 Years"."""
    if not age_string:
        return None
    match = _FIRST_INT.search(age_string)
    return int(match.group(1)) if match else None


def parse_last_updated(date_string: Optional[str]) -> int:
    """Registry dates come as YYYY-MM-DD or YYYY-MM. Returns epoch ms, 0 if unknown."""
    if not date_string:
        return 0
    for fmt in ("%Y-%m-%d", "%Y-%m"):
        try:
            parsed = datetime.strptime(date_string.strip(), fmt).replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)
        except ValueError:
            continue
    logger.debug(f"Unparseable lastUpdateDate: {date_string}")
    return 0


def format_location(location: Dict[str, Any]) -> str:
    return f"{location.get('city') or ''}, {location.get('state') or ''}, {location.get('country') or ''}".strip()


def _is_blank_location(location: str) -> bool:
    return all(ch in _LOCATION_SEPARATORS for ch in location)


def split_eligibility_criteria(criteria_text: Optional[str]) -> Dict[str, List[str]]:
    """
    Split the registry's free-text criteria block.

    Text before an "Exclusion Criteria:" header stays as one eligibility entry;
    bullet lines after it become individual exclusion criteria.
    """
    if not criteria_text or not criteria_text.strip():
        return {"eligibility": [], "exclusion": []}

    match = _EXCLUSION_HEADER.search(criteria_text)
    if not match:
        return {"eligibility": [criteria_text], "exclusion": []}

    inclusion_part = criteria_text[:match.start()].strip()
    exclusion_part = criteria_text[match.end():]

    exclusion = []
    for line in exclusion_part.splitlines():
        item = _BULLET_PREFIX.sub("", line).strip()
        if item:
            exclusion.append(item)

    return {
        "eligibility": [inclusion_part] if inclusion_part else [],
        "exclusion": exclusion,
    }


def _text(value: Any) -> Optional[str]:
    """Registry scalars as text; numbers are stringified, anything else is None."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _section(container: Any, key: str) -> Dict[str, Any]:
    value = container.get(key) if isinstance(container, dict) else None
    return value if isinstance(value, dict) else {}


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in (_text(v) for v in value) if item and item.strip()]


def map_study(study: Dict[str, Any]) -> MappedClinicalTrial:
    """
    Map a single registry study to a MappedClinicalTrial.

    Fields of the wrong type are treated as missing.

    Raises:
        ValueError: If the study has no NCT ID
    """
    protocol = _section(study, "protocolSection")
    identification = _section(protocol, "identificationModule")
    nct_id = _text(identification.get("nctId"))
    if not nct_id or not nct_id.strip():
        raise ValueError("Study record has no nctId")
    nct_id = nct_id.strip()

    status_module = _section(protocol, "statusModule")
    description_module = _section(protocol, "descriptionModule")
    conditions_module = _section(protocol, "conditionsModule")
    design_module = _section(protocol, "designModule")
    eligibility_module = _section(protocol, "eligibilityModule")
    locations_module = _section(protocol, "contactsLocationsModule")
    sponsor_module = _section(protocol, "sponsorCollaboratorsModule")

    # Both bounds must parse for an age range
    min_age = parse_age(_text(eligibility_module.get("minimumAge")))
    max_age = parse_age(_text(eligibility_module.get("maximumAge")))
    age_range = AgeRange(min=min_age, max=max_age) if min_age is not None and max_age is not None else None

    phases = _text_list(design_module.get("phases"))
    phase = ", ".join(phases) if phases else NOT_SPECIFIED

    raw_locations = locations_module.get("locations")
    if not isinstance(raw_locations, list):
        raw_locations = []
    locations = [format_location(loc) for loc in raw_locations if isinstance(loc, dict)]
    locations = [loc for loc in locations if not _is_blank_location(loc)]

    criteria = split_eligibility_criteria(_text(eligibility_module.get("eligibilityCriteria")))

    sex = _text(eligibility_module.get("sex"))
    lead_sponsor = _section(sponsor_module, "leadSponsor")

    return MappedClinicalTrial(
        nct_id=nct_id,
        title=_text(identification.get("briefTitle")) or _text(identification.get("officialTitle")) or nct_id,
        description=(
            _text(description_module.get("briefSummary"))
            or _text(description_module.get("detailedDescription"))
            or NO_DESCRIPTION
        ),
        sponsor=_text(lead_sponsor.get("name")) or UNKNOWN,
        phase=phase,
        status=(_text(status_module.get("overallStatus")) or "unknown").lower(),
        conditions=_text_list(conditions_module.get("conditions")),
        eligibility_criteria=criteria["eligibility"],
        exclusion_criteria=criteria["exclusion"],
        locations=locations,
        age_range=age_range,
        gender_restriction=sex.lower() if sex else None,
        study_type=_text(design_module.get("studyType")) or UNKNOWN,
        last_updated=parse_last_updated(_text(status_module.get("lastUpdateDate"))),
        source_url=f"{CLINICAL_TRIALS_STUDY_URL}/{nct_id}",
    )


def parse_search_response(data: Dict[str, Any]) -> List[MappedClinicalTrial]:
    """
    Map every study in a search response, skipping malformed records.
    """
    studies = data.get("studies") if isinstance(data, dict) else None
    if not isinstance(studies, list):
        return []

    trials = []
    for study in studies:
        try:
            trials.append(map_study(study))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping study record: {e}")
    return trials
