"""
Prompt templates for entity extraction and SOAP report generation.
"""
import json
from typing import Optional

from medibuddy.schemas.entities import StructuredEntities

ENTITY_SYSTEM_PROMPT = (
    "You are a medical entity extraction assistant specialized in clinical notes analysis. "
    "Extract comprehensive medical entities from the transcription including detailed information about "
    "conditions, medications (including dosage and frequency when mentioned), allergies, symptoms, lab results, "
    "vitals, and comorbidities. Your goal is to identify all medically relevant information that could be "
    "useful for matching patients with clinical trials. Provide a structured response in JSON format."
)

SIMPLE_ENTITY_PROMPT = (
    "Extract medical entities from the following doctor-patient transcription. "
    "Format as JSON with these keys:\n"
    "- 'conditions': array of objects with 'name' (string) and 'severity' ('mild', 'moderate', or 'severe')\n"
    "- 'medications': array of strings with medication names (include dosage if available)\n"
    "- 'allergies': array of strings with allergy names\n"
    "- 'symptoms': array of strings with symptom descriptions\n"
    "- 'labResults': object with test names as keys and results as values\n"
    "- 'comorbidities': array of strings with comorbidity names\n"
    "- 'vitals': object with vital names as keys and values as measurements\n\n"
    "The transcription is:\n\n"
    "{transcription}"
)

RICH_ENTITY_PROMPT = """
You are a medical entity extraction assistant specialized in clinical notes analysis.
Extract comprehensive medical entities from the following doctor-patient transcription.

Please analyze the transcription and extract medical entities in the following JSON format:
{{
  "conditions": [
    {{"name": "condition name", "severity": "mild" | "moderate" | "severe", "status": "active" | "resolved" | "chronic"}}
  ],
  "medications": [
    {{"name": "medication name", "dosage": "dosage if mentioned", "frequency": "frequency if mentioned", "route": "route if mentioned"}}
  ],
  "allergies": [
    {{"allergen": "allergen name", "reaction": "reaction type if mentioned", "severity": "mild" | "moderate" | "severe"}}
  ],
  "symptoms": [
    {{"name": "symptom description", "severity": "mild" | "moderate" | "severe", "duration": "duration if mentioned", "onset": "onset if mentioned"}}
  ],
  "comorbidities": [
    {{"name": "comorbidity name", "status": "active" | "resolved" | "chronic"}}
  ],
  "vitals": {{
    "bloodPressure": "value if mentioned",
    "heartRate": "value if mentioned",
    "temperature": "value if mentioned",
    "respiratoryRate": "value if mentioned",
    "oxygenSaturation": "value if mentioned",
    "weight": "value if mentioned",
    "height": "value if mentioned"
  }},
  "labResults": {{
    "testName": "result value"
  }}
}}

Only extract information that is explicitly mentioned in the transcription. If a category has no relevant information, return an empty array or object.

Transcription:
{transcription}

Please respond with only the JSON object, no additional text.
"""

# Section headers are parsed downstream; keep them literal.
SOAP_REPORT_PROMPT = """
You are a medical professional creating a SOAP format medical report. Based on the consultation transcription below, generate ONLY the following sections with actual medical content:

**REQUIRED FORMAT - RESPOND EXACTLY AS SHOWN:**

**S (Subjective):**
[Extract and summarize patient's reported symptoms, complaints, medical history, and concerns from the transcription. Include chief complaint, history of present illness, and relevant past medical history.]

**O (Objective):**
[Document observable findings, vital signs, physical examination results, and any diagnostic test results mentioned in the transcription. If specific vitals aren't mentioned, note "Vital signs: [as documented]" or similar.]

**A (Assessment):**
[Provide medical diagnosis, clinical impression, and differential diagnoses based on the subjective and objective findings. Include severity and clinical reasoning.]

**P (Plan):**
[Detail treatment plan including medications prescribed, procedures recommended, lifestyle modifications, follow-up appointments, and patient education provided.]

**ICD-10 Codes:**
[List relevant ICD-10 diagnostic codes with descriptions for the primary and secondary diagnoses identified]

**IMPORTANT INSTRUCTIONS:**
- Use ONLY the exact section headers shown above with ** formatting
- Each section MUST contain actual medical content based on the transcription
- Do NOT include any introductory text, explanations, or additional sections
- Keep content concise but medically comprehensive
- Use professional medical terminology
- If information is not available in transcription, note appropriately (e.g., "Not documented in this consultation")

**Consultation Transcription:**
{transcription}

**Structured Medical Data:**
{structured_data}
"""

SOAP_SECTION_HEADERS = (
    "**S (Subjective):**",
    "**O (Objective):**",
    "**A (Assessment):**",
    "**P (Plan):**",
    "**ICD-10 Codes:**",
)


def build_simple_entity_prompt(transcription: str) -> str:
    return SIMPLE_ENTITY_PROMPT.format(transcription=transcription)


def build_rich_entity_prompt(transcription: str) -> str:
    return RICH_ENTITY_PROMPT.format(transcription=transcription)


def build_soap_report_prompt(transcription: str, structured_data: Optional[StructuredEntities] = None) -> str:
    if structured_data is not None:
        structured_text = json.dumps(structured_data.model_dump(by_alias=True), indent=2)
    else:
        structured_text = "No additional structured data"
    return SOAP_REPORT_PROMPT.format(transcription=transcription, structured_data=structured_text)
