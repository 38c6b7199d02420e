"""
Structured medical entity schemas.

Two shapes come back from the extraction providers: a simple one where most
lists hold plain strings, and a rich one with an object per entity. Both are
modelled here in their canonical, fully-defaulted form.
"""
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Severity = Literal["mild", "moderate", "severe"]
ConditionStatus = Literal["active", "resolved", "chronic"]

SEVERITIES = ("mild", "moderate", "severe")
CONDITION_STATUSES = ("active", "resolved", "chronic")
DEFAULT_SEVERITY = "moderate"
DEFAULT_STATUS = "active"


class _EntityModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Condition(_EntityModel):
    name: str
    severity: Severity = DEFAULT_SEVERITY
    status: ConditionStatus = DEFAULT_STATUS


class SimpleCondition(_EntityModel):
    name: str
    severity: Severity = DEFAULT_SEVERITY


class Medication(_EntityModel):
    name: str
    dosage: str = ""
    frequency: str = ""
    route: str = ""


class Allergy(_EntityModel):
    allergen: str
    reaction: str = ""
    severity: Severity = DEFAULT_SEVERITY


class Symptom(_EntityModel):
    name: str
    severity: Severity = DEFAULT_SEVERITY
    duration: str = ""
    onset: str = ""


class Comorbidity(_EntityModel):
    name: str
    status: ConditionStatus = DEFAULT_STATUS


class StructuredEntities(_EntityModel):
    """Rich structured entities (object per entity)."""
    conditions: List[Condition] = Field(default_factory=list)
    medications: List[Medication] = Field(default_factory=list)
    allergies: List[Allergy] = Field(default_factory=list)
    symptoms: List[Symptom] = Field(default_factory=list)
    comorbidities: List[Comorbidity] = Field(default_factory=list)
    vitals: Dict[str, Any] = Field(default_factory=dict)
    lab_results: Dict[str, Any] = Field(default_factory=dict)

    def condition_names(self) -> List[str]:
        return [c.name for c in self.conditions]

    def medication_names(self) -> List[str]:
        return [m.name for m in self.medications]

    def allergy_names(self) -> List[str]:
        return [a.allergen for a in self.allergies]

    def comorbidity_names(self) -> List[str]:
        return [c.name for c in self.comorbidities]


class SimpleStructuredEntities(_EntityModel):
    """Simple structured entities (plain string lists)."""
    conditions: List[SimpleCondition] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    comorbidities: List[str] = Field(default_factory=list)
    vitals: Dict[str, Any] = Field(default_factory=dict)
    lab_results: Dict[str, Any] = Field(default_factory=dict)

    def to_rich(self) -> StructuredEntities:
        """Lift into the rich shape, filling defaults for the extra fields."""
        return StructuredEntities(
            conditions=[Condition(name=c.name, severity=c.severity) for c in self.conditions],
            medications=[Medication(name=m) for m in self.medications],
            allergies=[Allergy(allergen=a) for a in self.allergies],
            symptoms=[Symptom(name=s) for s in self.symptoms],
            comorbidities=[Comorbidity(name=c) for c in self.comorbidities],
            vitals=dict(self.vitals),
            lab_results=dict(self.lab_results),
        )
