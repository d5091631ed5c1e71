"""FHIR resource models produced by the bridge."""

import uuid
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LOINC_SYSTEM = "http://loinc.org"
UCUM_SYSTEM = "http://unitsofmeasure.org"

# Observation coding
GLUCOSE_LOINC_CODE = "14745-4"
GLUCOSE_LOINC_DISPLAY = "Glucose [Moles/volume] in Blood"
MG_DL = "mg/dL"

# Normal range annotation attached to every observation
REFERENCE_RANGE_LOW = 70
REFERENCE_RANGE_HIGH = 180

OBSERVATION_IDENTIFIER_SYSTEM = "http://www.bmc.nl/zorgportal/identifiers/observations"
OBSERVATION_IDENTIFIER_VALUE = "6323"

DEVICE_MANUFACTURER = "Abbott"
DEVICE_MODEL = "FreeStyle Libre"


def new_resource_id() -> str:
    return str(uuid.uuid4())


class FhirModel(BaseModel):
    """Base for FHIR resources: camelCase JSON, frozen once built."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_fhir(self) -> Dict[str, Any]:
        """Serialize to a FHIR JSON-compatible dict."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Narrative(FhirModel):
    status: str = "empty"
    div: str = '<div xmlns="http://www.w3.org/1999/xhtml"></div>'


class Identifier(FhirModel):
    use: Optional[str] = None
    system: str
    value: str


class Coding(FhirModel):
    system: str
    code: str
    display: Optional[str] = None


class CodeableConcept(FhirModel):
    coding: List[Coding] = Field(default_factory=list)
    text: Optional[str] = None


class Reference(FhirModel):
    reference: str
    display: str = ""


class Quantity(FhirModel):
    value: Union[int, float]
    unit: str = MG_DL
    system: str = UCUM_SYSTEM
    code: str = MG_DL


class ReferenceRange(FhirModel):
    low: Quantity
    high: Quantity


class Observation(FhirModel):
    """Blood glucose Observation, one per vendor sample."""

    resource_type: Literal["Observation"] = "Observation"
    id: str = Field(default_factory=new_resource_id)
    text: Narrative = Field(default_factory=Narrative)
    identifier: List[Identifier] = Field(default_factory=list)
    status: str = "final"
    effective_date_time: str
    code: CodeableConcept
    subject: Reference
    issued: str
    performer: List[Reference] = Field(default_factory=list)
    value_quantity: Quantity
    reference_range: List[ReferenceRange] = Field(default_factory=list)


class FhirDeviceResource(FhirModel):
    """Device resource derived from a LibreLinkUp connection."""

    resource_type: Literal["Device"] = "Device"
    id: str = Field(default_factory=new_resource_id)
    status: str
    subject: Reference
    serial_number: str
    identifier: Optional[List[Identifier]] = None
    type: Optional[CodeableConcept] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None


class BundleRequest(FhirModel):
    method: str = "POST"
    url: str = "Observation"


class BundleEntry(FhirModel):
    full_url: str
    resource: Observation
    request: BundleRequest = Field(default_factory=BundleRequest)


class Bundle(FhirModel):
    """Transaction bundle posted to the FHIR server base URL."""

    resource_type: Literal["Bundle"] = "Bundle"
    type: str = "transaction"
    entry: List[BundleEntry] = Field(default_factory=list)
