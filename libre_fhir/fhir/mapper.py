"""Map LibreLinkUp payloads to FHIR resources."""

import logging
from typing import List, Optional, Union

from libre_fhir.models.fhir import (
    DEVICE_MANUFACTURER,
    DEVICE_MODEL,
    GLUCOSE_LOINC_CODE,
    GLUCOSE_LOINC_DISPLAY,
    LOINC_SYSTEM,
    OBSERVATION_IDENTIFIER_SYSTEM,
    OBSERVATION_IDENTIFIER_VALUE,
    REFERENCE_RANGE_HIGH,
    REFERENCE_RANGE_LOW,
    Bundle,
    BundleEntry,
    CodeableConcept,
    Coding,
    FhirDeviceResource,
    Identifier,
    Observation,
    Quantity,
    Reference,
    ReferenceRange,
)
from libre_fhir.models.libre import Connection, GraphData
from libre_fhir.utils.normalization import get_utc_date_from_string, to_fhir_instant

logger = logging.getLogger(__name__)

# LibreLinkUp status code for an active connection
ACTIVE_CONNECTION_STATUS = 2

GLUCOSE_CODE = CodeableConcept(
    coding=[Coding(system=LOINC_SYSTEM, code=GLUCOSE_LOINC_CODE, display=GLUCOSE_LOINC_DISPLAY)]
)

GLUCOSE_REFERENCE_RANGE = ReferenceRange(
    low=Quantity(value=REFERENCE_RANGE_LOW),
    high=Quantity(value=REFERENCE_RANGE_HIGH),
)


def patient_reference(fhir_patient_id: str, display_name: Optional[str] = "") -> Reference:
    return Reference(reference=f"Patient/{fhir_patient_id}", display=display_name or "")


def create_observation(fhir_patient_id: str, date: str, value: Union[int, float], display_name: Optional[str] = "") -> Observation:
    """Build one glucose Observation; effectiveDateTime and issued are both *date*."""
    patient = patient_reference(fhir_patient_id, display_name)
    return Observation(
        identifier=[
            Identifier(use="official", system=OBSERVATION_IDENTIFIER_SYSTEM, value=OBSERVATION_IDENTIFIER_VALUE)
        ],
        effective_date_time=date,
        issued=date,
        code=GLUCOSE_CODE,
        subject=patient,
        performer=[patient],
        value_quantity=Quantity(value=value),
        reference_range=[GLUCOSE_REFERENCE_RANGE],
    )


def map_to_observations(fhir_patient_id: str, graph_data: GraphData, display_name: Optional[str] = "") -> List[Observation]:
    """
    Convert a patient's glucose series to Observations.

    One Observation per sample, in input order. Timestamps come from the
    sample's FactoryTimestamp, normalized to UTC.
    """
    observations = []
    for item in graph_data.graph_data:
        entry_date = get_utc_date_from_string(item.factory_timestamp)
        observations.append(
            create_observation(fhir_patient_id, to_fhir_instant(entry_date), item.value_in_mg_per_dl, display_name)
        )
    return observations


def map_connection_to_device(connection: Connection) -> FhirDeviceResource:
    """Derive the sensor Device resource for a connection."""
    status = "active" if connection.status == ACTIVE_CONNECTION_STATUS else "inactive"
    return FhirDeviceResource(
        status=status,
        manufacturer=DEVICE_MANUFACTURER,
        model=DEVICE_MODEL,
        subject=patient_reference(connection.patient_id, connection.display_name),
        serial_number=str(connection.sensor.sn),
    )


def build_bundle(observations: List[Observation]) -> Bundle:
    """Wrap observations in a transaction Bundle, one POST entry each."""
    return Bundle(
        entry=[
            BundleEntry(full_url=f"Observation/{observation.id}", resource=observation)
            for observation in observations
        ]
    )
