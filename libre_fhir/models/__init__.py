"""Pydantic models and schemas."""

from libre_fhir.models.libre import (
    AuthTicket,
    Connection,
    GlucoseItem,
    GraphData,
    Sensor,
)
from libre_fhir.models.fhir import (
    Bundle,
    FhirDeviceResource,
    Observation,
)
from libre_fhir.models.sync import (
    ConnectionResult,
    SessionContext,
    SyncMode,
    TickResult,
    TickStatus,
)

__all__ = [
    # LibreLinkUp payloads
    "AuthTicket",
    "Connection",
    "GlucoseItem",
    "GraphData",
    "Sensor",

    # FHIR resources
    "Bundle",
    "FhirDeviceResource",
    "Observation",

    # Sync models
    "ConnectionResult",
    "SessionContext",
    "SyncMode",
    "TickResult",
    "TickStatus",
]
