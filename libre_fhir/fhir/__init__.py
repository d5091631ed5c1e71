"""FHIR mapping, upload and local bundle persistence."""

from libre_fhir.fhir.client import FhirClient
from libre_fhir.fhir.mapper import build_bundle, map_connection_to_device, map_to_observations
from libre_fhir.fhir.storage import save_bundle_to_file

__all__ = [
    "FhirClient",
    "build_bundle",
    "map_connection_to_device",
    "map_to_observations",
    "save_bundle_to_file",
]
