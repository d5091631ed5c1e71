"""LibreLinkUp to FHIR bridge."""

__version__ = "0.1.0"
