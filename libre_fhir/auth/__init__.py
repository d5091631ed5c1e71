"""LibreLinkUp and identity provider clients."""

from libre_fhir.auth.identity import IdentityClientConfig, get_token
from libre_fhir.auth.libre_client import LibreLinkUpClient, default_headers

__all__ = [
    "IdentityClientConfig",
    "LibreLinkUpClient",
    "default_headers",
    "get_token",
]
