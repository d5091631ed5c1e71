"""
Client-credentials token request against the identity provider.

The FHIR server trusts an OAuth2 provider (typically Keycloak). The bridge
asks for a fresh token on every tick; tokens are neither cached nor
refreshed.
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, Field, SecretStr, ValidationError

from libre_fhir.metrics import identity_token_requests_total
from libre_fhir.utils.config import Settings
from libre_fhir.utils.error_handling import FailureReason, Result

logger = logging.getLogger(__name__)


class IdentityClientConfig(BaseModel):
    """Identity provider settings needed for the client-credentials grant."""

    token_endpoint: str = Field("", description="Full token endpoint URL")
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    scope: str = ""
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityClientConfig":
        return cls(
            token_endpoint=settings.token_endpoint,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            scope=settings.scope,
            timeout_seconds=settings.request_timeout_seconds,
        )


class TokenResponse(BaseModel):
    """OAuth2 token response model."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None


async def get_token(config: IdentityClientConfig, http_client: Optional[httpx.AsyncClient] = None) -> Result[str]:
    """
    Obtain an access token with the client-credentials grant.

    Args:
        config: Identity provider endpoint and client credentials
        http_client: Optional client to send the request with (a short-lived one is created otherwise)

    Returns:
        Result[str]: The access token, or a tagged failure whose value_or("") is ""
    """
    if not config.token_endpoint:
        logger.info("No identity provider configured; FHIR upload disabled")
        identity_token_requests_total.labels(status="not_configured").inc()
        return Result.failure(FailureReason.NOT_CONFIGURED, "token endpoint not set")

    data = {
        "grant_type": "client_credentials",
        "client_id": config.client_id,
        "client_secret": config.client_secret.get_secret_value(),
        "scope": config.scope,
    }
    headers = {
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
    }

    try:
        if http_client is not None:
            response = await http_client.post(config.token_endpoint, data=data, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_seconds)) as client:
                response = await client.post(config.token_endpoint, data=data, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Network error during token request: {str(e)}")
        identity_token_requests_total.labels(status="error").inc()
        return Result.failure(FailureReason.TRANSPORT_ERROR, str(e))

    if response.status_code != 200:
        logger.error(f"Token request failed with status {response.status_code}: {response.text}")
        identity_token_requests_total.labels(status="error").inc()
        return Result.failure(FailureReason.HTTP_ERROR, f"HTTP {response.status_code}")

    try:
        token = TokenResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        logger.error(f"Failed to parse token response: {str(e)}")
        identity_token_requests_total.labels(status="error").inc()
        return Result.failure(FailureReason.BAD_RESPONSE, "invalid token response")

    if not token.access_token:
        identity_token_requests_total.labels(status="error").inc()
        return Result.failure(FailureReason.BAD_RESPONSE, "empty access token")

    identity_token_requests_total.labels(status="success").inc()
    return Result.success(token.access_token)
