"""Configuration utilities for the LibreLinkUp FHIR bridge."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# LibreLinkUp API hosts per region
LLU_API_ENDPOINTS = {
    "AE": "api-ae.libreview.io",
    "AP": "api-ap.libreview.io",
    "AU": "api-au.libreview.io",
    "CA": "api-ca.libreview.io",
    "DE": "api-de.libreview.io",
    "EU": "api-eu.libreview.io",
    "EU2": "api-eu2.libreview.io",
    "FR": "api-fr.libreview.io",
    "JP": "api-jp.libreview.io",
    "LA": "api-la.libreview.io",
    "RU": "api.libreview.ru",
    "US": "api-us.libreview.io",
}

DEFAULT_REGION = "EU"


def get_libre_link_up_url(region: str) -> str:
    """
    Resolve the LibreLinkUp API host for a region.

    Unknown regions fall back to the EU host.

    Args:
        region: Region code, e.g. "EU" or "us"

    Returns:
        str: Host name without scheme
    """
    return LLU_API_ENDPOINTS.get((region or "").upper(), LLU_API_ENDPOINTS[DEFAULT_REGION])


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env."""

    # Service configuration
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("text", description="Log output format (text or json)")
    metrics_port: Optional[int] = Field(None, description="Port for the Prometheus metrics endpoint")
    request_timeout_seconds: int = Field(30, description="HTTP request timeout in seconds")

    # LibreLinkUp credentials and API
    link_up_username: str = Field("", description="LibreLinkUp account e-mail")
    link_up_password: SecretStr = Field(SecretStr(""), description="LibreLinkUp account password")
    link_up_region: str = Field(DEFAULT_REGION, description="LibreLinkUp region")
    link_up_version: str = Field("4.7.0", description="LibreLinkUp app version sent in headers")
    link_up_product: str = Field("llu.ios", description="LibreLinkUp product sent in headers")

    # Scheduling
    link_up_time_interval: int = Field(1, description="Polling interval in minutes")
    single_shot: bool = Field(False, description="Run a single sync and exit")

    # Demo mode
    demo_enabled: bool = Field(False, description="Map the bundled demo data and write it to disk")
    demo_source_path: str = Field("demo/data/response_data.json", description="Demo graph data JSON file")
    demo_destination_path: str = Field("demo/data", description="Folder for locally saved bundles")

    # Identity provider (client credentials grant)
    token_endpoint: str = Field("", description="Identity provider token endpoint")
    client_id: str = Field("", description="Identity provider client ID")
    client_secret: SecretStr = Field(SecretStr(""), description="Identity provider client secret")
    scope: str = Field("", description="Requested scope")

    # FHIR server
    fhir_url: str = Field("", description="FHIR server base URL")
    fhir_id: str = Field("", description="FHIR patient id used for locally saved bundles")

    @field_validator("link_up_region")
    @classmethod
    def normalize_region(cls, v: str) -> str:
        """Upper-case the region code."""
        return (v or DEFAULT_REGION).strip().upper()

    @field_validator("link_up_time_interval")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        """
        Validate the polling interval.

        Raises:
            ValueError: If the interval is outside 1-59 minutes
        """
        if v < 1 or v > 59:
            raise ValueError("link_up_time_interval must be between 1 and 59 minutes")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return v

    @field_validator("fhir_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def libre_link_up_url(self) -> str:
        """LibreLinkUp host for the configured region."""
        return get_libre_link_up_url(self.link_up_region)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Create and cache settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
