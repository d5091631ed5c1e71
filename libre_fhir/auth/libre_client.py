"""Async client for the LibreLinkUp follower API.

Covers the three calls the bridge needs: login, the list of patient
connections, and a patient's recent glucose graph. Every call returns a
`Result`; errors are logged here and never raised to the caller.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from libre_fhir.metrics import libre_api_call_latency_seconds, libre_api_call_total
from libre_fhir.models.libre import (
    AuthTicket,
    Connection,
    ConnectionsResponse,
    GraphData,
    GraphResponse,
    LoginResponse,
)
from libre_fhir.utils.error_handling import FailureReason, Result
from libre_fhir.utils.logging_utils import redact_sensitive_data

logger = logging.getLogger(__name__)

__all__ = [
    "LibreLinkUpClient",
    "default_headers",
    "MAX_CONNECTIONS",
]

USER_AGENT = "FreeStyle LibreLink Up FHIR Uploader"

# LibreLinkUp allows at most 15 followed patients per account
MAX_CONNECTIONS = 15


def default_headers(version: str = "4.7.0", product: str = "llu.ios") -> Dict[str, str]:
    """Base header set expected by the LibreLinkUp API."""
    return {
        "User-Agent": USER_AGENT,
        "Content-Type": "application/json",
        "version": version,
        "product": product,
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Pragma": "no-cache",
        "Cache-Control": "no-cache",
    }


def auth_headers(headers: Dict[str, str], ticket: AuthTicket) -> Dict[str, str]:
    """Copy of *headers* with the bearer token for *ticket*."""
    authenticated = dict(headers)
    authenticated["Authorization"] = f"Bearer {ticket.token}"
    logger.debug("authenticated headers: %s", redact_sensitive_data(authenticated))
    return authenticated


class LibreLinkUpClient:
    """Async LibreLinkUp client bound to one regional host."""

    def __init__(
        self,
        host: str,
        headers: Optional[Dict[str, str]] = None,
        *,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.host = host
        self.base_url = f"https://{host}"
        self.headers = dict(headers) if headers else default_headers()
        self.http_client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    # ---------------------- async context manager helpers ------------------
    async def __aenter__(self) -> "LibreLinkUpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        """Close underlying HTTPX client."""
        await self.http_client.aclose()

    # ---------------------- HTTP request helper ---------------------------
    async def _request(self, endpoint: str, method: str, path: str, **kwargs: Any) -> Result[Any]:
        """Send one request and return the decoded JSON body."""
        start = time.monotonic()
        try:
            resp = await self.http_client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.error("LibreLinkUp %s request failed: %s", endpoint, exc)
            libre_api_call_total.labels(endpoint=endpoint, status="error").inc()
            return Result.failure(FailureReason.TRANSPORT_ERROR, str(exc))
        finally:
            libre_api_call_latency_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start)

        if not resp.is_success:
            logger.error("LibreLinkUp %s returned HTTP %s: %s", endpoint, resp.status_code, resp.text)
            libre_api_call_total.labels(endpoint=endpoint, status="error").inc()
            return Result.failure(FailureReason.HTTP_ERROR, f"HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as exc:
            logger.error("LibreLinkUp %s returned invalid JSON: %s", endpoint, exc)
            libre_api_call_total.labels(endpoint=endpoint, status="error").inc()
            return Result.failure(FailureReason.BAD_RESPONSE, "invalid JSON")
        return Result.success(body)

    # ---------------------- API operations --------------------------------
    async def login(self, username: str, password: str, headers: Optional[Dict[str, str]] = None) -> Result[AuthTicket]:
        """
        Log in with the follower account credentials.

        A non-zero vendor status or a redirect to another region both fail;
        the correct region is logged but never switched to automatically.
        """
        raw = await self._request(
            "login", "POST", "/llu/auth/login",
            json={"email": username, "password": password},
            headers=dict(headers if headers is not None else self.headers),
        )
        if not raw:
            return Result.failure(raw.reason, raw.message)

        try:
            response = LoginResponse.model_validate(raw.value)
        except ValidationError as exc:
            logger.error("Invalid authentication response. Please check your LibreLink Up credentials: %s", exc)
            libre_api_call_total.labels(endpoint="login", status="error").inc()
            return Result.failure(FailureReason.BAD_RESPONSE, "unexpected login response")

        if response.status != 0:
            logger.error("LibreLink Up - Non-zero status code: %s", redact_sensitive_data(raw.value))
            libre_api_call_total.labels(endpoint="login", status="error").inc()
            return Result.failure(FailureReason.AUTH_FAILED, f"vendor status {response.status}")

        data = response.data
        if data is not None and data.redirect and data.region:
            correct_region = data.region.upper()
            logger.error("LibreLink Up - Logged in to the wrong region. Switch to '%s' region.", correct_region)
            libre_api_call_total.labels(endpoint="login", status="error").inc()
            return Result.failure(FailureReason.WRONG_REGION, correct_region)

        if data is None or data.auth_ticket is None or not data.auth_ticket.token:
            logger.error("Invalid authentication token. Please check your LibreLink Up credentials")
            libre_api_call_total.labels(endpoint="login", status="error").inc()
            return Result.failure(FailureReason.AUTH_FAILED, "no auth ticket in response")

        logger.info("Logged in to LibreLink Up")
        libre_api_call_total.labels(endpoint="login", status="success").inc()
        return Result.success(data.auth_ticket)

    async def get_connections(self, ticket: AuthTicket, headers: Optional[Dict[str, str]] = None) -> Result[List[Connection]]:
        """Fetch the patients shared with this account."""
        raw = await self._request(
            "connections", "GET", "/llu/connections",
            headers=auth_headers(headers if headers is not None else self.headers, ticket),
        )
        if not raw:
            return Result.failure(raw.reason, raw.message)

        try:
            items = ConnectionsResponse.model_validate(raw.value).data
        except ValidationError as exc:
            logger.error("Error getting LibreLink Up connections: %s", exc)
            libre_api_call_total.labels(endpoint="connections", status="error").inc()
            return Result.failure(FailureReason.BAD_RESPONSE, "unexpected connections response")

        connections = parse_connections(items)
        if items and not connections:
            libre_api_call_total.labels(endpoint="connections", status="error").inc()
            return Result.failure(FailureReason.BAD_RESPONSE, "no valid connections in response")

        dump_connection_data(connections)
        if not connections:
            logger.error("No LibreLink Up connections found")
            libre_api_call_total.labels(endpoint="connections", status="empty").inc()
            return Result.failure(FailureReason.NO_DATA, "no connections")
        if len(connections) > MAX_CONNECTIONS:
            logger.warning("LibreLink Up returned %d connections, more than the documented %d", len(connections), MAX_CONNECTIONS)

        libre_api_call_total.labels(endpoint="connections", status="success").inc()
        return Result.success(connections)

    async def get_glucose_series(
        self, ticket: AuthTicket, connection_id: Optional[str], headers: Optional[Dict[str, str]] = None
    ) -> Result[GraphData]:
        """Fetch the recent glucose graph for one patient."""
        if not connection_id:
            return Result.failure(FailureReason.NO_DATA, "no connection id")

        raw = await self._request(
            "graph", "GET", f"/llu/connections/{connection_id}/graph",
            headers=auth_headers(headers if headers is not None else self.headers, ticket),
        )
        if not raw:
            return Result.failure(raw.reason, raw.message)

        try:
            graph = GraphResponse.model_validate(raw.value).data
        except ValidationError as exc:
            logger.error("Error getting glucose measurements: %s", exc)
            libre_api_call_total.labels(endpoint="graph", status="error").inc()
            return Result.failure(FailureReason.BAD_RESPONSE, "unexpected graph response")

        if graph is None:
            libre_api_call_total.labels(endpoint="graph", status="empty").inc()
            return Result.failure(FailureReason.NO_DATA, "no graph data")

        libre_api_call_total.labels(endpoint="graph", status="success").inc()
        return Result.success(graph)


def parse_connections(items: List[Any]) -> List[Connection]:
    """Validate connections one at a time, skipping the ones that do not parse."""
    connections = []
    for index, item in enumerate(items):
        try:
            connections.append(Connection.model_validate(item))
        except ValidationError as exc:
            patient_id = item.get("patientId") if isinstance(item, dict) else None
            logger.error("Skipping malformed LibreLink Up connection #%d (patientId=%s): %s", index, patient_id, exc)
    return connections


def dump_connection_data(connections: List[Connection]) -> None:
    logger.debug("Found %d LibreLink Up connections:", len(connections))
    for index, connection in enumerate(connections, start=1):
        logger.debug("[%d] %s (Patient-ID: %s)", index, connection.display_name, connection.patient_id)
        log_connection_info(connection)


def log_connection_info(connection: Connection) -> None:
    logger.debug(
        "Connection id=%s patientId=%s country=%s status=%s",
        connection.id, connection.patient_id, connection.country, connection.status,
    )
    # sensor.a is the install (activation) time
    logger.debug(
        "Sensor deviceId=%s sn=%s a=%s",
        connection.sensor.device_id, connection.sensor.sn, connection.sensor.a,
    )
