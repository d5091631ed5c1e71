"""Async client for the FHIR server: latest observation lookup and bundle upload."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from libre_fhir.fhir.mapper import build_bundle, map_to_observations
from libre_fhir.metrics import fhir_upload_total, observations_uploaded_total
from libre_fhir.models.fhir import GLUCOSE_LOINC_CODE, LOINC_SYSTEM, Observation
from libre_fhir.models.libre import GraphData
from libre_fhir.utils.error_handling import FailureReason, Result
from libre_fhir.utils.normalization import parse_fhir_datetime

logger = logging.getLogger(__name__)

__all__ = ["FhirClient"]


class FhirClient:
    """FHIR REST client authenticated with an identity provider bearer token."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "FhirClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        await self.http_client.aclose()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    async def get_last_observation_date(self, patient_id: str) -> Result[datetime]:
        """
        Look up the effectiveDateTime of the newest glucose Observation for a patient.

        Returns NO_DATA when the patient never uploaded anything; transport,
        HTTP and parse problems come back as tagged failures.
        """
        params = {
            "patient": patient_id,
            "_sort": "-date",
            "_count": "1",
            "code": f"{LOINC_SYSTEM}|{GLUCOSE_LOINC_CODE}",
        }
        try:
            response = await self.http_client.get(f"{self.base_url}/Observation", params=params, headers=self.headers)
        except httpx.HTTPError as exc:
            logger.error("Error occurred while fetching last observation: %s", exc)
            return Result.failure(FailureReason.TRANSPORT_ERROR, str(exc))

        if not response.is_success:
            logger.error("Last observation query returned HTTP %s", response.status_code)
            return Result.failure(FailureReason.HTTP_ERROR, f"HTTP {response.status_code}")

        try:
            bundle: Dict[str, Any] = response.json()
        except ValueError:
            logger.error("Last observation query returned invalid JSON")
            return Result.failure(FailureReason.BAD_RESPONSE, "invalid JSON")

        if not isinstance(bundle, dict):
            logger.error("Last observation query returned a non-object body")
            return Result.failure(FailureReason.BAD_RESPONSE, "unexpected search bundle")

        entries = bundle.get("entry")
        if not entries:
            logger.info("Patient %s never uploaded data previously", patient_id)
            return Result.failure(FailureReason.NO_DATA, "no previous observation")

        if not isinstance(entries, list) or not isinstance(entries[0], dict):
            logger.error("Last observation query returned malformed entries: %r", entries)
            return Result.failure(FailureReason.BAD_RESPONSE, "unexpected search bundle")
        resource = entries[0].get("resource") or {}
        if not isinstance(resource, dict):
            logger.error("Last observation entry has no resource object: %r", resource)
            return Result.failure(FailureReason.BAD_RESPONSE, "unexpected search bundle")
        last_date = parse_fhir_datetime(resource.get("effectiveDateTime"))
        if last_date is None:
            logger.warning('Latest observation has no usable "effectiveDateTime"')
            return Result.failure(FailureReason.BAD_RESPONSE, "missing effectiveDateTime")
        return Result.success(last_date)

    async def filter_since_last_observation(
        self,
        patient_id: str,
        fhir_patient_id: str,
        graph_data: GraphData,
        display_name: Optional[str] = "",
    ) -> List[Observation]:
        """
        Map the series and keep samples at or after the server's newest observation.

        Samples equal to the last stored timestamp are kept, so the boundary
        sample is sent again on the next tick. Without a last date every
        mapped sample is returned.
        """
        last = await self.get_last_observation_date(patient_id)
        observations = map_to_observations(fhir_patient_id, graph_data, display_name)
        if not last:
            return observations

        logger.info("Last observation on FHIR server for %s: %s", patient_id, last.value.isoformat())
        return [
            observation for observation in observations
            if parse_fhir_datetime(observation.effective_date_time) >= last.value
        ]

    async def upload(self, observations: List[Observation]) -> Result[int]:
        """
        POST observations as one transaction Bundle to the server base URL.

        No request is sent for an empty list. Failures are logged and
        returned; nothing is retried.
        """
        if not observations:
            logger.info("No new measurements to upload")
            return Result.success(0)

        bundle = build_bundle(observations)
        try:
            response = await self.http_client.post(self.base_url, json=bundle.to_fhir(), headers=self.headers)
        except httpx.HTTPError as exc:
            logger.error("Upload to FHIR server failed: %s", exc)
            fhir_upload_total.labels(status="error").inc()
            return Result.failure(FailureReason.TRANSPORT_ERROR, str(exc))

        if response.status_code != 200:
            logger.error("Upload to FHIR failed: HTTP %s %s", response.status_code, response.reason_phrase)
            fhir_upload_total.labels(status="error").inc()
            return Result.failure(FailureReason.HTTP_ERROR, f"HTTP {response.status_code}")

        logger.info("Upload of %d measurements to FHIR server succeeded", len(observations))
        fhir_upload_total.labels(status="success").inc()
        observations_uploaded_total.inc(len(observations))
        return Result.success(len(observations))
