"""One sync tick: LibreLinkUp -> FHIR Observations -> FHIR server or disk.

Each step receives the current `SessionContext` and hands back an updated
copy, so nothing about the session lives at module level.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple

import httpx

from libre_fhir.auth.identity import IdentityClientConfig, get_token
from libre_fhir.auth.libre_client import LibreLinkUpClient, default_headers
from libre_fhir.fhir.client import FhirClient
from libre_fhir.fhir.mapper import map_connection_to_device, map_to_observations
from libre_fhir.fhir.storage import save_bundle_to_file
from libre_fhir.metrics import sync_tick_duration_seconds, sync_tick_total
from libre_fhir.models.libre import Connection
from libre_fhir.models.sync import ConnectionResult, SessionContext, SyncMode, TickResult, TickStatus
from libre_fhir.utils.config import Settings
from libre_fhir.utils.error_handling import ErrorCollector, ErrorSeverity, FailureReason, Result
from libre_fhir.utils.logging_utils import token_preview

logger = logging.getLogger(__name__)


class SyncDriver:
    """
    Runs sync ticks against one LibreLinkUp account and one FHIR server.

    Usage::

        driver = SyncDriver.from_settings(settings)
        session = driver.new_session()
        session, result = await driver.run_tick(session)
    """

    def __init__(
        self,
        settings: Settings,
        libre_client: LibreLinkUpClient,
        *,
        identity_config: Optional[IdentityClientConfig] = None,
        identity_http_client: Optional[httpx.AsyncClient] = None,
        fhir_http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.libre_client = libre_client
        self.identity_config = identity_config or IdentityClientConfig.from_settings(settings)
        self.identity_http_client = identity_http_client
        self.fhir_http_client = fhir_http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncDriver":
        headers = default_headers(settings.link_up_version, settings.link_up_product)
        libre_client = LibreLinkUpClient(
            settings.libre_link_up_url,
            headers,
            timeout=settings.request_timeout_seconds,
        )
        return cls(settings, libre_client)

    def new_session(self) -> SessionContext:
        return SessionContext(headers=dict(self.libre_client.headers))

    async def close(self) -> None:
        await self.libre_client.close()
        await self.fhir_http_client.aclose()

    # ---------------------- steps -----------------------------------------
    async def authenticate_fhir(self, session: SessionContext) -> Tuple[SessionContext, SyncMode]:
        """Fetch a fresh identity token; FHIR mode for the whole tick iff one arrives."""
        token = (await get_token(self.identity_config, self.identity_http_client)).value_or("")
        if token:
            logger.info("Access Token from FHIR server received: %s", token_preview(token))
            if not self.settings.fhir_url:
                logger.error("no FHIR URL")
            return session.with_fhir_token(token), SyncMode.FHIR
        return session.with_fhir_token(""), SyncMode.LOCAL

    async def ensure_login(self, session: SessionContext) -> Result[SessionContext]:
        """Reuse a valid LibreLinkUp ticket, otherwise clear the session and log in again."""
        if session.has_valid_authentication(self.clock()):
            return Result.success(session)

        logger.info("renew token")
        fhir_token = session.fhir_token
        session = session.cleared()
        login = await self.libre_client.login(
            self.settings.link_up_username,
            self.settings.link_up_password.get_secret_value(),
            session.headers or None,
        )
        if not login:
            logger.error("LibreLink Up - No AuthTicket received. Please check your credentials.")
            return Result.failure(login.reason, login.message)

        logger.info("Got the following Access Token from Libre Server: %s", token_preview(login.value.token))
        # the FHIR token of this tick was obtained before the vendor check
        return Result.success(session.with_ticket(login.value).with_fhir_token(fhir_token))

    async def process_connection(
        self,
        session: SessionContext,
        connection: Connection,
        mode: SyncMode,
        errors: ErrorCollector,
    ) -> ConnectionResult:
        """Fetch, map and deliver one patient's series. Failures are recorded, not raised."""
        patient_id = connection.patient_id
        result = ConnectionResult(connection_id=connection.id, patient_id=patient_id)

        series = await self.libre_client.get_glucose_series(session.auth_ticket, patient_id, session.headers or None)
        if not series:
            logger.info("no data found for: %s", patient_id)
            result.error = series.reason.value
            severity = ErrorSeverity.LOW if series.is_empty else ErrorSeverity.MEDIUM
            errors.add_failure(series, field=patient_id, severity=severity)
            return result

        graph = series.value
        result.samples = len(graph.graph_data)
        result.device = map_connection_to_device(connection)
        logger.debug("Device for %s: %s", patient_id, result.device.to_fhir())
        display_name = connection.display_name
        fhir_client = None
        try:
            if mode == SyncMode.FHIR:
                fhir_client = FhirClient(self.settings.fhir_url, session.fhir_token, http_client=self.fhir_http_client)
                observations = await fhir_client.filter_since_last_observation(patient_id, patient_id, graph, display_name)
            else:
                observations = map_to_observations(self.settings.fhir_id or patient_id, graph, display_name)
        except ValueError as exc:
            logger.error("Could not map glucose data for %s: %s", patient_id, exc)
            failure = Result.failure(FailureReason.BAD_RESPONSE, str(exc))
            result.error = failure.reason.value
            errors.add_failure(failure, field=patient_id)
            return result
        result.observations = len(observations)

        if fhir_client is not None:
            logger.info("Trying to Upload data to FHIR")
            upload = await fhir_client.upload(observations)
            if upload:
                result.uploaded = upload.value > 0
            else:
                result.error = upload.reason.value
                errors.add_failure(upload, field=patient_id, severity=ErrorSeverity.HIGH)
        else:
            saved = save_bundle_to_file(self.settings.demo_destination_path, observations)
            if saved:
                result.saved_path = str(saved.value)
            elif not saved.is_empty:
                result.error = saved.reason.value
                errors.add_failure(saved, field=patient_id, severity=ErrorSeverity.HIGH)
        return result

    # ---------------------- tick ------------------------------------------
    async def run_tick(self, session: SessionContext) -> Tuple[SessionContext, TickResult]:
        """
        Run one full sync.

        Returns the session to carry into the next tick together with the
        tick summary. A failed login returns a cleared session.
        """
        start = time.monotonic()
        errors = ErrorCollector()
        session, mode = await self.authenticate_fhir(session)
        tick = TickResult(mode=mode)

        login = await self.ensure_login(session)
        if not login:
            errors.add_failure(login, field="login", severity=ErrorSeverity.CRITICAL)
            return self._finish(session.cleared(), tick, errors, start, TickStatus.FAILED)
        session = login.value

        connections = await self.libre_client.get_connections(session.auth_ticket, session.headers or None)
        if not connections:
            errors.add_failure(connections, field="connections", severity=ErrorSeverity.HIGH)
            status = TickStatus.COMPLETED if connections.is_empty else TickStatus.FAILED
            return self._finish(session, tick, errors, start, status)

        for connection in connections.value:
            tick.connections.append(await self.process_connection(session, connection, mode, errors))

        return self._finish(session, tick, errors, start)

    def _finish(
        self,
        session: SessionContext,
        tick: TickResult,
        errors: ErrorCollector,
        start: float,
        status: Optional[TickStatus] = None,
    ) -> Tuple[SessionContext, TickResult]:
        tick.errors = errors.get_errors()
        tick.record_completion(status)
        sync_tick_total.labels(status=tick.status.value).inc()
        sync_tick_duration_seconds.labels(mode=tick.mode.value).observe(time.monotonic() - start)
        if errors.has_errors():
            report = errors.to_json() if self.settings.log_format == "json" else errors.to_human_readable()
            logger.warning("Sync tick finished with errors:\n%s", report)
        logger.info(
            "Sync tick %s: %d connections, %d observations (%s mode)",
            tick.status.value, len(tick.connections), tick.observations_total, tick.mode.value,
        )
        return session, tick

