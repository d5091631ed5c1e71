"""Main entry point for the LibreLinkUp FHIR bridge."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from prometheus_client import start_http_server
from pydantic import ValidationError

from libre_fhir.fhir.mapper import map_to_observations
from libre_fhir.fhir.storage import save_bundle_to_file
from libre_fhir.models.libre import GraphData
from libre_fhir.models.sync import TickResult
from libre_fhir.sync.driver import SyncDriver
from libre_fhir.sync.scheduler import SyncScheduler
from libre_fhir.utils.config import Settings, get_settings
from libre_fhir.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)

DEMO_DISPLAY_NAME = "Tester"


def load_demo_graph(source_path: str) -> GraphData:
    """
    Read demo graph data from disk.

    Accepts either a bare graph payload or the full `{"status": ..., "data": {...}}`
    graph response.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the content is not valid graph data
    """
    raw = json.loads(Path(source_path).read_text(encoding="utf-8"))
    if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
        raw = raw["data"]
    return GraphData.model_validate(raw)


def run_demo(settings: Settings) -> Optional[Path]:
    """
    Map the bundled demo series and save it as a transaction bundle.

    Returns:
        Path of the written bundle, or None on failure
    """
    logger.debug("Running the Demo version")
    try:
        graph = load_demo_graph(settings.demo_source_path)
        observations = map_to_observations(settings.fhir_id, graph, DEMO_DISPLAY_NAME)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Error reading file or processing data: {e}")
        return None

    saved = save_bundle_to_file(settings.demo_destination_path, observations)
    return saved.value if saved else None


async def run_once(settings: Settings) -> TickResult:
    """Run a single sync tick."""
    driver = SyncDriver.from_settings(settings)
    try:
        _, result = await driver.run_tick(driver.new_session())
        return result
    finally:
        await driver.close()


async def run_scheduled(settings: Settings, stop: Optional[asyncio.Event] = None) -> None:
    """Run sync ticks every `link_up_time_interval` minutes until stopped."""
    driver = SyncDriver.from_settings(settings)
    scheduler = SyncScheduler(driver, interval_minutes=settings.link_up_time_interval)
    try:
        await scheduler.run_forever(stop)
    finally:
        await driver.close()


def main() -> None:
    load_dotenv()
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info("Serving metrics on port %d", settings.metrics_port)

    if settings.demo_enabled:
        logger.info("Demo enabled")
        run_demo(settings)
    elif settings.single_shot:
        logger.info("Running only once")
        asyncio.run(run_once(settings))
    else:
        logger.info("Demo disabled; polling every %d minute(s)", settings.link_up_time_interval)
        try:
            asyncio.run(run_scheduled(settings))
        except KeyboardInterrupt:
            logger.info("Shutting down LibreLinkUp FHIR bridge...")


if __name__ == "__main__":
    main()
