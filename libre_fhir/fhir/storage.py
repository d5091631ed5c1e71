"""Write transaction bundles to local files (demo mode and FHIR fallback)."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from libre_fhir.fhir.mapper import build_bundle
from libre_fhir.metrics import bundles_saved_total
from libre_fhir.models.fhir import Observation
from libre_fhir.utils.error_handling import FailureReason, Result
from libre_fhir.utils.normalization import file_timestamp

logger = logging.getLogger(__name__)

BUNDLE_FILE_PREFIX = "fhir_bundle_"


def bundle_file_name(now: Optional[datetime] = None) -> str:
    """fhir_bundle_<ISO timestamp with ':' replaced by '-'>.json"""
    return f"{BUNDLE_FILE_PREFIX}{file_timestamp(now)}.json"


def save_bundle_to_file(folder_path: Union[str, Path], observations: List[Observation], now: Optional[datetime] = None) -> Result[Path]:
    """
    Save observations as a transaction Bundle JSON file.

    Args:
        folder_path: Destination folder, created if missing
        observations: Observations to bundle
        now: Timestamp for the file name (defaults to the current UTC time)

    Returns:
        Result[Path]: Path of the written file; NO_DATA when there was nothing to save
    """
    logger.info("Saving %d observations to file", len(observations))
    if not observations:
        logger.info("No new measurements to save")
        return Result.failure(FailureReason.NO_DATA, "no observations")

    folder = Path(folder_path)
    file_path = folder / bundle_file_name(now)
    try:
        folder.mkdir(parents=True, exist_ok=True)
        bundle = build_bundle(observations)
        file_path.write_text(json.dumps(bundle.to_fhir(), indent=2), encoding="utf-8")
    except OSError as e:
        logger.error(f"Saving bundle to {file_path} failed: {e}")
        return Result.failure(FailureReason.TRANSPORT_ERROR, str(e))

    bundles_saved_total.inc()
    logger.info("Data saved at: %s", file_path)
    return Result.success(file_path)
