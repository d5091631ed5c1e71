"""Sync driver and scheduler."""

from libre_fhir.sync.driver import SyncDriver
from libre_fhir.sync.scheduler import SyncScheduler

__all__ = ["SyncDriver", "SyncScheduler"]
