"""Models for sync ticks and the session carried between them."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, ConfigDict, Field

from libre_fhir.models.fhir import FhirDeviceResource
from libre_fhir.models.libre import AuthTicket


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncMode(str, Enum):
    """Where a tick sends its observations."""

    FHIR = "fhir"
    LOCAL = "local"


class TickStatus(str, Enum):
    """Enum for sync tick status."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class SessionContext(BaseModel):
    """
    Credentials and headers carried from one tick to the next.

    Frozen: every driver step returns an updated copy instead of mutating.
    """

    model_config = ConfigDict(frozen=True)

    auth_ticket: Optional[AuthTicket] = Field(None, description="Current LibreLinkUp ticket")
    fhir_token: str = Field("", description="Identity provider token used for the FHIR server")
    headers: Dict[str, str] = Field(default_factory=dict, description="Base LibreLinkUp headers")

    def has_valid_authentication(self, now: Optional[float] = None) -> bool:
        """Check the LibreLinkUp ticket against the wall clock."""
        return self.auth_ticket is not None and self.auth_ticket.is_valid(now)

    def cleared(self) -> "SessionContext":
        """Drop both the vendor ticket and the FHIR token."""
        return self.model_copy(update={"auth_ticket": None, "fhir_token": ""})

    def with_ticket(self, ticket: AuthTicket) -> "SessionContext":
        return self.model_copy(update={"auth_ticket": ticket})

    def with_fhir_token(self, token: str) -> "SessionContext":
        return self.model_copy(update={"fhir_token": token})


class ConnectionResult(BaseModel):
    """Outcome for one patient connection within a tick."""

    connection_id: str
    patient_id: str
    samples: int = Field(0, description="Samples received from the vendor")
    observations: int = Field(0, description="Observations selected for upload or saving")
    uploaded: bool = False
    saved_path: Optional[str] = None
    device: Optional[FhirDeviceResource] = None
    error: Optional[str] = None


class TickResult(BaseModel):
    """Summary of one sync tick."""

    status: TickStatus = TickStatus.COMPLETED
    mode: SyncMode = SyncMode.LOCAL
    connections: List[ConnectionResult] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def observations_total(self) -> int:
        return sum(c.observations for c in self.connections)

    def record_completion(self, status: Optional[TickStatus] = None) -> None:
        """Mark the tick as finished, deriving the status from connection errors if not given."""
        if status is None:
            failed = [c for c in self.connections if c.error]
            if failed and len(failed) == len(self.connections):
                status = TickStatus.FAILED
            elif failed:
                status = TickStatus.PARTIAL
            else:
                status = TickStatus.COMPLETED
        self.status = status
        self.completed_at = utcnow()
