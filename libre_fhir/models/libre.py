"""Models for LibreLinkUp API payloads."""

import time
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class LibreModel(BaseModel):
    """Base for vendor payloads: camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AuthTicket(LibreModel):
    """Vendor session credential returned by login."""

    token: str = Field(..., description="Bearer token for subsequent requests")
    expires: int = Field(0, description="Expiry as epoch seconds")
    duration: int = Field(0, description="Validity period as reported by the vendor")

    def is_valid(self, now: Optional[float] = None) -> bool:
        """Check whether the ticket can still be used."""
        current = round(time.time()) if now is None else now
        return bool(self.token) and current < self.expires


class Sensor(LibreModel):
    """Sensor descriptor nested in a connection."""

    device_id: str = Field("", description="Sensor device id")
    sn: str = Field("", description="Sensor serial number")
    a: Optional[int] = Field(None, description="Install timestamp, epoch seconds")
    w: Optional[int] = None
    pt: Optional[int] = None
    s: Optional[bool] = None
    lj: Optional[bool] = None


class Connection(LibreModel):
    """Patient-sensor pairing shared with the follower account."""

    id: str = Field(..., description="Connection id")
    patient_id: str = Field(..., description="Vendor patient id")
    country: Optional[str] = None
    status: int = Field(0, description="Connection status, 2 means active")
    first_name: str = ""
    last_name: str = ""
    target_low: Optional[float] = None
    target_high: Optional[float] = None
    uom: Optional[int] = None
    sensor: Sensor = Field(default_factory=Sensor)

    @field_validator("sensor", mode="before")
    @classmethod
    def missing_sensor(cls, v):
        # followers without an active sensor report null
        return {} if v is None else v

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class GlucoseItem(BaseModel):
    """Single glucose sample from the graph endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    factory_timestamp: str = Field(..., alias="FactoryTimestamp")
    timestamp: Optional[str] = Field(None, alias="Timestamp")
    type: Optional[int] = None
    value_in_mg_per_dl: Union[int, float] = Field(..., alias="ValueInMgPerDl")
    trend_arrow: Optional[int] = Field(None, alias="TrendArrow")
    measurement_color: Optional[int] = Field(None, alias="MeasurementColor")
    glucose_units: Optional[int] = Field(None, alias="GlucoseUnits")
    value: Optional[float] = Field(None, alias="Value")
    is_high: Optional[bool] = Field(None, alias="isHigh")
    is_low: Optional[bool] = Field(None, alias="isLow")


class GraphConnection(LibreModel):
    """Connection echo inside a graph response; only a few fields are used."""

    id: Optional[str] = None
    patient_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    glucose_measurement: Optional[GlucoseItem] = None


class GraphData(LibreModel):
    """Recent glucose series for one patient."""

    connection: Optional[GraphConnection] = None
    active_sensors: List[dict] = Field(default_factory=list)
    graph_data: List[GlucoseItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("graphData", "graph_data"),
    )


class LoginData(LibreModel):
    auth_ticket: Optional[AuthTicket] = None
    redirect: bool = False
    region: Optional[str] = None


class LoginResponse(LibreModel):
    status: int
    data: Optional[LoginData] = None


class ConnectionsResponse(LibreModel):
    """Envelope only; items in `data` are validated one by one."""

    status: int = 0
    data: List[Any] = Field(default_factory=list)


class GraphResponse(LibreModel):
    status: int = 0
    data: Optional[GraphData] = None
