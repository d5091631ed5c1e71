"""Test configuration and shared fixtures."""

import json
import os
import sys
import time
from typing import Callable, List

import httpx
import pytest

# Make sure the package is importable without installation
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from libre_fhir.models.libre import AuthTicket, Connection, GraphData
from libre_fhir.utils.config import Settings

LIBRE_HOST = "api-eu.libreview.io"
FHIR_URL = "https://fhir.example.org/fhir"
TOKEN_ENDPOINT = "https://auth.example.org/realms/cgm/protocol/openid-connect/token"


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    values = {
        "link_up_username": "follower@example.org",
        "link_up_password": "secret-password",
        "link_up_region": "EU",
        "token_endpoint": TOKEN_ENDPOINT,
        "client_id": "cgm-bridge",
        "client_secret": "client-secret",
        "scope": "system/Observation.write",
        "fhir_url": FHIR_URL,
        "fhir_id": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by *handler*."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def graph_payload(values: List[float], start_minute: int = 0) -> dict:
    """Graph data with one sample per minute starting at 1/15/2024 10:<start_minute>:00 AM."""
    return {
        "connection": {"id": "conn-1", "patientId": "P1", "firstName": "Jane", "lastName": "Doe"},
        "activeSensors": [],
        "graphData": [
            {
                "FactoryTimestamp": f"1/15/2024 10:{start_minute + i:02d}:00 AM",
                "Timestamp": f"1/15/2024 11:{start_minute + i:02d}:00 AM",
                "type": 0,
                "ValueInMgPerDl": value,
                "MeasurementColor": 1,
                "GlucoseUnits": 1,
                "Value": value,
                "isHigh": value > 180,
                "isLow": value < 70,
            }
            for i, value in enumerate(values)
        ],
    }


def connection_payload(patient_id: str = "P1", status: int = 2, first_name: str = "Jane", last_name: str = "Doe") -> dict:
    return {
        "id": f"conn-{patient_id}",
        "patientId": patient_id,
        "country": "DE",
        "status": status,
        "firstName": first_name,
        "lastName": last_name,
        "targetLow": 70,
        "targetHigh": 180,
        "uom": 1,
        "sensor": {"deviceId": "dev-123", "sn": "0M0000ABCD", "a": 1705312800, "w": 60, "pt": 4},
    }


def login_payload(token: str = "libre-token-abcdefghijkl", expires_in: int = 3600) -> dict:
    return {
        "status": 0,
        "data": {
            "user": {"id": "user-1"},
            "authTicket": {"token": token, "expires": round(time.time()) + expires_in, "duration": 15552000000},
        },
    }


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def sample_graph() -> GraphData:
    """Three samples at 10:00, 10:01 and 10:02 with values 90, 250 and 55 mg/dL."""
    return GraphData.model_validate(graph_payload([90, 250, 55]))


@pytest.fixture
def sample_connection() -> Connection:
    return Connection.model_validate(connection_payload())


@pytest.fixture
def auth_ticket() -> AuthTicket:
    return AuthTicket(token="libre-token-abcdefghijkl", expires=round(time.time()) + 3600, duration=3600)


@pytest.fixture
def utc_timezone(monkeypatch):
    """Run the test with the process timezone set to UTC."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available on this platform")
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def berlin_timezone(monkeypatch):
    """Run the test with the process timezone set to Europe/Berlin."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available on this platform")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def read_json(path) -> dict:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)
