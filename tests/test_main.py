"""Tests for the demo run and entry point helpers."""

import json
import os
from unittest.mock import AsyncMock, patch

import pytest
from conftest import graph_payload, make_settings, read_json

from libre_fhir.main import load_demo_graph, main, run_demo

DEMO_DATA = os.path.join(os.path.dirname(__file__), "..", "demo", "data", "response_data.json")


def test_load_demo_graph_bare_payload(tmp_path):
    source = tmp_path / "graph.json"
    source.write_text(json.dumps(graph_payload([120, 130])), encoding="utf-8")

    graph = load_demo_graph(str(source))

    assert [item.value_in_mg_per_dl for item in graph.graph_data] == [120, 130]


def test_load_demo_graph_full_response(tmp_path):
    source = tmp_path / "response.json"
    source.write_text(json.dumps({"status": 0, "data": graph_payload([140])}), encoding="utf-8")

    graph = load_demo_graph(str(source))

    assert len(graph.graph_data) == 1


def test_bundled_demo_data_loads():
    graph = load_demo_graph(DEMO_DATA)
    assert len(graph.graph_data) == 4


def test_run_demo_writes_bundle(tmp_path, utc_timezone):
    settings = make_settings(demo_source_path=DEMO_DATA, demo_destination_path=str(tmp_path), fhir_id="demo-patient")

    path = run_demo(settings)

    assert path is not None
    assert path.parent == tmp_path
    bundle = read_json(path)
    assert bundle["type"] == "transaction"
    assert len(bundle["entry"]) == 4
    subject = bundle["entry"][0]["resource"]["subject"]
    assert subject == {"reference": "Patient/demo-patient", "display": "Tester"}


@pytest.mark.parametrize("content", ["not json", '{"graphData": [{"FactoryTimestamp": "x"}]}'])
def test_run_demo_bad_source(tmp_path, content):
    source = tmp_path / "broken.json"
    source.write_text(content, encoding="utf-8")
    settings = make_settings(demo_source_path=str(source), demo_destination_path=str(tmp_path / "out"))

    assert run_demo(settings) is None
    assert not (tmp_path / "out").exists()


def test_run_demo_missing_source(tmp_path):
    settings = make_settings(demo_source_path=str(tmp_path / "missing.json"))
    assert run_demo(settings) is None


def test_run_demo_unparseable_timestamp(tmp_path):
    source = tmp_path / "bad_time.json"
    source.write_text(json.dumps({"graphData": [{"FactoryTimestamp": "yesterday", "ValueInMgPerDl": 100}]}), encoding="utf-8")
    settings = make_settings(demo_source_path=str(source), demo_destination_path=str(tmp_path / "out"))

    assert run_demo(settings) is None


@pytest.mark.parametrize(
    "overrides,expected",
    [
        ({"demo_enabled": True}, "run_demo"),
        ({"single_shot": True}, "run_once"),
        ({}, "run_scheduled"),
    ],
)
def test_main_selects_mode(overrides, expected):
    settings = make_settings(**overrides)
    with patch("libre_fhir.main.load_dotenv"), \
            patch("libre_fhir.main.setup_logging"), \
            patch("libre_fhir.main.get_settings", return_value=settings), \
            patch("libre_fhir.main.start_http_server") as start_http_server, \
            patch("libre_fhir.main.run_demo") as run_demo_mock, \
            patch("libre_fhir.main.run_once", new_callable=AsyncMock) as run_once_mock, \
            patch("libre_fhir.main.run_scheduled", new_callable=AsyncMock) as run_scheduled_mock:
        main()

    called = {
        "run_demo": run_demo_mock.called,
        "run_once": run_once_mock.await_count > 0,
        "run_scheduled": run_scheduled_mock.await_count > 0,
    }
    assert [name for name, was_called in called.items() if was_called] == [expected]
    start_http_server.assert_not_called()


def test_main_starts_metrics_server():
    settings = make_settings(demo_enabled=True, metrics_port=9108)
    with patch("libre_fhir.main.load_dotenv"), \
            patch("libre_fhir.main.setup_logging"), \
            patch("libre_fhir.main.get_settings", return_value=settings), \
            patch("libre_fhir.main.start_http_server") as start_http_server, \
            patch("libre_fhir.main.run_demo"):
        main()

    start_http_server.assert_called_once_with(9108)
