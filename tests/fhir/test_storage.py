"""Tests for saving bundles to disk."""

from datetime import datetime, timezone

from conftest import read_json

from libre_fhir.fhir.mapper import map_to_observations
from libre_fhir.fhir.storage import bundle_file_name, save_bundle_to_file
from libre_fhir.utils.error_handling import FailureReason


def test_bundle_file_name_has_no_colons():
    name = bundle_file_name(datetime(2024, 1, 15, 10, 30, 5, 123000, tzinfo=timezone.utc))
    assert name == "fhir_bundle_2024-01-15T10-30-05.123Z.json"
    assert ":" not in name


def test_save_creates_folder(tmp_path, sample_graph):
    target = tmp_path / "out" / "nested"
    observations = map_to_observations("P1", sample_graph, "Jane Doe")

    result = save_bundle_to_file(target, observations)

    assert result.ok
    assert result.value.parent == target
    assert result.value.name.startswith("fhir_bundle_")
    bundle = read_json(result.value)
    assert bundle["resourceType"] == "Bundle"
    assert bundle["type"] == "transaction"
    assert [e["resource"]["id"] for e in bundle["entry"]] == [o.id for o in observations]


def test_save_writes_indented_json(tmp_path, sample_graph):
    result = save_bundle_to_file(tmp_path, map_to_observations("P1", sample_graph))
    assert result.value.read_text(encoding="utf-8").startswith('{\n  "resourceType"')


def test_save_nothing_to_write(tmp_path):
    target = tmp_path / "empty"
    result = save_bundle_to_file(target, [])

    assert result.reason == FailureReason.NO_DATA
    assert not target.exists()


def test_save_into_file_path_fails(tmp_path, sample_graph):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    result = save_bundle_to_file(blocker, map_to_observations("P1", sample_graph))
    assert result.reason == FailureReason.TRANSPORT_ERROR
