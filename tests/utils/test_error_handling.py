import json

from libre_fhir.utils.error_handling import ErrorCollector, ErrorSeverity, FailureReason, Result


def test_result_success():
    result = Result.success(42)
    assert result.ok
    assert bool(result) is True
    assert result.value == 42
    assert result.reason is None
    assert result.value_or(0) == 42


def test_result_failure():
    result = Result.failure(FailureReason.TRANSPORT_ERROR, "connection refused")
    assert not result.ok
    assert bool(result) is False
    assert result.value is None
    assert result.message == "connection refused"
    assert result.value_or("") == ""
    assert result.is_empty is False


def test_result_distinguishes_no_data_from_failure():
    empty = Result.failure(FailureReason.NO_DATA)
    broken = Result.failure(FailureReason.HTTP_ERROR, "HTTP 503")
    assert empty.is_empty
    assert not broken.is_empty
    assert not empty and not broken


def test_success_with_falsy_value_is_still_ok():
    assert Result.success(0)
    assert Result.success([]).ok


def test_error_collector_add_and_get():
    collector = ErrorCollector()
    collector.add_error('login', None, 'bad credentials', ErrorSeverity.CRITICAL)
    collector.add_failure(Result.failure(FailureReason.NO_DATA, 'no graph data'), field='P1', severity=ErrorSeverity.LOW)
    errors = collector.get_errors()
    assert collector.has_errors()
    assert len(errors) == 2
    assert errors[0]['severity'] == 'critical'
    assert errors[1] == {'type': 'no_data', 'field': 'P1', 'message': 'no graph data', 'severity': 'low'}


def test_error_collector_reporting():
    collector = ErrorCollector()
    collector.add_failure(Result.failure(FailureReason.HTTP_ERROR, 'HTTP 500'), field='P2', severity=ErrorSeverity.HIGH)
    assert json.loads(collector.to_json())[0]['message'] == 'HTTP 500'
    human = collector.to_human_readable()
    assert '[HIGH]' in human
    assert 'P2' in human


def test_empty_collector():
    collector = ErrorCollector()
    assert not collector.has_errors()
    assert collector.to_human_readable() == ''
