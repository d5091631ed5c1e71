from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
import json

T = TypeVar('T')


class ErrorSeverity(Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


class FailureReason(str, Enum):
    """Why a client call produced no value."""
    AUTH_FAILED = 'auth_failed'
    WRONG_REGION = 'wrong_region'
    TRANSPORT_ERROR = 'transport_error'
    HTTP_ERROR = 'http_error'
    BAD_RESPONSE = 'bad_response'
    NO_DATA = 'no_data'
    NOT_CONFIGURED = 'not_configured'


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a client call: either a value or a tagged failure.
    """
    value: Optional[T] = None
    reason: Optional[FailureReason] = None
    message: str = ''

    @classmethod
    def success(cls, value: T) -> 'Result[T]':
        return cls(value=value)

    @classmethod
    def failure(cls, reason: FailureReason, message: str = '') -> 'Result[T]':
        return cls(reason=reason, message=message)

    @property
    def ok(self) -> bool:
        return self.reason is None

    @property
    def is_empty(self) -> bool:
        """True when the call worked but there was nothing to return."""
        return self.reason == FailureReason.NO_DATA

    def value_or(self, default: T) -> T:
        return self.value if self.ok else default

    def __bool__(self) -> bool:
        return self.ok


class ErrorCollector:
    """
    Collects and reports errors during a sync tick.
    """
    def __init__(self):
        self.errors: List[Dict[str, Any]] = []

    def add_error(self, error_type: str, field: Optional[str], message: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        self.errors.append({
            'type': error_type,
            'field': field,
            'message': message,
            'severity': severity.value
        })

    def add_failure(self, result: Result, field: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        """Record a failed Result under its reason."""
        self.add_error(result.reason.value if result.reason else 'unknown', field, result.message, severity)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def to_json(self) -> str:
        return json.dumps(self.errors, indent=2)

    def to_human_readable(self) -> str:
        return '\n'.join([
            f"[{e['severity'].upper()}] {e['type']} - {e['field'] or ''}: {e['message']}" for e in self.errors
        ])

    def get_errors(self) -> List[Dict[str, Any]]:
        return self.errors
