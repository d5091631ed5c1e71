"""
Logging setup and helpers for redacting sensitive data from log output.

Example:
    from libre_fhir.utils.logging_utils import redact_sensitive_data
    safe = redact_sensitive_data({'Authorization': 'Bearer abc', 'product': 'llu.ios'})
    # safe == {'Authorization': '***REDACTED***', 'product': 'llu.ios'}
"""

import json
import logging
from datetime import datetime, timezone

SENSITIVE_KEYS = {
    'password', 'api_key', 'token', 'secret', 'access_token', 'refresh_token',
    'key', 'authorization', 'client_secret',
}

REDACTED = '***REDACTED***'

TEXT_FORMAT = '%(asctime)s [%(levelname)s]: %(message)s'


def redact_sensitive_data(obj):
    """
    Recursively redacts sensitive fields in dicts/lists.
    Keys matched case-insensitively against SENSITIVE_KEYS.
    """
    if isinstance(obj, dict):
        return {
            k: (REDACTED if str(k).lower() in SENSITIVE_KEYS else redact_sensitive_data(v))
            for k, v in obj.items()
        }
    elif isinstance(obj, list):
        return [redact_sensitive_data(i) for i in obj]
    else:
        return obj


def token_preview(token: str, length: int = 10) -> str:
    """Shorten a bearer token for logging."""
    if not token:
        return ''
    return token[:length] + '...'


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON with standard fields.
    """
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        # Add extra fields if present
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            log_record.update(redact_sensitive_data(record.extra))
        return json.dumps(log_record, default=str)


def setup_logging(level='INFO', fmt='text', file_path=None):
    """
    Set up logging for the service.
    Args:
        level: Logging level name or number (default: INFO)
        fmt: 'text' for "<time> [<level>]: <message>" lines, 'json' for JSONFormatter
        file_path: Optional log file; stderr otherwise
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)
    # Remove existing handlers
    for h in list(logger.handlers):
        logger.removeHandler(h)
    if file_path:
        handler = logging.FileHandler(file_path)
    else:
        handler = logging.StreamHandler()
    if fmt == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logger
