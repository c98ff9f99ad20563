"""
Structured audit logging for the requirements backend.

Events are logged as JSON for machine parsing:
consent_rejected, themed_script_missing, backend_migrated,
csp_applied, injection_skipped, backend_error.

NEVER logs: nonces or inline script bodies.
"""

import json
import logging
import re
import time
from typing import Any, Dict

LOGGER_NAME = 'defer_backend.audit'

# Control characters that could enable log injection attacks.
_LOG_INJECTION_PATTERN = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


def sanitize_log_value(value: str, max_length: int = 256) -> str:
    """
    Sanitize a string for safe inclusion in log output.

    Removes control characters and truncates to a maximum length.
    """
    cleaned = _LOG_INJECTION_PATTERN.sub('', str(value))
    return cleaned[:max_length]


class AuditFormatter(logging.Formatter):
    """JSON formatter for audit events."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%S%z', time.gmtime(record.created)),
            'level': record.levelname,
            'event': getattr(record, 'event', 'unknown'),
            'message': record.getMessage(),
        }

        for field in ('identifier', 'path', 'header', 'backend', 'reason'):
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = sanitize_log_value(str(value))

        return json.dumps(log_entry)


def setup_logging(app) -> logging.Logger:
    """
    Configure the audit logger.

    Returns the dedicated 'defer_backend.audit' logger writing JSON to stderr.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if app.debug else logging.INFO)

    # Repeated create_app() calls in tests must not stack handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(AuditFormatter())
    logger.addHandler(console_handler)

    return logger


def audit_log(event: str, message: str, level: int = logging.INFO, **context) -> None:
    """
    Log an audit event.

    Args:
        event: Event type (e.g., 'csp_applied', 'consent_rejected')
        message: Human-readable description
        level: Logging level, INFO by default
        **context: Additional context (identifier, path, header, backend, reason)
    """
    logger = logging.getLogger(LOGGER_NAME)
    extra = {'event': event}
    extra.update(context)
    logger.log(level, message, extra=extra)
