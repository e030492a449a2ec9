# infra/logging.py
"""
Structured logging with PII scrubbing.
"""
import logging
import json
import re
import uuid

logging.basicConfig(level=logging.INFO, format="%(message)s")

_logger = logging.getLogger("wardrobe.events")
_EMAIL_RE = re.compile(r"[\w.\-+]+@[\w.\-]+\.\w+")
_SCRUB_KEYS = {"user_id", "email"}


def _scrub(fields: dict) -> dict:
    """Mask user identifiers and email-looking strings before they hit the log."""
    clean = {}
    for key, value in fields.items():
        if key in _SCRUB_KEYS and value is not None:
            clean[key] = "[redacted]"
        elif isinstance(value, str):
            clean[key] = _EMAIL_RE.sub("[redacted-email]", value)
        else:
            clean[key] = value
    return clean


def log_event(event: str, **kwargs):
    """
    Log a structured event with request_id and custom fields.
    Automatically generates request_id if not provided.
    """
    rec = {"event": event, "request_id": kwargs.pop("request_id", str(uuid.uuid4())), **_scrub(kwargs)}
    _logger.info(json.dumps(rec, default=str))


def log_error(error: str, **kwargs):
    """
    Log an error event.
    """
    rec = {"event": "error", "error": error, "request_id": kwargs.pop("request_id", str(uuid.uuid4())), **_scrub(kwargs)}
    _logger.error(json.dumps(rec, default=str))
