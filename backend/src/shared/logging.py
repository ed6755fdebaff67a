"""
Logging for SoundTrump handlers.

All modules log through the single `soundtrump` logger. Request events are
logged without bodies, headers or OAuth query parameters, so authorization
codes and tokens never reach CloudWatch.
"""
import logging
import json
from typing import Any, Dict

from .config import config

logger = logging.getLogger('soundtrump')
logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)

OMITTED_KEYS = ('body', 'headers', 'multiValueHeaders')
REDACTED_PARAMS = ('code', 'state', 'access_token', 'refresh_token')
REDACTED = '***'


def redact_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of an API Gateway event that is safe to log."""
    safe = {k: v for k, v in event.items() if k not in OMITTED_KEYS}
    for key in ('queryStringParameters', 'multiValueQueryStringParameters'):
        params = safe.get(key)
        if params:
            safe[key] = {name: REDACTED if name in REDACTED_PARAMS else value for name, value in params.items()}
    return safe


def log_event(event: dict) -> None:
    """Log an incoming Lambda event with credentials stripped."""
    try:
        logger.info(f"Lambda event: {json.dumps(redact_event(event), default=str)}")
    except Exception as e:
        logger.warning(f"Could not log event: {e}")
