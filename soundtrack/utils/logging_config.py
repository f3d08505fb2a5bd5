"""
Logging configuration for the soundtrack client.

One stdout handler, a single format carrying the correlation id, and a
formatter that masks credentials before anything reaches the stream.
"""

import logging
import os
import re
import sys
from typing import Iterable, Optional

from soundtrack.utils.correlation import get_correlation_id

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(corr_id)s] - %(message)s'

# Environment variables whose values must never be printed
SECRET_ENV_KEYS = (
    'SUNO_API_KEY',
    'UDIO_API_KEY',
    'GEMINI_API_KEY',
    'API_KEY',
)

_SECRET_PATTERNS = [
    (re.compile(r'(Bearer)\s+([A-Za-z0-9._~+/=-]+)', re.IGNORECASE),
     lambda m: f"{m.group(1)} {mask(m.group(2))}"),
    (re.compile(r'\b(api_key|apikey|key|token|credential)\s*[:=]\s*([^\s,;&\)]+)', re.IGNORECASE),
     lambda m: f"{m.group(1)}={mask(m.group(2))}"),
    (re.compile(r'(x-goog-api-key["\']?\s*[:=]\s*["\']?)([^\s"\',;]+)', re.IGNORECASE),
     lambda m: f"{m.group(1)}{mask(m.group(2))}"),
]


def mask(value: str) -> str:
    """Mask a secret, keeping just enough to tell two keys apart."""
    if not value:
        return '[EMPTY]'
    if len(value) <= 8:
        return '****'
    return f"{value[:2]}...{value[-2:]}"


def sanitize_log_message(message: str, extra_secrets: Iterable[str] = ()) -> str:
    """
    Mask secret values in a log message.

    Masks the values of SECRET_ENV_KEYS, any explicitly passed secrets, and
    credential-looking patterns (Bearer tokens, key=value pairs).
    """
    result = message
    secrets = [os.getenv(key, '') for key in SECRET_ENV_KEYS]
    secrets.extend(extra_secrets)
    for secret in secrets:
        if secret and secret in result:
            result = result.replace(secret, mask(secret))

    for pattern, replacement in _SECRET_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


class CorrelationFilter(logging.Filter):
    """Adds corr_id to every record so the format string never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.corr_id = get_correlation_id() or "-"
        return True


class SanitizingFormatter(logging.Formatter):
    """Formatter that masks secrets in the rendered message."""

    def format(self, record: logging.LogRecord) -> str:
        sanitized_msg = sanitize_log_message(record.getMessage())

        record_copy = logging.makeLogRecord(record.__dict__)
        record_copy.msg = sanitized_msg
        record_copy.args = ()  # msg is already rendered

        if not hasattr(record_copy, 'corr_id'):
            record_copy.corr_id = get_correlation_id() or "-"
        return super().format(record_copy)


def resolve_level(level_name: Optional[str], default: int = logging.INFO) -> int:
    """Map a LOG_LEVEL string to a logging level, falling back to default."""
    if not level_name:
        return default
    level = logging.getLevelName(level_name.strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the root logger.

    Existing root handlers are replaced so repeated calls (CLI re-entry,
    tests) do not duplicate output.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(SanitizingFormatter(LOG_FORMAT))
    console_handler.addFilter(CorrelationFilter())
    root_logger.addHandler(console_handler)

    # Third-party noise
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
