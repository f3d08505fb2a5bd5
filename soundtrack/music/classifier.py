"""
Transient-failure classification.

Decides whether a failure during a call is worth retrying. The answer depends
on the call site: a submission is never retried blindly (a duplicate job costs
credits), while a status read is idempotent and tolerates blips up to the
error budget.
"""
import asyncio
import json
import logging
from enum import Enum
from typing import Optional

import aiohttp

from soundtrack.music.errors import (
    ConfigurationError,
    MalformedResponseError,
    UpstreamBusinessError,
    UpstreamRequestError,
)

logger = logging.getLogger(__name__)


class CallSite(str, Enum):
    SUBMIT = "submit"
    POLL = "poll"


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_http_status(status: Optional[int]) -> str:
    """Coarse label for an HTTP status, used in logs."""
    if status is None:
        return "NETWORK_ERROR"
    if status == 429:
        return "RATE_LIMIT"
    if status in (408, 504):
        return "TIMEOUT"
    if status >= 500:
        return "SERVER_ERROR"
    if status >= 400:
        return "CLIENT_ERROR"
    return "OK"


def classify_failure(exc: BaseException, site: CallSite) -> FailureKind:
    """
    Classify a failure as TRANSIENT (retry within budget) or FATAL.

    Submission: everything is fatal.
    Polling: network errors, timeouts, non-2xx responses, business error
    codes and undecodable bodies are transient. Configuration problems and
    anything else (programming errors) are fatal.
    """
    if isinstance(exc, asyncio.CancelledError):
        return FailureKind.FATAL
    if site == CallSite.SUBMIT:
        return FailureKind.FATAL
    if isinstance(exc, ConfigurationError):
        return FailureKind.FATAL
    if isinstance(exc, (
        UpstreamRequestError,
        UpstreamBusinessError,
        MalformedResponseError,
        aiohttp.ClientError,
        asyncio.TimeoutError,
        json.JSONDecodeError,
    )):
        return FailureKind.TRANSIENT
    return FailureKind.FATAL


def is_transient(exc: BaseException, site: CallSite = CallSite.POLL) -> bool:
    return classify_failure(exc, site) == FailureKind.TRANSIENT


def describe_failure(exc: BaseException) -> str:
    """One-line description of a failure for retry logs."""
    if isinstance(exc, UpstreamRequestError):
        return f"{classify_http_status(exc.status)} status={exc.status} body={exc.body[:200]}"
    if isinstance(exc, UpstreamBusinessError):
        return f"BUSINESS_ERROR code={exc.code} msg={exc.upstream_message}"
    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT"
    return f"{type(exc).__name__}: {exc}"
