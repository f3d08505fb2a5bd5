"""
Correlation IDs tying together the log lines of one generation request.

A generation request spans analysis, submission and many poll attempts; the
id lives in a ContextVar so every coroutine of that request shares it.
"""
from __future__ import annotations

import hashlib
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_correlation_id: ContextVar[str | None] = ContextVar("soundtrack_correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def new_correlation_id(seed: str | None = None) -> str:
    """Short id; deterministic when seeded (e.g. with a job id)."""
    if seed:
        return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8]
    return uuid.uuid4().hex[:8]


@contextmanager
def correlation_scope(seed: str | None = None) -> Iterator[str]:
    """
    Bind a correlation id for the duration of the block.

    An id already bound by an outer scope is reused, so a pipeline run and the
    poll loop it starts log under the same id.
    """
    current = _correlation_id.get()
    if current:
        yield current
        return
    token = _correlation_id.set(new_correlation_id(seed))
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def correlation_tag() -> str:
    corr = get_correlation_id()
    return f"[corr={corr}]" if corr else "[corr=none]"
