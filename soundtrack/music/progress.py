"""
Progress reporting for long-running generation jobs.

The poll loop talks to a ProgressObserver. A plain ``(message, fraction)``
callable is adapted automatically, so UI code can pass a lambda.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union, runtime_checkable

from soundtrack.music.models import StatusCode

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    'PENDING': "Task queued...",
    'TEXT_SUCCESS': "Text generation complete, generating audio...",
    'FIRST_SUCCESS': "First part audio generated...",
    'SUCCESS': "Audio generation complete!",
}

CANONICAL_MESSAGES = {
    StatusCode.PENDING: "Task queued...",
    StatusCode.PARTIAL: "Generating audio...",
    StatusCode.SUCCESS: "Audio generation complete!",
    StatusCode.FAILED: "Generation failed",
}


@dataclass(frozen=True)
class ProgressUpdate:
    message: str
    fraction: Optional[float] = None
    status: Optional[StatusCode] = None
    attempt: Optional[int] = None


@runtime_checkable
class ProgressObserver(Protocol):
    def on_progress(self, update: ProgressUpdate) -> None:
        ...


ProgressCallback = Callable[[str, Optional[float]], None]


class CallbackProgress:
    """Adapts a ``(message, fraction)`` callable to ProgressObserver."""

    def __init__(self, callback: ProgressCallback):
        self._callback = callback

    def on_progress(self, update: ProgressUpdate) -> None:
        self._callback(update.message, update.fraction)


class LoggingProgress:
    """Observer that writes progress to the log; the CLI default."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def on_progress(self, update: ProgressUpdate) -> None:
        if update.fraction is not None:
            self._log.info(f"[MUSIC_PROGRESS] {update.message} ({update.fraction:.0%})")
        else:
            self._log.info(f"[MUSIC_PROGRESS] {update.message}")


def as_observer(progress: Union[ProgressObserver, ProgressCallback, None]) -> Optional[ProgressObserver]:
    """Accept an observer, a bare callable, or None."""
    if progress is None or isinstance(progress, ProgressObserver):
        return progress
    if callable(progress):
        return CallbackProgress(progress)
    raise TypeError(f"Unsupported progress reporter: {type(progress).__name__}")


def status_message(status: StatusCode, raw_status: Optional[str]) -> str:
    """Human-readable text for a status, preferring the provider's sub-stage."""
    if raw_status:
        message = STATUS_MESSAGES.get(raw_status.strip().upper())
        if message:
            return message
    return CANONICAL_MESSAGES.get(status, f"Status: {raw_status or status.value}")


def emit(observer: Optional[ProgressObserver], update: ProgressUpdate) -> None:
    """
    Deliver an update without letting the observer break the caller.

    Observer errors are logged and dropped: progress is a notification, and a
    broken UI hook must not abort a job that is still generating.
    """
    if observer is None:
        return
    try:
        observer.on_progress(update)
    except Exception:
        logger.warning(f"[MUSIC_PROGRESS] Observer {type(observer).__name__} raised", exc_info=True)
