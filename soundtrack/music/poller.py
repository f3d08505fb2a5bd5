"""
Poll loop for asynchronous music-generation jobs.

State machine: PENDING -> (PARTIAL)* -> SUCCESS | FAILED, plus TIMEOUT when
the attempt budget runs out first.

Each iteration sleeps a fixed interval, reads the status once, normalizes it
and reports progress. Transient read failures are counted against an error
budget that resets on every structurally valid response. Terminal states end
the loop immediately; a SUCCESS without playable audio is an error, with an
optional bounded grace window for providers that publish the status before
the tracks.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol

from soundtrack.music.classifier import CallSite, FailureKind, classify_failure, describe_failure
from soundtrack.music.errors import (
    GenerationFailedError,
    IncompleteSuccessError,
    PollCancelledError,
    PollTimeoutError,
    RepeatedUpstreamFailure,
)
from soundtrack.music.models import (
    AttemptOutcome,
    NormalizedStatus,
    PollAttempt,
    PollSession,
    ResultTrack,
    StatusCode,
)
from soundtrack.music.normalizer import SchemaVariant, check_business_code, normalize
from soundtrack.music.progress import ProgressUpdate, as_observer, emit, status_message
from soundtrack.music.providers import ProviderProfile
from soundtrack.utils.correlation import correlation_scope, correlation_tag

logger = logging.getLogger(__name__)

DEFAULT_ERROR_BUDGET = 5


class StatusSource(Protocol):
    """Anything that can read a job's raw status once (MusicApiClient, fakes)."""

    async def fetch_status(self, job_id: str, credential: str) -> Any:
        ...


@dataclass(frozen=True)
class PollConfig:
    """
    Polling budgets.

    Args:
        attempt_budget: Maximum status reads before PollTimeoutError
        interval_seconds: Fixed pause before every read
        error_budget: Consecutive transient failures before RepeatedUpstreamFailure
        empty_success_grace_attempts: Further reads allowed after a SUCCESS
            without playable audio; 0 raises IncompleteSuccessError at once
    """
    attempt_budget: int = 60
    interval_seconds: float = 5.0
    error_budget: int = DEFAULT_ERROR_BUDGET
    empty_success_grace_attempts: int = 0

    def __post_init__(self):
        if self.attempt_budget < 1:
            raise ValueError("attempt_budget must be at least 1")
        if self.error_budget < 1:
            raise ValueError("error_budget must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        if self.empty_success_grace_attempts < 0:
            raise ValueError("empty_success_grace_attempts must not be negative")

    @classmethod
    def for_provider(cls, profile: ProviderProfile, **overrides: Any) -> "PollConfig":
        values = {
            'attempt_budget': profile.attempt_budget,
            'interval_seconds': profile.interval_seconds,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class CancellationToken:
    """Lets a caller abandon a poll loop (page navigation, shutdown)."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def _pause(seconds: float, cancel: Optional[CancellationToken]) -> None:
    """Sleep for the interval, waking early if the token fires."""
    if cancel is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass  # interval elapsed without cancellation


def _outcome_for(status: StatusCode) -> AttemptOutcome:
    if status == StatusCode.SUCCESS:
        return AttemptOutcome.OK_TERMINAL_SUCCESS
    if status == StatusCode.FAILED:
        return AttemptOutcome.OK_TERMINAL_FAILURE
    return AttemptOutcome.OK_PENDING


async def poll_for_result(
    job_id: str,
    credential: str,
    source: StatusSource,
    config: Optional[PollConfig] = None,
    progress: Any = None,
    cancel: Optional[CancellationToken] = None,
    schema: SchemaVariant = SchemaVariant.AUTO,
    on_attempt: Optional[Callable[[PollAttempt], None]] = None,
) -> List[ResultTrack]:
    """
    Poll a job until it reaches a terminal state.

    Args:
        job_id: Id returned by submission
        credential: API key for the status endpoint
        source: Status reader, usually a MusicApiClient
        config: Budgets and interval
        progress: ProgressObserver or ``(message, fraction)`` callable
        cancel: Token checked before every sleep
        schema: Normalizer strategy for the provider's status shape
        on_attempt: Receives each PollAttempt (telemetry, tests)

    Returns:
        Playable tracks in upstream order (never empty)

    Raises:
        RepeatedUpstreamFailure: error_budget consecutive transient failures
        GenerationFailedError: Provider reported failure
        IncompleteSuccessError: SUCCESS without playable audio
        PollTimeoutError: attempt_budget exhausted
        PollCancelledError: Token fired
    """
    config = config or PollConfig()
    observer = as_observer(progress)
    session = PollSession()
    started = time.monotonic()

    with correlation_scope(job_id):
        logger.info(
            f"{correlation_tag()} [MUSIC_POLL] start job_id={job_id} attempts={config.attempt_budget} "
            f"interval={config.interval_seconds}s error_budget={config.error_budget}"
        )

        while session.attempts_used < config.attempt_budget:
            if cancel is not None and cancel.cancelled:
                raise PollCancelledError(job_id, session.attempts_used)
            await _pause(config.interval_seconds, cancel)
            if cancel is not None and cancel.cancelled:
                logger.info(f"{correlation_tag()} [MUSIC_POLL] cancelled job_id={job_id} reason={cancel.reason}")
                raise PollCancelledError(job_id, session.attempts_used)

            attempt_index = session.attempts_used
            session.attempts_used += 1
            attempt_label = f"{session.attempts_used}/{config.attempt_budget}"

            raw = None
            try:
                raw = await source.fetch_status(job_id, credential)
                check_business_code(raw)
                current = normalize(raw, schema, job_id=job_id)
            except Exception as exc:
                if classify_failure(exc, CallSite.POLL) == FailureKind.FATAL:
                    raise
                session.consecutive_transient_errors += 1
                session.last_error = exc
                logger.warning(
                    f"{correlation_tag()} [MUSIC_POLL] attempt {attempt_label} transient failure "
                    f"({session.consecutive_transient_errors}/{config.error_budget}): {describe_failure(exc)}"
                )
                _notify_attempt(on_attempt, attempt_index, started, raw, AttemptOutcome.TRANSIENT_ERROR)
                if session.consecutive_transient_errors >= config.error_budget:
                    logger.error(
                        f"{correlation_tag()} [MUSIC_POLL] error budget exhausted job_id={job_id} "
                        f"after {session.attempts_used} attempts"
                    )
                    raise RepeatedUpstreamFailure(session.consecutive_transient_errors, exc) from exc
                emit(observer, ProgressUpdate(
                    message=f"Request failed, retrying... ({attempt_label})",
                    attempt=session.attempts_used,
                ))
                continue

            # A well-formed answer proves the connection is healthy, whatever the job state
            session.consecutive_transient_errors = 0
            session.last_known_status = current
            _notify_attempt(on_attempt, attempt_index, started, raw, _outcome_for(current.status))

            logger.info(
                f"{correlation_tag()} [MUSIC_POLL] attempt {attempt_label} job_id={job_id} "
                f"status={current.status.value} raw_status={current.raw_status}"
            )
            emit(observer, _progress_update(session, current))

            if current.status == StatusCode.SUCCESS:
                tracks = current.tracks
                if tracks:
                    logger.info(
                        f"{correlation_tag()} [MUSIC_POLL] success job_id={job_id} tracks={len(tracks)} "
                        f"attempts={session.attempts_used}"
                    )
                    return tracks
                _check_grace_window(job_id, session, config, attempt_index)
                continue

            if current.status == StatusCode.FAILED:
                message = current.error_message or current.raw_status or "unknown error"
                logger.error(f"{correlation_tag()} [MUSIC_POLL] failed job_id={job_id}: {message}")
                raise GenerationFailedError(message, current.raw_status)

        if session.empty_success_seen_at is not None:
            logger.error(f"{correlation_tag()} [MUSIC_POLL] budget exhausted during grace window job_id={job_id}")
            raise IncompleteSuccessError(job_id)

        elapsed = time.monotonic() - started
        logger.error(
            f"{correlation_tag()} [MUSIC_POLL] timeout job_id={job_id} attempts={session.attempts_used} "
            f"elapsed={elapsed:.1f}s"
        )
        raise PollTimeoutError(session.attempts_used, session.last_known_status)


def _progress_update(session: PollSession, current: NormalizedStatus) -> ProgressUpdate:
    """Progress for a normalized status; fractions never go backwards."""
    fraction = current.fraction
    if fraction is not None:
        fraction = max(fraction, session.best_fraction)
        session.best_fraction = fraction
    return ProgressUpdate(
        message=status_message(current.status, current.raw_status),
        fraction=fraction,
        status=current.status,
        attempt=session.attempts_used,
    )


def _check_grace_window(job_id: str, session: PollSession, config: PollConfig, attempt_index: int) -> None:
    """Raise IncompleteSuccessError once an empty SUCCESS outlives the grace window."""
    if session.empty_success_seen_at is None:
        session.empty_success_seen_at = attempt_index
    waited = attempt_index - session.empty_success_seen_at
    if waited >= config.empty_success_grace_attempts:
        logger.error(
            f"{correlation_tag()} [MUSIC_POLL] SUCCESS without audio job_id={job_id} "
            f"(grace {config.empty_success_grace_attempts} attempts)"
        )
        raise IncompleteSuccessError(job_id)
    logger.warning(
        f"{correlation_tag()} [MUSIC_POLL] SUCCESS without audio job_id={job_id}, "
        f"waiting ({waited + 1}/{config.empty_success_grace_attempts})"
    )


def _notify_attempt(
    listener: Optional[Callable[[PollAttempt], None]],
    attempt_index: int,
    started: float,
    raw: Any,
    outcome: AttemptOutcome,
) -> None:
    if listener is None:
        return
    listener(PollAttempt(
        attempt_index=attempt_index,
        elapsed_ms=int((time.monotonic() - started) * 1000),
        raw_response=raw,
        outcome=outcome,
    ))
