"""
Errors raised by the music-generation client.

Every error carries a short ``user_message`` for the UI/CLI next to the
technical message used in logs.
"""
from typing import Any, Optional


class MusicGenerationError(Exception):
    """Base music-generation error."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class ConfigurationError(MusicGenerationError):
    """Missing credential or unusable configuration (fatal, no retry)."""


class UpstreamRequestError(MusicGenerationError):
    """Non-2xx HTTP response or network failure talking to the provider."""

    def __init__(self, status: Optional[int], body: str, user_message: Optional[str] = None):
        self.status = status
        self.body = body
        if status is None:
            message = f"Music API request failed: {body}"
        else:
            message = f"Music API request failed ({status}): {body}"
        super().__init__(message, user_message or "The music service is unavailable. Please try again later.")


class UpstreamBusinessError(MusicGenerationError):
    """HTTP 2xx whose payload carries a business code other than 200."""

    def __init__(self, code: Any, message: str):
        self.code = code
        self.upstream_message = message
        super().__init__(f"Music API error ({code}): {message}", f"Music API error: {message}")


class MalformedResponseError(MusicGenerationError):
    """A response the client cannot interpret."""

    def __init__(self, message: str, payload: Any = None):
        self.payload = payload
        super().__init__(message, "The music service returned an unexpected response.")


class RepeatedUpstreamFailure(MusicGenerationError):
    """The consecutive transient-error budget ran out while polling."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Status endpoint failed {attempts} times in a row; last error: {last_error}",
            "Lost contact with the music service, please try again later.",
        )


class GenerationFailedError(MusicGenerationError):
    """The provider declared the job failed."""

    def __init__(self, message: str, raw_status: Optional[str] = None):
        self.upstream_message = message
        self.raw_status = raw_status
        super().__init__(f"Generation failed: {message}")


class IncompleteSuccessError(MusicGenerationError):
    """The provider declared success but returned no playable audio."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(
            f"Job {job_id} completed but no audio data returned",
            "Generation completed but no audio data returned",
        )


class PollTimeoutError(MusicGenerationError):
    """The attempt budget ran out before a terminal state."""

    def __init__(self, attempts: int, last_known_status: Any = None):
        self.attempts = attempts
        self.last_known_status = last_known_status
        last = getattr(last_known_status, "status", None)
        last_value = getattr(last, "value", last)
        super().__init__(
            f"No terminal state after {attempts} attempts (last status: {last_value})",
            "Generation timeout, please try again later",
        )


class PollCancelledError(MusicGenerationError):
    """The caller cancelled polling through a CancellationToken."""

    def __init__(self, job_id: str, attempts: int):
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            f"Polling for job {job_id} cancelled after {attempts} attempts",
            "Generation cancelled",
        )


class DeadlineExceededError(MusicGenerationError):
    """A caller-imposed wall-clock deadline fired before the operation finished."""

    def __init__(self, operation: str, seconds: float):
        self.operation = operation
        self.seconds = seconds
        super().__init__(f"{operation} timeout after {seconds}s", f"{operation} timeout")
