"""
Data model for music-generation jobs and their polling.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class StatusCode(str, Enum):
    """Canonical job status, independent of the provider's vocabulary."""
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @property
    def is_terminal(self) -> bool:
        return self in (StatusCode.SUCCESS, StatusCode.FAILED)


class AttemptOutcome(str, Enum):
    """How one poll iteration was classified."""
    OK_PENDING = "ok-pending"
    OK_TERMINAL_SUCCESS = "ok-terminal-success"
    OK_TERMINAL_FAILURE = "ok-terminal-failure"
    TRANSIENT_ERROR = "transient-error"


@dataclass(frozen=True)
class GenerateOptions:
    """Per-request generation options."""
    instrumental: bool = True
    title: Optional[str] = None
    style: Optional[str] = None


@dataclass(frozen=True)
class GenerationJob:
    """A submitted job. Immutable; polling ends its lifetime."""
    job_id: str
    submitted_prompt: str
    instrumental: bool
    provider: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ResultTrack:
    """A completed, playable track."""
    id: str
    audio_url: str
    image_url: Optional[str] = None
    title: Optional[str] = None
    prompt: Optional[str] = None
    stream_audio_url: Optional[str] = None
    model_name: Optional[str] = None
    tags: Optional[str] = None
    duration: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'audio_url': self.audio_url,
            'image_url': self.image_url,
            'title': self.title,
            'prompt': self.prompt,
            'stream_audio_url': self.stream_audio_url,
            'model_name': self.model_name,
            'tags': self.tags,
            'duration': self.duration,
        }


@dataclass(frozen=True)
class NormalizedStatus:
    """
    Canonical projection of one status response.

    ``raw_tracks`` are the upstream track entries exactly as located (after
    JSON-string decoding); ``tracks`` applies result extraction to them. The
    raw payload is kept for diagnostics but ignored by equality, so two
    schema variants carrying the same content compare equal.
    """
    status: StatusCode
    raw_tracks: Tuple[Any, ...] = ()
    error_message: Optional[str] = None
    raw_status: Optional[str] = None
    fraction: Optional[float] = None
    job_id: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)

    @property
    def tracks(self) -> List[ResultTrack]:
        from soundtrack.music.extractor import extract_tracks
        return extract_tracks(self.raw_tracks, self.job_id or "track")


@dataclass(frozen=True)
class PollAttempt:
    """One poll iteration; discarded once the loop moves on."""
    attempt_index: int
    elapsed_ms: int
    raw_response: Any
    outcome: AttemptOutcome


@dataclass
class PollSession:
    """Mutable state owned by a single poll call."""
    attempts_used: int = 0
    consecutive_transient_errors: int = 0
    last_known_status: Optional[NormalizedStatus] = None
    last_error: Optional[BaseException] = None
    empty_success_seen_at: Optional[int] = None
    best_fraction: float = 0.0
