"""Music-generation client: submission, polling, normalization."""
from soundtrack.music.client import MusicApiClient
from soundtrack.music.errors import (
    ConfigurationError,
    GenerationFailedError,
    IncompleteSuccessError,
    MalformedResponseError,
    MusicGenerationError,
    PollCancelledError,
    PollTimeoutError,
    RepeatedUpstreamFailure,
    UpstreamBusinessError,
    UpstreamRequestError,
)
from soundtrack.music.extractor import extract_tracks
from soundtrack.music.models import (
    GenerateOptions,
    GenerationJob,
    NormalizedStatus,
    ResultTrack,
    StatusCode,
)
from soundtrack.music.normalizer import SchemaVariant, normalize
from soundtrack.music.poller import CancellationToken, PollConfig, poll_for_result
from soundtrack.music.progress import ProgressObserver, ProgressUpdate
from soundtrack.music.providers import SUNO, UDIO, ProviderProfile, get_provider

__all__ = [
    'MusicApiClient',
    'ConfigurationError',
    'GenerationFailedError',
    'IncompleteSuccessError',
    'MalformedResponseError',
    'MusicGenerationError',
    'PollCancelledError',
    'PollTimeoutError',
    'RepeatedUpstreamFailure',
    'UpstreamBusinessError',
    'UpstreamRequestError',
    'extract_tracks',
    'GenerateOptions',
    'GenerationJob',
    'NormalizedStatus',
    'ResultTrack',
    'StatusCode',
    'SchemaVariant',
    'normalize',
    'CancellationToken',
    'PollConfig',
    'poll_for_result',
    'ProgressObserver',
    'ProgressUpdate',
    'SUNO',
    'UDIO',
    'ProviderProfile',
    'get_provider',
]
