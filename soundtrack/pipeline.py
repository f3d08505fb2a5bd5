"""
End-to-end soundtrack flow: analysis -> submission -> polling.

The analysis call and, optionally, the whole flow run under wall-clock
deadlines. When a deadline fires the running coroutine is cancelled and
DeadlineExceededError is raised.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Tuple, TypeVar

import aiohttp

from soundtrack.analysis.gemini import GeminiAnalysisClient
from soundtrack.analysis.models import AnalysisError, ScriptAnalysis, VideoInput
from soundtrack.config import Settings
from soundtrack.music.client import MusicApiClient, require_credential
from soundtrack.music.errors import DeadlineExceededError
from soundtrack.music.models import GenerateOptions, GenerationJob, ResultTrack
from soundtrack.music.poller import CancellationToken, PollConfig, poll_for_result
from soundtrack.utils.correlation import correlation_scope, correlation_tag

logger = logging.getLogger(__name__)

T = TypeVar('T')


class AnalysisService(Protocol):
    async def analyze(self, script_text: Optional[str], video: Optional[VideoInput] = None) -> ScriptAnalysis:
        ...


@dataclass(frozen=True)
class SoundtrackResult:
    analysis: Optional[ScriptAnalysis]
    job: GenerationJob
    tracks: List[ResultTrack]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'analysis': self.analysis.to_dict() if self.analysis else None,
            'job': {
                'job_id': self.job.job_id,
                'provider': self.job.provider,
                'prompt': self.job.submitted_prompt,
                'instrumental': self.job.instrumental,
                'created_at': self.job.created_at.isoformat(),
            },
            'tracks': [track.to_dict() for track in self.tracks],
        }


async def run_with_deadline(awaitable: Awaitable[T], seconds: Optional[float], operation: str) -> T:
    """Await with a wall-clock deadline; None disables it."""
    if seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        logger.error(f"{correlation_tag()} [PIPELINE] {operation} exceeded {seconds}s")
        raise DeadlineExceededError(operation, seconds) from exc


async def generate_music(
    client: MusicApiClient,
    prompt: str,
    credential: str,
    options: Optional[GenerateOptions] = None,
    poll_config: Optional[PollConfig] = None,
    progress: Any = None,
    cancel: Optional[CancellationToken] = None,
) -> Tuple[GenerationJob, List[ResultTrack]]:
    """Submit one job and poll it to completion."""
    job = await client.start_generation(prompt, credential, options)
    tracks = await poll_for_result(
        job.job_id,
        credential,
        client,
        config=poll_config or PollConfig.for_provider(client.profile),
        progress=progress,
        cancel=cancel,
        schema=client.profile.schema,
    )
    return job, tracks


class SoundtrackPipeline:
    """
    Analysis followed by music generation.

    Args:
        analyzer: Analysis Service
        music_client: Client for the music provider
        credential: Music provider API key
        poll_config: Poll budgets (defaults from the provider profile)
        analysis_timeout: Deadline for the analysis call, seconds
        overall_timeout: Deadline for the whole run, seconds (None = none)
    """

    def __init__(
        self,
        analyzer: AnalysisService,
        music_client: MusicApiClient,
        credential: str,
        poll_config: Optional[PollConfig] = None,
        analysis_timeout: Optional[float] = 120.0,
        overall_timeout: Optional[float] = None,
    ):
        self.analyzer = analyzer
        self.music_client = music_client
        self.credential = credential
        self.poll_config = poll_config or PollConfig.for_provider(music_client.profile)
        self.analysis_timeout = analysis_timeout
        self.overall_timeout = overall_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: Optional[aiohttp.ClientSession] = None,
        overall_timeout: Optional[float] = None,
    ) -> "SoundtrackPipeline":
        analyzer = GeminiAnalysisClient(
            api_key=settings.gemini_api_key,
            api_url=settings.gemini_api_url,
            model=settings.gemini_model,
            session=session,
        )
        music_client = MusicApiClient(
            profile=settings.provider,
            base_url=settings.music_api_url or None,
            callback_url=settings.callback_url,
            request_timeout=settings.request_timeout_seconds,
            session=session,
        )
        return cls(
            analyzer,
            music_client,
            settings.music_api_key,
            poll_config=settings.poll_config(),
            analysis_timeout=settings.analysis_timeout_seconds,
            overall_timeout=overall_timeout,
        )

    async def analyze(self, script_text: Optional[str], video: Optional[VideoInput] = None) -> ScriptAnalysis:
        return await run_with_deadline(
            self.analyzer.analyze(script_text, video),
            self.analysis_timeout,
            "Analysis",
        )

    async def _run(
        self,
        script_text: Optional[str],
        video: Optional[VideoInput],
        options: Optional[GenerateOptions],
        progress: Any,
        cancel: Optional[CancellationToken],
    ) -> SoundtrackResult:
        # Fail on a missing music key before spending an analysis call
        require_credential(self.credential, self.music_client.profile.name)

        analysis = await self.analyze(script_text, video)
        if not analysis.music_prompt:
            raise AnalysisError("Analysis returned no music prompt.")

        options = options or GenerateOptions()
        if not options.title and analysis.title:
            options = GenerateOptions(instrumental=options.instrumental, title=analysis.title, style=options.style)

        job, tracks = await generate_music(
            self.music_client,
            analysis.music_prompt,
            self.credential,
            options=options,
            poll_config=self.poll_config,
            progress=progress,
            cancel=cancel,
        )
        return SoundtrackResult(analysis=analysis, job=job, tracks=tracks)

    async def run(
        self,
        script_text: Optional[str],
        video: Optional[VideoInput] = None,
        options: Optional[GenerateOptions] = None,
        progress: Any = None,
        cancel: Optional[CancellationToken] = None,
    ) -> SoundtrackResult:
        """Analyze, generate and return the playable tracks."""
        with correlation_scope():
            logger.info(f"{correlation_tag()} [PIPELINE] start provider={self.music_client.profile.name}")
            result = await run_with_deadline(
                self._run(script_text, video, options, progress, cancel),
                self.overall_timeout,
                "Soundtrack generation",
            )
            logger.info(f"{correlation_tag()} [PIPELINE] done job_id={result.job.job_id} tracks={len(result.tracks)}")
            return result
