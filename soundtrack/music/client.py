"""
Async HTTP client for music-generation providers.

Submission and single status reads. The credential is passed on every call
rather than stored on the client, so one client can serve several keys.

Contract:
- submit() returns the job id or raises (no silent failures, no retries)
- fetch_status() returns the raw decoded status body or raises; the poll
  loop decides which of those errors are worth retrying
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional

import aiohttp

from soundtrack.music.errors import (
    ConfigurationError,
    MalformedResponseError,
    UpstreamBusinessError,
    UpstreamRequestError,
)
from soundtrack.music.models import GenerateOptions, GenerationJob, NormalizedStatus
from soundtrack.music.normalizer import check_business_code, normalize
from soundtrack.music.providers import SUNO, ProviderProfile
from soundtrack.utils.correlation import correlation_tag

logger = logging.getLogger(__name__)


def require_credential(credential: Optional[str], provider: str) -> str:
    """Return the stripped credential or raise ConfigurationError."""
    if not credential or not credential.strip():
        raise ConfigurationError(
            f"{provider} API key is required",
            f"{provider.capitalize()} API Key is required.",
        )
    return credential.strip()


def _decode_body(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedResponseError(f"Response is not valid JSON: {exc}; body: {text[:200]}", text) from exc


def extract_job_id(data: Any, profile: ProviderProfile) -> str:
    """Job id from the first of the profile's accepted locations that is present."""
    if isinstance(data, Mapping):
        for path in profile.job_id_paths:
            current: Any = data
            for key in path:
                current = current.get(key) if isinstance(current, Mapping) else None
            if current not in (None, ""):
                return str(current)
    raise MalformedResponseError(f"No job id in {profile.name} response: {str(data)[:300]}", data)


class MusicApiClient:
    """
    Client for one music provider.

    Args:
        profile: Provider profile (endpoints, payload shape, schema)
        base_url: Override of the profile's base URL (proxies, tests)
        callback_url: Value for the protocol's callback field
        request_timeout: Deadline for each HTTP request, in seconds
        session: Optional shared aiohttp session; when omitted a short-lived
            session is opened per request
    """

    def __init__(
        self,
        profile: ProviderProfile = SUNO,
        base_url: Optional[str] = None,
        callback_url: Optional[str] = None,
        request_timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.profile = profile
        self.base_url = (base_url or profile.base_url).rstrip('/')
        self.callback_url = callback_url
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session = session

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            yield session

    @staticmethod
    def _headers(credential: str) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {credential}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    async def submit(
        self,
        prompt: str,
        credential: str,
        options: Optional[GenerateOptions] = None,
    ) -> str:
        """
        Submit a generation job.

        Returns:
            Job id for status polling

        Raises:
            ConfigurationError: Empty credential (nothing is sent)
            UpstreamRequestError: Non-2xx status, network error or timeout
            UpstreamBusinessError: 2xx with a non-200 business code
            MalformedResponseError: Body is not JSON or has no job id
        """
        credential = require_credential(credential, self.profile.name)
        options = options or GenerateOptions()
        payload = self.profile.build_payload(prompt, options, self.callback_url)
        url = self.profile.submit_url(self.base_url)

        logger.info(
            f"{correlation_tag()} [MUSIC_SUBMIT] POST {url} provider={self.profile.name} "
            f"instrumental={options.instrumental} prompt_chars={len(prompt)}"
        )
        logger.debug(f"{correlation_tag()} [MUSIC_SUBMIT] payload={json.dumps(payload, ensure_ascii=False)}")

        try:
            async with self._session_scope() as session:
                async with session.post(url, json=payload, headers=self._headers(credential), timeout=self.timeout) as resp:
                    status = resp.status
                    text = await resp.text()
        except asyncio.TimeoutError as exc:
            logger.error(f"{correlation_tag()} [MUSIC_SUBMIT] Timeout after {self.timeout.total}s")
            raise UpstreamRequestError(None, f"Timeout after {self.timeout.total}s") from exc
        except aiohttp.ClientError as exc:
            logger.error(f"{correlation_tag()} [MUSIC_SUBMIT] Network error: {type(exc).__name__}: {exc}")
            raise UpstreamRequestError(None, f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= status < 300:
            logger.error(f"{correlation_tag()} [MUSIC_SUBMIT] HTTP {status}: {text[:500]}")
            raise UpstreamRequestError(status, text)

        data = _decode_body(text)
        try:
            check_business_code(data)
        except UpstreamBusinessError as exc:
            logger.error(f"{correlation_tag()} [MUSIC_SUBMIT] API error code={exc.code}: {exc.upstream_message}")
            raise

        job_id = extract_job_id(data, self.profile)
        logger.info(f"{correlation_tag()} [MUSIC_SUBMIT] job_id={job_id} provider={self.profile.name}")
        return job_id

    async def start_generation(
        self,
        prompt: str,
        credential: str,
        options: Optional[GenerateOptions] = None,
    ) -> GenerationJob:
        """Submit and return the immutable job record."""
        options = options or GenerateOptions()
        job_id = await self.submit(prompt, credential, options)
        return GenerationJob(
            job_id=job_id,
            submitted_prompt=prompt,
            instrumental=options.instrumental,
            provider=self.profile.name,
        )

    async def fetch_status(self, job_id: str, credential: str) -> Any:
        """
        Read the job's status once.

        Returns:
            Decoded JSON body

        Raises:
            ConfigurationError: Empty credential
            UpstreamRequestError: Non-2xx status
            UpstreamBusinessError: Non-200 business code
            MalformedResponseError: Body is not JSON
            aiohttp.ClientError / asyncio.TimeoutError: Transport failures
        """
        credential = require_credential(credential, self.profile.name)
        url = self.profile.status_url(self.base_url)
        params = {self.profile.status_query_param: job_id}

        logger.debug(f"{correlation_tag()} [MUSIC_STATUS] GET {url} job_id={job_id}")
        async with self._session_scope() as session:
            async with session.get(url, params=params, headers=self._headers(credential), timeout=self.timeout) as resp:
                status = resp.status
                text = await resp.text()

        if not 200 <= status < 300:
            raise UpstreamRequestError(status, text)

        data = _decode_body(text)
        check_business_code(data)
        return data

    async def get_task_info(self, job_id: str, credential: str) -> NormalizedStatus:
        """Single status query without polling; every error is raised as is."""
        try:
            data = await self.fetch_status(job_id, credential)
        except asyncio.TimeoutError as exc:
            raise UpstreamRequestError(None, f"Timeout after {self.timeout.total}s") from exc
        except aiohttp.ClientError as exc:
            raise UpstreamRequestError(None, f"{type(exc).__name__}: {exc}") from exc
        return normalize(data, self.profile.schema, job_id=job_id)
