"""
Gemini multimodal analysis client.

One generateContent round trip: optional inline video plus the analysis
prompt, answered with a JSON object {summary, mood, title, music_prompt}.
Analysis has no side effects upstream, so connection failures, timeouts,
429 and 5xx responses are retried with exponential backoff.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from soundtrack.analysis.models import AnalysisError, AnalysisInputError, ScriptAnalysis, VideoInput
from soundtrack.analysis.parser import build_analysis_prompt, extract_response_text, parse_analysis_text
from soundtrack.config import DEFAULT_GEMINI_API_URL, DEFAULT_GEMINI_MODEL
from soundtrack.utils.correlation import correlation_tag

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (aiohttp.ClientConnectionError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, AnalysisError) and exc.status is not None:
        return exc.status == 429 or exc.status >= 500
    return False


class GeminiAnalysisClient:
    """
    Analysis Service backed by the Gemini REST API.

    Args:
        api_key: Gemini API key (sent as x-goog-api-key)
        api_url: API root, e.g. https://generativelanguage.googleapis.com/v1beta
        model: Model name
        request_timeout: Deadline per HTTP request, in seconds
        max_attempts: Attempts for retryable failures
        retry_base_delay: Backoff multiplier in seconds
        session: Optional shared aiohttp session
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_GEMINI_API_URL,
        model: str = DEFAULT_GEMINI_MODEL,
        request_timeout: float = 90.0,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip('/')
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self._session = session

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            yield session

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/models/{self.model}:generateContent"

    def build_request(self, script_text: Optional[str], video: Optional[VideoInput]) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        if video is not None:
            parts.append(video.to_part())
        parts.append({'text': build_analysis_prompt(script_text)})
        return {'contents': [{'role': 'user', 'parts': parts}]}

    async def _post(self, body: Dict[str, Any]) -> Any:
        headers = {
            'x-goog-api-key': self.api_key,
            'Content-Type': 'application/json',
        }
        async with self._session_scope() as session:
            async with session.post(self.endpoint, json=body, headers=headers, timeout=self.timeout) as resp:
                status = resp.status
                text = await resp.text()

        if not 200 <= status < 300:
            logger.error(f"{correlation_tag()} [ANALYSIS] HTTP {status}: {text[:300]}")
            raise AnalysisError(f"Gemini API error: {status} - {text[:500]}", status=status, body=text)

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Some proxies answer with the bare model text
            return {'candidates': [{'content': {'parts': [{'text': text}]}}]}

    async def analyze(self, script_text: Optional[str], video: Optional[VideoInput] = None) -> ScriptAnalysis:
        """
        Analyze a script and/or video.

        Raises:
            AnalysisInputError: Neither script text nor video given
            AnalysisError: Missing key, upstream failure after retries, or
                an answer that does not parse
        """
        if not (script_text or '').strip() and video is None:
            raise AnalysisInputError("Provide a video or a script / description.")
        if not self.api_key:
            raise AnalysisError("GEMINI_API_KEY is not configured")

        body = self.build_request(script_text, video)
        logger.info(
            f"{correlation_tag()} [ANALYSIS] start model={self.model} "
            f"has_script={bool((script_text or '').strip())} has_video={video is not None}"
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay, min=0, max=10),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._post(body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AnalysisError(f"Analysis request failed: {type(exc).__name__}: {exc}") from exc

        analysis = parse_analysis_text(extract_response_text(response))
        logger.info(f"{correlation_tag()} [ANALYSIS] done title={analysis.title!r} mood={analysis.mood!r}")
        return analysis
