"""
Application configuration loaded from environment variables.

Settings are a plain value built by ``load_settings()`` and passed to the
code that needs them; there is no cached module-level instance, so a new key
in the environment is picked up by the next load.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from soundtrack.music.poller import DEFAULT_ERROR_BUDGET, PollConfig
from soundtrack.music.providers import DEFAULT_CALLBACK_URL, ProviderProfile, get_provider

logger = logging.getLogger(__name__)

__all__ = ['Settings', 'load_settings']

DEFAULT_GEMINI_API_URL = 'https://generativelanguage.googleapis.com/v1beta'
DEFAULT_GEMINI_MODEL = 'gemini-2.0-flash'


def _env_str(name: str, default: str = '') -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}: {raw}, using {default}")
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name, '').strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}: {raw}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Polling values of None fall back to the provider profile."""
    music_provider: str = 'suno'
    suno_api_key: str = ''
    udio_api_key: str = ''
    music_api_url: str = ''
    callback_url: str = DEFAULT_CALLBACK_URL
    poll_interval_seconds: Optional[float] = None
    poll_max_attempts: Optional[int] = None
    poll_error_budget: int = DEFAULT_ERROR_BUDGET
    empty_success_grace_attempts: int = 0
    request_timeout_seconds: float = 30.0
    gemini_api_key: str = ''
    gemini_api_url: str = DEFAULT_GEMINI_API_URL
    gemini_model: str = DEFAULT_GEMINI_MODEL
    analysis_timeout_seconds: float = 120.0
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment."""
        provider = _env_str('MUSIC_PROVIDER', 'suno').lower() or 'suno'
        try:
            get_provider(provider)
        except ValueError:
            logger.warning(f"Invalid MUSIC_PROVIDER: {provider}, using suno")
            provider = 'suno'

        settings = cls(
            music_provider=provider,
            suno_api_key=_env_str('SUNO_API_KEY'),
            udio_api_key=_env_str('UDIO_API_KEY'),
            music_api_url=_env_str('MUSIC_API_URL'),
            callback_url=_env_str('MUSIC_CALLBACK_URL') or DEFAULT_CALLBACK_URL,
            poll_interval_seconds=_env_float('MUSIC_POLL_INTERVAL_SECONDS', None),
            poll_max_attempts=_env_int('MUSIC_POLL_MAX_ATTEMPTS', None),
            poll_error_budget=_env_int('MUSIC_POLL_ERROR_BUDGET', DEFAULT_ERROR_BUDGET),
            empty_success_grace_attempts=_env_int('MUSIC_EMPTY_SUCCESS_GRACE', 0),
            request_timeout_seconds=_env_float('MUSIC_REQUEST_TIMEOUT_SECONDS', 30.0),
            gemini_api_key=_env_str('GEMINI_API_KEY') or _env_str('API_KEY'),
            gemini_api_url=_env_str('GEMINI_API_URL') or DEFAULT_GEMINI_API_URL,
            gemini_model=_env_str('GEMINI_MODEL') or DEFAULT_GEMINI_MODEL,
            analysis_timeout_seconds=_env_float('ANALYSIS_TIMEOUT_SECONDS', 120.0),
            log_level=_env_str('LOG_LEVEL', 'INFO') or 'INFO',
        )

        if not settings.music_api_key:
            logger.warning(f"{provider.upper()}_API_KEY not set - music generation will fail")
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY is not set. Multimodal analysis will fail without it.")
        return settings

    @property
    def provider(self) -> ProviderProfile:
        return get_provider(self.music_provider)

    @property
    def music_api_key(self) -> str:
        """Credential for the selected provider."""
        if self.music_provider == 'udio':
            return self.udio_api_key
        return self.suno_api_key

    def poll_config(self) -> PollConfig:
        return PollConfig.for_provider(
            self.provider,
            attempt_budget=self.poll_max_attempts,
            interval_seconds=self.poll_interval_seconds,
            error_budget=self.poll_error_budget,
            empty_success_grace_attempts=self.empty_success_grace_attempts,
        )


def load_settings(dotenv: bool = True) -> Settings:
    """Load .env (unless disabled) and read settings from the environment."""
    if dotenv:
        load_dotenv()
    return Settings.from_env()
