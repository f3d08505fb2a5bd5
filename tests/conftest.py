"""
Pytest configuration and fixtures.
"""

import pytest

from tests.fakes.fake_music_api import FakeSession

ENV_KEYS = (
    'MUSIC_PROVIDER',
    'SUNO_API_KEY',
    'UDIO_API_KEY',
    'MUSIC_API_URL',
    'MUSIC_CALLBACK_URL',
    'MUSIC_POLL_INTERVAL_SECONDS',
    'MUSIC_POLL_MAX_ATTEMPTS',
    'MUSIC_POLL_ERROR_BUDGET',
    'MUSIC_EMPTY_SUCCESS_GRACE',
    'MUSIC_REQUEST_TIMEOUT_SECONDS',
    'GEMINI_API_KEY',
    'API_KEY',
    'GEMINI_API_URL',
    'GEMINI_MODEL',
    'ANALYSIS_TIMEOUT_SECONDS',
    'LOG_LEVEL',
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the settings read, so the host env cannot leak in."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def fake_session():
    return FakeSession()
