"""Tests for environment-driven settings."""
from soundtrack.config import Settings, load_settings
from soundtrack.music.providers import SUNO, UDIO


class TestSettingsFromEnv:
    def test_defaults(self, clean_env):
        settings = Settings.from_env()

        assert settings.provider is SUNO
        assert settings.music_api_key == ''
        assert settings.poll_error_budget == 5
        assert settings.empty_success_grace_attempts == 0
        assert settings.poll_config().attempt_budget == 60
        assert settings.poll_config().interval_seconds == 5.0

    def test_udio_selection_and_key(self, clean_env):
        clean_env.setenv('MUSIC_PROVIDER', 'Udio')
        clean_env.setenv('SUNO_API_KEY', 'suno-key')
        clean_env.setenv('UDIO_API_KEY', ' udio-key ')

        settings = Settings.from_env()

        assert settings.provider is UDIO
        assert settings.music_api_key == 'udio-key'

    def test_invalid_provider_falls_back_to_suno(self, clean_env):
        clean_env.setenv('MUSIC_PROVIDER', 'mubert')
        assert Settings.from_env().provider is SUNO

    def test_poll_overrides(self, clean_env):
        clean_env.setenv('MUSIC_POLL_INTERVAL_SECONDS', '2.5')
        clean_env.setenv('MUSIC_POLL_MAX_ATTEMPTS', '12')
        clean_env.setenv('MUSIC_POLL_ERROR_BUDGET', '3')
        clean_env.setenv('MUSIC_EMPTY_SUCCESS_GRACE', '2')

        config = Settings.from_env().poll_config()

        assert config.interval_seconds == 2.5
        assert config.attempt_budget == 12
        assert config.error_budget == 3
        assert config.empty_success_grace_attempts == 2

    def test_invalid_numbers_use_defaults(self, clean_env, caplog):
        clean_env.setenv('MUSIC_POLL_MAX_ATTEMPTS', 'lots')
        clean_env.setenv('MUSIC_REQUEST_TIMEOUT_SECONDS', 'soon')

        settings = Settings.from_env()

        assert settings.poll_max_attempts is None
        assert settings.request_timeout_seconds == 30.0
        assert "Invalid MUSIC_POLL_MAX_ATTEMPTS" in caplog.text

    def test_gemini_key_fallback(self, clean_env):
        clean_env.setenv('API_KEY', 'legacy-key')
        assert Settings.from_env().gemini_api_key == 'legacy-key'

        clean_env.setenv('GEMINI_API_KEY', 'gemini-key')
        assert Settings.from_env().gemini_api_key == 'gemini-key'

    def test_new_key_picked_up_by_next_load(self, clean_env):
        assert load_settings(dotenv=False).music_api_key == ''

        clean_env.setenv('SUNO_API_KEY', 'fresh')

        assert load_settings(dotenv=False).music_api_key == 'fresh'
