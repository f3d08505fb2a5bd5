"""
Tests for the poll loop / state machine.

Uses FakeStatusSource with a zero interval, so no test sleeps and none can
hang: every scenario terminates within its attempt budget.
"""
import asyncio

import pytest

from soundtrack.music.errors import (
    ConfigurationError,
    GenerationFailedError,
    IncompleteSuccessError,
    PollCancelledError,
    PollTimeoutError,
    RepeatedUpstreamFailure,
    UpstreamRequestError,
)
from soundtrack.music.models import AttemptOutcome, StatusCode
from soundtrack.music.normalizer import SchemaVariant
from soundtrack.music.poller import CancellationToken, PollConfig, poll_for_result
from soundtrack.music.progress import ProgressUpdate
from soundtrack.music.providers import SUNO, UDIO
from tests.fakes.fake_music_api import FakeStatusSource, feed, record_info, track


def _config(**kwargs):
    values = {'attempt_budget': 10, 'interval_seconds': 0, 'error_budget': 5}
    values.update(kwargs)
    return PollConfig(**values)


class RecordingObserver:
    def __init__(self):
        self.updates = []

    def on_progress(self, update: ProgressUpdate) -> None:
        self.updates.append(update)


class TestTerminalStates:
    @pytest.mark.asyncio
    async def test_success_after_pending(self):
        source = FakeStatusSource([
            record_info("PENDING"),
            record_info("PENDING"),
            record_info("SUCCESS", [track(0), track(1)]),
        ])

        tracks = await poll_for_result('task-1', 'k', source, _config())

        assert source.call_count == 3
        assert [t.id for t in tracks] == ['audio-0', 'audio-1']
        assert source.calls[0] == {'job_id': 'task-1', 'credential': 'k'}

    @pytest.mark.asyncio
    async def test_failed_raises_with_upstream_message(self):
        source = FakeStatusSource([
            record_info("PENDING"),
            record_info("GENERATE_AUDIO_FAILED", errorMessage="engine crashed"),
        ])

        with pytest.raises(GenerationFailedError) as exc_info:
            await poll_for_result('task-1', 'k', source, _config())

        assert exc_info.value.upstream_message == "engine crashed"
        assert exc_info.value.raw_status == "GENERATE_AUDIO_FAILED"
        assert source.call_count == 2

    @pytest.mark.asyncio
    async def test_failed_without_message_uses_raw_status(self):
        source = FakeStatusSource([record_info("SENSITIVE_WORD_ERROR")])

        with pytest.raises(GenerationFailedError) as exc_info:
            await poll_for_result('task-1', 'k', source, _config())

        assert "SENSITIVE_WORD_ERROR" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_success_with_only_unplayable_entries_is_incomplete(self):
        source = FakeStatusSource([record_info("SUCCESS", [{'id': 'x', 'streamAudioUrl': 'https://s'}])])

        with pytest.raises(IncompleteSuccessError) as exc_info:
            await poll_for_result('task-1', 'k', source, _config())

        assert exc_info.value.user_message == "Generation completed but no audio data returned"
        assert source.call_count == 1

    @pytest.mark.asyncio
    async def test_feed_schema(self):
        source = FakeStatusSource([
            feed([]),
            feed([{'id': 'w-1', 'status': 'streaming'}]),
            feed([{'id': 'w-1', 'status': 'complete', 'audio_url': 'https://cdn/w.mp3'}]),
        ])

        tracks = await poll_for_result('w-1', 'k', source, _config(), schema=SchemaVariant.FEED)

        assert [t.audio_url for t in tracks] == ['https://cdn/w.mp3']


class TestBudgets:
    @pytest.mark.asyncio
    async def test_timeout_after_exactly_attempt_budget(self):
        source = FakeStatusSource([record_info("PENDING")])

        with pytest.raises(PollTimeoutError) as exc_info:
            await poll_for_result('task-1', 'k', source, _config(attempt_budget=4))

        assert source.call_count == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.last_known_status.status == StatusCode.PENDING
        assert exc_info.value.user_message == "Generation timeout, please try again later"

    @pytest.mark.asyncio
    async def test_unknown_status_keeps_polling(self):
        source = FakeStatusSource([record_info("MYSTERY"), record_info("SUCCESS", [track()])])

        tracks = await poll_for_result('task-1', 'k', source, _config())

        assert len(tracks) == 1
        assert source.call_count == 2

    @pytest.mark.asyncio
    async def test_error_budget_exhausted(self):
        error = UpstreamRequestError(503, "Service Unavailable")
        source = FakeStatusSource([error])

        with pytest.raises(RepeatedUpstreamFailure) as exc_info:
            await poll_for_result('task-1', 'k', source, _config(error_budget=3))

        assert source.call_count == 3
        assert exc_info.value.last_error is error
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_valid_response_resets_error_budget(self):
        blip = UpstreamRequestError(None, "Connection reset")
        source = FakeStatusSource([
            blip, blip,
            record_info("PENDING"),
            blip, blip,
            record_info("SUCCESS", [track()]),
        ])

        tracks = await poll_for_result('task-1', 'k', source, _config(error_budget=3))

        assert len(tracks) == 1
        assert source.call_count == 6

    @pytest.mark.asyncio
    async def test_malformed_body_counts_as_transient(self):
        source = FakeStatusSource(["<html>502</html>", record_info("SUCCESS", [track()])])

        tracks = await poll_for_result('task-1', 'k', source, _config())

        assert len(tracks) == 1

    @pytest.mark.asyncio
    async def test_transient_errors_count_against_attempt_budget(self):
        source = FakeStatusSource([asyncio.TimeoutError()])

        with pytest.raises(PollTimeoutError):
            await poll_for_result('task-1', 'k', source, _config(attempt_budget=3, error_budget=10))

        assert source.call_count == 3

    @pytest.mark.asyncio
    async def test_fatal_error_propagates_immediately(self):
        source = FakeStatusSource([ConfigurationError("no key"), record_info("SUCCESS", [track()])])

        with pytest.raises(ConfigurationError):
            await poll_for_result('task-1', 'k', source, _config())

        assert source.call_count == 1


class TestEmptySuccessGrace:
    @pytest.mark.asyncio
    async def test_grace_window_allows_late_tracks(self):
        source = FakeStatusSource([
            record_info("SUCCESS", []),
            record_info("SUCCESS", [track()]),
        ])

        tracks = await poll_for_result('task-1', 'k', source, _config(empty_success_grace_attempts=2))

        assert len(tracks) == 1

    @pytest.mark.asyncio
    async def test_grace_window_expires(self):
        source = FakeStatusSource([record_info("SUCCESS", [])])

        with pytest.raises(IncompleteSuccessError):
            await poll_for_result('task-1', 'k', source, _config(empty_success_grace_attempts=2))

        assert source.call_count == 3

    @pytest.mark.asyncio
    async def test_budget_running_out_during_grace_is_incomplete(self):
        source = FakeStatusSource([record_info("PENDING"), record_info("SUCCESS", [])])

        with pytest.raises(IncompleteSuccessError):
            await poll_for_result(
                'task-1', 'k', source, _config(attempt_budget=3, empty_success_grace_attempts=5)
            )


class TestProgress:
    @pytest.mark.asyncio
    async def test_fractions_never_decrease(self):
        source = FakeStatusSource([
            record_info("PENDING"),
            record_info("FIRST_SUCCESS"),
            record_info("TEXT_SUCCESS"),
            record_info("MYSTERY"),
            record_info("SUCCESS", [track()]),
        ])
        observer = RecordingObserver()

        await poll_for_result('task-1', 'k', source, _config(), progress=observer)

        fractions = [u.fraction for u in observer.updates if u.fraction is not None]
        assert fractions == [0.1, 0.7, 0.7, 1.0]
        assert observer.updates[-1].message == "Audio generation complete!"
        assert observer.updates[0].message == "Task queued..."

    @pytest.mark.asyncio
    async def test_callable_progress(self):
        calls = []
        source = FakeStatusSource([record_info("TEXT_SUCCESS"), record_info("SUCCESS", [track()])])

        await poll_for_result('task-1', 'k', source, _config(), progress=lambda msg, frac: calls.append((msg, frac)))

        assert calls == [
            ("Text generation complete, generating audio...", 0.4),
            ("Audio generation complete!", 1.0),
        ]

    @pytest.mark.asyncio
    async def test_retry_message_on_transient_error(self):
        calls = []
        source = FakeStatusSource([UpstreamRequestError(500, "oops"), record_info("SUCCESS", [track()])])

        await poll_for_result('task-1', 'k', source, _config(), progress=lambda msg, frac: calls.append(msg))

        assert calls[0] == "Request failed, retrying... (1/10)"

    @pytest.mark.asyncio
    async def test_observer_exception_does_not_abort_polling(self):
        def broken(message, fraction):
            raise RuntimeError("UI gone")

        source = FakeStatusSource([record_info("PENDING"), record_info("SUCCESS", [track()])])

        tracks = await poll_for_result('task-1', 'k', source, _config(), progress=broken)

        assert len(tracks) == 1

    @pytest.mark.asyncio
    async def test_attempt_listener_sees_outcomes(self):
        attempts = []
        source = FakeStatusSource([
            record_info("PENDING"),
            UpstreamRequestError(503, "busy"),
            record_info("SUCCESS", [track()]),
        ])

        await poll_for_result('task-1', 'k', source, _config(), on_attempt=attempts.append)

        assert [a.attempt_index for a in attempts] == [0, 1, 2]
        assert [a.outcome for a in attempts] == [
            AttemptOutcome.OK_PENDING,
            AttemptOutcome.TRANSIENT_ERROR,
            AttemptOutcome.OK_TERMINAL_SUCCESS,
        ]

    def test_unsupported_progress_type(self):
        source = FakeStatusSource([record_info("PENDING")])
        with pytest.raises(TypeError):
            asyncio.run(poll_for_result('task-1', 'k', source, _config(), progress=42))


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_start(self):
        token = CancellationToken()
        token.cancel("navigated away")
        source = FakeStatusSource([record_info("PENDING")])

        with pytest.raises(PollCancelledError) as exc_info:
            await poll_for_result('task-1', 'k', source, _config(), cancel=token)

        assert source.call_count == 0
        assert exc_info.value.attempts == 0

    @pytest.mark.asyncio
    async def test_cancel_wakes_the_sleep(self):
        token = CancellationToken()
        source = FakeStatusSource([record_info("PENDING")])
        config = _config(interval_seconds=30)

        task = asyncio.create_task(poll_for_result('task-1', 'k', source, config, cancel=token))
        await asyncio.sleep(0.01)
        token.cancel()

        with pytest.raises(PollCancelledError):
            await asyncio.wait_for(task, timeout=1)
        assert source.call_count == 0

    @pytest.mark.asyncio
    async def test_cancel_from_observer_stops_next_iteration(self):
        token = CancellationToken()
        source = FakeStatusSource([record_info("PENDING")])

        with pytest.raises(PollCancelledError) as exc_info:
            await poll_for_result(
                'task-1', 'k', source, _config(), progress=lambda m, f: token.cancel(), cancel=token
            )

        assert exc_info.value.attempts == 1


class TestPollConfig:
    def test_provider_defaults(self):
        assert PollConfig.for_provider(SUNO) == PollConfig(attempt_budget=60, interval_seconds=5.0)
        assert PollConfig.for_provider(UDIO).attempt_budget == 30
        assert PollConfig.for_provider(UDIO).interval_seconds == 10.0

    def test_overrides_ignore_none(self):
        config = PollConfig.for_provider(SUNO, attempt_budget=None, interval_seconds=1.5, error_budget=2)
        assert config.attempt_budget == 60
        assert config.interval_seconds == 1.5
        assert config.error_budget == 2

    @pytest.mark.parametrize("kwargs", [
        {'attempt_budget': 0},
        {'error_budget': 0},
        {'interval_seconds': -1},
        {'empty_success_grace_attempts': -1},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            PollConfig(**kwargs)


class TestFlatStatusBody:
    @pytest.mark.asyncio
    async def test_top_level_track_list(self):
        source = FakeStatusSource([
            {'status': 'PENDING'},
            {'status': 'PENDING'},
            {'status': 'SUCCESS', 'tracks': [{'id': 't1', 'audioUrl': 'https://x/a.mp3'}]},
        ])

        tracks = await poll_for_result('job', 'k', source, _config())

        assert [t.id for t in tracks] == ['t1']
        assert source.call_count == 3


class TestBusinessCodes:
    @pytest.mark.asyncio
    async def test_business_error_code_exhausts_error_budget(self):
        source = FakeStatusSource([{'code': 500, 'msg': 'busy', 'data': None}])

        with pytest.raises(RepeatedUpstreamFailure) as exc_info:
            await poll_for_result('task-1', 'k', source, _config(error_budget=3))

        assert source.call_count == 3
        assert exc_info.value.last_error.code == 500

    @pytest.mark.asyncio
    async def test_business_error_then_success(self):
        source = FakeStatusSource([
            {'code': 429, 'msg': 'slow down'},
            record_info("SUCCESS", [track()]),
        ])
        attempts = []

        tracks = await poll_for_result('task-1', 'k', source, _config(), on_attempt=attempts.append)

        assert len(tracks) == 1
        assert attempts[0].outcome == AttemptOutcome.TRANSIENT_ERROR
