"""
Tests for the audio pipeline orchestrator.

Fake adapters stand in for yt-dlp and ffmpeg so the tests exercise:
- stage sequencing and filter planning
- cleanup of both temp files on every exit path
- the whole-request deadline interrupting a running sub-step
- release of a finished request whose response never goes out
"""

import asyncio
import time
from pathlib import Path

import pytest

from pitchperfect.settings import Settings
from pitchperfect.pipeline.audio.orchestrator import AudioPipelineOrchestrator
from pitchperfect.pipeline.audio.session import SessionManager
from pitchperfect.pipeline.audio.types import PipelineStage, Tempo
from pitchperfect.services.base import (
    InvalidRequest, FetchUnavailable, FetchIOError, PipelineTimeout, TransformFailed, TransformTimeout,
)
from pitchperfect.utils.scheduler import TaskScheduler

VIDEO_ID = "dQw4w9WgXcQ"


class FakeSource:
    def __init__(self, error=None, payload=b"webm-bytes", block=False):
        self.error = error
        self.payload = payload
        self.block = block
        self.calls = []

    def fetch_audio(self, source_id, destination, token):
        self.calls.append((source_id, Path(destination)))
        Path(destination).write_bytes(self.payload)
        if self.block:
            while not token.cancelled:
                time.sleep(0.01)
            raise self.error or PipelineTimeout("cancelled")
        if self.error:
            raise self.error
        return destination


class SlowSource:
    """Fetch that never looks at its token, like a stalled extraction."""

    def __init__(self, delay=2.0):
        self.delay = delay

    def fetch_audio(self, source_id, destination, token):
        time.sleep(self.delay)
        return destination


class NoOutputTranscoder:
    def transform(self, input_path, output_path, filters, timeout_s=60, token=None):
        return output_path


class FakeTranscoder:
    def __init__(self, error=None, output=b"ID3" + b"\x00" * 5000):
        self.error = error
        self.output = output
        self.calls = []

    def transform(self, input_path, output_path, filters, timeout_s=60, token=None):
        self.calls.append((Path(input_path), Path(output_path), filters, timeout_s))
        Path(output_path).write_bytes(self.output[:10])
        if self.error:
            raise self.error
        Path(output_path).write_bytes(self.output)
        return output_path


@pytest.fixture
def settings(tmp_path):
    return Settings(temp_dir=tmp_path / "temp", cleanup_grace_s=0, request_deadline_s=5)


def _run(settings, source, transcoder, request_args, consume=True):
    """Run one request end to end inside a fresh loop; returns (result, body, sessions)."""
    async def scenario():
        scheduler = TaskScheduler()
        scheduler.start()
        sessions = SessionManager(settings.temp_dir)
        orchestrator = AudioPipelineOrchestrator(settings, sessions, source, transcoder, scheduler)
        request = orchestrator.validate(*request_args)
        try:
            processed = await orchestrator.process(request)
        except Exception as e:
            return e, None, sessions
        body = b""
        if consume:
            body = processed.session.output_path.read_bytes()
            await orchestrator.schedule_release(processed)
            # let the grace-delay cleanup fire
            await asyncio.sleep(0.05)
        return processed, body, sessions

    return asyncio.run(scenario())


def _temp_files(settings):
    return list(settings.temp_dir.iterdir()) if settings.temp_dir.exists() else []


class TestValidation:

    @pytest.mark.parametrize("args", [
        ("short", 0, 1.0),
        (VIDEO_ID, 13, 1.0),
        (VIDEO_ID, -13, 1.0),
        (VIDEO_ID, 0, 0.2),
        (VIDEO_ID, 0, 2.5),
    ])
    def test_rejects_out_of_range(self, args):
        with pytest.raises(InvalidRequest):
            AudioPipelineOrchestrator.validate(*args)

    def test_accepts_bounds(self):
        request = AudioPipelineOrchestrator.validate(VIDEO_ID, -12, 0.25)
        assert request.pitch_shift == -12
        assert request.speed == 0.25


class TestProcess:

    def test_success_returns_output_and_cleans_up(self, settings):
        source, transcoder = FakeSource(), FakeTranscoder()

        processed, body, sessions = _run(settings, source, transcoder, (VIDEO_ID, 12, 1.5))

        assert body == transcoder.output
        assert processed.run.stage == PipelineStage.DONE
        input_path, output_path, filters, timeout_s = transcoder.calls[0]
        assert input_path == source.calls[0][1]
        assert [s.ratio for s in filters if isinstance(s, Tempo)] == [1.5]
        assert timeout_s == settings.transform_timeout_s
        assert _temp_files(settings) == []
        assert sessions.get_stats()["active_sessions"] == 0

    def test_fetch_failure_removes_partial_input(self, settings):
        source = FakeSource(error=FetchUnavailable("Video unavailable"))
        transcoder = FakeTranscoder()

        error, _, sessions = _run(settings, source, transcoder, (VIDEO_ID, 0, 1.0))

        assert isinstance(error, FetchUnavailable)
        assert transcoder.calls == []
        assert _temp_files(settings) == []
        assert sessions.get_stats()["active_sessions"] == 0

    def test_fetch_io_failure(self, settings):
        error, _, _ = _run(settings, FakeSource(error=FetchIOError("disk full")), FakeTranscoder(),
                           (VIDEO_ID, 0, 1.0))
        assert error.status_code == 500
        assert _temp_files(settings) == []

    def test_transform_failure_removes_both_files(self, settings):
        error, _, _ = _run(settings, FakeSource(), FakeTranscoder(error=TransformFailed("bad input")),
                           (VIDEO_ID, 2, 1.0))

        assert isinstance(error, TransformFailed)
        assert _temp_files(settings) == []

    def test_transform_timeout(self, settings):
        error, _, _ = _run(settings, FakeSource(), FakeTranscoder(error=TransformTimeout("Processing timeout")),
                           (VIDEO_ID, 0, 1.5))
        assert error.status_code == 408
        assert _temp_files(settings) == []

    def test_request_deadline_interrupts_fetch(self, tmp_path):
        """
        Test: whole-request deadline
        How: the fake fetch blocks until its token trips; deadline is 0.1s
        Ensures: the deadline cancels the running sub-step, maps to 408 and leaves no files
        """
        settings = Settings(temp_dir=tmp_path / "temp", cleanup_grace_s=0, request_deadline_s=0.1)
        source = FakeSource(block=True, error=FetchIOError("stream closed"))
        transcoder = FakeTranscoder()

        started = time.monotonic()
        error, _, _ = _run(settings, source, transcoder, (VIDEO_ID, 0, 1.0))

        assert isinstance(error, PipelineTimeout)
        assert error.status_code == 408
        assert time.monotonic() - started < 3
        assert transcoder.calls == []
        assert _temp_files(settings) == []

    def test_unexpected_error_still_cleans_up(self, settings):
        error, _, _ = _run(settings, FakeSource(error=ValueError("boom")), FakeTranscoder(), (VIDEO_ID, 0, 1.0))
        assert isinstance(error, ValueError)
        assert _temp_files(settings) == []

    def test_files_kept_until_response_sent(self, settings):
        """On success the lease is handed to the response, not released early"""
        processed, _, sessions = _run(settings, FakeSource(), FakeTranscoder(), (VIDEO_ID, 0, 1.0), consume=False)

        assert processed.session.output_path.exists()
        assert sessions.get_stats()["active_sessions"] == 1
        processed.release()
        assert _temp_files(settings) == []

    def test_deadline_applies_to_non_polling_fetch(self, tmp_path):
        """
        Test: deadline with a fetch that ignores its token
        How: the fetch sleeps 2s without polling; deadline is 0.2s
        Ensures: process() raises PipelineTimeout near the deadline instead of returning late
        """
        settings = Settings(temp_dir=tmp_path / "temp", cleanup_grace_s=0, request_deadline_s=0.2)
        transcoder = FakeTranscoder()
        sessions = SessionManager(settings.temp_dir)

        async def scenario():
            scheduler = TaskScheduler()
            scheduler.start()
            orchestrator = AudioPipelineOrchestrator(settings, sessions, SlowSource(delay=2.0), transcoder, scheduler)
            started = time.monotonic()
            try:
                await orchestrator.process(orchestrator.validate(VIDEO_ID, 0, 1.0))
            except PipelineTimeout as e:
                return e, time.monotonic() - started
            return None, time.monotonic() - started

        # the abandoned worker thread is joined when the loop closes, after elapsed is taken
        error, elapsed = asyncio.run(scenario())

        assert isinstance(error, PipelineTimeout)
        assert error.status_code == 408
        assert elapsed < 1.5
        assert transcoder.calls == []
        assert sessions.get_stats()["active_sessions"] == 0

    def test_missing_output_is_processing_failure(self, settings):
        error, _, sessions = _run(settings, FakeSource(), NoOutputTranscoder(), (VIDEO_ID, 0, 1.0))

        assert isinstance(error, TransformFailed)
        assert error.status_code == 500
        assert _temp_files(settings) == []
        assert sessions.get_stats()["active_sessions"] == 0

    def test_concurrent_requests_use_distinct_paths(self, settings):
        source, transcoder = FakeSource(), FakeTranscoder()

        async def scenario():
            scheduler = TaskScheduler()
            scheduler.start()
            sessions = SessionManager(settings.temp_dir)
            orchestrator = AudioPipelineOrchestrator(settings, sessions, source, transcoder, scheduler)
            requests = [orchestrator.validate(VIDEO_ID, 0, 1.0) for _ in range(10)]
            results = await asyncio.gather(*(orchestrator.process(r) for r in requests))
            paths = [p for r in results for p in r.session.paths]
            for r in results:
                r.release()
            return paths

        paths = asyncio.run(scenario())

        assert len(paths) == 20
        assert len(set(paths)) == 20
        assert _temp_files(settings) == []


class TestRelease:

    def _orchestrator(self, settings, scheduler):
        sessions = SessionManager(settings.temp_dir)
        return AudioPipelineOrchestrator(settings, sessions, FakeSource(), FakeTranscoder(), scheduler), sessions

    def test_unsent_response_is_released_by_fallback(self, tmp_path):
        """
        Test: a finished request whose response never starts
        How: process() succeeds and schedule_release() is never called
        Ensures: the fallback timer deletes both files and forgets the session
        """
        settings = Settings(temp_dir=tmp_path / "temp", abandoned_release_s=0.05)

        async def scenario():
            scheduler = TaskScheduler()
            scheduler.start()
            orchestrator, sessions = self._orchestrator(settings, scheduler)
            processed = await orchestrator.process(orchestrator.validate(VIDEO_ID, 0, 1.0))
            assert processed.session.output_path.exists()
            await asyncio.sleep(0.2)
            return sessions.get_stats()["active_sessions"]

        active = asyncio.run(scenario())

        assert active == 0
        assert _temp_files(settings) == []

    def test_sent_response_swaps_fallback_for_grace_delay(self, tmp_path):
        settings = Settings(temp_dir=tmp_path / "temp", abandoned_release_s=0.05, cleanup_grace_s=0.3)

        async def scenario():
            scheduler = TaskScheduler()
            scheduler.start()
            orchestrator, _ = self._orchestrator(settings, scheduler)
            processed = await orchestrator.process(orchestrator.validate(VIDEO_ID, 0, 1.0))
            await orchestrator.schedule_release(processed)
            await asyncio.sleep(0.1)
            during_grace = processed.session.output_path.exists()
            await asyncio.sleep(0.4)
            return processed, during_grace

        processed, during_grace = asyncio.run(scenario())

        assert during_grace
        assert processed.run.stage == PipelineStage.DONE
        assert _temp_files(settings) == []

    def test_release_is_idempotent(self, settings):
        processed, _, sessions = _run(settings, FakeSource(), FakeTranscoder(), (VIDEO_ID, 0, 1.0), consume=False)

        processed.release()
        processed.release()

        assert sessions.get_stats()["active_sessions"] == 0
        assert _temp_files(settings) == []
