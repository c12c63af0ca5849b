"""
Audio transform pipeline orchestrator.

Sequences fetch -> filter planning -> transcode for one request, supervises
both external collaborators under a whole-request deadline, and guarantees
the request's two temp files are released on every exit path, including a
response that is never sent.
"""

import time
import asyncio
import logging
import functools
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError

from .types import TransformRequest, PipelineStage
from .filters import plan_filters
from .session import Session, SessionManager
from pitchperfect.settings import Settings
from pitchperfect.services.base import AudioPipelineError, InvalidRequest, PipelineTimeout, TransformFailed
from pitchperfect.services.youtube import YouTubeSource
from pitchperfect.services.ffmpeg import FFmpegTranscoder
from pitchperfect.utils.cancellation import CancellationToken
from pitchperfect.utils.scheduler import ScheduledTask, TaskScheduler

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    """Book-keeping for one request as it moves through the stages."""
    request: Optional[TransformRequest] = None
    session: Optional[Session] = None
    stage: PipelineStage = PipelineStage.VALIDATING
    failure: Optional[str] = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage
        session_id = self.session.session_id if self.session else "-"
        source_id = self.request.source_id if self.request else "-"
        logger.info(f"[{session_id}] {source_id}: {stage.value}")

    def fail(self, error: Exception) -> None:
        self.failure = str(error)
        self.advance(PipelineStage.FAILED)


@dataclass
class ProcessedAudio:
    """A finished transcode whose temp files are still leased."""
    run: PipelineRun
    _lease: ExitStack
    _fallback: Optional[ScheduledTask] = None

    @property
    def session(self) -> Session:
        return self.run.session

    def cancel_fallback(self) -> None:
        if self._fallback is not None:
            self._fallback.cancel()
            self._fallback = None

    def release(self) -> None:
        self.cancel_fallback()
        self._lease.close()


class AudioPipelineOrchestrator:
    def __init__(self, settings: Settings, sessions: SessionManager, source: YouTubeSource,
                 transcoder: FFmpegTranscoder, scheduler: TaskScheduler):
        self.settings = settings
        self.sessions = sessions
        self.source = source
        self.transcoder = transcoder
        self.scheduler = scheduler

    @staticmethod
    def validate(source_id: str, pitch_shift: int = 0, speed: float = 1.0) -> TransformRequest:
        """Build a TransformRequest or raise InvalidRequest; nothing external is touched."""
        try:
            return TransformRequest(source_id=source_id, pitch_shift=pitch_shift, speed=speed)
        except ValidationError as e:
            raise InvalidRequest(str(e)) from e

    async def _run_stage(self, run: PipelineRun, token: CancellationToken, fn, *args):
        """
        Run one blocking sub-step on a worker thread, bounded by the token's deadline.

        The worker is not interrupted by the timeout itself; cancelling the token
        tells a polling adapter to stop, and the request moves on either way.
        """
        try:
            loop = asyncio.get_running_loop()
            result = await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, *args)), timeout=token.remaining()
            )
        except asyncio.TimeoutError:
            token.cancel()
            raise PipelineTimeout(f"Processing timeout during {run.stage.value}")
        if token.cancelled:
            raise PipelineTimeout(f"Processing timeout after {run.stage.value}")
        return result

    async def process(self, request: TransformRequest) -> ProcessedAudio:
        """
        Fetch and transcode one request.

        On success the returned ProcessedAudio still holds the session lease;
        schedule_release() hands it back after the grace delay, and a fallback
        timer releases it if the response is never sent. On failure the lease
        is released before the error propagates.
        """
        run = PipelineRun(request=request)
        token = CancellationToken(timeout=self.settings.request_deadline_s)
        deadline = self.scheduler.call_later(
            self.settings.request_deadline_s, token.cancel, name=f"deadline:{request.source_id}"
        )

        try:
            with ExitStack() as lease:
                run.session = lease.enter_context(self.sessions.lease(request.source_id))
                try:
                    run.advance(PipelineStage.FETCHING)
                    fetch_token = token.child(self.settings.fetch_timeout_s)
                    await self._run_stage(
                        run, fetch_token,
                        self.source.fetch_audio, request.source_id, run.session.input_path, fetch_token,
                    )

                    filters = plan_filters(request.pitch_shift, request.speed, self.settings.base_sample_rate)
                    logger.info(f"[{run.session.session_id}] filters: {filters.render() or 'none'}")

                    run.advance(PipelineStage.TRANSFORMING)
                    await self._run_stage(
                        run, token,
                        self.transcoder.transform,
                        run.session.input_path,
                        run.session.output_path,
                        filters,
                        self.settings.transform_timeout_s,
                        token,
                    )
                    if not run.session.output_path.is_file():
                        raise TransformFailed(f"Transcoder produced no output for {request.source_id}")
                except AudioPipelineError as e:
                    run.fail(e)
                    logger.error(f"Pipeline failed for {request.source_id}: {e}", exc_info=True)
                    if token.cancelled and not isinstance(e, PipelineTimeout):
                        raise PipelineTimeout(f"Processing timeout during {run.stage.value}") from e
                    raise
                except Exception as e:
                    run.fail(e)
                    logger.exception(f"Unexpected pipeline failure for {request.source_id}")
                    raise

                handoff = lease.pop_all()
        finally:
            deadline.cancel()

        processed = ProcessedAudio(run=run, _lease=handoff)
        if self.scheduler.running:
            processed._fallback = self.scheduler.call_later(
                self.settings.abandoned_release_s, processed.release,
                name=f"abandoned:{run.session.session_id}",
            )
        run.advance(PipelineStage.STREAMING)
        return processed

    async def schedule_release(self, processed: ProcessedAudio) -> None:
        """Response sent: swap the fallback timer for the grace-delay release."""
        processed.cancel_fallback()
        processed.run.advance(PipelineStage.DONE)
        logger.info(f"[{processed.session.session_id}] finished in {processed.run.elapsed:.2f}s")
        if self.scheduler.running:
            self.scheduler.call_later(
                self.settings.cleanup_grace_s, processed.release,
                name=f"cleanup:{processed.session.session_id}",
            )
        else:
            processed.release()
