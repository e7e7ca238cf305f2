"""Three-stage acquisition pipeline: download → transcribe → convert.

WHY: Producing a transcript means downloading the audio, converting it,
sending it to a single inference server and normalizing the result. The
slow stages must overlap across episodes, but the inference server can
only handle one request at a time and downloads must not flood the host.

HOW: Each stage is an asyncio.Queue consumed by a fixed pool of worker
tasks, each job admitted through the stage's AdmissionLimiter. A
successful job enqueues the episode in the next stage. wait() joins the
download queue, then the transcribe queue, then the convert queue, so
every follow-up job is enqueued before its stage is drained.

RULES:
- Per episode the order is strictly download → transcribe → convert
- No ordering across episodes
- Capacities come from Settings (download 4, transcribe 1, convert 4)
- The first failure fails that episode's job and makes wait() raise it
- Failures do not cancel sibling jobs; they finish and their results are
  discarded
- A manager runs one batch: run_* after wait() raises RuntimeError
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol

from podcast_search.config import Settings
from podcast_search.core.ir import EpisodeTranscript, RawSegment
from podcast_search.core.normalizer import normalize
from podcast_search.errors import DownloadError, PipelineError
from podcast_search.pipeline.audio import convert_to_wav
from podcast_search.pipeline.jobs import JobStatus, JobStore
from podcast_search.pipeline.limiter import AdmissionLimiter
from podcast_search.pipeline.planner import cache_path, write_segment_cache
from podcast_search.store.base import EpisodeStore

logger = logging.getLogger(__name__)

_STOP = object()

AudioConverter = Callable[..., Awaitable[Path]]


class Downloader(Protocol):
    async def download(self, url: str, dest: Path, episode_id: int | None = None) -> Path: ...


class Transcriber(Protocol):
    async def transcribe(self, audio_path: Path, episode_id: int | None = None) -> list[RawSegment]: ...


class _Stage:
    """A queue, a pool of workers and the limiter that admits their jobs."""

    def __init__(
        self,
        name: str,
        capacity: int,
        handler: Callable[[int, Any], Awaitable[None]],
        on_error: Callable[[str, int, Exception], None],
    ) -> None:
        self.name = name
        self.limiter = AdmissionLimiter(capacity)
        self._handler = handler
        self._on_error = on_error
        self._queue: asyncio.Queue | None = None
        self._workers: list[asyncio.Task] = []

    def submit(self, episode_id: int, payload: Any = None) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
            self._workers = [
                asyncio.create_task(self._work(), name="{}-{}".format(self.name, i))
                for i in range(self.limiter.capacity)
            ]
        self._queue.put_nowait((episode_id, payload))

    async def _work(self) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                episode_id, payload = item
                try:
                    async with self.limiter:
                        await self._handler(episode_id, payload)
                except Exception as exc:  # recorded by the manager, raised from wait()
                    self._on_error(self.name, episode_id, exc)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every submitted job (and its handler) has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Stop the workers once the queued jobs are done."""
        if self._queue is None:
            return
        for _ in self._workers:
            self._queue.put_nowait(_STOP)
        await asyncio.gather(*self._workers)


class JobManager:
    """Drives episodes through download, transcription and conversion.

    Example:
        manager = JobManager(store, settings, episode_client, inference_client)
        manager.run_download(56245683)
        transcripts = await manager.wait()
    """

    def __init__(
        self,
        store: EpisodeStore,
        settings: Settings,
        downloader: Downloader,
        transcriber: Transcriber,
        convert_audio: AudioConverter = convert_to_wav,
    ) -> None:
        self._store = store
        self._settings = settings
        self._downloader = downloader
        self._transcriber = transcriber
        self._convert_audio = convert_audio
        self.jobs = JobStore()
        self._download = _Stage("download", settings.max_download_jobs, self._run_download, self._record_failure)
        self._transcribe = _Stage("transcribe", settings.max_transcribe_jobs, self._run_transcribe, self._record_failure)
        self._convert = _Stage("convert", settings.max_convert_jobs, self._run_convert, self._record_failure)
        self._results: list[EpisodeTranscript] = []
        self._failure: PipelineError | None = None
        self._failed = asyncio.Event()
        self._finishing: asyncio.Task | None = None
        self._waited = False

    @property
    def limiters(self) -> dict[str, AdmissionLimiter]:
        return {stage.name: stage.limiter for stage in self._stages}

    @property
    def _stages(self) -> tuple[_Stage, _Stage, _Stage]:
        return (self._download, self._transcribe, self._convert)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _register(self, episode_id: int) -> None:
        if self._waited:
            raise RuntimeError("JobManager.wait() was already called; create a new manager")
        self.jobs.create_job(episode_id)

    def run_download(self, episode_id: int) -> None:
        """Queue an episode whose audio is not on disk yet."""
        self._register(episode_id)
        self._download.submit(episode_id)

    def run_transcribe(self, episode_id: int) -> None:
        """Queue an episode whose converted WAV is already on disk."""
        self._register(episode_id)
        self._transcribe.submit(episode_id)

    def run_convert(self, episode_id: int, segments: list[RawSegment]) -> None:
        """Queue an episode whose recognizer output is already known."""
        self._register(episode_id)
        self._convert.submit(episode_id, segments)

    # ------------------------------------------------------------------
    # Stage handlers
    # ------------------------------------------------------------------

    async def _run_download(self, episode_id: int, _: Any) -> None:
        self.jobs.update_job(episode_id, JobStatus.DOWNLOADING)
        episode = await asyncio.to_thread(self._store.get_episode, episode_id)
        if episode is None:
            raise DownloadError(
                "Episode {} is not in the store".format(episode_id),
                episode_id=episode_id,
                stage="download",
            )

        mp3 = self._settings.mp3_dir / "{}.mp3".format(episode_id)
        wav = self._settings.wav_dir / "{}.wav".format(episode_id)
        logger.info("Downloading episode %d", episode_id)
        await self._downloader.download(episode.download_url, mp3, episode_id=episode_id)
        await self._convert_audio(mp3, wav, sample_rate=self._settings.sample_rate, episode_id=episode_id)
        self._transcribe.submit(episode_id)

    async def _run_transcribe(self, episode_id: int, _: Any) -> None:
        self.jobs.update_job(episode_id, JobStatus.TRANSCRIBING)
        wav = self._settings.wav_dir / "{}.wav".format(episode_id)
        segments = await self._transcriber.transcribe(wav, episode_id=episode_id)
        await asyncio.to_thread(
            write_segment_cache, cache_path(self._settings.cache_dir, episode_id), segments
        )
        self._convert.submit(episode_id, segments)

    async def _run_convert(self, episode_id: int, segments: list[RawSegment]) -> None:
        self.jobs.update_job(episode_id, JobStatus.CONVERTING)
        transcript = normalize(episode_id, segments)
        self._results.append(transcript)
        self.jobs.update_job(episode_id, JobStatus.COMPLETED)
        logger.info("Episode %d converted: %d segments", episode_id, len(transcript.timestamps))

    def _record_failure(self, stage: str, episode_id: int, exc: Exception) -> None:
        if isinstance(exc, PipelineError):
            error = exc
            if error.episode_id is None:
                error.episode_id = episode_id
            if error.stage is None:
                error.stage = stage
        else:
            error = PipelineError(
                "{} failed for episode {}: {}".format(stage, episode_id, exc),
                episode_id=episode_id,
                stage=stage,
            )
            error.__cause__ = exc
        self.jobs.fail_job(episode_id, str(error))
        if self._failure is None:
            self._failure = error
            self._failed.set()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _drain_or_fail(self, stage: _Stage) -> None:
        drained = asyncio.ensure_future(stage.drain())
        failed = asyncio.ensure_future(self._failed.wait())
        await asyncio.wait({drained, failed}, return_when=asyncio.FIRST_COMPLETED)
        for task in (drained, failed):
            if not task.done():
                task.cancel()
        if self._failure is not None:
            raise self._failure

    async def _finish(self) -> None:
        for stage in self._stages:
            await stage.drain()
        for stage in self._stages:
            await stage.close()

    async def wait(self) -> list[EpisodeTranscript]:
        """Drain all stages and return every produced transcript.

        Raises:
            PipelineError: The first failure of any job. Jobs still in
                flight keep running in the background (await finished()
                before closing their clients); their results are discarded.
        """
        self._waited = True
        try:
            for stage in self._stages:
                await self._drain_or_fail(stage)
        except PipelineError:
            logger.error("Batch aborted; letting %d in-flight stage workers finish", sum(
                s.limiter.in_flight for s in self._stages
            ))
            self._finishing = asyncio.create_task(self._finish())
            raise

        for stage in self._stages:
            await stage.close()
        logger.info("Batch finished: %d transcripts", len(self._results))
        return list(self._results)

    async def finished(self) -> None:
        """Wait for the jobs still in flight after wait() raised."""
        if self._finishing is not None:
            await self._finishing
