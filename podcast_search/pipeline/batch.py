"""Batch entry point: import, plan, run the pipeline, store the results.

WHY: The scheduled job that keeps the transcript corpus complete is the
same sequence every time. Keeping it in one function lets the CLI and the
HTTP API trigger identical runs.

HOW: Optionally import new episodes, compute the set of episodes without
transcripts, classify them with the planner, feed them to a JobManager,
wait for the batch and insert the produced transcripts.

RULES:
- Directories are created before planning
- Unreadable cache files fail the batch before any job starts
- Transcripts are inserted only if the whole batch succeeds
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from podcast_search.api.client import EpisodeClient
from podcast_search.context import AppContext
from podcast_search.core.ir import EpisodeTranscript
from podcast_search.errors import PipelineError
from podcast_search.importer import import_episodes
from podcast_search.pipeline.audio import convert_to_wav
from podcast_search.pipeline.jobs import JobStore
from podcast_search.pipeline.manager import AudioConverter, JobManager
from podcast_search.pipeline.planner import (
    WorkPlan,
    cache_path,
    plan_work,
    read_segment_cache,
    scan_ids,
)
from podcast_search.transcription.client import InferenceClient

logger = logging.getLogger(__name__)


def build_plan(ctx: AppContext) -> WorkPlan:
    """Classify every stored episode that has no transcript yet."""
    settings = ctx.settings
    settings.ensure_dirs()
    return plan_work(
        ctx.store.episode_ids(),
        transcribed=set(ctx.store.transcript_ids()),
        cached=scan_ids(settings.cache_dir, ".json"),
        converted_audio=scan_ids(settings.wav_dir, ".wav"),
    )


def submit_plan(manager: JobManager, plan: WorkPlan, ctx: AppContext) -> None:
    """Queue every planned episode at its starting stage."""
    cached = {}
    for episode_id in plan.convert:
        path = cache_path(ctx.settings.cache_dir, episode_id)
        try:
            segments = read_segment_cache(path)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise PipelineError(
                "Unreadable cache file {}: {}".format(path, exc),
                episode_id=episode_id,
                stage="convert",
            ) from exc
        cached[episode_id] = segments

    for episode_id, segments in cached.items():
        manager.run_convert(episode_id, segments)
    for episode_id in plan.download:
        manager.run_download(episode_id)
    for episode_id in plan.transcribe:
        manager.run_transcribe(episode_id)


async def transcribe_missing(
    ctx: AppContext,
    import_first: bool = True,
    jobs: list[JobStore] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    convert_audio: AudioConverter = convert_to_wav,
) -> list[EpisodeTranscript]:
    """Produce and store transcripts for every episode that lacks one.

    Args:
        ctx: Application context.
        import_first: Import new episodes from the remote API first.
        jobs: If given, the run's JobStore is appended to it so callers
            can observe progress.
        transport: httpx transport shared by both HTTP clients.
        convert_audio: Replaces the ffmpeg conversion step.

    Returns:
        The transcripts inserted into the store.

    Raises:
        PipelineError: The first job failure, once the jobs still in flight
            have finished. Nothing is inserted for a failed batch.
    """
    settings = ctx.settings
    async with EpisodeClient(settings.api_url, transport=transport) as episodes, \
            InferenceClient(settings.inference_url, transport=transport) as inference:
        if import_first:
            await import_episodes(ctx, episodes)

        plan = await asyncio.to_thread(build_plan, ctx)
        logger.info(
            "Planned %d episodes: %d download, %d transcribe, %d convert",
            len(plan), len(plan.download), len(plan.transcribe), len(plan.convert),
        )
        if not plan:
            return []

        manager = JobManager(ctx.store, settings, episodes, inference, convert_audio=convert_audio)
        if jobs is not None:
            jobs.append(manager.jobs)
        submit_plan(manager, plan, ctx)
        try:
            transcripts = await manager.wait()
        except PipelineError:
            await manager.finished()
            raise

    if transcripts:
        await asyncio.to_thread(ctx.store.insert_transcripts, transcripts)
    return transcripts
