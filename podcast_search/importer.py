"""Import episode metadata from the remote API into the store.

WHY: The store must know every published episode before the pipeline can
transcribe it or search can return it. The first run imports the whole
back catalogue; later runs only pick up what was published since.

HOW: The listing is newest first. With no status record, every summary is
collected and full details are fetched concurrently (bounded by a
semaphore). With a status record, the listing is read until the first
episode already in the store and only the newer ones are fetched. New
episodes are inserted and the status record is bumped.

RULES:
- Detail fetches run at most settings.import_concurrency at a time
- Incremental import stops at the first known id
- Status is only updated when episodes were inserted (or on first import)
- Any fetch failure aborts the import before anything is inserted
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from podcast_search.api.client import EpisodeClient
from podcast_search.api.models import Episode, EpisodeSummary
from podcast_search.context import AppContext

logger = logging.getLogger(__name__)


async def _fetch_details(
    client: EpisodeClient,
    summaries: list[EpisodeSummary],
    concurrency: int,
) -> list[Episode]:
    semaphore = asyncio.Semaphore(concurrency)

    async def fetch(summary: EpisodeSummary) -> Episode:
        async with semaphore:
            logger.debug("Fetching episode %d", summary.id)
            return await client.fetch_episode(summary.id)

    return list(await asyncio.gather(*(fetch(s) for s in summaries)))


async def import_episodes(
    ctx: AppContext,
    client: EpisodeClient,
    show_id: str | None = None,
) -> list[Episode]:
    """Bring the store up to date with the remote listing.

    Args:
        ctx: Application context (store, settings, status).
        client: An entered EpisodeClient.
        show_id: Show to import; defaults to settings.show_id.

    Returns:
        The newly inserted episodes, newest first.
    """
    settings = ctx.settings
    if show_id is not None:
        settings = dataclasses.replace(settings, show_id=show_id)
    known = set(await asyncio.to_thread(ctx.store.episode_ids))
    paginator = client.paginate(settings.episodes_url)

    if ctx.status is None:
        logger.info("No status record found, importing the full catalogue")
        summaries = [s async for s in paginator if s.id not in known]
    else:
        logger.info("Last update %s, importing new episodes", ctx.status.last_update.isoformat())
        summaries = []
        async for summary in paginator:
            if summary.id in known:
                break
            summaries.append(summary)
        await paginator.aclose()

    logger.info("Found %d new episodes", len(summaries))
    episodes = await _fetch_details(client, summaries, settings.import_concurrency)

    if episodes:
        await asyncio.to_thread(ctx.store.insert_episodes, episodes)
    if episodes or ctx.status is None:
        await asyncio.to_thread(ctx.touch_status)
    return episodes
