"""Pull-based async sequence over a paginated remote listing.

WHY: The episode API returns pages of items linked by next_url. Callers
want one ordered stream of items and should be able to start consuming
while later pages are still being fetched.

HOW: On the first pull a background task fetches pages sequentially and
pushes every item into an unbounded asyncio.Queue, in receipt order. The
consumer awaits the queue. A sentinel ends the stream; a failure is pushed
as a wrapper so items buffered before it are still delivered first.

RULES:
- Single producer task, single consumer
- Item order is page order, then within-page order
- The sequence ends after the page whose next_url is null or empty
- A fetch or decode failure is raised (as EpisodeSourceError) on the pull
  after the last buffered item, and the sequence is over afterwards
- The buffer is unbounded: a slow consumer accumulates items in memory
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from podcast_search.api.models import EpisodePage
from podcast_search.errors import EpisodeSourceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error


class Paginator(Generic[T]):
    """Async iterator over every item of a paginated listing.

    Example:
        async for summary in client.paginate(settings.episodes_url):
            ...
    """

    def __init__(
        self,
        fetch_page: Callable[[str], Awaitable[EpisodePage]],
        start_url: str,
        parse: Callable[[dict[str, Any]], T] | None = None,
    ) -> None:
        self._fetch_page = fetch_page
        self._start_url = start_url
        self._parse = parse
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._finished = False
        self.pages_fetched = 0

    def __aiter__(self) -> Paginator[T]:
        return self

    async def __anext__(self) -> T:
        if self._finished:
            raise StopAsyncIteration
        if self._task is None:
            logger.debug("Starting page producer at %s", self._start_url)
            self._task = asyncio.create_task(self._produce())

        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._finished = True
            if isinstance(item.error, EpisodeSourceError):
                raise item.error
            raise EpisodeSourceError(
                "Pagination failed: {}".format(item.error)
            ) from item.error
        return item

    async def aclose(self) -> None:
        """Stop the producer task; further pulls end the sequence."""
        self._finished = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def collect(self) -> list[T]:
        """Drain the whole sequence into a list."""
        return [item async for item in self]

    async def _produce(self) -> None:
        url: str | None = self._start_url
        try:
            while url:
                page = await self._fetch_page(url)
                self.pages_fetched += 1
                for raw in page.items:
                    self._queue.put_nowait(self._parse(raw) if self._parse else raw)
                logger.info("Fetched page %d: %d items", self.pages_fetched, len(page.items))
                url = page.next_url
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # forwarded to the consumer
            logger.error("Page fetch failed at %s: %s", url, exc)
            self._queue.put_nowait(_Failure(exc))
        else:
            logger.debug("Reached end of pagination")
            self._queue.put_nowait(_END)
