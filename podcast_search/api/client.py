"""Async HTTP client for the remote episode API.

WHY: Ingestion and the download stage need three things from the remote
API: the paginated episode listing, full details of one episode, and the
episode audio itself. This module keeps all of that behind one client so
callers never touch HTTP details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. EpisodeClient is an
async context manager; enter it to open the connection pool, exit to close
it. Listing pages and detail responses are validated with jsonschema
before parsing into dataclasses.

RULES:
- Always use the async context manager (async with EpisodeClient(...) as c:)
- Any transport error, non-2xx status or malformed body raises
  EpisodeSourceError (DownloadError for audio)
- Audio is streamed to disk chunk by chunk, never buffered whole
- A transport can be injected (httpx.MockTransport in tests)
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
import jsonschema

from podcast_search.api.models import (
    EPISODE_SCHEMA,
    PAGE_SCHEMA,
    Episode,
    EpisodePage,
    EpisodeSummary,
)
from podcast_search.api.paginator import Paginator
from podcast_search.config import PODCAST_API_URL
from podcast_search.errors import DownloadError, EpisodeSourceError

logger = logging.getLogger(__name__)


class EpisodeClient:
    """Async client for the remote episode listing and download API.

    RULES:
    - Use as: async with EpisodeClient() as client: ...
    - api_url defaults to PODCAST_API_URL from config
    - Redirects are followed (download URLs redirect to a CDN)
    """

    def __init__(
        self,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = (api_url or PODCAST_API_URL).rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> EpisodeClient:
        self._client = httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            timeout=httpx.Timeout(300.0, connect=30.0),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "EpisodeClient must be used as an async context manager: "
                "async with EpisodeClient() as client: ..."
            )
        return self._client

    async def _get_json(self, url: str, schema: dict) -> dict:
        client = self._ensure_client()
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise EpisodeSourceError("Request to {} failed: {}".format(url, exc)) from exc

        if resp.status_code != 200:
            raise EpisodeSourceError(
                "Episode API error {} for {}: {}".format(resp.status_code, url, resp.text[:200])
            )

        try:
            data = resp.json()
            jsonschema.validate(instance=data, schema=schema)
        except (ValueError, jsonschema.ValidationError) as exc:
            raise EpisodeSourceError("Malformed response from {}: {}".format(url, exc)) from exc
        return data

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def fetch_page(self, url: str) -> EpisodePage:
        """Fetch and decode one listing page."""
        logger.debug("Fetching listing page %s", url)
        return EpisodePage.from_dict(await self._get_json(url, PAGE_SCHEMA))

    def paginate(self, start_url: str) -> Paginator[EpisodeSummary]:
        """Return a lazy sequence of every EpisodeSummary from ``start_url`` on."""
        return Paginator(self.fetch_page, start_url, parse=EpisodeSummary.from_dict)

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    async def fetch_episode(self, episode_id: int) -> Episode:
        """Fetch the full details of one episode.

        Raises:
            EpisodeSourceError: On transport failure, non-200 status, or a
                body that does not match the detail schema.
        """
        url = "{}/episodes/{}".format(self._api_url, episode_id)
        data = await self._get_json(url, EPISODE_SCHEMA)
        try:
            return Episode.from_dict(data["response"]["episode"])
        except (KeyError, TypeError, ValueError) as exc:
            raise EpisodeSourceError(
                "Malformed episode {}: {}".format(episode_id, exc)
            ) from exc

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    async def download(self, url: str, dest: Path, episode_id: int | None = None) -> Path:
        """Stream the resource at ``url`` into ``dest``.

        RULES:
        - Non-2xx responses raise DownloadError and leave no file behind
        - A partially written file is removed on failure

        Returns:
            The destination path.
        """
        client = self._ensure_client()
        dest = Path(dest)
        try:
            async with client.stream("GET", url) as resp:
                if not resp.is_success:
                    raise DownloadError(
                        "Download of {} failed with status {}".format(url, resp.status_code),
                        episode_id=episode_id,
                        stage="download",
                    )
                with open(dest, "wb") as f:
                    async for chunk in resp.aiter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as exc:
            dest.unlink(missing_ok=True)
            raise DownloadError(
                "Download of {} failed: {}".format(url, exc),
                episode_id=episode_id,
                stage="download",
            ) from exc

        logger.debug("Downloaded %s to %s", url, dest)
        return dest
