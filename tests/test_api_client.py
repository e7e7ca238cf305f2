"""Tests for EpisodeClient against an httpx.MockTransport."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from podcast_search.api.client import EpisodeClient
from podcast_search.api.models import EpisodeSummary
from podcast_search.errors import DownloadError, EpisodeSourceError

from tests.conftest import SAMPLE_EPISODES, episode_payload

API = "https://api.example.test/v2"


def _listing_handler(request: httpx.Request) -> httpx.Response:
    page = request.url.params.get("page", "1")
    if request.url.path.endswith("/shows/3039391/episodes"):
        if page == "1":
            body = {"response": {
                "items": [{"episode_id": 3, "title": "c"}, {"episode_id": 2, "title": "b"}],
                "next_url": API + "/shows/3039391/episodes?page=2",
            }}
        else:
            body = {"response": {"items": [{"episode_id": 1, "title": "a"}], "next_url": None}}
        return httpx.Response(200, json=body)
    if request.url.path == "/v2/episodes/56245683":
        return httpx.Response(200, json=episode_payload(SAMPLE_EPISODES[0]))
    return httpx.Response(404, text="not found")


def _run(coro_fn, handler=_listing_handler):
    async def _main():
        async with EpisodeClient(API, transport=httpx.MockTransport(handler)) as client:
            return await coro_fn(client)
    return asyncio.run(_main())


class TestListing:

    def test_paginate_follows_next_url(self):
        summaries = _run(lambda c: c.paginate(API + "/shows/3039391/episodes").collect())
        assert [s.id for s in summaries] == [3, 2, 1]
        assert isinstance(summaries[0], EpisodeSummary)

    def test_bad_status_raises(self):
        with pytest.raises(EpisodeSourceError):
            _run(lambda c: c.fetch_page(API + "/nowhere"))

    def test_malformed_page_raises(self):
        def handler(request):
            return httpx.Response(200, json={"response": {"nope": []}})

        with pytest.raises(EpisodeSourceError):
            _run(lambda c: c.fetch_page(API + "/x"), handler)

    def test_non_json_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(EpisodeSourceError):
            _run(lambda c: c.fetch_page(API + "/x"), handler)

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(EpisodeSourceError):
            _run(lambda c: c.fetch_page(API + "/x"), handler)


class TestDetails:

    def test_fetch_episode(self):
        episode = _run(lambda c: c.fetch_episode(56245683))
        assert episode == SAMPLE_EPISODES[0]

    def test_missing_fields_raise(self):
        def handler(request):
            return httpx.Response(200, json={"response": {"episode": {"title": "x"}}})

        with pytest.raises(EpisodeSourceError):
            _run(lambda c: c.fetch_episode(1), handler)

    def test_requires_context_manager(self):
        with pytest.raises(RuntimeError):
            asyncio.run(EpisodeClient(API).fetch_episode(1))


class TestDownload:

    def test_streams_to_file(self, tmp_path):
        def handler(request):
            return httpx.Response(200, content=b"ID3" + b"\x00" * 1024)

        dest = tmp_path / "1.mp3"
        assert _run(lambda c: c.download("https://cdn.test/1.mp3", dest), handler) == dest
        assert dest.read_bytes().startswith(b"ID3")
        assert dest.stat().st_size == 1027

    def test_http_error_status_raises(self, tmp_path):
        def handler(request):
            return httpx.Response(403, text="forbidden")

        dest = tmp_path / "1.mp3"
        with pytest.raises(DownloadError) as excinfo:
            _run(lambda c: c.download("https://cdn.test/1.mp3", dest, episode_id=1), handler)
        assert excinfo.value.episode_id == 1
        assert not dest.exists()

    def test_transport_error_raises(self, tmp_path):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(DownloadError):
            _run(lambda c: c.download("https://cdn.test/1.mp3", tmp_path / "1.mp3"), handler)
