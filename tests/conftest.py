"""Shared test fixtures for the podcast_search test suite.

WHY: Most test modules need the same small catalogue of episodes, a
recognizer output with accented text, and a store that behaves like the
production one. Centralizing them keeps the expected offsets consistent.

HOW: Pytest fixtures provide Settings rooted in tmp_path, a SqlStore on a
file-backed SQLite database (worker threads see the same data), an
AppContext over both, and sample Episode / RawSegment data.

RULES:
- Settings never touch the working directory; data_dir is tmp_path
- SAMPLE_SEGMENTS concatenate to "Hello World, café. Fin." (23 characters)
- Episode ids above EPISODE_ID_THRESHOLD mimic real remote ids
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

import pytest

from podcast_search.api.models import Episode
from podcast_search.config import Settings
from podcast_search.context import AppContext
from podcast_search.core.ir import RawSegment, TimeRange
from podcast_search.store.sql import SqlStore


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

SAMPLE_SEGMENTS: List[RawSegment] = [
    RawSegment(time=TimeRange(from_ms=0, to_ms=1200), text="Hello"),
    RawSegment(time=TimeRange(from_ms=1200, to_ms=2500), text=" World,"),
    RawSegment(time=TimeRange(from_ms=2500, to_ms=4000), text=" café."),
    RawSegment(time=TimeRange(from_ms=4000, to_ms=4800), text=" Fin."),
]


def make_episode(episode_id: int, title: str, description: str = "", **overrides) -> Episode:
    """Build an Episode with plausible defaults."""
    fields = dict(
        id=episode_id,
        title=title,
        duration=3_600_000,
        show_id=3039391,
        author_id=42,
        published_at=datetime(2023, 5, 1, 12, 0, tzinfo=timezone.utc),
        download_url="https://cdn.example.test/{}.mp3".format(episode_id),
        description=description,
        description_html="<p>{}</p>".format(description),
    )
    fields.update(overrides)
    return Episode(**fields)


SAMPLE_EPISODES: List[Episode] = [
    make_episode(56245683, "Puntata 248 - Il ritorno", "Si parla di cucina e di caffè"),
    make_episode(56245700, "Puntata 249 - Speciale estate", "Musica, mare e sole"),
    make_episode(56245710, "Puntata 250 - Festa", "Ospiti a sorpresa"),
]


def episode_payload(episode: Episode) -> dict:
    """Detail-endpoint JSON for ``episode``."""
    return {
        "response": {
            "episode": {
                "episode_id": episode.id,
                "title": episode.title,
                "duration": episode.duration,
                "show_id": episode.show_id,
                "author_id": episode.author_id,
                "published_at": episode.published_at.strftime("%Y-%m-%d %H:%M:%S"),
                "download_url": episode.download_url,
                "description": episode.description,
                "description_html": episode.description_html,
            }
        }
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary data directory."""
    s = Settings(
        api_url="https://api.example.test/v2",
        show_id="3039391",
        inference_url="http://inference.test/inference",
        db_url="sqlite:///{}".format(tmp_path / "test.db"),
        data_dir=tmp_path / "data",
        max_download_jobs=4,
        max_transcribe_jobs=1,
        max_convert_jobs=4,
        import_concurrency=3,
        max_results=50,
        hint_radius=50,
        episode_id_threshold=10000,
    )
    s.ensure_dirs()
    return s


@pytest.fixture
def store(settings):
    """Empty SqlStore with its schema created."""
    s = SqlStore.from_url(settings.db_url, tokenizer=settings.text_index_tokenizer)
    s.create_schema()
    return s


@pytest.fixture
def ctx(settings, store):
    """AppContext over the test settings and store, before any import."""
    return AppContext(settings=settings, store=store, status=None)


@pytest.fixture
def sample_segments():
    return list(SAMPLE_SEGMENTS)


@pytest.fixture
def sample_episodes():
    return list(SAMPLE_EPISODES)
