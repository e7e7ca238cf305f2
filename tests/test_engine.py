"""Tests for SearchEngine: delegated queries, offset search and resolution.

HOW: Most tests run against a real SqlStore seeded with the shared
sample catalogue. Resolution tests that must not touch the store use a
MagicMock store and assert it was never called.
"""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

import pytest

from podcast_search.core.ir import EpisodeTranscript, TimeRange, Timestamp
from podcast_search.core.normalizer import normalize
from podcast_search.errors import (
    EpisodeNotFoundError,
    InvariantViolationError,
    NoResultsError,
    QueryError,
    StoreError,
    TooManyResultsError,
)
from podcast_search.search.engine import SearchEngine, describe_error

from tests.conftest import make_episode


@pytest.fixture
def seeded(store, sample_episodes, sample_segments):
    store.insert_episodes(sample_episodes)
    store.insert_transcripts([normalize(sample_episodes[0].id, sample_segments)])
    return store


@pytest.fixture
def engine(seeded, settings):
    return SearchEngine(seeded, settings)


class TestSearchMeta:
    """search_meta() is a case-insensitive substring match on title/description."""

    def test_matches_title(self, engine):
        results = engine.search_meta("speciale")
        assert [r.episode.id for r in results] == [56245700]

    def test_matches_description(self, engine):
        results = engine.search_meta("SORPRESA")
        assert [r.episode.id for r in results] == [56245710]

    def test_regex_characters_are_literal(self, engine):
        with pytest.raises(NoResultsError):
            engine.search_meta("Puntata.*Festa(")

    def test_many_matches(self, engine):
        assert len(engine.search_meta("puntata")) == 3

    def test_no_results(self, engine):
        with pytest.raises(NoResultsError):
            engine.search_meta("nothing like this")

    def test_too_many_results(self, seeded, settings):
        engine = SearchEngine(seeded, dataclasses.replace(settings, max_results=2))
        with pytest.raises(TooManyResultsError) as excinfo:
            engine.search_meta("puntata")
        assert excinfo.value.count == 3


class TestSearchTranscripts:
    """search_transcripts() delegates to the store's text index."""

    def test_finds_transcribed_episode(self, engine):
        results = engine.search_transcripts("world")
        assert [r.episode.id for r in results] == [56245683]

    def test_no_results(self, engine):
        with pytest.raises(NoResultsError):
            engine.search_transcripts("zebra")


class TestSearchEpisode:
    """search_episode() maps every match back to its audio segment."""

    def test_maps_matches_to_segments(self, engine):
        result = engine.search_episode(56245683, "o")
        # Hell[o] W[o]rld, café. Fin.
        assert [m.offset for m in result.matches] == [4, 7]
        assert [m.time for m in result.matches] == [TimeRange(0, 1200), TimeRange(1200, 2500)]
        assert result.episode.id == 56245683

    def test_accent_insensitive(self, engine):
        result = engine.search_episode(56245683, "cafe")
        assert len(result) == 1
        assert result.matches[0].time == TimeRange(2500, 4000)
        assert "café" in result.matches[0].hint

    def test_hint_is_clipped(self, engine):
        result = engine.search_episode(56245683, "fin")
        assert result.matches[0].hint == "Hello World, café. Fin."

    def test_unknown_episode(self, engine):
        with pytest.raises(EpisodeNotFoundError):
            engine.search_episode(1, "x")

    def test_episode_without_transcript(self, engine):
        with pytest.raises(EpisodeNotFoundError):
            engine.search_episode(56245700, "x")

    def test_no_matches(self, engine):
        with pytest.raises(NoResultsError):
            engine.search_episode(56245683, "zebra")

    def test_invalid_pattern(self, engine):
        with pytest.raises(QueryError):
            engine.search_episode(56245683, "[")

    def test_too_many_matches(self, seeded, settings):
        engine = SearchEngine(seeded, dataclasses.replace(settings, max_results=1))
        with pytest.raises(TooManyResultsError):
            engine.search_episode(56245683, "l")

    def test_corrupt_index_raises(self, settings):
        store = MagicMock()
        store.get_episode.return_value = make_episode(5, "Broken")
        store.get_transcript.return_value = EpisodeTranscript(
            5, "abcdef", [Timestamp(TimeRange(0, 10), 0, 3)]
        )
        with pytest.raises(InvariantViolationError):
            SearchEngine(store, settings).search_episode(5, "e")

    def test_overlapping_ranges_raise(self, settings):
        store = MagicMock()
        store.get_episode.return_value = make_episode(5, "Broken")
        store.get_transcript.return_value = EpisodeTranscript(5, "Hello World, ", [
            Timestamp(TimeRange(0, 1000), 0, 5),
            Timestamp(TimeRange(1000, 2000), 2, 13),
        ])
        with pytest.raises(InvariantViolationError):
            SearchEngine(store, settings).search_episode(5, "world")

    def test_lookahead_matches_are_kept(self, engine):
        result = engine.search_episode(56245683, r"(?=cafe)|\bFin")
        assert [m.offset for m in result.matches] == [13, 19]
        assert [m.time for m in result.matches] == [TimeRange(2500, 4000), TimeRange(4000, 4800)]


class TestMagicEpisodeSearch:
    """magic_episode_search() resolves ids, episode numbers and titles."""

    def test_large_number_is_an_id_without_store_query(self, settings):
        store = MagicMock()
        assert SearchEngine(store, settings).magic_episode_search("56245683") == 56245683
        store.find_episode_by_title.assert_not_called()
        store.get_episode.assert_not_called()

    def test_small_number_is_an_episode_number(self, engine):
        assert engine.magic_episode_search("248") == 56245683

    def test_small_number_queries_title(self, settings):
        store = MagicMock()
        store.find_episode_by_title.return_value = make_episode(77, "Puntata 12")
        assert SearchEngine(store, settings).magic_episode_search("12") == 77
        store.find_episode_by_title.assert_called_once_with("12")

    def test_title_fragment(self, engine):
        assert engine.magic_episode_search("speciale estate") == 56245700

    def test_title_regex(self, engine):
        assert engine.magic_episode_search("festa$") == 56245710

    def test_unknown_number(self, engine):
        with pytest.raises(NoResultsError):
            engine.magic_episode_search("9999")

    def test_unknown_title(self, engine):
        with pytest.raises(NoResultsError):
            engine.magic_episode_search("nessuna puntata")

    def test_invalid_title_regex(self, engine):
        with pytest.raises(QueryError):
            engine.magic_episode_search("(")

    def test_leading_plus_is_a_number(self, engine, settings):
        assert engine.magic_episode_search("+248") == 56245683
        store = MagicMock()
        assert SearchEngine(store, settings).magic_episode_search("+56245700") == 56245700
        store.find_episode_by_title.assert_not_called()

    def test_number_above_u32_is_a_title(self, settings):
        store = MagicMock()
        store.find_episode_by_title.return_value = None
        with pytest.raises(NoResultsError):
            SearchEngine(store, settings).magic_episode_search("99999999999")
        store.find_episode_by_title.assert_called_once_with("99999999999")


class TestDescribeError:
    """describe_error() gives a short message per failure type."""

    @pytest.mark.parametrize("exc, text", [
        (NoResultsError(), "No results found."),
        (EpisodeNotFoundError(3), "The requested episode does not exist."),
        (QueryError("bad"), "The query is not valid."),
        (InvariantViolationError("x"), "The transcript data for this episode is corrupted."),
        (StoreError("x"), "Database error."),
    ])
    def test_messages(self, exc, text):
        assert describe_error(exc) == text

    def test_too_many_includes_count(self):
        assert "120" in describe_error(TooManyResultsError(120, 50))
