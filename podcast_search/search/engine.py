"""Search engine: metadata, corpus and single-episode offset queries.

WHY: Users look things up three ways: by episode title/description, by
words said anywhere in the corpus, and by a pattern inside one episode
where they want the audio time of every occurrence. They also refer to
episodes loosely ("248", "Tornado Potato", or a raw id), which needs a
resolution step.

HOW: Metadata and corpus queries are delegated to the store. Offset
search loads the transcript, matches on an accent-stripped copy of its
text and maps each match back through the timestamp index
(search/offsets.py). All failures are typed SearchError subclasses that
the surfaces translate for users.

RULES:
- Every empty result raises NoResultsError
- More than settings.max_results results raises TooManyResultsError
- Patterns are case-insensitive; metadata search escapes its text
- Magic resolution: integer above the threshold is an id (no store query);
  integer at or below it is an episode number looked up in titles; anything
  else is a title regex. First match wins.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field

from podcast_search.api.models import Episode
from podcast_search.config import Settings
from podcast_search.core.ir import TimeRange
from podcast_search.errors import (
    EpisodeNotFoundError,
    InvariantViolationError,
    NoResultsError,
    QueryError,
    SearchError,
    StoreError,
    TooManyResultsError,
)
from podcast_search.search.offsets import (
    build_hint,
    compile_pattern,
    find_match_starts,
    map_offsets,
    transliterate,
)
from podcast_search.store.base import EpisodeStore

logger = logging.getLogger(__name__)

_MAX_EPISODE_ID = 2**32 - 1


@dataclass(frozen=True)
class SearchResult:
    """One episode returned by a metadata or corpus query."""

    episode: Episode


@dataclass(frozen=True)
class OffsetMatch:
    """One occurrence of a pattern: where it is in the audio and its context."""

    time: TimeRange
    hint: str
    offset: int


@dataclass(frozen=True)
class OffsetSearchResult:
    """All occurrences of a pattern inside one episode, in text order."""

    episode: Episode
    matches: list[OffsetMatch] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.matches)


class SearchEngine:
    """Answers lookups against the store."""

    def __init__(self, store: EpisodeStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or Settings()

    def _check_count(self, count: int) -> None:
        if count == 0:
            raise NoResultsError()
        if count > self._settings.max_results:
            raise TooManyResultsError(count, self._settings.max_results)

    # ------------------------------------------------------------------
    # Delegated queries
    # ------------------------------------------------------------------

    def search_meta(self, text: str) -> list[SearchResult]:
        """Episodes whose title or description contains ``text`` (any case)."""
        episodes = self._store.find_episodes(re.escape(text), fields=("title", "description"))
        self._check_count(len(episodes))
        return [SearchResult(episode=e) for e in episodes]

    def search_transcripts(self, text: str) -> list[SearchResult]:
        """Episodes whose transcript matches ``text``, most relevant first."""
        started = time.monotonic()
        episodes = self._store.search_transcripts(text)
        logger.debug("search_transcripts(%r): %d hits in %.3fs", text, len(episodes), time.monotonic() - started)
        self._check_count(len(episodes))
        return [SearchResult(episode=e) for e in episodes]

    # ------------------------------------------------------------------
    # Offset search
    # ------------------------------------------------------------------

    def search_episode(self, episode_id: int, pattern: str) -> OffsetSearchResult:
        """Find every match of ``pattern`` in one transcript with its audio time.

        Raises:
            EpisodeNotFoundError: The episode or its transcript is missing.
            QueryError: The pattern does not compile.
            NoResultsError: Nothing matched.
            TooManyResultsError: More matches than max_results.
            InvariantViolationError: The transcript index is corrupt.
        """
        started = time.monotonic()
        episode = self._store.get_episode(episode_id)
        if episode is None:
            raise EpisodeNotFoundError(episode_id)
        transcript = self._store.get_transcript(episode_id)
        if transcript is None:
            raise EpisodeNotFoundError(episode_id)
        transcript.check_invariants()

        regex = compile_pattern(pattern)
        starts = find_match_starts(regex, transliterate(transcript.data))
        if not starts:
            raise NoResultsError()

        timestamps = map_offsets(starts, transcript.timestamps)
        radius = self._settings.hint_radius
        matches = [
            OffsetMatch(time=ts.time, hint=build_hint(transcript.data, start, radius), offset=start)
            for start, ts in zip(starts, timestamps)
        ]
        logger.debug(
            "search_episode(%d, %r): %d matches in %.3fs",
            episode_id, pattern, len(matches), time.monotonic() - started,
        )
        self._check_count(len(matches))
        return OffsetSearchResult(episode=episode, matches=matches)

    # ------------------------------------------------------------------
    # Episode resolution
    # ------------------------------------------------------------------

    def magic_episode_search(self, token: str) -> int:
        """Resolve an id, an episode number or a title fragment to an episode id."""
        token = token.strip()
        number = _parse_episode_integer(token)
        if number is not None:
            if number > self._settings.episode_id_threshold:
                logger.debug("Treating %d as an episode id", number)
                return number
            logger.debug("Treating %d as an episode number", number)
            pattern = str(number)
        else:
            logger.debug("Treating %r as a title", token)
            compile_pattern(token)
            pattern = token

        episode = self._store.find_episode_by_title(pattern)
        if episode is None:
            raise NoResultsError()
        return episode.id


def _parse_episode_integer(token: str) -> int | None:
    """``token`` as an unsigned 32-bit integer (ASCII digits, optional leading +)."""
    digits = token[1:] if token.startswith("+") else token
    if digits.isascii() and digits.isdigit() and int(digits) <= _MAX_EPISODE_ID:
        return int(digits)
    return None


def describe_error(exc: SearchError | StoreError) -> str:
    """Short user-facing description of a search failure."""
    if isinstance(exc, EpisodeNotFoundError):
        return "The requested episode does not exist."
    if isinstance(exc, NoResultsError):
        return "No results found."
    if isinstance(exc, QueryError):
        return "The query is not valid."
    if isinstance(exc, TooManyResultsError):
        return "Too many results ({}), please refine the query.".format(exc.count)
    if isinstance(exc, InvariantViolationError):
        return "The transcript data for this episode is corrupted."
    return "Database error."
