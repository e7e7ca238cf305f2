"""Abstract document-store interface.

WHY: The pipeline, the importer and the search engine only need a small
set of store operations: id listings, key lookups, append-only inserts, a
case-insensitive regex match over episode fields, and a ranked full-text
query over transcripts. Coding against this interface keeps them
independent of the backend.

HOW: EpisodeStore is an ABC; SqlStore (store/sql.py) is the concrete
implementation. Status is the singleton bookkeeping record.

RULES:
- All methods are synchronous; async callers use asyncio.to_thread
- Regex patterns passed in are already valid Python regexes
- Regex matching is always case-insensitive
- Failures raise StoreError
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from podcast_search.api.models import Episode
from podcast_search.core.ir import EpisodeTranscript


@dataclass(frozen=True)
class Status:
    """Singleton record of the last successful import."""

    last_update: datetime

    @classmethod
    def now(cls) -> Status:
        return cls(last_update=datetime.now(timezone.utc).replace(microsecond=0))


class EpisodeStore(ABC):
    """Key/value + text-index store for episodes, transcripts and status."""

    @abstractmethod
    def create_schema(self) -> None:
        """Create tables and the transcript text index if missing."""

    # -- episodes ------------------------------------------------------

    @abstractmethod
    def episode_ids(self) -> list[int]:
        """Ids of every stored episode."""

    @abstractmethod
    def get_episode(self, episode_id: int) -> Episode | None:
        """Return one episode, or None if unknown."""

    @abstractmethod
    def insert_episodes(self, episodes: Sequence[Episode]) -> None:
        """Append episodes; an already stored id is a StoreError."""

    @abstractmethod
    def find_episodes(self, pattern: str, fields: Sequence[str] = ("title", "description")) -> list[Episode]:
        """Episodes where any of ``fields`` matches ``pattern`` (case-insensitive)."""

    @abstractmethod
    def find_episode_by_title(self, pattern: str) -> Episode | None:
        """First episode (by id) whose title matches ``pattern``, or None."""

    # -- transcripts ---------------------------------------------------

    @abstractmethod
    def transcript_ids(self) -> list[int]:
        """Episode ids that already have a transcript."""

    @abstractmethod
    def get_transcript(self, episode_id: int) -> EpisodeTranscript | None:
        """Return the transcript of one episode, or None."""

    @abstractmethod
    def insert_transcripts(self, transcripts: Sequence[EpisodeTranscript]) -> None:
        """Append transcripts and add them to the text index."""

    @abstractmethod
    def search_transcripts(self, text: str) -> list[Episode]:
        """Episodes whose transcript matches ``text``, best match first."""

    # -- status --------------------------------------------------------

    @abstractmethod
    def load_status(self) -> Status | None:
        """The status singleton, None if absent; more than one is a StoreError."""

    @abstractmethod
    def save_status(self, status: Status) -> None:
        """Insert or replace the status singleton."""
