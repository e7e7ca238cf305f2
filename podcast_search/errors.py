"""Exception hierarchy shared by the pipeline, the store and the search engine.

WHY: Callers (CLI, HTTP API) need typed errors to translate failures into
user-facing responses without inspecting messages. Pipeline failures carry
the episode and stage that failed so a batch abort is diagnosable.

HOW: One base class, one family per component. Search errors are returned
to callers as exceptions and mapped at the surfaces; pipeline errors abort
the batch wait().

RULES:
- Never raise bare Exception from library code
- InvariantViolationError signals corrupted transcript data, never swallow it
- TooManyResultsError carries the real count so callers can report it
"""

from __future__ import annotations


class PodcastSearchError(Exception):
    """Base class for all errors raised by podcast_search."""


# ---------------------------------------------------------------------------
# Remote episode API
# ---------------------------------------------------------------------------


class EpisodeSourceError(PodcastSearchError):
    """Raised when the remote episode API cannot be fetched or decoded."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreError(PodcastSearchError):
    """Raised when the document store fails or holds inconsistent data."""


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class PipelineError(PodcastSearchError):
    """Raised when a pipeline job fails; fatal for the current batch.

    Attributes:
        episode_id: The episode whose job failed, when known.
        stage: The stage name ("download", "transcribe", "convert").
    """

    def __init__(
        self,
        message: str,
        episode_id: int | None = None,
        stage: str | None = None,
    ) -> None:
        self.episode_id = episode_id
        self.stage = stage
        super().__init__(message)


class DownloadError(PipelineError):
    """Raised when an episode's audio cannot be fetched."""


class AudioConversionError(PipelineError):
    """Raised when ffmpeg fails to convert the downloaded audio."""

    def __init__(
        self,
        message: str,
        episode_id: int | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, episode_id=episode_id, stage="download")


class TranscriptionError(PipelineError):
    """Raised when the inference service rejects or fails a request."""


class TranscriptionDecodeError(TranscriptionError):
    """Raised when the inference response is not valid verbose JSON."""


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchError(PodcastSearchError):
    """Base class for search failures returned to the caller."""


class EpisodeNotFoundError(SearchError):
    """Raised when an episode (or its transcript) does not exist."""

    def __init__(self, episode_id: int) -> None:
        self.episode_id = episode_id
        super().__init__("Episode not found: {}".format(episode_id))


class NoResultsError(SearchError):
    """Raised when a query matches nothing."""

    def __init__(self, message: str = "No results found") -> None:
        super().__init__(message)


class QueryError(SearchError):
    """Raised when a query is malformed (e.g. the regex does not compile)."""


class TooManyResultsError(SearchError):
    """Raised when a query matches more results than can be displayed."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(
            "Too many results ({}, limit {})".format(count, limit)
        )


class InvariantViolationError(SearchError):
    """Raised when transcript offsets do not cover the text contiguously."""
