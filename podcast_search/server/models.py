"""Pydantic response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for response serialization
and automatic OpenAPI documentation.

HOW: Each domain result (episode, offset match, job) has one model with a
from_* constructor taking the internal dataclass.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Times are exposed in milliseconds, dates as ISO 8601 UTC
- Response models never expose store internals (records, ORM rows)
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from podcast_search.api.models import Episode
from podcast_search.pipeline.jobs import Job
from podcast_search.search.engine import OffsetMatch, OffsetSearchResult


class EpisodeResponse(BaseModel):
    """Episode metadata returned by the search endpoints."""

    id: int = Field(description="Episode id assigned by the podcast host.")
    title: str = Field(description="Episode title.")
    duration: int = Field(description="Duration in milliseconds.")
    published_at: datetime = Field(description="Publication time (UTC).")
    download_url: str = Field(description="Audio download URL.")
    description: str = Field(default="", description="Plain-text description.")

    @classmethod
    def from_episode(cls, episode: Episode) -> EpisodeResponse:
        return cls(
            id=episode.id,
            title=episode.title,
            duration=episode.duration,
            published_at=episode.published_at,
            download_url=episode.download_url,
            description=episode.description,
        )


class MatchResponse(BaseModel):
    """One occurrence of a pattern inside a transcript."""

    from_ms: int = Field(description="Start of the segment containing the match (ms).")
    to_ms: int = Field(description="End of the segment containing the match (ms).")
    offset: int = Field(description="Character offset of the match in the transcript.")
    hint: str = Field(description="Transcript text surrounding the match.")

    @classmethod
    def from_match(cls, match: OffsetMatch) -> MatchResponse:
        return cls(
            from_ms=match.time.from_ms,
            to_ms=match.time.to_ms,
            offset=match.offset,
            hint=match.hint,
        )


class EpisodeMatchesResponse(BaseModel):
    """Offset search result for a single episode."""

    episode: EpisodeResponse = Field(description="The resolved episode.")
    matches: List[MatchResponse] = Field(description="Matches in transcript order.")

    @classmethod
    def from_result(cls, result: OffsetSearchResult) -> EpisodeMatchesResponse:
        return cls(
            episode=EpisodeResponse.from_episode(result.episode),
            matches=[MatchResponse.from_match(m) for m in result.matches],
        )


class JobResponse(BaseModel):
    """State of one episode in the current or last batch."""

    episode_id: int = Field(description="Episode being processed.")
    status: str = Field(description="Current pipeline stage or terminal state.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    completed_at: Optional[float] = Field(default=None, description="Set once the job is terminal.")
    error: Optional[str] = Field(default=None, description="Failure message, only when failed.")

    @classmethod
    def from_job(cls, job: Job) -> JobResponse:
        return cls(
            episode_id=job.episode_id,
            status=job.status.value,
            created_at=job.created_at,
            completed_at=job.completed_at,
            error=job.error,
        )


class BatchStartedResponse(BaseModel):
    """Returned when a transcription batch is scheduled."""

    status: str = Field(description="Always 'scheduled'.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    last_update: Optional[datetime] = Field(
        default=None, description="Time of the last successful episode import (UTC)."
    )
