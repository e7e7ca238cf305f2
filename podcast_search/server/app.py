"""FastAPI application exposing search and the transcription batch.

WHY: Clients (the chat front-end, curl, dashboards) need an HTTP API to
search episode metadata and transcripts, locate a phrase inside one
episode, trigger a transcription batch and watch its progress.

HOW: create_app(ctx) builds a FastAPI app bound to one AppContext. Search
endpoints call SearchEngine synchronously (FastAPI runs plain def
endpoints in a threadpool). POST /jobs schedules transcribe_missing() as a
background task wrapped in asyncio.run(). Typed search errors are mapped
to status codes by a single exception handler.

RULES:
- Error responses use the ErrorResponse schema: {"detail": str}
- NoResults/EpisodeNotFound → 404, Query → 400, TooManyResults → 422,
  InvariantViolation/Store → 500
- Only one batch runs at a time; a second POST /jobs gets 409
- GET /jobs reports the last batch started by this process
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import List

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from podcast_search import __version__
from podcast_search.context import AppContext
from podcast_search.errors import (
    EpisodeNotFoundError,
    InvariantViolationError,
    NoResultsError,
    PodcastSearchError,
    QueryError,
    SearchError,
    StoreError,
    TooManyResultsError,
)
from podcast_search.pipeline.batch import transcribe_missing
from podcast_search.pipeline.jobs import JobStore
from podcast_search.search.engine import SearchEngine, describe_error
from podcast_search.server.models import (
    BatchStartedResponse,
    EpisodeMatchesResponse,
    EpisodeResponse,
    ErrorResponse,
    HealthResponse,
    JobResponse,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (EpisodeNotFoundError, 404),
    (NoResultsError, 404),
    (QueryError, 400),
    (TooManyResultsError, 422),
    (InvariantViolationError, 500),
    (StoreError, 500),
)


def status_code_for(exc: PodcastSearchError) -> int:
    """HTTP status code for a typed search or store failure."""
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 500


class _BatchRunner:
    """Runs at most one transcription batch at a time in the background."""

    def __init__(self, ctx: AppContext) -> None:
        self._ctx = ctx
        self._lock = threading.Lock()
        self._running = False
        self.runs: List[JobStore] = []

    def try_start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def run(self, import_first: bool) -> None:
        """Synchronous wrapper for BackgroundTasks."""
        try:
            asyncio.run(transcribe_missing(self._ctx, import_first=import_first, jobs=self.runs))
        except PodcastSearchError:
            logger.exception("Transcription batch failed")
        finally:
            with self._lock:
                self._running = False

    @property
    def last_jobs(self) -> JobStore | None:
        return self.runs[-1] if self.runs else None


def create_app(ctx: AppContext) -> FastAPI:
    """Build the API bound to ``ctx``."""
    engine = SearchEngine(ctx.store, ctx.settings)
    runner = _BatchRunner(ctx)

    app = FastAPI(
        title="Podcast Search API",
        description=(
            "Search podcast episode metadata and transcripts, find where a "
            "phrase is spoken inside an episode, and trigger transcription "
            "of episodes that do not have a transcript yet."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.ctx = ctx
    app.state.engine = engine
    app.state.runner = runner

    error_responses = {
        400: {"model": ErrorResponse, "description": "Invalid pattern"},
        404: {"model": ErrorResponse, "description": "No results or unknown episode"},
        422: {"model": ErrorResponse, "description": "Too many results"},
        500: {"model": ErrorResponse, "description": "Corrupt transcript or database error"},
    }

    @app.exception_handler(SearchError)
    @app.exception_handler(StoreError)
    async def search_error_handler(request: Request, exc: PodcastSearchError) -> JSONResponse:
        code = status_code_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": describe_error(exc)})

    # -----------------------------------------------------------------------
    # Endpoints: Search
    # -----------------------------------------------------------------------

    @app.get(
        "/episodes",
        response_model=List[EpisodeResponse],
        tags=["search"],
        summary="Search episode metadata",
        description="Case-insensitive substring search over episode titles and descriptions.",
        responses=error_responses,
    )
    def search_episodes(
        q: str = Query(min_length=1, description="Text to look for in titles and descriptions."),
    ) -> List[EpisodeResponse]:
        return [EpisodeResponse.from_episode(r.episode) for r in engine.search_meta(q)]

    @app.get(
        "/transcripts",
        response_model=List[EpisodeResponse],
        tags=["search"],
        summary="Search transcripts",
        description="Full-text search over every stored transcript, most relevant first.",
        responses=error_responses,
    )
    def search_transcripts(
        q: str = Query(min_length=1, description="Words to look for in transcripts."),
    ) -> List[EpisodeResponse]:
        return [EpisodeResponse.from_episode(r.episode) for r in engine.search_transcripts(q)]

    @app.get(
        "/episodes/{token}/matches",
        response_model=EpisodeMatchesResponse,
        tags=["search"],
        summary="Locate a pattern inside one episode",
        description=(
            "Resolve {token} (episode id, episode number or title fragment) and "
            "return every match of the regular expression with its audio time."
        ),
        responses=error_responses,
    )
    def episode_matches(
        token: str,
        pattern: str = Query(min_length=1, description="Regular expression, matched ignoring case and accents."),
    ) -> EpisodeMatchesResponse:
        episode_id = engine.magic_episode_search(token)
        return EpisodeMatchesResponse.from_result(engine.search_episode(episode_id, pattern))

    # -----------------------------------------------------------------------
    # Endpoints: Jobs
    # -----------------------------------------------------------------------

    @app.post(
        "/jobs",
        response_model=BatchStartedResponse,
        status_code=202,
        tags=["jobs"],
        summary="Start a transcription batch",
        description="Import new episodes (unless import_first=false) and transcribe every episode without a transcript.",
        responses={409: {"model": ErrorResponse, "description": "A batch is already running"}},
    )
    def start_batch(
        background_tasks: BackgroundTasks,
        import_first: bool = Query(default=True, description="Import new episodes before planning."),
    ) -> BatchStartedResponse:
        if not runner.try_start():
            raise HTTPException(status_code=409, detail="A transcription batch is already running")
        background_tasks.add_task(runner.run, import_first)
        return BatchStartedResponse(status="scheduled")

    @app.get(
        "/jobs",
        response_model=List[JobResponse],
        tags=["jobs"],
        summary="List pipeline jobs",
        description="Per-episode state of the last batch started by this server.",
    )
    def list_jobs() -> List[JobResponse]:
        jobs = runner.last_jobs
        if jobs is None:
            return []
        return [JobResponse.from_job(job) for job in jobs.list_jobs()]

    # -----------------------------------------------------------------------
    # Endpoints: Health
    # -----------------------------------------------------------------------

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
        description="Liveness check; also reports the last episode import time.",
    )
    def health_check() -> HealthResponse:
        status = ctx.status
        return HealthResponse(
            status="ok",
            version=__version__,
            last_update=status.last_update if status else None,
        )

    return app


def run_api(ctx: AppContext | None = None, host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the podcast-search-api console script."""
    import uvicorn

    from podcast_search.context import open_context

    uvicorn.run(create_app(ctx or open_context()), host=host, port=port)
