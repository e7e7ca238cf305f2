"""Thread-safe registry of per-episode pipeline jobs.

WHY: A batch run drives many episodes through download, transcription and
conversion at once. Operators (CLI summary, /jobs endpoint) and tests need
to see which stage each episode is in and why a job failed.

HOW: Two components:
  JobStatus: enum of valid job states
  JobStore: dict of Job records keyed by episode id, guarded by a
             threading.Lock that is only held for the dict operation

RULES:
- One job per episode id per batch; registering an id twice is a ValueError
- Status only moves forward: pending → downloading → transcribing →
  converting → completed, or to failed from any non-terminal state
- completed_at is set when the job reaches a terminal state
- The lock is never held across an await
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class JobStatus(str, enum.Enum):
    """Valid states for one episode's pipeline job.

    Inherits from str so values serialize cleanly to JSON.
    """

    PENDING = "pending"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    CONVERTING = "converting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ORDER = {
    JobStatus.PENDING: 0,
    JobStatus.DOWNLOADING: 1,
    JobStatus.TRANSCRIBING: 2,
    JobStatus.CONVERTING: 3,
    JobStatus.COMPLETED: 4,
}


@dataclass
class Job:
    """State of one episode in the current batch.

    RULES:
    - episode_id: immutable after creation
    - error: message of the failure when status is FAILED, else None
    """

    episode_id: int
    status: JobStatus
    created_at: float
    updated_at: float
    completed_at: Optional[float] = None
    error: Optional[str] = None


class JobStore:
    """Thread-safe in-memory registry of pipeline jobs."""

    def __init__(self) -> None:
        self._jobs: Dict[int, Job] = {}
        self._lock = threading.Lock()

    def create_job(self, episode_id: int) -> Job:
        """Register an episode in PENDING state.

        Raises:
            ValueError: If the episode already has a job in this store.
        """
        with self._lock:
            if episode_id in self._jobs:
                raise ValueError("Episode {} already has a job".format(episode_id))
            now = time.time()
            job = Job(
                episode_id=episode_id,
                status=JobStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self._jobs[episode_id] = job

        logger.debug("Created job for episode %d", episode_id)
        return job

    def get_job(self, episode_id: int) -> Optional[Job]:
        """Return the live Job for an episode, or None."""
        with self._lock:
            return self._jobs.get(episode_id)

    def list_jobs(self) -> List[Job]:
        """Snapshot of all jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def count(self, status: JobStatus) -> int:
        with self._lock:
            return sum(1 for j in self._jobs.values() if j.status == status)

    def update_job(
        self,
        episode_id: int,
        status: JobStatus,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """Move a job to ``status``.

        RULES:
        - Returns None for unknown episodes
        - Terminal jobs are left untouched (a failed job stays failed)
        - Backward transitions raise ValueError
        """
        with self._lock:
            job = self._jobs.get(episode_id)
            if job is None:
                return None
            if job.status.is_terminal:
                return job
            if status != JobStatus.FAILED and _ORDER[status] < _ORDER[job.status]:
                raise ValueError(
                    "Episode {}: cannot move job from {} back to {}".format(
                        episode_id, job.status.value, status.value
                    )
                )

            now = time.time()
            job.status = status
            job.updated_at = now
            if error is not None:
                job.error = error
            if status.is_terminal:
                job.completed_at = now
            return job

    def fail_job(self, episode_id: int, error: str) -> Optional[Job]:
        """Mark a job FAILED with an error message."""
        logger.error("Job for episode %d failed: %s", episode_id, error)
        return self.update_job(episode_id, JobStatus.FAILED, error=error)
