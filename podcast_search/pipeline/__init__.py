"""Transcript acquisition pipeline: planning, stage workers and the batch job."""

from podcast_search.pipeline.batch import transcribe_missing
from podcast_search.pipeline.jobs import Job, JobStatus, JobStore
from podcast_search.pipeline.limiter import AdmissionLimiter
from podcast_search.pipeline.manager import JobManager
from podcast_search.pipeline.planner import WorkPlan, plan_work

__all__ = [
    "AdmissionLimiter",
    "Job",
    "JobManager",
    "JobStatus",
    "JobStore",
    "WorkPlan",
    "plan_work",
    "transcribe_missing",
]
