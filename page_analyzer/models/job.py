from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from page_analyzer.models.report import PageReport
from page_analyzer.services.errors import InvalidTransitionError


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.DONE, JobStatus.ERROR}),
    JobStatus.DONE: frozenset(),
    JobStatus.ERROR: frozenset(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisJob(BaseModel):
    """One analysis run against a target URL.

    Only the orchestrator running the job mutates it, and status changes must
    go through :meth:`transition_to` so that the transition table is enforced.
    """

    id: str
    target_url: str
    status: JobStatus = JobStatus.QUEUED
    error_message: Optional[str] = None
    cancel_requested: bool = False
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def transition_to(self, status: JobStatus, error_message: Optional[str] = None) -> None:
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Job {self.id}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.error_message = error_message
        self.updated_at = _now()


class JobRecord(BaseModel):
    """Snapshot of a job as seen by the result store."""

    job_id: str
    url: str
    status: JobStatus
    error_message: Optional[str] = None
    report: Optional[PageReport] = None
    created_at: datetime
    updated_at: datetime
