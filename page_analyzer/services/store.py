"""Result sink interface and the in-memory store used by the HTTP surface."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from page_analyzer.models.job import AnalysisJob, JobRecord, JobStatus
from page_analyzer.models.report import PageReport

logger = logging.getLogger(__name__)


class ResultSink(ABC):
    """Receives status transitions and reports produced by the engine."""

    @abstractmethod
    async def record_status(self, job: AnalysisJob) -> None:
        """Store the current status (and error message) of *job*."""

    @abstractmethod
    async def record_report(self, job_id: str, report: PageReport) -> None:
        """Attach the final report to *job_id*; called before the done status."""


class InMemoryResultStore(ResultSink):
    """Keeps the latest :class:`JobRecord` per job.

    Writes for the same job id are serialized by a per-job lock; writes for
    different jobs do not contend.  Records are never evicted, and neither
    are their locks: a job id keeps exactly one lock for the life of the
    store, reused by every re-run, so memory grows with the number of
    distinct job ids.
    """

    def __init__(self) -> None:
        self._records: Dict[str, JobRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, job_id: str) -> asyncio.Lock:
        return self._locks.setdefault(job_id, asyncio.Lock())

    async def record_status(self, job: AnalysisJob) -> None:
        async with self._lock_for(job.id):
            previous = self._records.get(job.id)
            # A fresh run (status queued) starts without the previous report
            keep_report = previous is not None and job.status is not JobStatus.QUEUED
            self._records[job.id] = JobRecord(
                job_id=job.id,
                url=job.target_url,
                status=job.status,
                error_message=job.error_message,
                report=previous.report if keep_report else None,
                created_at=previous.created_at if previous else job.created_at,
                updated_at=job.updated_at,
            )
        logger.info("Job %s is now %s", job.id, job.status.value)

    async def record_report(self, job_id: str, report: PageReport) -> None:
        async with self._lock_for(job_id):
            record = self._records.get(job_id)
            if record is None:
                logger.warning("Dropping report for unknown job %s", job_id)
                return
            self._records[job_id] = record.model_copy(update={"report": report})

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._records.get(job_id)
