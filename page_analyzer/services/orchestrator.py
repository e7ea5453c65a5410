"""Analysis orchestration: drives one page through the whole pipeline.

Pipeline for a single job::

    fetch ─▶ analyze document ─▶ classify links ─┬─▶ validate links ─┐
                                                 └─▶ detect login   ─┴─▶ report

Every run executes on its own asyncio task, so :meth:`AnalysisEngine.start_analysis`
returns as soon as the job is queued.  Stop requests are cooperative: the
cancellation flag is checked between stages, and network calls already in
flight are left to finish or time out.
"""

import asyncio
import logging
from typing import Dict, Optional

import httpx

from page_analyzer.config import EngineSettings
from page_analyzer.models.analysis import AnalysisAck
from page_analyzer.models.job import AnalysisJob, JobStatus
from page_analyzer.models.report import PageReport
from page_analyzer.services.document import analyze_document
from page_analyzer.services.errors import AnalysisError, JobCancelledError
from page_analyzer.services.fetcher import fetch_document
from page_analyzer.services.forms import has_login_form
from page_analyzer.services.links import classify_links, partition_links
from page_analyzer.services.store import ResultSink
from page_analyzer.services.validator import validate_links

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """Runs analysis jobs and reports their progress to a :class:`ResultSink`.

    The engine owns its HTTP client unless one is passed in, in which case the
    caller stays responsible for closing it.  Only in-flight runs are tracked;
    a job is forgotten as soon as its terminal status has been recorded.
    """

    def __init__(
        self,
        settings: EngineSettings,
        sink: ResultSink,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings
        self._sink = sink
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            limits=httpx.Limits(max_connections=settings.probe_concurrency + 10),
        )
        self._jobs: Dict[str, AnalysisJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def is_running(self, job_id: str) -> bool:
        return job_id in self._jobs

    async def start_analysis(self, job_id: str, target_url: str) -> AnalysisAck:
        """Queue a new run for *job_id* and return without waiting for it."""
        if job_id in self._jobs:
            return AnalysisAck(
                job_id=job_id,
                accepted=False,
                status=self._jobs[job_id].status,
                message="An analysis for this job is already in progress.",
            )

        job = AnalysisJob(id=job_id, target_url=target_url)
        self._jobs[job_id] = job
        try:
            await self._sink.record_status(job)
        except Exception:
            self._jobs.pop(job_id, None)
            raise

        task = asyncio.create_task(self.run(job), name=f"analysis-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda t, job_id=job_id: self._on_run_finished(job_id, t))

        logger.info("Analysis queued", extra={"job_id": job_id, "url": target_url})
        return AnalysisAck(job_id=job_id, accepted=True, status=job.status, message="Analysis queued.")

    def stop_analysis(self, job_id: str) -> AnalysisAck:
        """Ask the run for *job_id* to stop at its next stage boundary (best effort)."""
        job = self._jobs.get(job_id)
        if job is None:
            return AnalysisAck(job_id=job_id, accepted=False, message="No analysis in progress for this job.")

        job.cancel_requested = True
        logger.info("Stop requested", extra={"job_id": job_id})
        return AnalysisAck(job_id=job_id, accepted=True, status=job.status, message="Stop requested.")

    async def aclose(self) -> None:
        """Stop all in-flight runs, wait for them to settle and release the client."""
        for job in self._jobs.values():
            job.cancel_requested = True
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run(self, job: AnalysisJob) -> Optional[PageReport]:
        """Execute the pipeline for *job* and record the outcome.

        Returns the report on success and None when the job ended in ``error``.
        """
        stage = "start"
        try:
            await self._transition(job, JobStatus.RUNNING)

            stage = "fetch"
            self._checkpoint(job)
            fetched = await fetch_document(self._client, job.target_url, self._settings)
            self._checkpoint(job)

            stage = "analysis"
            title, html_version, heading_counts = analyze_document(fetched.soup)
            links = classify_links(fetched.soup, fetched.url)
            self._checkpoint(job)

            stage = "validation"
            validation, login_form = await asyncio.gather(
                validate_links(self._client, links, self._settings),
                asyncio.to_thread(has_login_form, fetched.soup),
            )
            self._checkpoint(job)

            stage = "report"
            internal, external = partition_links(links)
            report = PageReport(
                url=fetched.url,
                title=title,
                html_version=html_version,
                heading_counts=heading_counts,
                internal_link_count=len(internal),
                external_link_count=len(external),
                has_login_form=login_form,
                broken_links=validation.broken,
                inaccessible_link_count=len(validation.broken),
                unchecked_link_count=validation.unchecked,
            )
            await self._sink.record_report(job.id, report)
        except JobCancelledError as exc:
            await self._fail(job, str(exc))
            return None
        except AnalysisError as exc:
            await self._fail(job, f"{stage} failed: {exc}")
            return None
        except Exception:
            logger.exception("Unexpected error during %s for job %s", stage, job.id)
            await self._fail(job, f"internal error during {stage}")
            return None

        await self._transition(job, JobStatus.DONE)
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _checkpoint(job: AnalysisJob) -> None:
        if job.cancel_requested:
            raise JobCancelledError()

    async def _transition(
        self,
        job: AnalysisJob,
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> None:
        job.transition_to(status, error_message)
        await self._sink.record_status(job)

    async def _fail(self, job: AnalysisJob, message: str) -> None:
        logger.warning("Analysis of %s failed: %s", job.target_url, message, extra={"job_id": job.id})
        await self._transition(job, JobStatus.ERROR, message)

    def _on_run_finished(self, job_id: str, task: asyncio.Task) -> None:
        self._jobs.pop(job_id, None)
        self._tasks.pop(job_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Analysis task for job %s crashed: %r", job_id, task.exception())
