from typing import Optional

from pydantic import BaseModel, Field, HttpUrl

from page_analyzer.models.job import JobStatus


class AnalysisRequest(BaseModel):
    url: HttpUrl
    job_id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=64,
        pattern=r"^[A-Za-z0-9_\-]+$",
        description="Identifier for the job; generated when omitted.",
    )


class AnalysisAck(BaseModel):
    """Immediate answer to a start/stop request; results arrive via the store."""

    job_id: str
    accepted: bool
    status: Optional[JobStatus] = None
    message: str = ""
