import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from page_analyzer.models.analysis import AnalysisAck, AnalysisRequest
from page_analyzer.models.job import JobRecord
from page_analyzer.services.orchestrator import AnalysisEngine
from page_analyzer.services.store import InMemoryResultStore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/analyses", tags=["Analysis"])


def get_engine(request: Request) -> AnalysisEngine:
    return request.app.state.engine


def get_store(request: Request) -> InMemoryResultStore:
    return request.app.state.store


@router.post(
    "",
    response_model=AnalysisAck,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start analysing a web page",
    description=(
        "Queues an analysis of *url* and returns immediately.  Poll "
        "`GET /analyses/{job_id}` for the status and, once `done`, the report."
    ),
)
@limiter.limit("10/minute")
async def start_analysis(
    request: Request,
    body: AnalysisRequest,
    engine: AnalysisEngine = Depends(get_engine),
) -> AnalysisAck:
    job_id = body.job_id or uuid.uuid4().hex
    url = str(body.url)
    logger.info("Analysis request received", extra={"job_id": job_id, "url": url})

    ack = await engine.start_analysis(job_id, url)
    if not ack.accepted:
        raise HTTPException(status_code=409, detail=ack.message)
    return ack


@router.get("/{job_id}", response_model=JobRecord, summary="Poll an analysis job")
async def get_analysis(job_id: str, store: InMemoryResultStore = Depends(get_store)) -> JobRecord:
    record = store.get(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown analysis job.")
    return record


@router.post(
    "/{job_id}/stop",
    response_model=AnalysisAck,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a running analysis to stop",
)
async def stop_analysis(job_id: str, engine: AnalysisEngine = Depends(get_engine)) -> AnalysisAck:
    ack = engine.stop_analysis(job_id)
    if not ack.accepted:
        raise HTTPException(status_code=409, detail=ack.message)
    return ack


@router.post(
    "/{job_id}/rerun",
    response_model=AnalysisAck,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Analyse the job's URL again",
)
@limiter.limit("10/minute")
async def rerun_analysis(
    request: Request,
    job_id: str,
    engine: AnalysisEngine = Depends(get_engine),
    store: InMemoryResultStore = Depends(get_store),
) -> AnalysisAck:
    record = store.get(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown analysis job.")

    ack = await engine.start_analysis(job_id, record.url)
    if not ack.accepted:
        raise HTTPException(status_code=409, detail=ack.message)
    return ack
