import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from page_analyzer.config import get_settings
from page_analyzer.routers.analysis import limiter, router as analysis_router
from page_analyzer.services.orchestrator import AnalysisEngine
from page_analyzer.services.store import InMemoryResultStore

_settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "loggers": {
            "page_analyzer": {"level": _settings.log_level.upper()},
            # One line per link probe otherwise
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = InMemoryResultStore()
    engine = AnalysisEngine(_settings, store)
    app.state.store = store
    app.state.engine = engine
    try:
        yield
    finally:
        await engine.aclose()


app = FastAPI(
    title="Page Analyzer API",
    description="Analyses a single web page: structure, links, broken links and login forms.",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(analysis_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Page Analyzer"}
