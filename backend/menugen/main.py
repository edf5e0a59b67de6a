from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from menugen.api.routes import router as api_router
from menugen.config import settings
from menugen.jobs.reaper import JobReaper
from menugen.jobs.runtime import get_orchestrator
from menugen.logging import configure_logging, get_logger
from menugen.storage.db import create_db_and_tables

app = FastAPI(title="Menu Plan Generator API")
logger = get_logger(__name__)
_reaper: JobReaper | None = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    global _reaper
    configure_logging()
    logger.info(
        "startup: job_store=%s executor=%s ttl_s=%s",
        settings.job_store_backend,
        settings.job_executor,
        settings.job_ttl_seconds,
    )
    create_db_and_tables()
    # Redis expires records itself and Celery Beat prunes the index.
    if settings.job_store_backend == "memory":
        _reaper = JobReaper(get_orchestrator().store)
        _reaper.start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    if _reaper is not None:
        _reaper.stop()
    get_orchestrator().executor.shutdown()


app.include_router(api_router)
