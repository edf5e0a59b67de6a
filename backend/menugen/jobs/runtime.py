"""Process-wide job store and orchestrator, built lazily from settings."""

import threading

from menugen.jobs.orchestrator import JobOrchestrator, build_executor
from menugen.jobs.store import JobStore, build_job_store
from menugen.services.catalog.provider import SqlCatalogProvider
from menugen.storage import db

_lock = threading.Lock()
_orchestrator: JobOrchestrator | None = None


def _session_factory():
    # looked up on each call so tests can swap db.get_session
    return db.get_session()


def get_orchestrator() -> JobOrchestrator:
    global _orchestrator
    with _lock:
        if _orchestrator is None:
            _orchestrator = JobOrchestrator(
                store=build_job_store(),
                catalog=SqlCatalogProvider(_session_factory),
                executor=build_executor(),
            )
        return _orchestrator


def get_job_store() -> JobStore:
    return get_orchestrator().store


def set_orchestrator(orchestrator: JobOrchestrator | None) -> None:
    global _orchestrator
    with _lock:
        _orchestrator = orchestrator
