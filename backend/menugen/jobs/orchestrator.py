"""Runs plan generation as a background job that callers poll.

submit() validates synchronously and returns a job id at once; run() does the
search client by client on an executor, checking for cancellation at every
client boundary (and inside the search every few thousand steps) and writing
progress after each client.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Sequence

from menugen.config import settings
from menugen.errors import EngineFault, InvalidRequest, SearchCancelled
from menugen.jobs.store import (
    COMPLETED,
    ERROR,
    KIND_WEEKLY_PLAN,
    RUNNING,
    JobStore,
    new_job_record,
)
from menugen.logging import get_logger
from menugen.schemas.plan import PlanRequest
from menugen.services.catalog.provider import CatalogProvider
from menugen.services.planning.assembler import assemble_plan
from menugen.services.planning.constraints import ClientModel, build_request_models, validate_dates
from menugen.services.planning.search import search_client_plan
from menugen.utils.timing import time_span

logger = get_logger(__name__)


class InlineExecutor:
    """Runs the job in the caller's thread. Used by tests and one-off scripts."""

    def dispatch(self, orchestrator: "JobOrchestrator", job_id: str, models: Sequence[ClientModel]) -> None:
        orchestrator.run(job_id, models)

    def shutdown(self) -> None:
        pass


class ThreadExecutor:
    """Background threads inside the API process; the request handler never waits on the search."""

    def __init__(self, max_workers: int | None = None):
        self.max_workers = max_workers or settings.job_max_workers
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="menugen-job")

    def dispatch(self, orchestrator: "JobOrchestrator", job_id: str, models: Sequence[ClientModel]) -> None:
        future = self._pool.submit(orchestrator.run, job_id, models)
        future.add_done_callback(lambda done: self._settle(orchestrator, job_id, done))

    @staticmethod
    def _settle(orchestrator: "JobOrchestrator", job_id: str, future: Future) -> None:
        # run() records its own failures; this catches what escapes it and jobs dropped on shutdown
        if future.cancelled():
            orchestrator._fail(job_id, RuntimeError("job dropped by executor shutdown before it started"))
            return
        exc = future.exception()
        if exc is not None:
            orchestrator._fail(job_id, exc)

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)


class CeleryExecutor:
    """Hands the job id to a Celery worker, which rebuilds the models from the stored request."""

    def dispatch(self, orchestrator: "JobOrchestrator", job_id: str, models: Sequence[ClientModel]) -> None:
        from menugen.workers.tasks import generate_weekly_plan

        generate_weekly_plan.delay(job_id)

    def shutdown(self) -> None:
        pass


def build_executor():
    name = settings.job_executor.lower()
    if name == "celery" and settings.job_store_backend.lower() == "memory":
        # a worker process cannot see the API process's in-memory records
        raise ValueError("job_executor 'celery' needs job_store_backend 'redis', not 'memory'")
    if name == "thread":
        return ThreadExecutor()
    if name == "celery":
        return CeleryExecutor()
    if name == "inline":
        return InlineExecutor()
    raise ValueError(f"unknown job_executor {settings.job_executor!r}")


class JobOrchestrator:
    def __init__(self, store: JobStore, catalog: CatalogProvider, executor=None):
        self.store = store
        self.catalog = catalog
        self.executor = executor or InlineExecutor()

    def prepare(self, request: PlanRequest) -> list[ClientModel]:
        """Load the catalog once and build every client's model. Raises InvalidRequest."""
        validate_dates(request.fecha_inicio, request.fecha_fin)
        if not request.clientes:
            raise InvalidRequest("at least one client is required")
        snapshot = self.catalog.load(request.clientes)
        return build_request_models(snapshot, request.clientes, request.fecha_inicio, request.fecha_fin)

    def submit(self, request: PlanRequest, kind: str = KIND_WEEKLY_PLAN, task: dict | None = None) -> str:
        """Create exactly one job record for the request and start it. InvalidRequest creates none."""
        payload = request.model_dump(mode="json")
        try:
            models = self.prepare(request)
        except EngineFault as exc:
            record = new_job_record(payload, kind=kind, task=task)
            self.store.create(record)
            self._fail(record.job_id, exc)
            return record.job_id

        record = new_job_record(payload, kind=kind, task=task)
        job_id = self.store.create(record)
        logger.info(
            "job.submitted job_id=%s clients=%s range=%s..%s",
            job_id,
            [m.client_id for m in models],
            request.fecha_inicio,
            request.fecha_fin,
        )
        self.executor.dispatch(self, job_id, models)
        return job_id

    def run_stored(self, job_id: str) -> None:
        """Entry point for workers that only receive the job id."""
        record = self.store.get(job_id)
        request = PlanRequest.model_validate(record.request)
        try:
            models = self.prepare(request)
        except (InvalidRequest, EngineFault) as exc:
            self._fail(job_id, exc)
            return
        self.run(job_id, models)

    def run(self, job_id: str, models: Sequence[ClientModel]) -> None:
        if self.store.is_cancelled(job_id):
            logger.info("job.skip job_id=%s reason=cancelled_before_start", job_id)
            return
        total = len(models)
        if self.store.update(job_id, status=RUNNING, progress="Iniciando generación", progress_percentage=0) is None:
            return

        def cancelled() -> bool:
            return self.store.is_cancelled(job_id)

        results = []
        try:
            with time_span("job.total", job_id=job_id, clients=total):
                for position, model in enumerate(models, start=1):
                    if cancelled():
                        logger.info("job.cancelled job_id=%s done=%s/%s", job_id, position - 1, total)
                        return
                    self.store.update(
                        job_id,
                        progress=f"Procesando cliente {position}/{total}: {model.client.name}",
                    )
                    with time_span("job.client", job_id=job_id, client=model.client_id, cells=len(model.cells)):
                        result = search_client_plan(model, should_stop=cancelled)
                    results.append(result)
                    logger.info(
                        "job.client.done job_id=%s client=%s status=%s steps=%s",
                        job_id,
                        model.client_id,
                        result.status,
                        result.steps,
                    )
                    self.store.update(
                        job_id,
                        progress=f"Cliente {position}/{total} procesado",
                        progress_percentage=int(position * 100 / total),
                    )
                document = assemble_plan(models, results)
        except SearchCancelled:
            logger.info("job.cancelled job_id=%s during_search=true", job_id)
            return
        except Exception as exc:
            self._fail(job_id, exc)
            return

        infeasible = sum(1 for r in results if not r.satisfied)
        self.store.update(
            job_id,
            status=COMPLETED,
            result=document,
            progress=f"Completado: {total - infeasible}/{total} clientes con plan",
            progress_percentage=100,
        )
        logger.info("job.completed job_id=%s clients=%s infeasible=%s", job_id, total, infeasible)

    def cancel(self, job_id: str) -> None:
        """Release the record and signal the run to stop; safe to call repeatedly."""
        self.store.delete(job_id)

    def _fail(self, job_id: str, exc: Exception) -> None:
        logger.error("job.failure job_id=%s error=%s", job_id, exc, exc_info=exc)
        self.store.update(
            job_id,
            status=ERROR,
            error=f"{type(exc).__name__}: {exc}",
            result=None,
            progress="Error",
        )
