from menugen.errors import NotFound
from menugen.jobs.runtime import get_orchestrator
from menugen.logging import get_logger
from menugen.utils.timing import time_span
from menugen.workers.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(bind=True)
def generate_weekly_plan(self, job_id: str):
    """Run a job created by the API. The worker must share the API's Redis job store."""
    task_id = self.request.id
    logger.info("worker.plan.start task_id=%s job_id=%s", task_id, job_id)
    orchestrator = get_orchestrator()
    with time_span("worker.plan.total", task_id=task_id, job_id=job_id):
        try:
            orchestrator.run_stored(job_id)
        except NotFound:
            logger.warning("worker.plan.skip job_id=%s not found (deleted or expired before start)", job_id)
            return {"status": "skipped", "job_id": job_id}
    try:
        status = orchestrator.store.get(job_id).status
    except NotFound:
        status = "cancelled"
    logger.info("worker.plan.end task_id=%s job_id=%s status=%s", task_id, job_id, status)
    return {"status": status, "job_id": job_id}


@celery_app.task
def reap_expired_jobs():
    removed = get_orchestrator().store.reap()
    logger.info("worker.reap removed=%s", removed)
    return {"removed": removed}
