from celery import Celery

from menugen.config import settings
from menugen.logging import configure_logging, get_logger


celery_app = Celery("menugen", broker=settings.redis_url, backend=settings.redis_url)
celery_app.conf.task_routes = {"menugen.workers.tasks.*": {"queue": "plans"}}
celery_app.conf.worker_concurrency = settings.celery_worker_concurrency
# A plan search is CPU-bound and long; hand out one job at a time per worker process.
celery_app.conf.worker_prefetch_multiplier = 1
celery_app.conf.task_acks_late = True

# Celery Beat: prune expired job records
celery_app.conf.beat_schedule = {
    "reap-expired-jobs": {
        "task": "menugen.workers.tasks.reap_expired_jobs",
        "schedule": float(settings.job_reap_interval_seconds),
        "options": {"queue": "plans"},
    },
}

# Import tasks so they are registered with the worker
from menugen.workers import tasks  # noqa: E402,F401

configure_logging()
logger = get_logger(__name__)
logger.info(
    "celery.configured broker=%s worker_concurrency=%s job_store=%s",
    settings.redis_url,
    settings.celery_worker_concurrency,
    settings.job_store_backend,
)
