from fastapi import APIRouter

from menugen.api.health import router as health_router
from menugen.api.jobs import router as jobs_router
from menugen.api.tasks import router as tasks_router

# No prefix: the dashboard calls these paths at the backend root.
router = APIRouter()
router.include_router(health_router)
router.include_router(jobs_router)
router.include_router(tasks_router)
