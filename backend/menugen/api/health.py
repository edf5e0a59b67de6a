from fastapi import APIRouter

from menugen.config import settings

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "env": settings.env,
        "job_store": settings.job_store_backend,
        "executor": settings.job_executor,
    }
