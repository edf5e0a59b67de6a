"""Start / poll / cancel for weekly plan generation.

- POST /start-weekly-plan-generation: validates, returns 202 + job_id immediately.
  The search runs in the background; nothing about the plan is known yet.
- GET /job-status/{job_id}: poll until status is "completed" (result holds the plan) or "error".
- DELETE /job/{job_id}: release the record and stop the search at its next checkpoint.
"""

from fastapi import APIRouter, HTTPException, Response

from menugen.errors import InvalidRequest, NotFound
from menugen.jobs.runtime import get_job_store, get_orchestrator
from menugen.logging import get_logger
from menugen.schemas.plan import JobCreatedResponse, JobStatusResponse, PlanRequest

router = APIRouter()
logger = get_logger(__name__)


@router.post("/start-weekly-plan-generation", status_code=202, response_model=JobCreatedResponse)
def start_weekly_plan_generation(request: PlanRequest) -> JobCreatedResponse:
    try:
        job_id = get_orchestrator().submit(request)
    except InvalidRequest as exc:
        logger.info("plan.start.rejected clients=%s reason=%s", request.clientes, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return JobCreatedResponse(job_id=job_id)


@router.get("/job-status/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
def job_status(job_id: str) -> JobStatusResponse:
    try:
        record = get_job_store().get(job_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return JobStatusResponse(
        job_id=record.job_id,
        status=record.status,
        progress=record.progress,
        progress_percentage=record.progress_percentage,
        created_at=record.created_at,
        updated_at=record.updated_at,
        result=record.result,
        error=record.error,
    )


@router.delete("/job/{job_id}", status_code=204)
def delete_job(job_id: str) -> Response:
    get_orchestrator().cancel(job_id)
    return Response(status_code=204)
