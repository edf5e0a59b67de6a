"""Task-queue flavoured entry point used by the delegation screen.

A "generate_weekly_menu" task is the same job as /start-weekly-plan-generation,
presented with task statuses; the finished plan sits at metadata.result.
"""

from datetime import timedelta

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from menugen.errors import InvalidRequest, NotFound
from menugen.jobs.runtime import get_job_store, get_orchestrator
from menugen.jobs.store import COMPLETED, ERROR, KIND_TASK, QUEUED, RUNNING, JobRecord
from menugen.logging import get_logger
from menugen.schemas.plan import PlanRequest
from menugen.schemas.task import (
    WEEKLY_MENU_TASK,
    TaskCreate,
    TaskCreatedResponse,
    TaskResponse,
    WeeklyMenuMetadata,
)

router = APIRouter()
logger = get_logger(__name__)

TASK_STATUS = {
    QUEUED: "pending",
    RUNNING: "in_progress",
    COMPLETED: "completed",
    ERROR: "failed",
}
DEFAULT_TITLE = "Generar Menú Semanal"
DEFAULT_ASSIGNEE = "sofIA"


def to_task(record: JobRecord) -> TaskResponse:
    task = record.task or {}
    metadata = dict(task.get("metadata") or {})
    metadata["job_id"] = record.job_id
    metadata["progress_text"] = record.progress
    if record.status == COMPLETED:
        metadata["result"] = record.result
    if record.status == ERROR:
        metadata["error"] = record.error
    return TaskResponse(
        id=record.job_id,
        type=task.get("type", WEEKLY_MENU_TASK),
        title=task.get("title") or DEFAULT_TITLE,
        status=TASK_STATUS.get(record.status, "pending"),
        progress=record.progress_percentage,
        priority=task.get("priority", "medium"),
        created_at=record.created_at,
        updated_at=record.updated_at,
        assigned_to=task.get("assigned_to"),
        empresa_id=task.get("empresa_id"),
        created_by=task.get("created_by"),
        metadata=metadata,
    )


@router.post("/tasks", status_code=201, response_model=TaskCreatedResponse)
def create_task(body: TaskCreate) -> TaskCreatedResponse:
    if body.type != WEEKLY_MENU_TASK:
        raise HTTPException(status_code=400, detail=f"unsupported task type {body.type!r}")
    try:
        meta = WeeklyMenuMetadata.model_validate(body.metadata)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=f"invalid metadata: {exc}")
    request = PlanRequest(
        fecha_inicio=meta.fecha_inicio,
        fecha_fin=meta.fecha_fin or meta.fecha_inicio + timedelta(days=6),
        clientes=meta.clientes,
    )
    task = {
        "type": body.type,
        "title": body.title or DEFAULT_TITLE,
        "priority": body.priority,
        "empresa_id": body.empresa_id,
        "assigned_to": body.assigned_to or DEFAULT_ASSIGNEE,
        "created_by": body.created_by,
        "metadata": body.metadata,
    }
    try:
        job_id = get_orchestrator().submit(request, kind=KIND_TASK, task=task)
    except InvalidRequest as exc:
        logger.info("task.create.rejected type=%s reason=%s", body.type, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    try:
        status = TASK_STATUS[get_job_store().get(job_id).status]
    except NotFound:
        status = "pending"
    logger.info("task.created task_id=%s type=%s", job_id, body.type)
    return TaskCreatedResponse(task_id=job_id, id=job_id, status=status)


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(id: str | None = None) -> list[TaskResponse]:
    records = get_job_store().list(kind=KIND_TASK)
    if id is not None:
        records = [r for r in records if r.job_id == id]
    return [to_task(r) for r in records]


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(task_id: str) -> TaskResponse:
    try:
        record = get_job_store().get(task_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    if record.kind != KIND_TASK:
        raise HTTPException(status_code=404, detail=f"task {task_id} not found")
    return to_task(record)
