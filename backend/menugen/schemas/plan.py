from datetime import date, datetime
from typing import Any, Union

from pydantic import BaseModel

ClientRef = Union[int, str]


class PlanRequest(BaseModel):
    fecha_inicio: date
    fecha_fin: date
    clientes: list[ClientRef]


class JobCreatedResponse(BaseModel):
    job_id: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str  # queued | running | completed | error
    progress: str
    progress_percentage: int = 0
    created_at: datetime
    updated_at: datetime
    result: dict[str, Any] | None = None  # plan document, only when completed
    error: str | None = None
