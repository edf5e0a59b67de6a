from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from menugen.schemas.plan import ClientRef

WEEKLY_MENU_TASK = "generate_weekly_menu"


class TaskCreate(BaseModel):
    type: str
    title: str | None = None
    metadata: dict[str, Any] = {}
    priority: str = "medium"
    empresa_id: str | None = None
    assigned_to: str | None = None
    created_by: str | None = None


class WeeklyMenuMetadata(BaseModel):
    fecha_inicio: date
    fecha_fin: date | None = None  # defaults to fecha_inicio + 6 days
    clientes: list[ClientRef]


class TaskCreatedResponse(BaseModel):
    task_id: str
    id: str
    status: str


class TaskResponse(BaseModel):
    id: str
    type: str
    title: str
    status: str  # pending | in_progress | completed | failed
    progress: int
    priority: str
    created_at: datetime
    updated_at: datetime
    assigned_to: str | None = None
    empresa_id: str | None = None
    created_by: str | None = None
    metadata: dict[str, Any] = {}
