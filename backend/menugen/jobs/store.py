"""Job records and the stores that hold them.

Only the job run that owns a record writes to it; API handlers read. Records
are replaced whole on every update, so a poll sees either the old or the new
record, never a half-written one.
"""

import threading
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel
from redis import Redis

from menugen.config import settings
from menugen.errors import NotFound
from menugen.logging import get_logger

logger = get_logger(__name__)

QUEUED = "queued"
RUNNING = "running"
COMPLETED = "completed"
ERROR = "error"
TERMINAL_STATUSES = (COMPLETED, ERROR)

KIND_WEEKLY_PLAN = "weekly_plan"
KIND_TASK = "task"


class JobRecord(BaseModel):
    job_id: str
    kind: str = KIND_WEEKLY_PLAN
    status: str = QUEUED
    progress: str = "En cola"
    progress_percentage: int = 0
    created_at: datetime
    updated_at: datetime
    request: dict[str, Any] = {}
    result: dict[str, Any] | None = None
    error: str | None = None
    task: dict[str, Any] | None = None  # fields of the /tasks entry point

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def new_job_record(request: dict, kind: str = KIND_WEEKLY_PLAN, task: dict | None = None) -> JobRecord:
    now = datetime.utcnow()
    return JobRecord(
        job_id=uuid.uuid4().hex,
        kind=kind,
        created_at=now,
        updated_at=now,
        request=request,
        task=task,
    )


class JobStore:
    def create(self, record: JobRecord) -> str:
        raise NotImplementedError

    def get(self, job_id: str) -> JobRecord:
        raise NotImplementedError

    def update(self, job_id: str, **fields: Any) -> Optional[JobRecord]:
        raise NotImplementedError

    def delete(self, job_id: str) -> None:
        raise NotImplementedError

    def is_cancelled(self, job_id: str) -> bool:
        raise NotImplementedError

    def list(self, kind: str | None = None) -> list[JobRecord]:
        raise NotImplementedError

    def reap(self, now: datetime | None = None) -> int:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    def __init__(self, ttl_seconds: int | None = None):
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.job_ttl_seconds)
        self._lock = threading.Lock()
        self._records: dict[str, JobRecord] = {}
        self._cancelled: dict[str, datetime] = {}

    def create(self, record: JobRecord) -> str:
        self.reap()
        with self._lock:
            self._records[record.job_id] = record
        logger.info("job.created job_id=%s kind=%s", record.job_id, record.kind)
        return record.job_id

    def get(self, job_id: str) -> JobRecord:
        with self._lock:
            record = self._records.get(job_id)
        if record is None:
            raise NotFound(job_id)
        return record.model_copy(deep=True)

    def update(self, job_id: str, **fields: Any) -> Optional[JobRecord]:
        fields["updated_at"] = datetime.utcnow()
        with self._lock:
            current = self._records.get(job_id)
            if current is None:
                return None
            replacement = current.model_copy(update=fields)
            self._records[job_id] = replacement
        return replacement.model_copy(deep=True)

    def delete(self, job_id: str) -> None:
        with self._lock:
            removed = self._records.pop(job_id, None)
            self._cancelled[job_id] = datetime.utcnow()
        if removed is not None:
            logger.info("job.deleted job_id=%s status=%s", job_id, removed.status)

    def is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._cancelled

    def list(self, kind: str | None = None) -> list[JobRecord]:
        self.reap()
        with self._lock:
            records = list(self._records.values())
        if kind is not None:
            records = [r for r in records if r.kind == kind]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    def reap(self, now: datetime | None = None) -> int:
        """Drop records not updated within the TTL and cancel their runs."""
        now = now or datetime.utcnow()
        cutoff = now - self.ttl
        with self._lock:
            stale = [job_id for job_id, r in self._records.items() if r.updated_at < cutoff]
            for job_id in stale:
                del self._records[job_id]
                self._cancelled[job_id] = now
            for job_id in [j for j, at in self._cancelled.items() if at < cutoff]:
                del self._cancelled[job_id]
        if stale:
            logger.info("job.reaped count=%s job_ids=%s", len(stale), stale)
        return len(stale)


class RedisJobStore(JobStore):
    """One JSON document per job; Redis key expiry is the reap policy."""

    def __init__(self, client: Redis, ttl_seconds: int | None = None, prefix: str = "menugen:job:"):
        self.client = client
        self.ttl = ttl_seconds if ttl_seconds is not None else settings.job_ttl_seconds
        self.prefix = prefix
        self.index_key = f"{prefix}index"

    def _key(self, job_id: str) -> str:
        return f"{self.prefix}{job_id}"

    def _cancel_key(self, job_id: str) -> str:
        return f"{self.prefix}{job_id}:cancelled"

    def create(self, record: JobRecord) -> str:
        self.client.set(self._key(record.job_id), record.model_dump_json(), ex=self.ttl)
        self.client.zadd(self.index_key, {record.job_id: record.created_at.timestamp()})
        logger.info("job.created job_id=%s kind=%s store=redis", record.job_id, record.kind)
        return record.job_id

    def get(self, job_id: str) -> JobRecord:
        raw = self.client.get(self._key(job_id))
        if raw is None:
            raise NotFound(job_id)
        return JobRecord.model_validate_json(raw)

    def update(self, job_id: str, **fields: Any) -> Optional[JobRecord]:
        try:
            current = self.get(job_id)
        except NotFound:
            return None
        fields["updated_at"] = datetime.utcnow()
        replacement = JobRecord.model_validate({**current.model_dump(), **fields})
        # xx: never resurrect a record deleted between the read and the write
        written = self.client.set(self._key(job_id), replacement.model_dump_json(), ex=self.ttl, xx=True)
        return replacement if written else None

    def delete(self, job_id: str) -> None:
        self.client.set(self._cancel_key(job_id), "1", ex=self.ttl)
        removed = self.client.delete(self._key(job_id))
        self.client.zrem(self.index_key, job_id)
        if removed:
            logger.info("job.deleted job_id=%s store=redis", job_id)

    def is_cancelled(self, job_id: str) -> bool:
        return bool(self.client.exists(self._cancel_key(job_id)))

    def list(self, kind: str | None = None) -> list[JobRecord]:
        job_ids = [_decode(j) for j in self.client.zrevrange(self.index_key, 0, -1)]
        if not job_ids:
            return []
        raws = self.client.mget([self._key(j) for j in job_ids])
        records = []
        for job_id, raw in zip(job_ids, raws):
            if raw is None:
                self.client.zrem(self.index_key, job_id)
                continue
            record = JobRecord.model_validate_json(raw)
            if kind is None or record.kind == kind:
                records.append(record)
        return records

    def reap(self, now: datetime | None = None) -> int:
        """Records expire on their own; this only prunes the listing index."""
        removed = 0
        for job_id in [_decode(j) for j in self.client.zrange(self.index_key, 0, -1)]:
            if not self.client.exists(self._key(job_id)):
                self.client.zrem(self.index_key, job_id)
                removed += 1
        if removed:
            logger.info("job.reaped count=%s store=redis", removed)
        return removed


def _decode(value) -> str:
    return value.decode() if isinstance(value, bytes) else value


def build_job_store() -> JobStore:
    backend = settings.job_store_backend.lower()
    if backend == "redis":
        return RedisJobStore(Redis.from_url(settings.redis_url))
    if backend == "memory":
        return InMemoryJobStore()
    raise ValueError(f"unknown job_store_backend {settings.job_store_backend!r}")
