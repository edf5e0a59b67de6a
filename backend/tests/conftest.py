import os
import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Module-level engine is built at import time; keep it off Postgres in tests.
os.environ.setdefault("DATABASE_DSN", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from factories import seed_catalog  # noqa: E402
from menugen import main  # noqa: E402
from menugen.jobs import runtime  # noqa: E402
from menugen.jobs.orchestrator import InlineExecutor, JobOrchestrator  # noqa: E402
from menugen.jobs.store import InMemoryJobStore  # noqa: E402
from menugen.services.catalog.provider import SqlCatalogProvider  # noqa: E402
from menugen.storage import db as db_module  # noqa: E402


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="seeded")
def seeded_fixture(session):
    seed_catalog(session)
    return session


@pytest.fixture(name="store")
def store_fixture():
    return InMemoryJobStore()


@pytest.fixture(name="orchestrator")
def orchestrator_fixture(engine, store):
    orchestrator = JobOrchestrator(
        store=store,
        catalog=SqlCatalogProvider(lambda: Session(engine)),
        executor=InlineExecutor(),
    )
    runtime.set_orchestrator(orchestrator)
    yield orchestrator
    runtime.set_orchestrator(None)


@pytest.fixture(name="client")
def client_fixture(monkeypatch, engine, seeded, orchestrator):
    def _get_session_override():
        return Session(engine)

    monkeypatch.setattr(db_module, "engine", engine)
    monkeypatch.setattr(db_module, "get_session", _get_session_override)

    client = TestClient(main.app)
    return client
