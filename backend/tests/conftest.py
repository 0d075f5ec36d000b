"""
Test Configuration — Fixtures for the cutover engine and the API.

Each test gets its own file-backed SQLite database so that several sessions
(one per controller operation) see the same committed rows. Remote
collaborators are replaced with in-memory fakes.
"""

import asyncio
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.deps import get_controller, get_current_user
from api.main import app
from cutover.controller import CutoverController, MonitorPolicy
from cutover.locks import LocalLockRegistry
from db.models import CutoverSchedule
from db.session import Base
from integrations.base import Notifier, RunCounts, SetStateResult, WorkflowClient, WorkflowState

T0 = datetime(2026, 3, 14, 9, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


class FakeWorkflowClient(WorkflowClient):
    """Workflows keyed by name. Unknown workflows read as None."""

    def __init__(self):
        self.states: dict[str, WorkflowState] = {}
        self.runs: dict[str, RunCounts] = {}
        self.failing: dict[str, str] = {}
        self.set_calls: list[tuple[str, WorkflowState]] = []
        self.delay_seconds = 0.0

    async def get_state(self, resource_group, workflow_name):
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return self.states.get(workflow_name)

    async def set_state(self, resource_group, workflow_name, state):
        self.set_calls.append((workflow_name, state))
        if workflow_name in self.failing:
            return SetStateResult(success=False, error=self.failing[workflow_name])
        self.states[workflow_name] = state
        return SetStateResult(success=True)

    async def get_recent_runs(self, resource_group, workflow_name, minutes_back=30):
        return self.runs.get(workflow_name, RunCounts())


class FakeNotifier(Notifier):
    channel = "fake"

    def __init__(self):
        super().__init__({})
        self.messages: list[str] = []
        self.deliver = True

    async def send(self, message):
        self.messages.append(message)
        if not self.deliver:
            return None
        return f"SM{len(self.messages):04d}"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cutover.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def workflows():
    return FakeWorkflowClient()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def locks():
    return LocalLockRegistry()


@pytest.fixture
def controller(session_factory, workflows, notifier, locks, clock):
    return CutoverController(
        session_factory=session_factory,
        workflows=workflows,
        notifier=notifier,
        locks=locks,
        policy=MonitorPolicy(remote_timeout_seconds=2.0),
        clock=clock,
    )


async def seed_schedule(session_factory, name: str = "X", **overrides) -> CutoverSchedule:
    """Insert a configured schedule; ``overrides`` replace any column."""
    values = {
        "name": name,
        "resource_group": "rg-integration",
        "v4_workflow": f"{name}-v4",
        "v3_workflow": f"{name}-v3",
        "failover_workflow": f"{name}-failover",
        "is_active": False,
        "auto_cutback": False,
        "failure_threshold": 1,
        "total_runs": 0,
        "total_failures": 0,
        "total_failovers": 0,
    }
    values.update(overrides)
    schedule = CutoverSchedule(**values)
    async with session_factory() as db:
        db.add(schedule)
        await db.commit()
    return schedule


async def load_schedule(session_factory, name: str = "X") -> CutoverSchedule | None:
    async with session_factory() as db:
        return await db.get(CutoverSchedule, name)


@pytest.fixture
def mock_user():
    """Mock authenticated operator."""
    return {"sub": "operator@example.com"}


@pytest.fixture
async def client(controller, mock_user):
    """Create an async test client with dependency overrides."""
    app.dependency_overrides[get_controller] = lambda: controller
    app.dependency_overrides[get_current_user] = lambda: mock_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def seed(session_factory):
    async def _seed(name: str = "X", **overrides) -> CutoverSchedule:
        return await seed_schedule(session_factory, name, **overrides)

    return _seed


@pytest.fixture
def load(session_factory):
    async def _load(name: str = "X") -> CutoverSchedule | None:
        return await load_schedule(session_factory, name)

    return _load
