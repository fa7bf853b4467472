from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from clinicflow.metrics import MetricsRegistry, register_default_metrics
from clinicflow.printers.base import PrintJob, PrintResult
from clinicflow.tickets.printing import PrintReconciler
from clinicflow.tickets.repository import TicketRepository
from clinicflow.tickets.service import LifecycleEngine


class FakePrinter:
    def __init__(self, name: str, *, fail_with: str | None = None, raises: Exception | None = None) -> None:
        self.name = name
        self.fail_with = fail_with
        self.raises = raises
        self.jobs: list[PrintJob] = []

    async def print(self, job: PrintJob) -> PrintResult:
        self.jobs.append(job)
        if self.raises is not None:
            raise self.raises
        if self.fail_with is not None:
            return PrintResult.failed(self.fail_with)
        return PrintResult.ok()

    async def check_connection(self) -> bool:
        return self.fail_with is None and self.raises is None


class SteppingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2024, 3, 11, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def metrics() -> MetricsRegistry:
    return register_default_metrics(MetricsRegistry())


@pytest.fixture
def ticket_printer() -> FakePrinter:
    return FakePrinter("ticket")


@pytest.fixture
def label_printer() -> FakePrinter:
    return FakePrinter("label")


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def repository(engine: AsyncEngine) -> TicketRepository:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)


@pytest.fixture
def lifecycle(
    repository: TicketRepository,
    ticket_printer: FakePrinter,
    label_printer: FakePrinter,
    clock: SteppingClock,
    metrics: MetricsRegistry,
) -> LifecycleEngine:
    return LifecycleEngine(
        repository,
        ticket_printer=ticket_printer,
        label_printer=label_printer,
        reconciler=PrintReconciler(timeout=1.0, metrics=metrics),
        clock=clock,
        metrics=metrics,
    )
