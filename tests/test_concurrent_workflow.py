"""Concurrency checks run against a file backed database so requests really race."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from clinicflow.tickets.errors import PreconditionFailed
from clinicflow.tickets.repository import TicketRepository
from clinicflow.tickets.service import LifecycleEngine
from clinicflow.tickets.state import TicketStatus


@pytest_asyncio.fixture
async def shared_lifecycle(tmp_path, ticket_printer, label_printer, metrics):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinicflow.db'}")
    repository = TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    await repository.ensure_schema()
    fixed_moment = datetime(2024, 3, 11, 9, 30, tzinfo=timezone.utc)
    try:
        yield LifecycleEngine(
            repository,
            ticket_printer=ticket_printer,
            label_printer=label_printer,
            clock=lambda: fixed_moment,
            metrics=metrics,
        )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_issuance_never_duplicates_numbers(shared_lifecycle: LifecycleEngine):
    results = await asyncio.gather(*(shared_lifecycle.issue_ticket() for _ in range(8)))

    numbers = sorted(result.ticket.number for result in results)
    assert numbers == [f"G{index:03d}" for index in range(1, 9)]
    assert sorted(result.count_today for result in results) == list(range(1, 9))


@pytest.mark.asyncio
async def test_concurrent_registrations_succeed_once(shared_lifecycle: LifecycleEngine, label_printer):
    issued = await shared_lifecycle.issue_ticket()
    number = issued.ticket.number

    results = await asyncio.gather(
        shared_lifecycle.register_patient(number, name="Ana", national_id="111"),
        shared_lifecycle.register_patient(number, name="Ana", national_id="111"),
        return_exceptions=True,
    )

    failures = [result for result in results if isinstance(result, BaseException)]
    assert len(failures) == 1
    assert isinstance(failures[0], PreconditionFailed)
    assert len(label_printer.jobs) == 1
    summary = await shared_lifecycle.get_ticket(number)
    assert summary.ticket.status == TicketStatus.REGISTERED
