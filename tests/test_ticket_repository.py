from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from clinicflow.db.models import DailySequenceTable, RegistrationTable, TicketTable
from clinicflow.tickets.errors import TicketNumberConflictError
from clinicflow.tickets.models import Registration, Triage
from clinicflow.tickets.repository import TicketRepository
from clinicflow.tickets.sequencer import Sequencer
from clinicflow.tickets.state import TicketStatus

DAY = date(2024, 3, 11)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 11, hour, minute, tzinfo=timezone.utc)


async def _issue(repository: TicketRepository, issued_at: datetime, day: date = DAY):
    return await repository.create_ticket(
        ticket_id=str(uuid.uuid4()),
        issued_at=issued_at,
        issued_on=day,
        sequencer=Sequencer(),
    )


def _registration(ticket_id: str, name: str = "Ana Souza") -> Registration:
    return Registration(
        id=str(uuid.uuid4()),
        ticket_id=ticket_id,
        name=name,
        national_id="111",
        birth_date=date(1990, 5, 1),
        phone=None,
        created_at=_at(9),
    )


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables(engine: AsyncEngine):
    repository = TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    await repository.ensure_schema()

    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(sa_inspect(sync_conn).get_table_names()))

    assert {"tickets", "registrations", "triages", "consultations", "daily_sequences"} <= tables


@pytest.mark.asyncio
async def test_ensure_schema_requires_engine(engine: AsyncEngine):
    repository = TicketRepository(async_sessionmaker(engine))

    with pytest.raises(RuntimeError):
        await repository.ensure_schema()


@pytest.mark.asyncio
async def test_create_ticket_numbers_restart_each_day(repository: TicketRepository):
    first = await _issue(repository, _at(8))
    second = await _issue(repository, _at(8, 5))
    next_day = await _issue(repository, datetime(2024, 3, 12, 8, tzinfo=timezone.utc), date(2024, 3, 12))

    assert (first.ticket.number, first.sequence) == ("G001", 1)
    assert (second.ticket.number, second.sequence) == ("G002", 2)
    assert next_day.ticket.number == "G001"
    assert first.ticket.status == TicketStatus.PENDING
    assert first.ticket.issued_at == _at(8)


@pytest.mark.asyncio
async def test_sequence_seeds_from_tickets_already_issued(repository: TicketRepository):
    async with repository._session_factory() as session:
        async with session.begin():
            for index in (1, 2):
                session.add(
                    TicketTable(
                        id=str(uuid.uuid4()),
                        number=f"G00{index}",
                        status="pending",
                        issued_at=_at(7, index),
                        issued_on=DAY,
                    )
                )

    issued = await _issue(repository, _at(8))

    assert issued.ticket.number == "G003"


@pytest.mark.asyncio
async def test_number_collision_is_reported_as_conflict(repository: TicketRepository):
    await _issue(repository, _at(8))
    async with repository._session_factory() as session:
        async with session.begin():
            row = await session.get(DailySequenceTable, DAY)
            row.last_value = 0

    with pytest.raises(TicketNumberConflictError):
        await _issue(repository, _at(8, 1))

    async with repository._session_factory() as session:
        count = len((await session.execute(select(TicketTable))).scalars().all())
    assert count == 1


@pytest.mark.asyncio
async def test_transition_writes_record_and_status_together(repository: TicketRepository):
    issued = await _issue(repository, _at(8))
    ticket = issued.ticket

    updated = await repository.transition(
        ticket.id,
        from_status=TicketStatus.PENDING,
        to_status=TicketStatus.REGISTERED,
        record=_registration(ticket.id),
    )

    assert updated is not None
    assert updated.status == TicketStatus.REGISTERED
    summary = await repository.get_summary("G001")
    assert summary is not None
    assert summary.registration is not None
    assert summary.registration.name == "Ana Souza"
    assert summary.registration.birth_date == date(1990, 5, 1)


@pytest.mark.asyncio
async def test_transition_from_stale_status_writes_nothing(repository: TicketRepository):
    issued = await _issue(repository, _at(8))
    ticket = issued.ticket
    await repository.transition(
        ticket.id,
        from_status=TicketStatus.PENDING,
        to_status=TicketStatus.REGISTERED,
        record=_registration(ticket.id),
    )

    second = await repository.transition(
        ticket.id,
        from_status=TicketStatus.PENDING,
        to_status=TicketStatus.REGISTERED,
        record=_registration(ticket.id, name="Someone Else"),
    )

    assert second is None
    async with repository._session_factory() as session:
        rows = (await session.execute(select(RegistrationTable))).scalars().all()
    assert [row.name for row in rows] == ["Ana Souza"]


@pytest.mark.asyncio
async def test_get_ticket_prefers_most_recent_issue(repository: TicketRepository):
    await _issue(repository, _at(8))
    latest = await _issue(repository, datetime(2024, 3, 12, 8, tzinfo=timezone.utc), date(2024, 3, 12))

    found = await repository.get_ticket("G001")

    assert found is not None
    assert found.id == latest.ticket.id
    assert await repository.get_ticket("G404") is None


@pytest.mark.asyncio
async def test_list_summaries_filters_and_orders_newest_first(repository: TicketRepository):
    tickets = [(await _issue(repository, _at(8, minute))).ticket for minute in range(3)]
    for ticket, name in zip(tickets[:2], ["Ana Souza", "Bruno Lima"]):
        await repository.transition(
            ticket.id,
            from_status=TicketStatus.PENDING,
            to_status=TicketStatus.REGISTERED,
            record=_registration(ticket.id, name=name),
        )
    await repository.transition(
        tickets[1].id,
        from_status=TicketStatus.REGISTERED,
        to_status=TicketStatus.TRIAGED,
        record=Triage(
            id=str(uuid.uuid4()),
            ticket_id=tickets[1].id,
            risk_level="yellow",
            blood_pressure="120/80",
            pulse=80,
            temperature=37.2,
            oxygen_saturation=97,
            symptoms=None,
            created_at=_at(9),
        ),
    )

    everything = await repository.list_summaries()
    registered = await repository.list_summaries(status=TicketStatus.REGISTERED)
    by_name = await repository.list_summaries(name_contains="LIM")

    assert [summary.ticket.number for summary in everything] == ["G003", "G002", "G001"]
    assert [summary.ticket.number for summary in registered] == ["G001"]
    assert [summary.ticket.number for summary in by_name] == ["G002"]
    assert by_name[0].triage is not None
    assert by_name[0].triage.risk_level == "yellow"


@pytest.mark.asyncio
async def test_name_filter_treats_wildcards_literally(repository: TicketRepository):
    ticket = (await _issue(repository, _at(8))).ticket
    await repository.transition(
        ticket.id,
        from_status=TicketStatus.PENDING,
        to_status=TicketStatus.REGISTERED,
        record=_registration(ticket.id),
    )

    assert await repository.list_summaries(name_contains="%") == []


@pytest.mark.asyncio
async def test_name_filter_matches_accented_lowercase_names(repository: TicketRepository):
    ticket = (await _issue(repository, _at(8))).ticket
    await repository.transition(
        ticket.id,
        from_status=TicketStatus.PENDING,
        to_status=TicketStatus.REGISTERED,
        record=_registration(ticket.id, name="João Conceição"),
    )

    found = await repository.list_summaries(name_contains="JOÃO")

    assert [summary.ticket.number for summary in found] == ["G001"]
    assert found[0].registration.name == "João Conceição"
