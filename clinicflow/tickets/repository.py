from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Protocol, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from clinicflow.db.models import (
    ConsultationTable,
    DailySequenceTable,
    RegistrationTable,
    TicketTable,
    TriageTable,
)

from .errors import StorageFailure, TicketNumberConflictError
from .models import (
    Consultation,
    IssuedTicket,
    Registration,
    Ticket,
    TicketSummary,
    Triage,
    WorkflowRecord,
)
from .sequencer import Sequencer
from .state import TicketStatus


class TicketStore(Protocol):
    """Storage contract the lifecycle engine relies on."""

    async def ensure_schema(self) -> None:
        ...

    async def create_ticket(
        self,
        *,
        ticket_id: str,
        issued_at: datetime,
        issued_on: date,
        sequencer: Sequencer,
    ) -> IssuedTicket:
        """Allocate the day's next number and insert a pending ticket atomically."""
        ...

    async def get_ticket(self, number: str) -> Ticket | None:
        """Return the most recently issued ticket carrying ``number``."""
        ...

    async def transition(
        self,
        ticket_id: str,
        *,
        from_status: TicketStatus,
        to_status: TicketStatus,
        record: WorkflowRecord,
    ) -> Ticket | None:
        """Move a ticket from one status to the next and attach ``record``.

        Both writes commit together or not at all. Returns ``None`` when the
        ticket is no longer in ``from_status``.
        """
        ...

    async def get_summary(self, number: str) -> TicketSummary | None:
        ...

    async def list_summaries(
        self,
        *,
        status: TicketStatus | None = None,
        name_contains: str | None = None,
    ) -> Sequence[TicketSummary]:
        ...


class TicketRepository:
    """SQL persistence for tickets and their workflow records."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        try:
            async with self._engine.begin() as connection:
                await connection.run_sync(SQLModel.metadata.create_all)
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not create ticket schema: {exc}") from exc

    async def create_ticket(
        self,
        *,
        ticket_id: str,
        issued_at: datetime,
        issued_on: date,
        sequencer: Sequencer,
    ) -> IssuedTicket:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    sequence = await self._allocate_sequence(session, issued_on)
                    row = TicketTable(
                        id=ticket_id,
                        number=sequencer.format_number(sequence),
                        status=TicketStatus.PENDING.value,
                        issued_at=_to_utc(issued_at),
                        issued_on=issued_on,
                    )
                    session.add(row)
                    await session.flush()
                    ticket = self._table_to_ticket(row)
        except IntegrityError as exc:
            raise TicketNumberConflictError(f"Ticket number collision on {issued_on.isoformat()}") from exc
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not issue ticket: {exc}") from exc
        return IssuedTicket(ticket=ticket, sequence=sequence)

    async def get_ticket(self, number: str) -> Ticket | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TicketTable)
                    .where(TicketTable.number == number)
                    .order_by(TicketTable.issued_at.desc())
                    .limit(1)
                )
                row = result.scalars().first()
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not load ticket {number}: {exc}") from exc
        if row is None:
            return None
        return self._table_to_ticket(row)

    async def transition(
        self,
        ticket_id: str,
        *,
        from_status: TicketStatus,
        to_status: TicketStatus,
        record: WorkflowRecord,
    ) -> Ticket | None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(TicketTable)
                        .where(TicketTable.id == ticket_id, TicketTable.status == from_status.value)
                        .values(status=to_status.value)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        return None
                    session.add(self._record_to_table(record))
                    await session.flush()
                    row = await session.get(TicketTable, ticket_id)
                    if row is None:
                        raise StorageFailure(f"Ticket {ticket_id} vanished during transition")
                    ticket = self._table_to_ticket(row)
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not move ticket {ticket_id} to {to_status.value}: {exc}") from exc
        return ticket

    async def get_summary(self, number: str) -> TicketSummary | None:
        statement = (
            self._summary_query()
            .where(TicketTable.number == number)
            .order_by(TicketTable.issued_at.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                row = result.first()
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not load ticket {number}: {exc}") from exc
        if row is None:
            return None
        return self._row_to_summary(row)

    async def list_summaries(
        self,
        *,
        status: TicketStatus | None = None,
        name_contains: str | None = None,
    ) -> list[TicketSummary]:
        statement = self._summary_query()
        if status is not None:
            statement = statement.where(TicketTable.status == status.value)
        if name_contains:
            # SQLite lower() only folds ASCII; PostgreSQL folds accented capitals too.
            statement = statement.where(
                func.lower(RegistrationTable.name).contains(name_contains.lower(), autoescape=True)
            )
        statement = statement.order_by(TicketTable.issued_at.desc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                rows = result.all()
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not list tickets: {exc}") from exc
        return [self._row_to_summary(row) for row in rows]

    async def _allocate_sequence(self, session: AsyncSession, day: date) -> int:
        """Bump the day's counter inside the caller's transaction.

        The first ticket of a day seeds the counter from the tickets already
        issued that day. Concurrent seeders collide on the primary key.
        """

        result = await session.execute(
            update(DailySequenceTable)
            .where(DailySequenceTable.day == day)
            .values(last_value=DailySequenceTable.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            value = await session.scalar(
                select(DailySequenceTable.last_value).where(DailySequenceTable.day == day)
            )
            return int(value)

        issued_today = await session.scalar(
            select(func.count()).select_from(TicketTable).where(TicketTable.issued_on == day)
        )
        value = Sequencer.next_value(int(issued_today or 0))
        session.add(DailySequenceTable(day=day, last_value=value))
        await session.flush()
        return value

    @staticmethod
    def _summary_query() -> Any:
        return (
            select(TicketTable, RegistrationTable, TriageTable, ConsultationTable)
            .outerjoin(RegistrationTable, RegistrationTable.ticket_id == TicketTable.id)
            .outerjoin(TriageTable, TriageTable.ticket_id == TicketTable.id)
            .outerjoin(ConsultationTable, ConsultationTable.ticket_id == TicketTable.id)
        )

    @staticmethod
    def _record_to_table(record: WorkflowRecord) -> SQLModel:
        if isinstance(record, Registration):
            return RegistrationTable(
                id=record.id,
                ticket_id=record.ticket_id,
                name=record.name,
                national_id=record.national_id,
                birth_date=record.birth_date,
                phone=record.phone,
                created_at=_to_utc(record.created_at),
            )
        if isinstance(record, Triage):
            return TriageTable(
                id=record.id,
                ticket_id=record.ticket_id,
                risk_level=record.risk_level,
                blood_pressure=record.blood_pressure,
                pulse=record.pulse,
                temperature=record.temperature,
                oxygen_saturation=record.oxygen_saturation,
                symptoms=record.symptoms,
                created_at=_to_utc(record.created_at),
            )
        if isinstance(record, Consultation):
            return ConsultationTable(
                id=record.id,
                ticket_id=record.ticket_id,
                anamnesis=record.anamnesis,
                physical_exam=record.physical_exam,
                diagnosis=record.diagnosis,
                prescription=record.prescription,
                progress_notes=record.progress_notes,
                created_at=_to_utc(record.created_at),
            )
        raise TypeError(f"Unsupported workflow record: {type(record).__name__}")

    @classmethod
    def _row_to_summary(cls, row: Any) -> TicketSummary:
        ticket_row, registration_row, triage_row, consultation_row = row
        return TicketSummary(
            ticket=cls._table_to_ticket(ticket_row),
            registration=cls._table_to_registration(registration_row) if registration_row is not None else None,
            triage=cls._table_to_triage(triage_row) if triage_row is not None else None,
            consultation=cls._table_to_consultation(consultation_row) if consultation_row is not None else None,
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            number=row.number,
            status=TicketStatus(row.status),
            issued_at=_ensure_datetime(row.issued_at),
            issued_on=row.issued_on,
        )

    @staticmethod
    def _table_to_registration(row: RegistrationTable) -> Registration:
        return Registration(
            id=row.id,
            ticket_id=row.ticket_id,
            name=row.name,
            national_id=row.national_id,
            birth_date=row.birth_date,
            phone=row.phone,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_triage(row: TriageTable) -> Triage:
        return Triage(
            id=row.id,
            ticket_id=row.ticket_id,
            risk_level=row.risk_level,
            blood_pressure=row.blood_pressure,
            pulse=row.pulse,
            temperature=row.temperature,
            oxygen_saturation=row.oxygen_saturation,
            symptoms=row.symptoms,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_consultation(row: ConsultationTable) -> Consultation:
        return Consultation(
            id=row.id,
            ticket_id=row.ticket_id,
            anamnesis=row.anamnesis,
            physical_exam=row.physical_exam,
            diagnosis=row.diagnosis,
            prescription=row.prescription,
            progress_notes=row.progress_notes,
            created_at=_ensure_datetime(row.created_at),
        )


def _to_utc(value: datetime) -> datetime:
    # SQLite drops offsets, so everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
