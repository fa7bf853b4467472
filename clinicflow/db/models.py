"""SQLModel table definitions for the clinic flow data layer."""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Queue tickets handed out at the front desk."""

    __tablename__ = "tickets"
    __table_args__ = (UniqueConstraint("issued_on", "number", name="uq_tickets_issued_on_number"),)

    id: str = Field(primary_key=True, index=True)
    number: str = Field(sa_column=Column(String(16), nullable=False, index=True))
    status: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    issued_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    issued_on: date = Field(sa_column=Column(Date, nullable=False, index=True))


class RegistrationTable(SQLModel, table=True):
    """Patient identity captured when a ticket is registered."""

    __tablename__ = "registrations"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, unique=True)
    )
    name: str = Field(sa_column=Column(String(255), nullable=False))
    national_id: str = Field(sa_column=Column(String(32), nullable=False))
    birth_date: date | None = Field(default=None, sa_column=Column(Date, nullable=True))
    phone: str | None = Field(default=None, sa_column=Column(String(32), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TriageTable(SQLModel, table=True):
    """Vital signs and risk classification for a registered ticket."""

    __tablename__ = "triages"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, unique=True)
    )
    risk_level: str = Field(sa_column=Column(String(50), nullable=False))
    blood_pressure: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    pulse: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    temperature: float | None = Field(default=None, sa_column=Column(Float, nullable=True))
    oxygen_saturation: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    symptoms: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class ConsultationTable(SQLModel, table=True):
    """Clinical encounter notes closing a ticket's workflow."""

    __tablename__ = "consultations"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, unique=True)
    )
    anamnesis: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    physical_exam: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    diagnosis: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    prescription: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    progress_notes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class DailySequenceTable(SQLModel, table=True):
    """Last ticket sequence value handed out for each calendar day."""

    __tablename__ = "daily_sequences"

    day: date = Field(sa_column=Column(Date, primary_key=True))
    last_value: int = Field(default=0, sa_column=Column(Integer, nullable=False))
