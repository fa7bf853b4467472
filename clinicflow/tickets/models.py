from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from .state import TicketStatus


@dataclass(slots=True)
class Ticket:
    """Day-scoped queue position identified by its formatted number."""

    id: str
    number: str
    status: TicketStatus
    issued_at: datetime
    issued_on: date


@dataclass(slots=True)
class Registration:
    """Patient identity attached to a ticket at the front desk."""

    id: str
    ticket_id: str
    name: str
    national_id: str
    birth_date: date | None
    phone: str | None
    created_at: datetime


@dataclass(slots=True)
class Triage:
    """Vital signs and risk classification recorded by the triage nurse."""

    id: str
    ticket_id: str
    risk_level: str
    blood_pressure: str | None
    pulse: int | None
    temperature: float | None
    oxygen_saturation: int | None
    symptoms: str | None
    created_at: datetime


@dataclass(slots=True)
class Consultation:
    """Clinical encounter notes written by the attending physician."""

    id: str
    ticket_id: str
    anamnesis: str | None
    physical_exam: str | None
    diagnosis: str | None
    prescription: str | None
    progress_notes: str | None
    created_at: datetime


WorkflowRecord = Registration | Triage | Consultation


@dataclass(slots=True)
class TicketSummary:
    """A ticket merged with whichever workflow records it has collected."""

    ticket: Ticket
    registration: Registration | None = None
    triage: Triage | None = None
    consultation: Consultation | None = None


@dataclass(slots=True)
class IssuedTicket:
    ticket: Ticket
    sequence: int


@dataclass(slots=True)
class IssueResult:
    ticket: Ticket
    count_today: int
    printed: bool
    warning: str | None = None


@dataclass(slots=True)
class RegistrationResult:
    ticket: Ticket
    registration: Registration
    printed: bool
    message: str
    warning: str | None = None


@dataclass(slots=True)
class TriageResult:
    ticket: Ticket
    triage: Triage


@dataclass(slots=True)
class ConsultationResult:
    ticket: Ticket
    consultation: Consultation
