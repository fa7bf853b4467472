from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Sequence

from clinicflow.metrics import MetricsRegistry, metrics_registry
from clinicflow.metrics.definitions import (
    TICKET_NUMBER_CONFLICTS,
    TICKET_REJECTIONS,
    TICKET_TRANSITIONS,
    TICKETS_ISSUED,
)
from clinicflow.printers.base import LabelJob, Printer, TicketSlipJob

from .errors import (
    InvalidTicketTransitionError,
    TicketNotFoundError,
    TicketNumberConflictError,
    ValidationError,
)
from .models import (
    Consultation,
    ConsultationResult,
    IssueResult,
    IssuedTicket,
    Registration,
    RegistrationResult,
    Ticket,
    TicketSummary,
    Triage,
    TriageResult,
    WorkflowRecord,
)
from .printing import PrintReconciler
from .repository import TicketStore
from .sequencer import Sequencer
from .state import TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


class LifecycleEngine:
    """Drive tickets through pending -> registered -> triaged -> seen.

    Each transition checks the ticket's status, then hands the status change
    and its record to the store as one conditional write. Issuance and
    registration print afterwards; printer trouble only shows up as
    ``printed=False`` with a warning on the result.
    """

    def __init__(
        self,
        store: TicketStore,
        *,
        ticket_printer: Printer,
        label_printer: Printer,
        sequencer: Sequencer | None = None,
        reconciler: PrintReconciler | None = None,
        clock: Clock | None = None,
        max_issue_attempts: int = 3,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if max_issue_attempts < 1:
            raise ValueError("max_issue_attempts must be at least 1")
        self._store = store
        self._ticket_printer = ticket_printer
        self._label_printer = label_printer
        self._sequencer = sequencer or Sequencer()
        self._metrics = metrics or metrics_registry
        self._reconciler = reconciler or PrintReconciler(metrics=self._metrics)
        self._clock = clock or _utcnow
        self._max_issue_attempts = max_issue_attempts

    @property
    def ticket_printer(self) -> Printer:
        return self._ticket_printer

    @property
    def label_printer(self) -> Printer:
        return self._label_printer

    async def ensure_schema(self) -> None:
        await self._store.ensure_schema()

    async def issue_ticket(self) -> IssueResult:
        issued_at = self._clock()
        issued = await self._create_ticket(issued_at, self._sequencer.business_day(issued_at))
        ticket = issued.ticket
        self._metrics.counter(TICKETS_ISSUED).inc()
        logger.info("Issued ticket %s for %s", ticket.number, ticket.issued_on.isoformat())

        outcome = await self._reconciler.attempt(
            self._ticket_printer,
            TicketSlipJob(number=ticket.number, issued_at=ticket.issued_at),
        )
        warning = None
        if not outcome.printed:
            warning = (
                f"Ticket slip printing failed on {self._ticket_printer.name} ({outcome.reason}), "
                f"but ticket {ticket.number} was issued"
            )
        return IssueResult(ticket=ticket, count_today=issued.sequence, printed=outcome.printed, warning=warning)

    async def register_patient(
        self,
        number: str,
        *,
        name: str,
        national_id: str,
        birth_date: date | None = None,
        phone: str | None = None,
    ) -> RegistrationResult:
        number = _require_text(number, "number")
        name = _require_text(name, "name")
        national_id = _require_text(national_id, "national_id")

        ticket = await self._load_for(number, TicketStatus.REGISTERED, operation="register")
        registration = Registration(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            name=name,
            national_id=national_id,
            birth_date=birth_date,
            phone=_optional_text(phone),
            created_at=self._clock(),
        )
        updated = await self._advance(ticket, TicketStatus.REGISTERED, registration, operation="register")

        outcome = await self._reconciler.attempt(
            self._label_printer,
            LabelJob(name=name, national_id=national_id, number=updated.number),
        )
        if outcome.printed:
            message = "Patient registered and label printed"
            warning = None
        else:
            message = "Patient registered, but label printing failed"
            warning = f"Label printing failed on {self._label_printer.name} ({outcome.reason})"
        return RegistrationResult(
            ticket=updated,
            registration=registration,
            printed=outcome.printed,
            message=message,
            warning=warning,
        )

    async def submit_triage(
        self,
        number: str,
        *,
        risk_level: str,
        blood_pressure: str | None = None,
        pulse: int | None = None,
        temperature: float | None = None,
        oxygen_saturation: int | None = None,
        symptoms: str | None = None,
    ) -> TriageResult:
        number = _require_text(number, "number")
        risk_level = _require_text(risk_level, "risk_level")

        ticket = await self._load_for(number, TicketStatus.TRIAGED, operation="triage")
        triage = Triage(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            risk_level=risk_level,
            blood_pressure=_optional_text(blood_pressure),
            pulse=pulse,
            temperature=temperature,
            oxygen_saturation=oxygen_saturation,
            symptoms=_optional_text(symptoms),
            created_at=self._clock(),
        )
        updated = await self._advance(ticket, TicketStatus.TRIAGED, triage, operation="triage")
        return TriageResult(ticket=updated, triage=triage)

    async def submit_consultation(
        self,
        number: str,
        *,
        anamnesis: str | None = None,
        physical_exam: str | None = None,
        diagnosis: str | None = None,
        prescription: str | None = None,
        progress_notes: str | None = None,
    ) -> ConsultationResult:
        number = _require_text(number, "number")

        ticket = await self._load_for(number, TicketStatus.SEEN, operation="consult")
        consultation = Consultation(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            anamnesis=_optional_text(anamnesis),
            physical_exam=_optional_text(physical_exam),
            diagnosis=_optional_text(diagnosis),
            prescription=_optional_text(prescription),
            progress_notes=_optional_text(progress_notes),
            created_at=self._clock(),
        )
        updated = await self._advance(ticket, TicketStatus.SEEN, consultation, operation="consult")
        return ConsultationResult(ticket=updated, consultation=consultation)

    async def get_ticket(self, number: str) -> TicketSummary:
        number = _require_text(number, "number")
        summary = await self._store.get_summary(number)
        if summary is None:
            raise TicketNotFoundError(number)
        return summary

    async def list_tickets(
        self,
        *,
        status: TicketStatus | str | None = None,
        name_contains: str | None = None,
    ) -> Sequence[TicketSummary]:
        if status is not None and not isinstance(status, TicketStatus):
            try:
                status = TicketStatus(status)
            except ValueError as exc:
                raise ValidationError(f"Unknown ticket status {status!r}") from exc
        return await self._store.list_summaries(status=status, name_contains=_optional_text(name_contains))

    async def _create_ticket(self, issued_at: datetime, issued_on: date) -> IssuedTicket:
        attempt = 1
        while True:
            try:
                return await self._store.create_ticket(
                    ticket_id=str(uuid.uuid4()),
                    issued_at=issued_at,
                    issued_on=issued_on,
                    sequencer=self._sequencer,
                )
            except TicketNumberConflictError:
                self._metrics.counter(TICKET_NUMBER_CONFLICTS).inc()
                if attempt >= self._max_issue_attempts:
                    logger.error("Giving up on ticket issuance after %d number conflicts", attempt)
                    raise
                logger.warning(
                    "Ticket number conflict for %s (attempt %d of %d), retrying",
                    issued_on.isoformat(),
                    attempt,
                    self._max_issue_attempts,
                )
                attempt += 1

    async def _load_for(self, number: str, target: TicketStatus, *, operation: str) -> Ticket:
        ticket = await self._store.get_ticket(number)
        if ticket is None:
            self._reject(operation, "ticket %s not found", number)
            raise TicketNotFoundError(number)
        if not TicketStateMachine.can_transition(ticket.status, target):
            required = TicketStateMachine.required_status(target)
            self._reject(operation, "ticket %s is %s, needs %s", number, ticket.status.value, required.value)
            raise InvalidTicketTransitionError(number, current=ticket.status, required=required)
        return ticket

    async def _advance(
        self,
        ticket: Ticket,
        target: TicketStatus,
        record: WorkflowRecord,
        *,
        operation: str,
    ) -> Ticket:
        required = TicketStateMachine.required_status(target)
        updated = await self._store.transition(
            ticket.id,
            from_status=required,
            to_status=target,
            record=record,
        )
        if updated is None:
            # Another request moved the ticket between our read and the write.
            current = await self._store.get_ticket(ticket.number)
            current_status = current.status if current is not None else ticket.status
            self._reject(operation, "ticket %s lost a concurrent %s", ticket.number, operation)
            raise InvalidTicketTransitionError(ticket.number, current=current_status, required=required)

        self._metrics.counter(TICKET_TRANSITIONS, label_names=("status",)).inc(labels={"status": target.value})
        logger.info("Ticket %s moved %s -> %s", updated.number, required.value, target.value)
        return updated

    def _reject(self, operation: str, message: str, *args: Any) -> None:
        self._metrics.counter(TICKET_REJECTIONS, label_names=("operation",)).inc(labels={"operation": operation})
        logger.info("Rejected %s: " + message, operation, *args)
