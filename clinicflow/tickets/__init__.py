"""Ticket lifecycle domain: state machine, sequencing, storage and engine."""

from .errors import (
    ClinicFlowError,
    InvalidTicketTransitionError,
    PreconditionFailed,
    StorageFailure,
    TicketNotFoundError,
    TicketNumberConflictError,
    ValidationError,
)
from .models import Consultation, Registration, Ticket, TicketSummary, Triage
from .repository import TicketRepository, TicketStore
from .sequencer import Sequencer
from .service import LifecycleEngine
from .state import TicketStateMachine, TicketStatus

__all__ = [
    "ClinicFlowError",
    "Consultation",
    "InvalidTicketTransitionError",
    "LifecycleEngine",
    "PreconditionFailed",
    "Registration",
    "Sequencer",
    "StorageFailure",
    "Ticket",
    "TicketNotFoundError",
    "TicketNumberConflictError",
    "TicketRepository",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
    "TicketSummary",
    "Triage",
    "ValidationError",
]
