"""Error taxonomy shared by the lifecycle engine, the store and the API."""

from __future__ import annotations

from .state import TicketStatus


class ClinicFlowError(RuntimeError):
    """Base error for ticket workflow issues."""


class ValidationError(ClinicFlowError):
    """Raised when a required input is missing. Nothing was written."""


class PreconditionFailed(ClinicFlowError):
    """Raised when the referenced ticket cannot take the requested step."""


class TicketNotFoundError(PreconditionFailed):
    """Raised when a ticket could not be located."""

    def __init__(self, number: str) -> None:
        super().__init__(f"Ticket {number} not found")
        self.number = number


class InvalidTicketTransitionError(PreconditionFailed):
    """Raised when a ticket is not in the status the transition requires."""

    def __init__(self, number: str, *, current: TicketStatus, required: TicketStatus) -> None:
        super().__init__(
            f"Ticket {number} is {current.value}; this step requires {required.value}"
        )
        self.number = number
        self.current = current
        self.required = required


class StorageFailure(ClinicFlowError):
    """Raised when the ticket store failed; the operation was not applied."""


class TicketNumberConflictError(StorageFailure):
    """Raised when two issuances raced for the same daily number."""
