from __future__ import annotations

from enum import Enum


class TicketStatus(str, Enum):
    """Supported states for a ticket's intake workflow."""

    PENDING = "pending"
    REGISTERED = "registered"
    TRIAGED = "triaged"
    SEEN = "seen"


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    The workflow is strictly linear: every status has exactly one successor
    and a ticket never stays put, skips a stage or moves backwards.
    """

    _TRANSITIONS: dict[TicketStatus, TicketStatus] = {
        TicketStatus.PENDING: TicketStatus.REGISTERED,
        TicketStatus.REGISTERED: TicketStatus.TRIAGED,
        TicketStatus.TRIAGED: TicketStatus.SEEN,
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.PENDING

    @classmethod
    def next_status(cls, current: TicketStatus) -> TicketStatus | None:
        return cls._TRANSITIONS.get(current)

    @classmethod
    def required_status(cls, target: TicketStatus) -> TicketStatus:
        """Return the status a ticket must be in to advance to ``target``."""

        for source, destination in cls._TRANSITIONS.items():
            if destination == target:
                return source
        raise ValueError(f"No transition leads to {target.value!r}")

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return cls._TRANSITIONS.get(current) == new
