"""Database models and utilities."""

from .models import (
    ConsultationTable,
    DailySequenceTable,
    RegistrationTable,
    TicketTable,
    TriageTable,
)

__all__ = [
    "ConsultationTable",
    "DailySequenceTable",
    "RegistrationTable",
    "TicketTable",
    "TriageTable",
]
