"""Receipt printer capabilities used for ticket slips and patient labels."""

from .base import (
    LabelJob,
    PrintFailure,
    PrintJob,
    PrintResult,
    Printer,
    TicketSlipJob,
    UnconfiguredPrinter,
)
from .escpos import EscPosDocument, NetworkEscPosPrinter

__all__ = [
    "EscPosDocument",
    "LabelJob",
    "NetworkEscPosPrinter",
    "PrintFailure",
    "PrintJob",
    "PrintResult",
    "Printer",
    "TicketSlipJob",
    "UnconfiguredPrinter",
]
