from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class PrintFailure(RuntimeError):
    """Raised by printer drivers when a job could not be delivered."""


@dataclass(frozen=True, slots=True)
class TicketSlipJob:
    """Queue slip handed to the patient when a ticket is issued."""

    number: str
    issued_at: datetime


@dataclass(frozen=True, slots=True)
class LabelJob:
    """Identification label printed once a patient is registered."""

    name: str
    national_id: str
    number: str


PrintJob = TicketSlipJob | LabelJob


@dataclass(frozen=True, slots=True)
class PrintResult:
    success: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "PrintResult":
        return cls(success=True)

    @classmethod
    def failed(cls, reason: str) -> "PrintResult":
        return cls(success=False, reason=reason)


class Printer(Protocol):
    """Capability the lifecycle engine prints through.

    Implementations attempt a job exactly once and never retry or queue.
    """

    name: str

    async def print(self, job: PrintJob) -> PrintResult:
        ...

    async def check_connection(self) -> bool:
        ...


class UnconfiguredPrinter:
    """Stand-in used when no device address is configured."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def print(self, job: PrintJob) -> PrintResult:
        return PrintResult.failed(f"{self.name} printer is not configured")

    async def check_connection(self) -> bool:
        return False
