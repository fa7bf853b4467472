from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from clinicflow.metrics import MetricsRegistry, metrics_registry
from clinicflow.metrics.base import track_duration
from clinicflow.metrics.definitions import PRINT_ATTEMPTS, PRINT_DURATION, PRINT_FAILURES
from clinicflow.printers.base import PrintJob, Printer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PrintOutcome:
    printed: bool
    reason: str | None = None


class PrintReconciler:
    """Run a single best-effort print attempt and report what happened.

    Printing happens after the workflow write has committed, so nothing here
    may raise: every failure, exception or timeout becomes an unprinted
    outcome carrying a reason.
    """

    def __init__(self, *, timeout: float = 5.0, metrics: MetricsRegistry | None = None) -> None:
        self._timeout = timeout
        self._metrics = metrics or metrics_registry

    async def attempt(self, printer: Printer, job: PrintJob) -> PrintOutcome:
        labels = {"printer": printer.name}
        self._metrics.counter(PRINT_ATTEMPTS, label_names=("printer",)).inc(labels=labels)
        duration = self._metrics.distribution(PRINT_DURATION, label_names=("printer",))

        with track_duration(duration, labels=labels):
            try:
                result = await asyncio.wait_for(printer.print(job), timeout=self._timeout)
            except asyncio.TimeoutError:
                reason = f"no response within {self._timeout:g}s"
            except Exception as exc:  # noqa: BLE001
                logger.exception("Printer %s raised while printing %s", printer.name, type(job).__name__)
                reason = str(exc) or type(exc).__name__
            else:
                if result.success:
                    return PrintOutcome(printed=True)
                reason = result.reason or "printer reported a failure"

        self._metrics.counter(PRINT_FAILURES, label_names=("printer",)).inc(labels=labels)
        logger.warning("Printing %s on %s failed: %s", type(job).__name__, printer.name, reason)
        return PrintOutcome(printed=False, reason=reason)
