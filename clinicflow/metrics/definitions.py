"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


TICKETS_ISSUED = "tickets_issued_total"
TICKET_NUMBER_CONFLICTS = "ticket_number_conflicts_total"
TICKET_TRANSITIONS = "ticket_transitions_total"
TICKET_REJECTIONS = "ticket_transition_rejections_total"
PRINT_ATTEMPTS = "print_attempts_total"
PRINT_FAILURES = "print_failures_total"
PRINT_DURATION = "print_duration_seconds"

DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TICKETS_ISSUED,
        metric_type="counter",
        description="Tickets issued at the front desk.",
    ),
    MetricDefinition(
        name=TICKET_NUMBER_CONFLICTS,
        metric_type="counter",
        description="Issuances retried after colliding on a daily ticket number.",
    ),
    MetricDefinition(
        name=TICKET_TRANSITIONS,
        metric_type="counter",
        description="Successful workflow transitions by resulting status.",
        label_names=("status",),
    ),
    MetricDefinition(
        name=TICKET_REJECTIONS,
        metric_type="counter",
        description="Workflow operations rejected because of the ticket's status or absence.",
        label_names=("operation",),
    ),
    MetricDefinition(
        name=PRINT_ATTEMPTS,
        metric_type="counter",
        description="Print jobs sent to a printer.",
        label_names=("printer",),
    ),
    MetricDefinition(
        name=PRINT_FAILURES,
        metric_type="counter",
        description="Print jobs that failed or timed out.",
        label_names=("printer",),
    ),
    MetricDefinition(
        name=PRINT_DURATION,
        metric_type="distribution",
        description="Time spent waiting on a printer in seconds.",
        label_names=("printer",),
    ),
)
