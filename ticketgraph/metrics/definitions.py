"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

TICKET_WORKFLOW_RUNS = "ticket_workflow_runs_total"
TICKET_WORKFLOW_FAILURES = "ticket_workflow_failures_total"
TICKET_WORKFLOW_PARTIAL_STATES = "ticket_workflow_partial_states_total"
TICKET_WORKFLOW_DURATION = "ticket_workflow_duration_seconds"


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TICKET_WORKFLOW_RUNS,
        metric_type="counter",
        description="Ticket creation workflows started.",
    ),
    MetricDefinition(
        name=TICKET_WORKFLOW_FAILURES,
        metric_type="counter",
        description="Ticket creation workflows that failed, by phase.",
        label_names=("phase",),
    ),
    MetricDefinition(
        name=TICKET_WORKFLOW_PARTIAL_STATES,
        metric_type="counter",
        description="Ticket creation failures that left committed records behind, by phase.",
        label_names=("phase",),
    ),
    MetricDefinition(
        name=TICKET_WORKFLOW_DURATION,
        metric_type="distribution",
        description="Duration of ticket creation workflows in seconds.",
    ),
)
