"""Phase orchestration for launchpad runs.

A run moves forward through preflight, cleanup, dependencies, validation and
service start. Each phase is a list of checks; failing checks are handed to
the error handler, and every run leaves a diagnostic report behind.

Key Components:
    OrchestrationContext: Per-run state and collaborators.
    PhaseOrchestrator: Runs the phases and writes the report.
    Check / FailurePolicy: A phase step and what its failure does.
    DiagnosticReport: The camelCase JSON report of a run.
    Monitor: Post-run self-checks.
    wait_until_reachable: HTTP health polling.

Example:
    >>> from launchpad.config import LaunchpadConfig
    >>> from launchpad.orchestrator import OrchestrationContext, PhaseOrchestrator
    >>> ctx = OrchestrationContext.create(LaunchpadConfig.from_dict({}))
    >>> report = await PhaseOrchestrator(ctx).run()
"""

from ._checks import (
    Check,
    FailurePolicy,
    cleanup_checks,
    dependency_checks,
    env_names,
    parse_version,
    preflight_checks,
    service_checks,
    validation_checks,
)
from ._context import OrchestrationContext, new_run_id
from ._health import HealthStatus, classify_response, wait_until_reachable
from ._monitor import Monitor, MonitorSample
from ._orchestrator import PhaseOrchestrator, RunAbortedError
from ._phases import PhaseEntry, PhaseTracker
from ._report import DiagnosticReport, ReportSystemInfo, print_summary

__all__ = [
    "Check",
    "DiagnosticReport",
    "FailurePolicy",
    "HealthStatus",
    "Monitor",
    "MonitorSample",
    "OrchestrationContext",
    "PhaseEntry",
    "PhaseOrchestrator",
    "PhaseTracker",
    "ReportSystemInfo",
    "RunAbortedError",
    "classify_response",
    "cleanup_checks",
    "dependency_checks",
    "env_names",
    "new_run_id",
    "parse_version",
    "preflight_checks",
    "print_summary",
    "service_checks",
    "validation_checks",
    "wait_until_reachable",
]
