"""Data models for autoremedy."""

from .alerts import Advisory, Alert, AlertState, Dependency, Repository, Severity
from .runs import Run, RunConfig, RunStatus, RunSummary
from .tasks import (
    FeatureState,
    RemediationTask,
    SecurityUpdate,
    TaskKey,
    TaskOutcome,
    TaskStatus,
)

__all__ = [
    "Advisory",
    "Alert",
    "AlertState",
    "Dependency",
    "FeatureState",
    "RemediationTask",
    "Repository",
    "Run",
    "RunConfig",
    "RunStatus",
    "RunSummary",
    "SecurityUpdate",
    "Severity",
    "TaskKey",
    "TaskOutcome",
    "TaskStatus",
]
