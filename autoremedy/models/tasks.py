"""Remediation task models for autoremedy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Literal, NamedTuple, Optional, Tuple

from dataclasses_json import DataClassJsonMixin

from ..exceptions import InvalidTransitionError
from .alerts import Advisory, Alert, Severity

# Type aliases
TaskStatus = Literal[
    'pending',
    'branch_ready',
    'update_ready',
    'pull_request_opened',
    'failed',
    'skipped',
]
FeatureState = Literal['unknown', 'enabled', 'unsupported']

TERMINAL_STATUSES: FrozenSet[str] = frozenset({'pull_request_opened', 'failed', 'skipped'})

# Pending tasks may also be skipped without ever running (dry run, cancellation)
_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    'pending': frozenset({'branch_ready', 'failed', 'skipped'}),
    'branch_ready': frozenset({'update_ready', 'failed', 'skipped'}),
    'update_ready': frozenset({'pull_request_opened', 'failed'}),
    'pull_request_opened': frozenset(),
    'failed': frozenset(),
    'skipped': frozenset(),
}


class TaskKey(NamedTuple):
    """Deduplication key of a remediation task."""
    
    package_name: str
    ecosystem: str
    manifest_path: str
    
    def __str__(self) -> str:
        return f"{self.ecosystem}:{self.package_name}:{self.manifest_path}"


@dataclass(slots=True)
class RemediationTask:
    """One pull request's worth of work: a package in one manifest."""
    
    key: TaskKey
    source_alert_ids: FrozenSet[int]
    branch_name: str
    severity: Severity
    advisory: Advisory
    alerts: Tuple[Alert, ...]
    index: int = 0
    status: TaskStatus = field(default='pending')
    failure_reason: Optional[str] = field(default=None)
    skip_reason: Optional[str] = field(default=None)
    pull_request_url: Optional[str] = field(default=None)
    
    def __post_init__(self) -> None:
        if not self.source_alert_ids:
            raise ValueError("A remediation task needs at least one source alert")
        if not self.branch_name:
            raise ValueError("Branch name cannot be empty")
    
    @property
    def package_name(self) -> str:
        return self.key.package_name
    
    @property
    def ecosystem(self) -> str:
        return self.key.ecosystem
    
    @property
    def manifest_path(self) -> str:
        return self.key.manifest_path
    
    @property
    def first_patched_version(self) -> Optional[str]:
        """Highest-priority patched version among the source alerts, if any."""
        for alert in self.alerts:
            if alert.first_patched_version:
                return alert.first_patched_version
        return None
    
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
    
    def transition(self, new_status: TaskStatus, reason: Optional[str] = None) -> str:
        """Move to ``new_status`` and return the previous status."""
        if new_status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Task {self.branch_name}: cannot move from {self.status} to {new_status}"
            )
        previous = self.status
        self.status = new_status
        if new_status == 'failed':
            self.failure_reason = reason or "unknown error"
        elif new_status == 'skipped':
            self.skip_reason = reason
        return previous
    
    def outcome(self) -> TaskOutcome:
        """Snapshot of a terminal task for the result aggregator."""
        if not self.is_terminal:
            raise InvalidTransitionError(
                f"Task {self.branch_name} has no outcome while {self.status}"
            )
        return TaskOutcome(
            index=self.index,
            branch_name=self.branch_name,
            status=self.status,
            source_alert_ids=tuple(sorted(self.source_alert_ids)),
            pull_request_url=self.pull_request_url,
            reason=self.failure_reason if self.status == 'failed' else self.skip_reason,
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert task to a JSON-friendly dictionary."""
        return {
            'index': self.index,
            'package_name': self.package_name,
            'ecosystem': self.ecosystem,
            'manifest_path': self.manifest_path,
            'severity': self.severity,
            'source_alert_ids': sorted(self.source_alert_ids),
            'branch_name': self.branch_name,
            'status': self.status,
            'failure_reason': self.failure_reason,
            'skip_reason': self.skip_reason,
            'pull_request_url': self.pull_request_url,
        }


@dataclass(frozen=True, slots=True)
class TaskOutcome(DataClassJsonMixin):
    """The terminal result of executing one remediation task."""
    
    index: int
    branch_name: str
    status: TaskStatus
    source_alert_ids: Tuple[int, ...] = ()
    pull_request_url: Optional[str] = None
    reason: Optional[str] = None
    
    @property
    def succeeded(self) -> bool:
        return self.status == 'pull_request_opened'


@dataclass(frozen=True, slots=True)
class SecurityUpdate(DataClassJsonMixin):
    """A remote-generated fix pushed to a remediation branch."""
    
    branch: str
    commit_sha: Optional[str] = None
    target_version: Optional[str] = None
