"""Run data models for autoremedy pipeline execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from dataclasses_json import DataClassJsonMixin, config

from .alerts import Repository, SEVERITY_RANK, Severity

# Type aliases
RunStatus = Literal['started', 'completed', 'cancelled', 'failed']


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class RunConfig:
    """Run-level options. The pull request base branch is always explicit."""
    
    repository: Repository
    base_branch: str
    ecosystem_filter: Optional[str] = None
    min_severity: Optional[Severity] = None
    dry_run: bool = False
    
    def __post_init__(self) -> None:
        """Validate run configuration after initialization."""
        if isinstance(self.repository, str):
            self.repository = Repository.parse(self.repository)
        if not self.base_branch or not self.base_branch.strip():
            raise ValueError("Base branch cannot be empty")
        if self.ecosystem_filter is not None:
            self.ecosystem_filter = self.ecosystem_filter.strip().lower() or None
        if self.min_severity is not None and self.min_severity not in SEVERITY_RANK:
            raise ValueError(f"Unknown minimum severity: {self.min_severity!r}")


@dataclass(slots=True)
class Run(DataClassJsonMixin):
    """A pipeline execution run."""
    
    id: str
    repository: str
    started_at: datetime = field(
        default_factory=_utcnow,
        metadata=config(encoder=datetime.isoformat, decoder=datetime.fromisoformat)
    )
    ended_at: Optional[datetime] = field(
        default=None,
        metadata=config(encoder=lambda d: d.isoformat() if d else None)
    )
    status: RunStatus = field(default='started')
    notes: Optional[str] = field(default=None)
    
    def __post_init__(self) -> None:
        """Validate run data after initialization."""
        if not self.id:
            raise ValueError("Run ID cannot be empty")
        if not self.repository:
            raise ValueError("Repository cannot be empty")
    
    def complete(self, status: RunStatus, notes: Optional[str] = None) -> None:
        """Mark the run as completed."""
        self.status = status
        self.ended_at = _utcnow()
        if notes:
            self.notes = notes
    
    def fail(self, error_message: str) -> None:
        """Mark the run as failed."""
        self.complete('failed', f"Error: {error_message}")
    
    @property
    def duration_seconds(self) -> Optional[float]:
        """Get the duration of the run in seconds."""
        if self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None


@dataclass(slots=True)
class RunSummary(DataClassJsonMixin):
    """Aggregate outcome of one remediation run."""
    
    alerts_found: int = 0
    tasks_planned: int = 0
    tasks_succeeded: int = 0
    tasks_failed: int = 0
    tasks_skipped: int = 0
    pull_request_urls: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    run_id: Optional[str] = None
    dry_run: bool = False
    
    @property
    def tasks_completed(self) -> int:
        return self.tasks_succeeded + self.tasks_failed + self.tasks_skipped
    
    @property
    def needs_attention(self) -> bool:
        """True when at least one package needs manual intervention."""
        return self.tasks_failed > 0
