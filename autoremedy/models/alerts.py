"""Alert data models for autoremedy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, get_args

from dataclasses_json import DataClassJsonMixin

from ..exceptions import AlertParseError

# Type aliases for better type safety
Severity = Literal['low', 'medium', 'high', 'critical']
AlertState = Literal['open', 'fixed', 'dismissed']

SEVERITY_RANK: Dict[str, int] = {
    'low': 0,
    'medium': 1,
    'high': 2,
    'critical': 3,
}

# GitHub reports a few states outside the open/fixed/dismissed model
_STATE_ALIASES = {
    'auto_dismissed': 'dismissed',
}


def severity_rank(severity: str) -> int:
    """Position of a severity in the low < medium < high < critical order."""
    try:
        return SEVERITY_RANK[severity]
    except KeyError:
        raise ValueError(f"Unknown severity: {severity!r}") from None


@dataclass(frozen=True, slots=True)
class Repository:
    """An owner/name pair identifying a repository."""
    
    owner: str
    name: str
    
    def __post_init__(self) -> None:
        if not self.owner or not self.name:
            raise ValueError("Repository owner and name cannot be empty")
        if '/' in self.owner or '/' in self.name:
            raise ValueError(f"Invalid repository: {self.owner}/{self.name}")
    
    @classmethod
    def parse(cls, full_name: str) -> Repository:
        """Parse an ``owner/name`` string."""
        owner, sep, name = full_name.strip().partition('/')
        if not sep:
            raise ValueError(f"Repository must be in owner/name form, got {full_name!r}")
        return cls(owner=owner, name=name)
    
    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
    
    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True, slots=True)
class Dependency(DataClassJsonMixin):
    """The vulnerable dependency an alert points at."""
    
    package_name: str
    ecosystem: str
    manifest_path: str


@dataclass(frozen=True, slots=True)
class Advisory(DataClassJsonMixin):
    """The security advisory behind an alert."""
    
    id: str
    summary: str
    cve_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Alert(DataClassJsonMixin):
    """An immutable snapshot of a Dependabot alert."""
    
    id: int
    state: AlertState
    dependency: Dependency
    severity: Severity
    advisory: Advisory
    first_patched_version: Optional[str] = None
    html_url: Optional[str] = field(default=None)
    
    def __post_init__(self) -> None:
        """Validate alert data after initialization."""
        if self.state not in get_args(AlertState):
            raise AlertParseError(f"Alert {self.id}: unknown state {self.state!r}")
        if self.severity not in SEVERITY_RANK:
            raise AlertParseError(f"Alert {self.id}: unknown severity {self.severity!r}")
    
    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Alert:
        """Build an alert from a Dependabot alerts API item.
        
        Raises AlertParseError when a required field is missing or malformed,
        so a bad payload fails here instead of leaking empty values into
        branch names and pull request bodies.
        """
        number = data.get('number')
        if not isinstance(number, int) or isinstance(number, bool):
            raise AlertParseError(f"Alert is missing a numeric 'number': {number!r}")
        
        state = _STATE_ALIASES.get(data.get('state'), data.get('state'))
        
        dependency = _require_mapping(data, 'dependency', number)
        package = _require_mapping(dependency, 'package', number)
        advisory = _require_mapping(data, 'security_advisory', number)
        vulnerability = data.get('security_vulnerability') or {}
        
        severity = vulnerability.get('severity') or advisory.get('severity')
        if isinstance(severity, str):
            severity = severity.lower()
        
        patched = (vulnerability.get('first_patched_version') or {}).get('identifier')
        
        return cls(
            id=number,
            state=state,
            dependency=Dependency(
                package_name=_require_str(package, 'name', number),
                ecosystem=_require_str(package, 'ecosystem', number).lower(),
                manifest_path=_require_str(dependency, 'manifest_path', number),
            ),
            severity=severity,
            advisory=Advisory(
                id=_require_str(advisory, 'ghsa_id', number),
                summary=_require_str(advisory, 'summary', number),
                cve_id=advisory.get('cve_id'),
            ),
            first_patched_version=patched,
            html_url=data.get('html_url'),
        )
    
    @property
    def is_open(self) -> bool:
        return self.state == 'open'
    
    @property
    def severity_rank(self) -> int:
        return SEVERITY_RANK[self.severity]


def _require_mapping(data: Mapping[str, Any], key: str, alert_id: Any) -> Mapping[str, Any]:
    value = data.get(key)
    if not isinstance(value, Mapping):
        raise AlertParseError(f"Alert {alert_id}: missing object {key!r}")
    return value


def _require_str(data: Mapping[str, Any], key: str, alert_id: Any) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise AlertParseError(f"Alert {alert_id}: missing field {key!r}")
    return value
