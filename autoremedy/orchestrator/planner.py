"""Planning of remediation tasks from raw alerts."""

import hashlib
import re
from typing import Dict, Iterable, List, Optional

from ..logging import get_logger
from ..models.alerts import Alert, SEVERITY_RANK, Severity
from ..models.tasks import RemediationTask, TaskKey

logger = get_logger(__name__)

_UNSAFE_REF_CHARS = re.compile(r'[^a-z0-9._-]+')


def slugify(value: str) -> str:
    """Lowercase ``value`` and reduce it to characters safe in a git ref."""
    slug = _UNSAFE_REF_CHARS.sub('-', value.lower()).strip('-.')
    slug = re.sub(r'\.{2,}', '.', slug)
    # git rejects ref components ending in .lock
    if slug.endswith('.lock'):
        slug = slug[:-len('.lock')] + '-lock'
    return slug or 'x'


def branch_name_for(key: TaskKey, prefix: str = 'security-fix') -> str:
    """Deterministic branch name for a task key.

    The readable part is a slug of ecosystem, package and manifest; the
    suffix is a digest of the raw key so that keys with equal slugs still
    get distinct branches.
    """
    digest = hashlib.sha1(
        '\0'.join((key.ecosystem, key.package_name, key.manifest_path)).encode('utf-8')
    ).hexdigest()[:8]
    return '/'.join((
        prefix.strip('/'),
        slugify(key.ecosystem),
        slugify(key.package_name),
        f"{slugify(key.manifest_path)}-{digest}",
    ))


class RemediationPlanner:
    """Filters, deduplicates and orders alerts into remediation tasks.

    ``plan`` is a pure function of its input: the same alert sequence
    always yields the same tasks, branch names and order.
    """

    def __init__(
        self,
        *,
        ecosystem_filter: Optional[str] = None,
        min_severity: Optional[Severity] = None,
        branch_prefix: str = 'security-fix',
    ):
        self.ecosystem_filter = ecosystem_filter.lower() if ecosystem_filter else None
        self.min_rank = SEVERITY_RANK[min_severity] if min_severity else None
        self.branch_prefix = branch_prefix

    def _is_actionable(self, alert: Alert) -> bool:
        if not alert.is_open:
            return False
        if self.ecosystem_filter and alert.dependency.ecosystem != self.ecosystem_filter:
            return False
        if self.min_rank is not None and alert.severity_rank < self.min_rank:
            return False
        return True

    def plan(self, alerts: Iterable[Alert]) -> List[RemediationTask]:
        """Derive the ordered remediation tasks for ``alerts``."""
        groups: Dict[TaskKey, List[Alert]] = {}
        considered = 0

        for alert in alerts:
            considered += 1
            if not self._is_actionable(alert):
                continue
            key = TaskKey(
                package_name=alert.dependency.package_name,
                ecosystem=alert.dependency.ecosystem,
                manifest_path=alert.dependency.manifest_path,
            )
            groups.setdefault(key, []).append(alert)

        tasks = [self._build_task(key, group) for key, group in groups.items()]
        tasks.sort(key=lambda t: (
            -SEVERITY_RANK[t.severity],
            t.package_name,
            t.ecosystem,
            t.manifest_path,
        ))
        for index, task in enumerate(tasks):
            task.index = index

        logger.info(
            f"Planned {len(tasks)} remediation tasks",
            alerts_considered=considered,
            alerts_actionable=sum(len(g) for g in groups.values()),
        )
        return tasks

    def _build_task(self, key: TaskKey, group: List[Alert]) -> RemediationTask:
        # Highest severity first, lowest alert id among equals
        ordered = sorted(group, key=lambda a: (-a.severity_rank, a.id))
        representative = ordered[0]

        return RemediationTask(
            key=key,
            source_alert_ids=frozenset(a.id for a in group),
            branch_name=branch_name_for(key, self.branch_prefix),
            severity=representative.severity,
            advisory=representative.advisory,
            alerts=tuple(ordered),
        )
