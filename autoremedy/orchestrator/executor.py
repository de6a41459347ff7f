"""Execution of remediation tasks: branch, security update, pull request."""

import asyncio
from typing import Mapping, Optional

from ..adapters.github_client import AUTOMATED_SECURITY_FIXES, GitHubClient
from ..exceptions import (
    ConflictError,
    GitHubError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from ..logging import get_logger, log_task_transition
from ..models.runs import RunConfig
from ..models.tasks import FeatureState, RemediationTask, SecurityUpdate, TaskOutcome, TaskStatus

logger = get_logger(__name__)


def pull_request_title(task: RemediationTask) -> str:
    return f"Security fix for {task.package_name} ({task.ecosystem})"


def pull_request_body(task: RemediationTask, update: Optional[SecurityUpdate] = None) -> str:
    """Render the pull request description for a task and the update pushed for it."""
    lines = [
        "Fixes the following security vulnerability:",
        "",
        f"- **Package**: {task.package_name}",
        f"- **Ecosystem**: {task.ecosystem}",
        f"- **Manifest**: {task.manifest_path}",
        f"- **Severity**: {task.severity}",
        f"- **Advisory**: {task.advisory.id}: {task.advisory.summary}",
    ]
    if task.first_patched_version:
        lines.append(f"- **First patched version**: {task.first_patched_version}")
    if update is not None and update.target_version:
        lines.append(f"- **Updated to**: {update.target_version}")

    lines += ["", "### Source alerts", ""]
    for alert in sorted(task.alerts, key=lambda a: a.id):
        references = [alert.advisory.id]
        if alert.advisory.cve_id:
            references.append(alert.advisory.cve_id)
        line = f"- Alert #{alert.id} ({', '.join(references)}, {alert.severity})"
        if alert.html_url:
            line += f": {alert.html_url}"
        lines.append(line)

    return "\n".join(lines) + "\n"


class RemediationExecutor:
    """Drives one task through its state machine.

    ``execute`` never raises for remote failures: every error is turned into
    the task's terminal status (failed or skipped) with a recorded reason,
    so one bad package cannot stop the rest of the batch.
    """

    def __init__(
        self,
        client: GitHubClient,
        config: RunConfig,
        features: Optional[Mapping[str, FeatureState]] = None,
    ):
        self.client = client
        self.config = config
        self.features = dict(features or {})
        self._base_sha: Optional[str] = None
        self._base_sha_lock = asyncio.Lock()

    def _transition(self, task: RemediationTask, status: TaskStatus, reason: Optional[str] = None) -> None:
        previous = task.transition(status, reason)
        log_task_transition(logger, task, previous)

    async def execute(self, task: RemediationTask) -> TaskOutcome:
        """Run ``task`` to a terminal status and return its outcome."""
        if task.is_terminal:
            return task.outcome()

        try:
            await self._create_branch(task)
            self._transition(task, 'branch_ready')

            if self.features.get(AUTOMATED_SECURITY_FIXES) == 'unsupported':
                self._transition(task, 'skipped', "automated security updates are not available")
                return task.outcome()

            try:
                update = await self.client.create_security_update(
                    self.config.repository,
                    task.ecosystem,
                    task.manifest_path,
                    task.package_name,
                    task.branch_name,
                )
            except (NotFoundError, PermissionDeniedError) as e:
                self._transition(task, 'skipped', f"no security update: {e}")
                return task.outcome()
            logger.info(
                "Security update pushed",
                branch=task.branch_name,
                commit_sha=update.commit_sha,
                target_version=update.target_version,
            )
            self._transition(task, 'update_ready')

            task.pull_request_url = await self._open_pull_request(task, update)
            self._transition(task, 'pull_request_opened')

        except GitHubError as e:
            self._fail(task, str(e))
        except Exception as e:
            logger.error(
                "Unexpected error executing task",
                branch=task.branch_name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._fail(task, f"unexpected error: {e}")

        return task.outcome()

    def _fail(self, task: RemediationTask, reason: str) -> None:
        if not task.is_terminal:
            self._transition(task, 'failed', reason)

    async def _resolve_base_sha(self) -> str:
        async with self._base_sha_lock:
            if self._base_sha is None:
                self._base_sha = await self.client.get_branch_sha(
                    self.config.repository, self.config.base_branch
                )
                logger.info(
                    "Resolved base branch",
                    base_branch=self.config.base_branch,
                    sha=self._base_sha,
                )
            return self._base_sha

    async def _create_branch(self, task: RemediationTask) -> None:
        sha = await self._resolve_base_sha()
        try:
            await self.client.create_branch(self.config.repository, task.branch_name, sha)
        except ConflictError:
            logger.info("Branch already exists, resuming", branch=task.branch_name)

    async def _open_pull_request(self, task: RemediationTask, update: SecurityUpdate) -> str:
        try:
            return await self.client.create_pull_request(
                self.config.repository,
                head=task.branch_name,
                base=self.config.base_branch,
                title=pull_request_title(task),
                body=pull_request_body(task, update),
            )
        except ValidationFailedError as e:
            if "already exists" not in e.message.lower():
                raise
            existing = await self.client.find_pull_request(self.config.repository, task.branch_name)
            if existing is None:
                raise
            logger.info("Pull request already open, resuming", branch=task.branch_name, url=existing)
            return existing
