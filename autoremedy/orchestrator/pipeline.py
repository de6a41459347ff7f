"""Main pipeline orchestrator for autoremedy."""

import asyncio
import uuid
from typing import Optional

from ..adapters.github_client import GitHubClient
from ..config import Settings, get_settings
from ..logging import get_logger, log_pipeline_event, log_task_transition
from ..models.runs import Run, RunConfig, RunSummary
from ..models.tasks import RemediationTask
from .aggregator import ResultAggregator
from .executor import RemediationExecutor
from .features import FeatureEnabler
from .fetcher import AlertFetcher
from .planner import RemediationPlanner

logger = get_logger(__name__)


class RemediationPipeline:
    """Enable features, fetch alerts, plan tasks, execute them, summarize."""

    def __init__(
        self,
        client: GitHubClient,
        config: RunConfig,
        settings: Optional[Settings] = None,
    ):
        """Initialize the pipeline."""
        self.client = client
        self.config = config
        self.settings = settings or get_settings()
        self.enabler = FeatureEnabler(client, dry_run=config.dry_run)
        self.fetcher = AlertFetcher(client)
        self.planner = RemediationPlanner(
            ecosystem_filter=config.ecosystem_filter,
            min_severity=config.min_severity,
            branch_prefix=self.settings.branch_prefix,
        )
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        """Stop starting new tasks; in-flight tasks finish, the rest are skipped."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def execute(self, run: Optional[Run] = None) -> RunSummary:
        """Execute the complete remediation pipeline."""
        repository = self.config.repository.full_name
        run = run or Run(id=f"run_{uuid.uuid4().hex[:8]}", repository=repository)
        log_pipeline_event(logger, run_id=run.id, phase="started", repository=repository,
                           dry_run=self.config.dry_run, base_branch=self.config.base_branch)

        try:
            # Phase 1: Features
            log_pipeline_event(logger, run_id=run.id, phase="features", repository=repository)
            features = await self.enabler.ensure_all(self.config.repository)

            # Phase 2: Fetch
            log_pipeline_event(logger, run_id=run.id, phase="fetch", repository=repository)
            alerts = await self.fetcher.fetch_all(self.config.repository)

        except Exception as e:
            run.fail(str(e))
            log_pipeline_event(logger, run_id=run.id, phase="failed", repository=repository,
                               error=str(e), error_type=type(e).__name__)
            raise

        # Phase 3: Planning
        log_pipeline_event(logger, run_id=run.id, phase="planning", repository=repository,
                           alerts_found=len(alerts))
        tasks = self.planner.plan(alerts)

        aggregator = ResultAggregator(
            alerts_found=len(alerts),
            tasks_planned=len(tasks),
            run_id=run.id,
            dry_run=self.config.dry_run,
        )

        # Phase 4: Execution
        log_pipeline_event(logger, run_id=run.id, phase="execution", repository=repository,
                           tasks_planned=len(tasks), features=features)
        if self.config.dry_run:
            for task in tasks:
                self._skip(task, "dry run")
                aggregator.record(task.outcome())
        else:
            await self._execute_tasks(tasks, features, aggregator)

        summary = aggregator.finalize()

        status = 'cancelled' if self.cancelled else 'completed'
        run.complete(status)
        duration = run.duration_seconds or 0.0
        run.notes = f"Pipeline finished in {duration:.2f}s"
        log_pipeline_event(logger, run_id=run.id, phase=status, repository=repository,
                           duration_ms=int(duration * 1000),
                           tasks_succeeded=summary.tasks_succeeded,
                           tasks_failed=summary.tasks_failed,
                           tasks_skipped=summary.tasks_skipped)
        return summary

    async def _execute_tasks(self, tasks, features, aggregator: ResultAggregator) -> None:
        executor = RemediationExecutor(self.client, self.config, features)
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_tasks)

        async def run_task(task: RemediationTask) -> None:
            async with semaphore:
                if self.cancelled:
                    self._skip(task, "cancelled")
                    aggregator.record(task.outcome())
                    return
                outcome = await executor.execute(task)
                aggregator.record(outcome)

        await asyncio.gather(*[run_task(task) for task in tasks])

    def _skip(self, task: RemediationTask, reason: str) -> None:
        previous = task.transition('skipped', reason)
        log_task_transition(logger, task, previous)
