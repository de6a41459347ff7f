"""Accumulation of task outcomes into a run summary."""

from typing import Dict, List, Optional

from ..logging import get_logger
from ..models.runs import RunSummary
from ..models.tasks import TaskOutcome

logger = get_logger(__name__)


class ResultAggregator:
    """Folds task outcomes into a RunSummary.

    ``record`` never awaits, so concurrent tasks on one event loop cannot
    interleave inside it. Pull request URLs are kept by planned index and
    emitted in plan order regardless of completion order.
    """

    def __init__(
        self,
        alerts_found: int = 0,
        tasks_planned: int = 0,
        *,
        run_id: Optional[str] = None,
        dry_run: bool = False,
    ):
        self._summary = RunSummary(
            alerts_found=alerts_found,
            tasks_planned=tasks_planned,
            run_id=run_id,
            dry_run=dry_run,
        )
        self._urls: Dict[int, str] = {}
        self._recorded: set = set()
        self._finalized = False

    def record(self, outcome: TaskOutcome) -> None:
        """Add one terminal outcome to the summary."""
        if self._finalized:
            raise RuntimeError("Cannot record outcomes after finalize()")
        if outcome.index in self._recorded:
            raise ValueError(f"Outcome for task {outcome.index} already recorded")

        summary = self._summary
        if outcome.status == 'pull_request_opened':
            summary.tasks_succeeded += 1
            if outcome.pull_request_url:
                self._urls[outcome.index] = outcome.pull_request_url
        elif outcome.status == 'failed':
            summary.tasks_failed += 1
            summary.failures[outcome.branch_name] = outcome.reason or "unknown error"
        elif outcome.status == 'skipped':
            summary.tasks_skipped += 1
        else:
            raise ValueError(f"Outcome for task {outcome.index} is not terminal: {outcome.status}")

        self._recorded.add(outcome.index)

    def finalize(self) -> RunSummary:
        """Return the finished summary."""
        summary = self._summary
        if summary.tasks_completed != summary.tasks_planned:
            raise RuntimeError(
                f"{summary.tasks_completed} outcomes recorded for "
                f"{summary.tasks_planned} planned tasks"
            )

        if not self._finalized:
            urls: List[str] = [self._urls[i] for i in sorted(self._urls)]
            summary.pull_request_urls = urls
            self._finalized = True

        logger.info(
            "Run summary",
            alerts_found=summary.alerts_found,
            tasks_planned=summary.tasks_planned,
            tasks_succeeded=summary.tasks_succeeded,
            tasks_failed=summary.tasks_failed,
            tasks_skipped=summary.tasks_skipped,
        )
        return summary
