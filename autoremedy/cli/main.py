"""Main CLI application for autoremedy."""

import asyncio
import json
import signal
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..adapters.github_client import GitHubClient
from ..config import get_settings
from ..exceptions import AutoRemedyError
from ..logging import get_logger, set_log_level
from ..models.alerts import Repository
from ..models.runs import RunConfig, RunSummary
from ..models.tasks import RemediationTask
from ..orchestrator.fetcher import AlertFetcher
from ..orchestrator.pipeline import RemediationPipeline
from ..orchestrator.planner import RemediationPlanner

app = typer.Typer(
    name="autoremedy",
    help="Automated remediation of Dependabot alerts",
    add_completion=False
)

console = Console()
logger = get_logger(__name__)

SEVERITY_COLORS = {
    'critical': 'red',
    'high': 'yellow',
    'medium': 'blue',
    'low': 'green',
}


def _run_config(
    repository: str,
    base_branch: str,
    ecosystem: Optional[str],
    min_severity: Optional[str],
    dry_run: bool,
) -> RunConfig:
    try:
        return RunConfig(
            repository=repository,
            base_branch=base_branch,
            ecosystem_filter=ecosystem,
            min_severity=min_severity.lower() if min_severity else None,
            dry_run=dry_run,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e))


@app.command()
def run(
    repository: str = typer.Argument(..., help="Repository in owner/name form"),
    base_branch: str = typer.Option(
        ..., "--base-branch", "-b", help="Branch pull requests are opened against"
    ),
    ecosystem: Optional[str] = typer.Option(
        None, "--ecosystem", "-e", help="Only remediate this package ecosystem"
    ),
    min_severity: Optional[str] = typer.Option(
        None, "--min-severity", help="Ignore alerts below this severity"
    ),
    dry_run: Optional[bool] = typer.Option(
        None, "--dry-run/--no-dry-run", help="Only plan, never change the repository"
    ),
    max_concurrency: Optional[int] = typer.Option(
        None, "--max-concurrency", "-c", min=1, help="Tasks executed in parallel"
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the run summary as JSON to this file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
) -> None:
    """Enable scanning, fetch alerts and open one pull request per task."""
    settings = get_settings()

    if dry_run is None:
        dry_run = settings.dry_run_default
    if max_concurrency:
        settings.max_concurrent_tasks = max_concurrency
    if verbose:
        settings.log_level = "DEBUG"
        set_log_level("DEBUG")

    config = _run_config(repository, base_branch, ecosystem, min_severity, dry_run)

    console.print(f"[bold blue]autoremedy[/bold blue] - Dependabot alert remediation")
    console.print(f"Repository: {config.repository}")
    console.print(f"Base branch: {config.base_branch}")
    console.print(f"Ecosystem: {config.ecosystem_filter or 'all'}")
    console.print(f"Dry-run: {config.dry_run}")
    console.print()

    summary = asyncio.run(_run_pipeline(config))
    _display_summary(summary)

    if output:
        with open(output, 'w') as f:
            f.write(summary.to_json(indent=2))
        console.print(f"Summary saved to: {output}")


@app.command()
def plan(
    repository: str = typer.Argument(..., help="Repository in owner/name form"),
    ecosystem: Optional[str] = typer.Option(
        None, "--ecosystem", "-e", help="Only plan for this package ecosystem"
    ),
    min_severity: Optional[str] = typer.Option(
        None, "--min-severity", help="Ignore alerts below this severity"
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Print the plan as JSON"
    ),
) -> None:
    """Show the remediation tasks for a repository without changing anything."""
    try:
        repo = Repository.parse(repository)
        planner = RemediationPlanner(
            ecosystem_filter=ecosystem,
            min_severity=min_severity.lower() if min_severity else None,
            branch_prefix=get_settings().branch_prefix,
        )
    except (ValueError, KeyError) as e:
        raise typer.BadParameter(str(e))

    tasks = asyncio.run(_run_plan(repo, planner))

    if as_json:
        console.print_json(json.dumps([task.to_dict() for task in tasks]))
    else:
        _display_tasks(tasks)


@app.command()
def health() -> None:
    """Check the GitHub token and its rate limit."""
    console.print(f"[bold blue]autoremedy[/bold blue] - Health Check")
    console.print()

    asyncio.run(_check_health())


async def _run_pipeline(config: RunConfig) -> RunSummary:
    """Run the complete remediation pipeline."""
    try:
        async with GitHubClient() as client:
            pipeline = RemediationPipeline(client, config)
            _install_cancel_handlers(pipeline)
            return await pipeline.execute()

    except AutoRemedyError as e:
        console.print(f"[red]Pipeline failed: {e}[/red]")
        logger.error("Pipeline execution failed", error=str(e))
        raise typer.Exit(1)


async def _run_plan(repository: Repository, planner: RemediationPlanner) -> List[RemediationTask]:
    try:
        async with GitHubClient() as client:
            alerts = await AlertFetcher(client).fetch_all(repository)
        return planner.plan(alerts)

    except AutoRemedyError as e:
        console.print(f"[red]Planning failed: {e}[/red]")
        logger.error("Planning failed", error=str(e))
        raise typer.Exit(1)


async def _check_health() -> None:
    try:
        async with GitHubClient() as client:
            core = await client.get_rate_limit()
        console.print("✅ GitHub API: [green]OK[/green]")
        console.print(f"Rate limit: {core.get('remaining', '?')}/{core.get('limit', '?')} remaining")

    except AutoRemedyError as e:
        console.print(f"❌ GitHub API: [red]FAILED[/red] ({e})")
        raise typer.Exit(1)


def _install_cancel_handlers(pipeline: RemediationPipeline) -> None:
    """Let SIGINT/SIGTERM finish the in-flight task and skip the rest."""
    loop = asyncio.get_running_loop()

    def _cancel() -> None:
        console.print("[yellow]Cancelling: finishing in-flight tasks, skipping the rest[/yellow]")
        pipeline.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform
            pass


def _display_summary(summary: RunSummary) -> None:
    """Display the run summary."""
    console.print()
    table = Table(title="Run Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Alerts Found", str(summary.alerts_found))
    table.add_row("Tasks Planned", str(summary.tasks_planned))
    table.add_row("Succeeded", str(summary.tasks_succeeded))
    table.add_row("Failed", f"[red]{summary.tasks_failed}[/red]" if summary.tasks_failed else "0")
    table.add_row("Skipped", str(summary.tasks_skipped))

    console.print(table)

    for url in summary.pull_request_urls:
        console.print(f"🔗 {url}")

    if summary.failures:
        failures = Table(title="Needs Manual Attention")
        failures.add_column("Branch", style="cyan")
        failures.add_column("Reason", style="red")
        for branch, reason in summary.failures.items():
            failures.add_row(branch, reason)
        console.print(failures)


def _display_tasks(tasks: List[RemediationTask]) -> None:
    """Display planned tasks in plan order."""
    if not tasks:
        console.print("[green]No actionable alerts.[/green]")
        return

    table = Table(title="Remediation Plan")
    table.add_column("#", style="white")
    table.add_column("Ecosystem", style="cyan")
    table.add_column("Package", style="white")
    table.add_column("Manifest", style="white")
    table.add_column("Severity")
    table.add_column("Alerts", style="magenta")
    table.add_column("Branch", style="blue")

    for task in tasks:
        color = SEVERITY_COLORS.get(task.severity, 'white')
        table.add_row(
            str(task.index + 1),
            task.ecosystem,
            task.package_name,
            task.manifest_path,
            f"[{color}]{task.severity}[/{color}]",
            ", ".join(f"#{i}" for i in sorted(task.source_alert_ids)),
            task.branch_name,
        )

    console.print(table)


if __name__ == "__main__":
    app()
