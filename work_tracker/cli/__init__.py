"""
Command line interface for the work tracker.
"""

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..client import MultiRootTracker, WorkTracker
from ..config import get_settings
from ..errors import WorkTrackerError
from ..logconfig import configure_logging
from ..models import ActionPriority, Schedule

app = typer.Typer(help="Work tracker - local-first Work, Artifact and Group tracking")
console = Console()

PRIORITY_STYLE = {
    ActionPriority.HIGH: "bold red",
    ActionPriority.MEDIUM: "yellow",
    ActionPriority.LOW: "dim",
}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
):
    """Configure logging before any command runs."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, settings.log_format)


def _tracker(root: Optional[str]) -> WorkTracker:
    return WorkTracker.from_settings(get_settings(), root=root)


def _fail(error: WorkTrackerError) -> None:
    console.print(f"❌ {error.message}")
    raise typer.Exit(code=1)


@app.command("list")
def list_work(
    schedule: Optional[Schedule] = typer.Option(None, help="Only this schedule"),
    all_roots: bool = typer.Option(False, "--all-roots", help="Aggregate every configured root"),
    root: Optional[str] = typer.Option(None, help="Storage root"),
):
    """List Work items by priority."""
    if all_roots:
        rows = MultiRootTracker.from_settings(get_settings()).list_work(schedule)
    else:
        tracker = _tracker(root)
        rows = [(tracker.root, w) for w in tracker.list_work(schedule)]

    if not rows:
        console.print("No work items found")
        return

    table = Table(title="Work Items", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Schedule", style="green")
    table.add_column("Status")
    table.add_column("Priority", style="yellow")
    table.add_column("Progress", justify="right")
    if all_roots:
        table.add_column("Root", style="dim")

    for work_root, work in rows:
        cells = [
            work.id[-6:],
            work.title,
            work.schedule.value,
            work.metadata.status.value,
            work.metadata.priority.value,
            f"{work.metadata.progress_percent}%",
        ]
        if all_roots:
            cells.append(str(work_root))
        table.add_row(*cells)
    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Case-insensitive text to find"),
    root: Optional[str] = typer.Option(None, help="Storage root"),
):
    """Search titles, summaries, bodies and tags."""
    results = _tracker(root).search(query)
    if not results.total:
        console.print(f"No matches for '{query}'")
        return

    table = Table(title=f"Matches for '{query}'", show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    for work in results.work:
        table.add_row("work", work.id[-6:], work.title)
    for artifact in results.artifacts:
        table.add_row(artifact.type.value, artifact.id[-6:], artifact.summary)
    for group in results.groups:
        table.add_row("group", group.id[-6:], group.name)
    console.print(table)


@app.command()
def analyze(root: Optional[str] = typer.Option(None, help="Storage root")):
    """Show decay analysis and recommended cleanup actions."""
    try:
        report = _tracker(root).lifecycle.analyze_decay()
    except WorkTrackerError as e:
        _fail(e)

    summary = report.summary
    rprint(
        Panel.fit(
            f"Health: {summary.health_score:.0%}  |  Items: {summary.total_items}  |  "
            f"Stale: {summary.stale_items}  |  Orphaned: {summary.orphaned_artifacts}  |  "
            f"Unsupported: {summary.unsupported_work}",
            title="Decay Analysis",
            style="bold blue",
        )
    )

    if not report.actions:
        console.print("✅ Nothing to clean up")
        return

    table = Table(title="Recommended Actions", show_header=True, header_style="bold magenta")
    table.add_column("Priority")
    table.add_column("Kind", style="cyan")
    table.add_column("Action", style="green")
    table.add_column("Item")
    table.add_column("Reason")
    table.add_column("Auto", justify="center")
    for action in report.actions:
        table.add_row(
            f"[{PRIORITY_STYLE[action.priority]}]{action.priority.value}[/]",
            action.item_kind.value,
            action.action_type.value,
            action.item_title or action.item_id,
            action.reason,
            "✅" if action.auto_safe else "",
        )
    console.print(table)


@app.command()
def health(root: Optional[str] = typer.Option(None, help="Storage root")):
    """Show overall health metrics."""
    metrics = _tracker(root).lifecycle.get_health_metrics()

    table = Table(title="Health Metrics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Health score", f"{metrics.health_score:.0%}")
    table.add_row("Work items", str(metrics.total_work))
    table.add_row("Artifacts", str(metrics.total_artifacts))
    table.add_row("Groups", str(metrics.total_groups))
    table.add_row("Stale work", str(metrics.stale_work))
    table.add_row("Stale artifacts", str(metrics.stale_artifacts))
    table.add_row("Orphaned artifacts", str(metrics.orphaned_artifacts))
    table.add_row("Stale groups", str(metrics.stale_groups))
    table.add_row("Unsupported work", str(metrics.unsupported_work))
    table.add_row("Auto-safe actions", str(metrics.auto_safe_actions))
    console.print(table)


@app.command("auto-cleanup")
def auto_cleanup(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only list what would run"),
    root: Optional[str] = typer.Option(None, help="Storage root"),
):
    """Execute every auto-safe cleanup action."""
    try:
        report = _tracker(root).lifecycle.auto_cleanup(dry_run=dry_run)
    except WorkTrackerError as e:
        _fail(e)

    if not report.outcomes:
        console.print("✅ No auto-safe actions")
        return

    verb = "Would run" if dry_run else "Ran"
    for outcome in report.outcomes:
        action = outcome.action
        mark = "✅" if outcome.success else "❌"
        line = f"{mark} {verb} {action.action_type.value} on {action.item_kind.value} {action.item_id}"
        if outcome.error:
            line += f": {outcome.error}"
        console.print(line)
    console.print(f"{report.succeeded} succeeded, {report.failed} failed")
    if report.failed:
        raise typer.Exit(code=1)


@app.command()
def refresh(root: Optional[str] = typer.Option(None, help="Storage root")):
    """Recompute and persist activity scores."""
    report = _tracker(root).lifecycle.refresh_all_activity_scores()
    console.print(
        f"🔄 Updated {report.updated}, unchanged {report.unchanged}, failed {report.failed}"
    )


@app.command()
def groups(root: Optional[str] = typer.Option(None, help="Storage root")):
    """Show group health and consolidation candidates."""
    tracker = _tracker(root)
    report = tracker.groups.analyze_group_health()

    table = Table(title="Groups", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status", style="green")
    table.add_column("Artifacts", justify="right")
    table.add_column("Readiness", justify="right")
    table.add_column("Cohesion", justify="right")
    table.add_column("Ready", justify="center")
    for group in tracker.groups.list_groups():
        tracker.groups.refresh_scores(group)
        table.add_row(
            group.id[-6:],
            group.name,
            group.metadata.status.value,
            str(group.metadata.artifact_count),
            f"{group.metadata.readiness_score:.2f}",
            f"{group.metadata.cohesion_score:.2f}",
            "✅" if group.is_ready_for_work() else "",
        )
    console.print(table)
    for recommendation in report.recommendations:
        console.print(f"💡 {recommendation}")


if __name__ == "__main__":
    app()
