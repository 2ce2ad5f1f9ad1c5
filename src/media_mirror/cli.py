"""CLI for media-mirror."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .api import migrate
from .classifier import classify, relink_url
from .config import MirrorConfig, load_config
from .core import Action, DocumentSelector, MediaRef, OutcomeStatus, RunReport
from .errors import ConfigError, SelectionError
from .utils import parse_duration, shorten_url


app = typer.Typer(help="""\
Move images out of a Notion database's expiring file URLs into a GitHub
repository served through jsDelivr, rewriting the pages to point at the
new copies. Safe to re-run: content is stored by hash and unchanged
references are never rewritten.""")

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _load(config_path: Optional[Path], overrides: Optional[Dict[str, Any]] = None) -> MirrorConfig:
    """Load configuration or exit with a readable message."""
    try:
        return load_config(config_path, overrides=overrides)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def _print_report(report: RunReport) -> None:
    """Render per-document counts, failures and the summary line."""
    if report.documents:
        table = Table(title="Dry run" if report.dry_run else None)
        table.add_column("Document")
        table.add_column("Rewritten", justify="right")
        table.add_column("Unchanged", justify="right")
        if report.dry_run:
            table.add_column("Planned", justify="right")
        table.add_column("Failed", justify="right")

        for doc in report.documents:
            counts = {status: 0 for status in OutcomeStatus}
            for outcome in doc.outcomes:
                counts[outcome.status] += 1
            failed = counts[OutcomeStatus.FAILED] + len(doc.errors)
            row = [
                doc.title or doc.document_id,
                str(counts[OutcomeStatus.REWRITTEN]),
                str(counts[OutcomeStatus.UNCHANGED]),
            ]
            if report.dry_run:
                row.append(str(counts[OutcomeStatus.PLANNED]))
            row.append(f"[red]{failed}[/red]" if failed else "0")
            table.add_row(*row)
        console.print(table)

    failures = [o for o in report.outcomes if not o.ok]
    if failures:
        console.print("\n[red]Failed references (retried on the next run):[/red]")
        for outcome in failures:
            console.print(f"  [red]✗[/red] {outcome.target} {outcome.target_id}: {outcome.error}")
    for doc in report.documents:
        for error in doc.errors:
            console.print(f"  [red]✗[/red] {doc.title or doc.document_id}: {error}")

    mark = "[yellow]![/yellow]" if report.has_failures else "[green]✓[/green]"
    console.print(f"\n{mark} {report.summary()}")


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    since: Optional[str] = typer.Option(None, help="Only pages edited within this window (e.g. 12h, 7d)"),
    status: Optional[str] = typer.Option(None, help="Only pages whose status property equals this value"),
    force: bool = typer.Option(False, "--force", help="Replace existing covers with the first image"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Classify only; no downloads, uploads or writes"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Deepest nesting level to descend into"),
    threshold: Optional[str] = typer.Option(None, help="Re-encode images at or above this size (e.g. 5MiB)"),
    concurrency: Optional[int] = typer.Option(None, help="Documents processed in parallel"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Migrate hosted and foreign images of the selected pages.

    Examples:
        media-mirror run                          # Every page in the database
        media-mirror run --since 7d --status Published
        media-mirror run --dry-run                # Preview what would change
    """
    _setup_logging(verbose)

    config = _load(config_path, {
        "force": force or None,
        "dry_run": dry_run or None,
        "max_depth": max_depth,
        "size_threshold": threshold,
        "concurrency": concurrency,
    })

    try:
        window = parse_duration(since) if since else None
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--since")
    selector = DocumentSelector(edited_within=window, status=status)

    try:
        report = migrate(config, selector)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except SelectionError as e:
        console.print(f"[red]✗[/red] {e}")
        console.print("[dim]Hint: check NOTION_TOKEN and that the database is shared with the integration[/dim]")
        raise typer.Exit(1)

    _print_report(report)


@app.command("classify")
def classify_url(
    url: str = typer.Argument(..., help="Media URL to classify"),
    hosted: bool = typer.Option(False, "--hosted", help="Treat the URL as a Notion-hosted file"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
):
    """Show what a run would do with a media URL (no network access)."""
    config = _load(config_path)
    ref = MediaRef.hosted(url) if hosted else MediaRef.external(url)
    action = classify(ref, config)

    console.print(f"{shorten_url(url)}")
    console.print(f"  action: [bold]{action.value}[/bold]")
    if action == Action.RELINK_STALE:
        console.print(f"  relink: {relink_url(url, config)}")


@app.command("config")
def show_config(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
):
    """Print the effective configuration (tokens masked)."""
    config = _load(config_path)
    table = Table(show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.masked().items():
        table.add_row(key, str(value) if value != "" else "[dim](unset)[/dim]")
    console.print(table)


if __name__ == "__main__":
    app()
