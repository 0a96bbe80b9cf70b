"""ngomigrate CLI.

Commands:
- (default): Import organizations from the spreadsheet into the backend
- import-users: Create contact users only
- analyze: Inspect workbook sheets, columns and sample values
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from ngomigrate.config import AppConfig, ConfigError, get_config
from ngomigrate.core.logging import configure_logging
from ngomigrate.ingestion.spreadsheet import SpreadsheetError, analyze_workbook
from ngomigrate.pipeline.orchestrator import ImportRun, import_contact_users, run_import
from ngomigrate.pipeline.types import RowResult, RowStatus, UserStatus

EXIT_ERROR = 1
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="ngomigrate",
    help="Import NGO organization records from a spreadsheet into Strapi",
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)

console = Console()
logger = logging.getLogger(__name__)


def _load_config(dry_run: bool) -> AppConfig:
    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[bold red]✗ Configuration error:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)
    if dry_run:
        config.importer.dry_run = True

    configure_logging(config.log_level, json_logs=config.json_logs)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(run_id=uuid.uuid4().hex[:8])
    return config


def _print_row(result: RowResult) -> None:
    if result.status is RowStatus.SUCCESS:
        suffix = ""
        if result.user_status is UserStatus.CREATED:
            suffix = f" (contact user #{result.contact_user_id} created)"
        elif result.user_status is UserStatus.REUSED:
            suffix = f" (contact user #{result.contact_user_id} reused)"
        elif result.user_status is UserStatus.FAILED:
            suffix = " [yellow](contact user failed)[/yellow]"
        console.print(f"  [green]✓[/green] {result.name}{suffix}")
    elif result.status is RowStatus.SKIPPED:
        console.print(f"  [yellow]⊘[/yellow] {result.name or '<unnamed>'}: {result.reason}")
    else:
        console.print(f"  [red]✗[/red] {result.name}: {result.error}")


def _print_ready(run: ImportRun) -> None:
    console.print(
        f"Read {run.rows_read} rows, {run.organizations} organizations after transformation"
    )
    if run.preview:
        console.print(f"\n[bold]Preview of the first {len(run.preview)} records:[/bold]")
        console.print_json(json.dumps(run.preview, ensure_ascii=False, default=str))
        console.print()


def _print_summary(run: ImportRun) -> None:
    stats = run.stats
    table = Table(title="Import Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Total", str(stats.total))
    table.add_row("Success", f"[green]{stats.success}[/green]")
    table.add_row("Organization failed", f"[red]{stats.org_failed}[/red]")
    table.add_row("Contact user failed", f"[yellow]{stats.user_failed}[/yellow]")
    table.add_row("Skipped", str(stats.skipped))
    table.add_row("Contact users created", str(stats.users_created))
    table.add_row("Contact users reused", str(stats.users_reused))
    table.add_row("Success rate", f"{stats.success_rate}%")
    console.print(table)

    if run.log_files:
        entries = run.audit_entries
        console.print(
            "\n[bold]Log files:[/bold] "
            f"{entries.get('org_failed', 0)} failed, "
            f"{entries.get('user_failed', 0)} contact user failed, "
            f"{entries.get('skipped', 0)} skipped"
        )
        for path in run.log_files:
            console.print(f"  {path}", style="dim")


@app.callback()
def main(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d", help="Transform and report without writing to the backend"
    ),
):
    """Import organizations (default command)."""
    ctx.ensure_object(dict)["dry_run"] = dry_run
    if ctx.invoked_subcommand is not None:
        return

    config = _load_config(dry_run)
    mode = "[yellow]DRY RUN[/yellow]" if config.importer.dry_run else "[green]LIVE[/green]"
    console.print(f"[bold]Importing organizations:[/bold] {config.source.excel_file}")
    console.print(f"Mode: {mode}")
    console.print(f"Target: {config.strapi.base_url}")

    try:
        run = asyncio.run(
            run_import(config, on_result=_print_row, on_ready=_print_ready)
        )
    except ConfigError as e:
        console.print(f"[bold red]✗ Configuration error:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)
    except (FileNotFoundError, SpreadsheetError) as e:
        console.print(f"[bold red]✗ Cannot read spreadsheet:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)
    except Exception as e:
        logger.exception("Import aborted")
        console.print(f"[bold red]✗ Import failed:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)

    console.print()
    _print_summary(run)
    if run.interrupted:
        console.print("[yellow]⚠ Import interrupted; logs saved[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)
    console.print("[bold green]✓[/bold green] Import complete")


@app.command(name="import-users")
def import_users_cmd(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Validate without creating users"),
):
    """Create contact users for every row, without organizations."""
    config = _load_config(dry_run or ctx.ensure_object(dict).get("dry_run", False))
    if config.importer.dry_run:
        console.print("Mode: [yellow]DRY RUN[/yellow]")
    console.print(f"[bold]Importing contact users:[/bold] {config.source.excel_file}")

    def _progress(org_name: str, email: str, status: UserStatus, message: str) -> None:
        marker = {
            UserStatus.CREATED: "[green]✓[/green]",
            UserStatus.DRY_RUN: "[green]✓[/green]",
            UserStatus.REUSED: "[yellow]⊘[/yellow]",
            UserStatus.INVALID: "[yellow]⊘[/yellow]",
        }.get(status, "[red]✗[/red]")
        detail = f" {message}" if message else ""
        console.print(f"  {marker} {org_name} <{email}> {status.value}{detail}")

    try:
        stats = asyncio.run(import_contact_users(config, on_progress=_progress))
    except ConfigError as e:
        console.print(f"[bold red]✗ Configuration error:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)
    except (FileNotFoundError, SpreadsheetError) as e:
        console.print(f"[bold red]✗ Cannot read spreadsheet:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Total: {stats.total}")
    console.print(f"  Created: {stats.success}")
    console.print(f"  Skipped: {stats.skipped}")
    console.print(f"  Failed: {stats.failed}")
    for failure in stats.failures:
        console.print(f"    {failure}", style="dim")


@app.command()
def analyze(
    path: Optional[Path] = typer.Argument(None, help="Workbook to analyze (default: EXCEL_FILE)"),
    samples: int = typer.Option(2, "--samples", help="Sample values per column"),
):
    """Show sheets, columns, value types and sample values of a workbook."""
    target = path or get_config().source.excel_file
    try:
        profiles = analyze_workbook(target, sample_size=samples)
    except (FileNotFoundError, SpreadsheetError) as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)

    for profile in profiles:
        table = Table(title=f"{profile.name} ({profile.row_count} rows)")
        table.add_column("Column", style="cyan")
        table.add_column("Filled", justify="right")
        table.add_column("Types")
        table.add_column("Samples", overflow="fold")
        for column in profile.columns:
            table.add_row(
                column.name,
                f"{column.non_empty}/{column.total}",
                ", ".join(column.types),
                " | ".join(str(v)[:50] for v in column.samples),
            )
        console.print(table)


if __name__ == "__main__":
    app()
