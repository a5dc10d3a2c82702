"""Command-line interface for dotlink."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .backup import BackupStore, parse_backup_path
from .config import ConfigError, load_config
from .engine import SymlinkEngine, summarize
from .environment import Environment
from .errors import BackupError, ConflictAbortedError, DotlinkError, NoRunStateError, PathEscapeError
from .hooks import run_hook
from .models import (
    BackupEntry,
    LinkOptions,
    LinkStatus,
    RollbackAction,
    RollbackResult,
    SymlinkState,
    TemplateResult,
    UnlinkResult,
)
from .prompt import TerminalResponder
from .runstate import RunStateRecorder, rollback as rollback_run
from .templates import generate_templates, validate_templates

app = typer.Typer(help="Symlink dotfiles from a repository into your home directory")
backup_app = typer.Typer(help="List, restore and prune backups of displaced files")
app.add_typer(backup_app, name="backup")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


def _load_engine(config: Path | None) -> SymlinkEngine:
    config_obj = load_config(config)
    env = Environment.detect()
    return SymlinkEngine(config_obj, env, responder=TerminalResponder(console))


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Check ownership of the target directories and try again.")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{message}[/red]")
        if "does not exist" in message:
            console.print("[yellow]Pass --config <path> or set DOTLINK_REPO to your dotfiles repository.[/yellow]")
        elif "Expected to find" in message:
            console.print(
                "[yellow]Make sure you pointed to the directory containing the config file, or to the file itself.[/yellow]"
            )
        raise typer.Exit(code=1)
    if isinstance(exc, PathEscapeError):
        console.print(f"[red]{exc}[/red]")
        console.print("[yellow]Nothing was changed. Fix the target in your configuration and retry.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, ConflictAbortedError):
        console.print(f"[red]{exc}[/red]")
        console.print("[yellow]Entries linked before the abort were kept. Run 'dotlink rollback' to undo them.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, NoRunStateError):
        console.print(f"[red]{exc}[/red]")
        console.print("[yellow]Only the most recent 'dotlink link' run can be rolled back, and only once.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, DotlinkError):
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    raise exc


STATUS_STYLES = {
    LinkStatus.LINKED: "green",
    LinkStatus.BACKUP: "green",
    LinkStatus.CONFLICT: "yellow",
    LinkStatus.MISSING: "white",
    LinkStatus.SOURCE_MISSING: "red",
}


def _format_states(states: Iterable[SymlinkState], env: Environment) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Target", overflow="fold")
    table.add_column("Status")
    table.add_column("Details", overflow="fold")

    for state in states:
        if state.applicable:
            style = STATUS_STYLES.get(state.status, "white")
            label = f"[{style}]{state.status.value}[/{style}]"
        else:
            label = "[dim]skipped[/dim]"
        table.add_row(env.contract(state.target), label, state.details or "")

    console.print(table)


def _format_unlink_results(results: Iterable[UnlinkResult], env: Environment) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Target", overflow="fold")
    table.add_column("Action")
    table.add_column("Details", overflow="fold")

    for result in results:
        table.add_row(env.contract(result.target), result.action.value, result.details or "")

    console.print(table)


def _format_rollback_results(results: Iterable[RollbackResult], env: Environment) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path", overflow="fold")
    table.add_column("Action")
    table.add_column("Details", overflow="fold")

    for result in results:
        style = "red" if result.action is RollbackAction.FAILED else "white"
        details = result.details or ""
        if result.backup is not None:
            details = f"{details} from {env.contract(result.backup)}".strip()
        table.add_row(env.contract(result.path), f"[{style}]{result.action.value}[/{style}]", details)

    console.print(table)


def _format_template_results(results: Iterable[TemplateResult], env: Environment) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Target", overflow="fold")
    table.add_column("Action")

    for result in results:
        table.add_row(env.contract(result.target), result.action.value)

    console.print(table)


def _format_backups(entries: Iterable[BackupEntry], env: Environment) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Backup", overflow="fold")
    table.add_column("Original", overflow="fold")
    table.add_column("Created")

    for entry in entries:
        created = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(env.contract(entry.backup), env.contract(entry.original), created)

    console.print(table)


def _print_warnings(messages: Iterable[str]) -> None:
    for message in messages:
        console.print(f"[yellow]{message}[/yellow]")


def _run_hook(name: str, commands: Sequence[str], env: Environment, repo_dir: Path, dry_run: bool) -> None:
    for command in run_hook(name, commands, env, repo_dir, dry_run=dry_run):
        prefix = "Would run" if dry_run else "Ran"
        console.print(f"[cyan]{prefix} {name} hook:[/cyan] {escape(command)}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    _configure_logging(verbose)


@app.command()
def link(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
    force: bool = typer.Option(False, "--force", help="Back up conflicting files and link over them"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without touching anything"),
    no_interactive: bool = typer.Option(
        False,
        "--no-interactive",
        help="Never prompt; conflicts are skipped unless --force is given",
    ),
) -> None:
    """Create symlinks for every configured entry."""

    try:
        engine = _load_engine(config)
        options = LinkOptions(dry_run=dry_run, force=force, no_interactive=no_interactive)
        engine.validate()
        repo_dir = engine.config.settings.repo_dir
        validate_templates(engine.config.templates, engine.env, engine.config.settings.source_dir)

        _run_hook("pre_link", engine.config.hooks.pre_link, engine.env, repo_dir, dry_run)
        states = engine.apply(options=options)
        _format_states(states, engine.env)
        _print_warnings(engine.pull_warnings())

        if engine.config.templates:
            template_results = generate_templates(
                engine.config.templates,
                engine.env,
                engine.config.settings.source_dir,
                options,
            )
            _format_template_results(template_results, engine.env)
        _run_hook("post_link", engine.config.hooks.post_link, engine.env, repo_dir, dry_run)

        summary = summarize(states)
        console.print(
            f"Linked: {summary.linked}  Backed up: {summary.backups}  Conflicts: {summary.conflicts}  "
            f"Missing sources: {summary.source_missing}  Skipped: {summary.skipped}"
        )
        if dry_run:
            console.print("[blue]This was a dry run. No changes were made.[/blue]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def unlink(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed"),
) -> None:
    """Remove configured symlinks, leaving regular files untouched."""

    try:
        engine = _load_engine(config)
        results = engine.remove(options=LinkOptions(dry_run=dry_run))
        _format_unlink_results(results, engine.env)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def status(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
) -> None:
    """Show configured links and their current state."""

    try:
        engine = _load_engine(config)
        states = engine.status()
        _format_states(states, engine.env)

        last_run = engine.recorder.load()
        if last_run is not None:
            console.print(
                f"Last run: {last_run.command.value} at {last_run.timestamp} "
                f"({len(last_run.symlinks)} symlink(s), {len(last_run.backups)} backup(s))"
            )
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def doctor(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
) -> None:
    """Exit with non-zero status if any applicable link is not in place."""

    try:
        engine = _load_engine(config)
        states = engine.status()
        _format_states(states, engine.env)

        summary = summarize(states)
        if summary.conflicts or summary.missing or summary.source_missing:
            console.print(
                f"Conflicts: {summary.conflicts}  Missing: {summary.missing}  "
                f"Missing sources: {summary.source_missing}"
            )
            console.print("[red]Issues detected. Run 'dotlink link' (or 'dotlink link --force') to fix them.[/red]")
            raise typer.Exit(code=1)

        console.print("[green]All links are healthy.[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def rollback(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be undone"),
) -> None:
    """Undo the most recent link run: remove its links and restore its backups."""

    try:
        env = Environment.detect()
        recorder = RunStateRecorder.for_home(env.home)
        report = rollback_run(recorder, BackupStore.for_home(env.home), dry_run=dry_run)

        console.print(f"Last run: {report.state.command.value} at {report.state.timestamp}")
        _format_rollback_results(report.results, env)

        if report.failures:
            console.print(f"[red]{len(report.failures)} entry(ies) could not be restored.[/red]")
            raise typer.Exit(code=1)
        if dry_run:
            console.print("[blue]This was a dry run. No changes were made.[/blue]")
        else:
            console.print("[green]Rollback complete![/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@backup_app.command("list")
def backup_list(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
) -> None:
    """List backup files found in well-known locations."""

    try:
        engine = _load_engine(config)
        entries = engine.backups.list_all()
        if not entries:
            console.print("No backup files found.")
            return
        _format_backups(entries, engine.env)
        console.print(f"Total: {len(entries)} backup(s)")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@backup_app.command("restore")
def backup_restore(
    path: str = typer.Argument(..., help="Backup file to move back into place"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be restored"),
) -> None:
    """Restore a single backup over its original path."""

    try:
        engine = _load_engine(config)
        backup_path = engine.env.expand(path)
        if dry_run:
            entry = parse_backup_path(backup_path)
            if entry is None:
                raise BackupError(f"Not a valid backup file: {path}")
            console.print(f"Would restore {engine.env.contract(backup_path)} to {engine.env.contract(entry.original)}")
            return
        original = engine.backups.restore(backup_path)
        console.print(f"[green]Restored {engine.env.contract(original)} from backup[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@backup_app.command("clean")
def backup_clean(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed"),
) -> None:
    """Remove backups beyond the configured age and count limits."""

    try:
        engine = _load_engine(config)
        removed = engine.backups.prune(engine.config.backup, dry_run=dry_run)
        for entry in removed:
            prefix = "Would remove" if dry_run else "Removed"
            console.print(f"{prefix}: {engine.env.contract(entry.backup)}")
        console.print(f"{'Would remove' if dry_run else 'Removed'} {len(removed)} backup(s)")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
