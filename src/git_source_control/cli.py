"""CLI for git-source-control."""

import logging
import shutil
import time
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from .core import CacheUsage, CommandResult, FileState
from .errors import ConfigError, GitNotFoundError, NotARepositoryError
from .history import dump_revision
from .operations import (
    CheckIn,
    CheckOut,
    Connect,
    Copy,
    Delete,
    MarkForAdd,
    Operation,
    Push,
    Resolve,
    Revert,
    Sync,
    UpdateStatus,
)
from .provider import GitSourceControlProvider, open_provider
from .status_display import display_file_states, display_history
from .utils import display_path


app = typer.Typer(help="""\
Source control for project files on top of git: status, add, commit,
sync and push, with optional LFS file locking.""")

console = Console()

_state = {"path": Path(".")}


class ConsoleProgress:
    """Spinner text showing the elapsed time of a synchronous operation."""

    def __init__(self, status, text: str):
        self.status = status
        self.text = text
        self.started = time.monotonic()

    def tick(self) -> None:
        elapsed = time.monotonic() - self.started
        if elapsed >= 1:
            self.status.update(f"{self.text} ({elapsed:.0f}s)")


@app.callback()
def main_options(
    path: Path = typer.Option(Path("."), "--path", "-C", help="Directory inside the repository; file arguments are relative to it"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log git invocations"),
):
    """Global options."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    _state["path"] = path


def require_provider() -> GitSourceControlProvider:
    """Create an enabled provider for the current repository.

    Raises:
        typer.Exit: If git is missing, no repository is found or the settings
            file is invalid
    """
    try:
        return open_provider(_state["path"])
    except NotARepositoryError as e:
        console.print(f"[red]✗[/red] {e}")
        console.print("[dim]Hint: run inside a git working copy or pass --path[/dim]")
        raise typer.Exit(1)
    except GitNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def run_operation(
    provider: GitSourceControlProvider,
    operation: Operation,
    files: Optional[List[Path]] = None,
) -> None:
    """Run an operation synchronously, printing its messages.

    Raises:
        typer.Exit: If the operation failed
    """
    with console.status(operation.in_progress_text) as status:
        result = provider.execute(
            operation,
            [str(f) for f in files or []],
            progress=ConsoleProgress(status, operation.in_progress_text),
        )

    if result != CommandResult.SUCCEEDED:
        console.print(f"[red]✗[/red] {operation.name} failed")
        for message in operation.error_messages:
            console.print(f"  [red]{message}[/red]")
        provider.close()
        raise typer.Exit(1)


def _print_states(provider: GitSourceControlProvider, states: List[FileState], show_all: bool = False) -> None:
    display_file_states(states, console, provider.repository_root, show_all=show_all)


@app.command()
def connect():
    """Check the git setup and show repository information."""
    provider = require_provider()
    operation = Connect()
    run_operation(provider, operation)
    console.print("[green]✓[/green] Connected")
    console.print(provider.status_text())
    if provider.commit_id:
        console.print(f"[dim]HEAD {provider.commit_id[:8]} {provider.commit_summary}[/dim]")
    provider.close()


@app.command()
def status(
    files: Optional[List[Path]] = typer.Argument(None, help="Files to check (default: whole project)"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Also show unchanged and ignored files"),
):
    """Show source control state of files.

    Examples:
        gitsc status                     # Changed files of the project
        gitsc status Content/A.uasset    # One file
    """
    provider = require_provider()
    if files:
        states = provider.get_state([str(f) for f in files], CacheUsage.FORCE_UPDATE)
        show_all = True
    else:
        run_operation(provider, UpdateStatus())
        states = provider.get_cached_state_by_predicate(lambda s: True)
    _print_states(provider, states, show_all)
    provider.close()


@app.command()
def history(
    file: Path = typer.Argument(..., help="File to show history for"),
):
    """Show the commit history of a file."""
    provider = require_provider()
    run_operation(provider, UpdateStatus(update_history=True), [file])
    state = provider.get_state([str(file)])[0]
    display_history(state, console, provider.repository_root)
    provider.close()


@app.command()
def show(
    file: Path = typer.Argument(..., help="File to extract"),
    revision: str = typer.Argument(..., help="Revision number or commit id"),
    output_dir: Path = typer.Option(Path("."), "--out", "-o", help="Directory to write the file to"),
):
    """Write a file as it was at a given revision."""
    provider = require_provider()
    run_operation(provider, UpdateStatus(update_history=True), [file])
    state = provider.get_state([str(file)])[0]

    wanted = int(revision) if revision.isdigit() else revision
    rev = state.find_history_revision(wanted)
    if rev is None and isinstance(wanted, str):
        rev = next((r for r in state.history if r.commit_id.startswith(wanted)), None)
    if rev is None:
        console.print(f"[red]✗[/red] Revision {revision} not found in history of {file}")
        provider.close()
        raise typer.Exit(1)

    dest = dump_revision(provider.runner(provider.repository_root), rev, output_dir)
    provider.close()
    if dest is None:
        console.print(f"[red]✗[/red] Could not extract {rev.filename} at {rev.short_commit_id}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Wrote {dest}")


@app.command()
def add(
    files: List[Path] = typer.Argument(..., help="Files to add"),
):
    """Mark files for addition."""
    provider = require_provider()
    run_operation(provider, MarkForAdd(), files)
    _print_states(provider, provider.get_state([str(f) for f in files]), show_all=True)
    provider.close()


@app.command()
def rm(
    files: List[Path] = typer.Argument(..., help="Files to delete"),
):
    """Delete files from disk and source control."""
    provider = require_provider()
    run_operation(provider, Delete(), files)
    _print_states(provider, provider.get_state([str(f) for f in files]), show_all=True)
    provider.close()


@app.command()
def revert(
    files: Optional[List[Path]] = typer.Argument(None, help="Files to revert (default: every change)"),
):
    """Discard local changes (and release locks)."""
    provider = require_provider()
    if files:
        # Revert classifies files from their cached state
        provider.get_state([str(f) for f in files], CacheUsage.FORCE_UPDATE)
    elif not typer.confirm("Discard ALL local changes?"):
        provider.close()
        raise typer.Exit(0)
    run_operation(provider, Revert(), files)
    console.print("[green]✓[/green] Reverted")
    provider.close()


@app.command()
def lock(
    files: List[Path] = typer.Argument(..., help="Files to lock"),
):
    """Lock files on the LFS server (locking workflow)."""
    provider = require_provider()
    run_operation(provider, CheckOut(), files)
    _print_states(provider, provider.get_state([str(f) for f in files]), show_all=True)
    provider.close()


@app.command()
def commit(
    message: str = typer.Option(..., "--message", "-m", help="Commit message"),
    files: Optional[List[Path]] = typer.Argument(None, help="Files to commit (default: every change)"),
):
    """Commit files (and push them when locking is enabled).

    Examples:
        gitsc commit -m "Fix lighting"             # Commit every change
        gitsc commit -m "Tweak" Content/A.uasset   # Commit one file
    """
    provider = require_provider()
    if files:
        paths = [str(f) for f in files]
        provider.get_state(paths, CacheUsage.FORCE_UPDATE)
    else:
        run_operation(provider, UpdateStatus())
        paths = [s.filename for s in provider.get_cached_state_by_predicate(lambda s: s.can_check_in())]
        if not paths:
            console.print("[yellow]Nothing to commit[/yellow]")
            provider.close()
            return
        console.print(f"Committing {len(paths)} file(s)")

    operation = CheckIn(description=message)
    run_operation(provider, operation, [Path(p) for p in paths])
    console.print(f"[green]✓[/green] {operation.success_message}")
    provider.close()


@app.command()
def sync(
    files: Optional[List[Path]] = typer.Argument(None, help="Files to refresh afterwards"),
):
    """Pull from the remote with rebase."""
    provider = require_provider()
    run_operation(provider, Sync(), files)
    console.print(f"[green]✓[/green] Up to date at {provider.commit_id[:8]} {provider.commit_summary}")
    provider.close()


@app.command()
def push():
    """Push the current branch to the remote."""
    provider = require_provider()
    run_operation(provider, Push())
    console.print(f"[green]✓[/green] Pushed {provider.commit_id[:8]}")
    provider.close()


@app.command()
def resolve(
    files: List[Path] = typer.Argument(..., help="Conflicted files to mark as resolved"),
):
    """Mark conflicted files as resolved."""
    provider = require_provider()
    run_operation(provider, Resolve(), files)
    _print_states(provider, provider.get_state([str(f) for f in files]), show_all=True)
    provider.close()


@app.command()
def copy(
    source: Path = typer.Argument(..., help="File to copy"),
    destination: Path = typer.Argument(..., help="New path"),
):
    """Copy a file and track the copy."""
    provider = require_provider()
    source_path = Path(provider.normalize(source))
    dest_path = Path(provider.normalize(destination))
    if not source_path.exists():
        console.print(f"[red]✗[/red] {source} does not exist")
        raise typer.Exit(1)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source_path, dest_path)

    run_operation(provider, Copy(destination=dest_path.as_posix()), [source_path])
    console.print(
        f"[green]✓[/green] Copied {display_path(source_path.as_posix(), provider.repository_root)}"
        f" -> {display_path(dest_path.as_posix(), provider.repository_root)}"
    )
    provider.close()


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
