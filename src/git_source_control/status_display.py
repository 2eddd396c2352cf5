"""Display logic for file states and history."""

from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from .core import FileState, LockState, WorkingCopyState
from .utils import display_path, humanize_size, humanize_timestamp

_STATE_STYLE = {
    WorkingCopyState.UNCHANGED: "dim",
    WorkingCopyState.ADDED: "green",
    WorkingCopyState.DELETED: "red",
    WorkingCopyState.MISSING: "red",
    WorkingCopyState.MODIFIED: "yellow",
    WorkingCopyState.RENAMED: "cyan",
    WorkingCopyState.COPIED: "cyan",
    WorkingCopyState.CONFLICTED: "bold red",
    WorkingCopyState.NOT_CONTROLLED: "magenta",
    WorkingCopyState.IGNORED: "dim",
    WorkingCopyState.UNKNOWN: "dim",
}


def _lock_cell(state: FileState) -> str:
    if state.lock_state == LockState.LOCKED:
        return f"[green]locked ({state.lock_user})[/green]"
    if state.lock_state == LockState.LOCKED_BY_OTHER:
        return f"[red]locked by {state.lock_user}[/red]"
    if state.lock_state == LockState.NOT_LOCKED:
        return "[dim]-[/dim]"
    return ""


def display_file_states(
    states: Sequence[FileState],
    console: Console,
    root: Optional[Path] = None,
    show_all: bool = False,
) -> None:
    """Table of file states; unchanged and ignored files only with show_all."""
    shown = [
        s for s in states
        if show_all or s.working_copy_state not in (WorkingCopyState.UNCHANGED, WorkingCopyState.IGNORED)
    ]
    if not shown:
        console.print("[green]✓[/green] Working copy clean")
        return

    show_locks = any(s.lock_state != LockState.UNKNOWN for s in shown)

    table = Table(title=f"Files ({len(shown)})")
    table.add_column("State")
    table.add_column("File", style="cyan")
    if show_locks:
        table.add_column("Lock")
    table.add_column("Current")

    for state in sorted(shown, key=lambda s: s.filename):
        style = _STATE_STYLE[state.working_copy_state]
        row = [
            f"[{style}]{state.display_name}[/{style}]",
            display_path(state.filename, root),
        ]
        if show_locks:
            row.append(_lock_cell(state))
        row.append("[green]✓[/green]" if state.is_current() else "[yellow]newer on remote[/yellow]")
        table.add_row(*row)

    console.print(table)


def display_history(state: FileState, console: Console, root: Optional[Path] = None) -> None:
    """Revisions of one file, newest first."""
    if not state.history:
        console.print(f"[dim]No history for {display_path(state.filename, root)}[/dim]")
        return

    table = Table(title=f"History of {display_path(state.filename, root)}")
    table.add_column("#", justify="right")
    table.add_column("Commit", style="cyan")
    table.add_column("Author")
    table.add_column("Date")
    table.add_column("Action")
    table.add_column("Size", justify="right")
    table.add_column("Description")

    base = state.get_base_rev_for_merge()
    for rev in state.history:
        commit = rev.short_commit_id
        if base is not None and rev.commit_id == base.commit_id:
            commit += " [yellow](merge base)[/yellow]"
        table.add_row(
            str(rev.revision_number),
            commit,
            rev.user_name,
            humanize_timestamp(rev.date),
            rev.action,
            humanize_size(rev.file_size) if rev.file_hash else "",
            rev.description.splitlines()[0] if rev.description else "",
        )
    console.print(table)
