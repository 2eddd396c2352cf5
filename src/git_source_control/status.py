"""Status scans: turn `git status` output into FileState records."""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .batching import run_batched
from .config import SettingsSnapshot
from .constants import GIT_DIR, MAX_FILES_PER_BATCH
from .core import FileState, LockState, WorkingCopyState
from .parsers import (
    StatusEntry,
    parse_conflict_base,
    parse_head_commit,
    parse_lock_listing,
    parse_status,
)
from .runner import GitRunner, get_user_config

logger = logging.getLogger(__name__)

# -uall lists every untracked file, and with it every file of ignored directories
STATUS_PARAMETERS = ["--porcelain", "--ignored", "-uall", "--"]


class _StatusIndex:
    """Status entries of one scan, keyed by absolute path."""

    def __init__(self, root: Path, entries: Iterable[StatusEntry]):
        self.files: Dict[str, StatusEntry] = {}
        self.directories: List[Tuple[str, StatusEntry]] = []
        for entry in entries:
            absolute = (root / entry.path.rstrip("/")).as_posix()
            if entry.is_directory:
                self.directories.append((absolute + "/", entry))
            else:
                self.files[absolute] = entry

    def lookup(self, filename: str) -> Optional[StatusEntry]:
        entry = self.files.get(filename)
        if entry is not None:
            return entry
        for prefix, dir_entry in self.directories:
            if filename.startswith(prefix):
                return dir_entry
        return None


def _state_for(runner: GitRunner, filename: str, entry: Optional[StatusEntry]) -> FileState:
    if entry is not None:
        state = FileState(filename=filename, working_copy_state=entry.state)
        if state.is_conflicted():
            state.pending_merge_base_file_hash = get_conflict_base(runner, filename)
        return state
    if os.path.exists(filename):
        return FileState(filename=filename, working_copy_state=WorkingCopyState.UNCHANGED)
    # New content that was never saved to disk, or a file git never knew
    return FileState(filename=filename, working_copy_state=WorkingCopyState.NOT_CONTROLLED)


def get_conflict_base(runner: GitRunner, filename: str) -> Optional[str]:
    """Blob id of the common ancestor of a conflicted file."""
    result = runner.run("ls-files", ["--unmerged", "--"], [filename])
    if not result.success:
        return None
    return parse_conflict_base(result.results)


def run_update_status(
    runner: GitRunner,
    files: Sequence[str],
    errors: List[str],
    batch_size: int = MAX_FILES_PER_BATCH,
) -> Tuple[bool, List[FileState]]:
    """Status of explicit files, one state per requested file.

    git status drops untracked files when the pathspecs span several
    directories, so files are grouped by parent directory and each group is
    scanned on its own.
    """
    groups: Dict[str, List[str]] = {}
    for filename in files:
        groups.setdefault(os.path.dirname(filename), []).append(filename)

    ok = True
    states: List[FileState] = []
    for group in groups.values():
        result = run_batched(runner, "status", STATUS_PARAMETERS, group, batch_size)
        errors.extend(result.errors)
        if not result.success:
            ok = False
            continue
        index = _StatusIndex(_root_of(runner, group), parse_status(result.results))
        for filename in group:
            states.append(_state_for(runner, filename, index.lookup(filename)))
    return ok, states


def _root_of(runner: GitRunner, files: Sequence[str]) -> Path:
    # Same repository the runner picked for these files
    return runner.root_for(files) or Path.cwd()


def _walk_files(directory: Path) -> Iterable[str]:
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = [d for d in dirnames if d != GIT_DIR]
        for name in filenames:
            yield Path(dirpath, name).as_posix()


def run_directory_status(
    runner: GitRunner,
    directories: Sequence[str],
    errors: List[str],
) -> Tuple[bool, List[FileState]]:
    """Status of every file under the given directories.

    Files on disk are enumerated so unchanged files get a state too; paths
    only known to git (deleted or missing files) are added from the status
    output.
    """
    root = runner.repository_root
    if not directories and root is not None:
        directories = [root.as_posix()]

    ok = True
    states: Dict[str, FileState] = {}
    for directory in directories:
        result = runner.run("status", STATUS_PARAMETERS, [directory])
        errors.extend(result.errors)
        if not result.success:
            ok = False
            continue

        index = _StatusIndex(_root_of(runner, [directory]), parse_status(result.results))
        for filename in _walk_files(Path(directory)):
            if filename not in states:
                states[filename] = _state_for(runner, filename, index.lookup(filename))
        for filename, entry in index.files.items():
            if filename not in states:
                states[filename] = _state_for(runner, filename, entry)
    return ok, list(states.values())


def apply_lock_states(
    runner: GitRunner,
    states: Sequence[FileState],
    settings: SettingsSnapshot,
    errors: List[str],
) -> bool:
    """Fill lock state from `git lfs locks`. No-op unless locking is enabled."""
    if not settings.using_locking or not states:
        return True

    result = runner.run("lfs", ["locks"])
    if not result.success:
        errors.extend(result.errors)
        return False

    lock_user = settings.lock_user or get_user_config(runner)[0]
    locks = parse_lock_listing(result.results, runner.repository_root)
    for state in states:
        holder = locks.get(state.filename)
        if holder is None:
            state.lock_state = LockState.NOT_LOCKED
            state.lock_user = None
        elif holder == lock_user:
            state.lock_state = LockState.LOCKED
            state.lock_user = holder
        else:
            state.lock_state = LockState.LOCKED_BY_OTHER
            state.lock_user = holder
    return True


def get_locked_files(runner: GitRunner) -> Tuple[bool, Dict[str, str]]:
    """Absolute path -> holder for every LFS lock."""
    result = runner.run("lfs", ["locks"])
    if not result.success:
        return False, {}
    return True, parse_lock_listing(result.results, runner.repository_root)


def apply_newer_versions(runner: GitRunner, states: Sequence[FileState]) -> None:
    """Flag files changed upstream but not yet pulled.

    Best effort: a branch without upstream leaves every file current.
    """
    if not states:
        return
    result = runner.run("log", ["--name-only", "--pretty=format:", "HEAD..@{upstream}"])
    if not result.success:
        logger.debug("No upstream to compare against: %s", " ".join(result.errors))
        return
    root = runner.repository_root
    incoming = {(root / line).as_posix() for line in result.results if line.strip()}
    for state in states:
        state.newer_version_available = state.filename in incoming


def get_head_commit(runner: GitRunner) -> Tuple[str, str]:
    """(commit id, summary) of HEAD; empty strings on an unborn branch."""
    result = runner.run("log", ["-1", "--format=%H %s"])
    if not result.success:
        return "", ""
    return parse_head_commit(result.results)


def get_changed_files(runner: GitRunner) -> Tuple[bool, List[str]]:
    """Absolute paths of tracked files with staged or unstaged changes."""
    result = runner.run("status", ["--porcelain", "--untracked-files=no"])
    if not result.success:
        return False, []
    root = runner.repository_root
    files = []
    for entry in parse_status(result.results):
        files.append((root / entry.path).as_posix())
        if entry.original_path:
            files.append((root / entry.original_path).as_posix())
    return True, files
