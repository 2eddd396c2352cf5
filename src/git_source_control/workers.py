"""One worker per operation: the git protocol behind each operation.

A worker's execute() runs on a pool thread and may only touch its command
and its own transient results (states, histories, removed paths).
update_states() runs later on the dispatching thread and is the only place
those results reach the shared cache.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .batching import run_batched, run_commit
from .cache import StateCache
from .command import Command
from .constants import OUTSIDE_REPOSITORY_FILTER
from .core import FileState, LockState, Revision
from .errors import UnsupportedOperationError
from .history import run_get_history
from .operations import CheckIn, Connect, Copy, OperationKind, UpdateStatus
from .remote import (
    get_files_to_push,
    lock_files,
    push_with_retry,
    run_pull_rebase,
    unlock_files,
)
from .runner import check_git_availability, find_root_directory, get_user_config
from .status import (
    apply_lock_states,
    apply_newer_versions,
    get_changed_files,
    get_head_commit,
    get_locked_files,
    run_directory_status,
    run_update_status,
)

logger = logging.getLogger(__name__)


def remove_redundant_errors(command: Command, pattern: str) -> None:
    """Move errors containing pattern to the info messages.

    If those were the only errors of a failed command, the command is
    considered successful after all.
    """
    redundant = [e for e in command.error_messages if pattern in e]
    if not redundant:
        return
    command.info_messages.extend(redundant)
    command.error_messages = [e for e in command.error_messages if pattern not in e]
    if not command.error_messages and not command.success:
        command.success = True


@contextmanager
def scoped_temp_file(text: str) -> Iterator[str]:
    """Write text to a temporary file that is removed on exit."""
    fd, path = tempfile.mkstemp(prefix="git-source-control-", suffix=".txt")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


class Worker(ABC):
    """Executes one operation kind."""

    name: str = ""

    def __init__(self):
        self.states: List[FileState] = []
        self.histories: Dict[str, List[Revision]] = {}
        self.removed: List[str] = []

    @abstractmethod
    def execute(self, command: Command) -> bool:
        """Run the git protocol for command; never raises for git failures."""

    def update_states(self, cache: StateCache) -> bool:
        """Fold results into the cache; True if anything changed."""
        changed = cache.update_states(self.states)
        for filename, history in self.histories.items():
            cache.set_history(filename, history)
            changed = True
        for filename in self.removed:
            changed = cache.remove(filename) or changed
        return changed

    # Helpers

    def rescan(self, command: Command, files: List[str]) -> bool:
        """Refresh the states of files after the operation changed them."""
        if not files:
            return True
        ok, states = run_update_status(
            command.runner, files, command.error_messages, command.settings.max_files_per_batch
        )
        ok = apply_lock_states(command.runner, states, command.settings, command.error_messages) and ok
        self.states.extend(states)
        return ok

    def rescan_project(self, command: Command) -> bool:
        ok, states = run_directory_status(
            command.runner, command.settings.project_dirs, command.error_messages
        )
        ok = apply_lock_states(command.runner, states, command.settings, command.error_messages) and ok
        self.states.extend(states)
        return ok

    def refresh_head(self, command: Command) -> None:
        command.commit_id, command.commit_summary = get_head_commit(command.runner)


class ConnectWorker(Worker):
    name = OperationKind.CONNECT.value

    def _fail(self, command: Command, message: str) -> bool:
        command.error_messages.append(message)
        if isinstance(command.operation, Connect):
            command.operation.error_text = message
        return False

    def execute(self, command: Command) -> bool:
        settings = command.settings
        available, version = check_git_availability(command.runner)
        if not available:
            return self._fail(command, f"Failed to run git binary '{settings.binary_path}'")
        command.info_messages.append(version)

        root = command.repository_root
        if root is None or find_root_directory(root) is None:
            return self._fail(command, "Not a git repository (no .git directory found)")

        ok, states = run_directory_status(command.runner, settings.project_dirs, command.error_messages)
        if settings.using_locking:
            # Also proves the LFS locking server is reachable
            ok = apply_lock_states(command.runner, states, settings, command.error_messages) and ok
        apply_newer_versions(command.runner, states)
        self.states = states
        self.refresh_head(command)
        return ok


class UpdateStatusWorker(Worker):
    name = OperationKind.UPDATE_STATUS.value

    def execute(self, command: Command) -> bool:
        operation = command.operation
        update_history = isinstance(operation, UpdateStatus) and operation.update_history
        update_modified = isinstance(operation, UpdateStatus) and operation.update_modified_state

        if command.files:
            files = list(command.files)
            ok = True
            if update_modified:
                # Also refresh every tracked file with local changes
                changed_ok, changed = get_changed_files(command.runner)
                ok = changed_ok
                seen = set(files)
                files += [f for f in changed if f not in seen]
            scan_ok, states = run_update_status(
                command.runner, files, command.error_messages, command.settings.max_files_per_batch
            )
            ok = ok and scan_ok
            if update_history:
                for state in states:
                    history_ok, history = run_get_history(
                        command.runner,
                        state.filename,
                        command.error_messages,
                        merge_conflict=state.is_conflicted(),
                    )
                    ok = ok and history_ok
                    state.history = history
                    self.histories[state.filename] = history
        else:
            ok, states = run_directory_status(
                command.runner, command.settings.project_dirs, command.error_messages
            )

        ok = apply_lock_states(command.runner, states, command.settings, command.error_messages) and ok
        apply_newer_versions(command.runner, states)
        self.states = states

        command.success = ok
        remove_redundant_errors(command, OUTSIDE_REPOSITORY_FILTER)
        return command.success


class MarkForAddWorker(Worker):
    name = OperationKind.MARK_FOR_ADD.value

    def execute(self, command: Command) -> bool:
        result = run_batched(command.runner, "add", ["--"], command.files, command.settings.max_files_per_batch)
        command.info_messages.extend(result.results)
        command.error_messages.extend(result.errors)
        command.success = result.success
        remove_redundant_errors(command, OUTSIDE_REPOSITORY_FILTER)
        return self.rescan(command, command.files) and command.success


class DeleteWorker(Worker):
    name = OperationKind.DELETE.value

    def execute(self, command: Command) -> bool:
        result = run_batched(command.runner, "rm", ["--"], command.files, command.settings.max_files_per_batch)
        command.info_messages.extend(result.results)
        command.error_messages.extend(result.errors)
        return self.rescan(command, command.files) and result.success


class CheckOutWorker(Worker):
    """Lock files on the LFS server."""
    name = OperationKind.CHECK_OUT.value

    def execute(self, command: Command) -> bool:
        if not command.settings.using_locking:
            command.error_messages.append("Checking out files requires the locking workflow to be enabled")
            return False
        ok = lock_files(command.runner, command.files, command.error_messages, command.info_messages)
        return self.rescan(command, command.files) and ok


class RevertWorker(Worker):
    name = OperationKind.REVERT.value

    def _revert_all(self, command: Command) -> bool:
        changed_ok, changed = get_changed_files(command.runner)
        result = command.runner.run("reset", ["--hard"])
        command.info_messages.extend(result.results)
        command.error_messages.extend(result.errors)
        return self.rescan(command, changed) and result.success and changed_ok

    def execute(self, command: Command) -> bool:
        if not command.files:
            return self._revert_all(command)

        batch = command.settings.max_files_per_batch
        missing, added, others = [], [], []
        for filename in command.files:
            cached = command.cached_states.get(filename)
            if not os.path.exists(filename):
                missing.append(filename)
            elif cached is not None and cached.is_added():
                added.append(filename)
            else:
                others.append(filename)

        ok = True
        for files, git_command, parameters in (
            (missing, "rm", ["--cached", "--ignore-unmatch", "--quiet", "--"]),
            (added, "reset", ["--quiet", "--"]),
            (others, "checkout", ["HEAD", "--"]),
        ):
            if not files:
                continue
            result = run_batched(command.runner, git_command, parameters, files, batch)
            command.info_messages.extend(result.results)
            command.error_messages.extend(result.errors)
            ok = ok and result.success

        if command.settings.using_locking:
            locked = [
                f for f in command.files
                if command.cached_states.get(f) is not None
                and command.cached_states[f].lock_state == LockState.LOCKED
            ]
            if locked:
                ok = unlock_files(command.runner, locked, command.error_messages, command.info_messages) and ok

        return self.rescan(command, command.files) and ok


class SyncWorker(Worker):
    name = OperationKind.SYNC.value

    def execute(self, command: Command) -> bool:
        ok = run_pull_rebase(command.runner, command.settings, command.error_messages, command.info_messages)
        if command.files:
            ok = self.rescan(command, command.files) and ok
        else:
            ok = self.rescan_project(command) and ok
        self.refresh_head(command)
        return ok


class PushWorker(Worker):
    name = OperationKind.PUSH.value

    def _unlock_candidates(self, command: Command) -> List[str]:
        # Locked files of ours that this push transfers
        scratch: List[str] = []
        ok, to_push = get_files_to_push(command.runner, command.settings, scratch)
        if not ok:
            logger.warning("Could not list files to push: %s", " ".join(scratch))
            return []
        locks_ok, locks = get_locked_files(command.runner)
        if not locks_ok:
            return []
        user = command.settings.lock_user or get_user_config(command.runner)[0]
        return [f for f in to_push if locks.get(f) == user]

    def execute(self, command: Command) -> bool:
        candidates = self._unlock_candidates(command) if command.settings.using_locking else []

        pushed = push_with_retry(command.runner, command.settings, command.error_messages, command.info_messages)

        if pushed and candidates:
            unlock_errors: List[str] = []
            if not unlock_files(command.runner, candidates, unlock_errors, command.info_messages):
                logger.warning("Failed to release locks after push: %s", " ".join(unlock_errors))
                command.info_messages.extend(unlock_errors)
            self.rescan(command, candidates)

        self.refresh_head(command)
        return pushed


class CheckInWorker(Worker):
    name = OperationKind.CHECK_IN.value

    def execute(self, command: Command) -> bool:
        operation = command.operation
        description = operation.description if isinstance(operation, CheckIn) else ""
        settings = command.settings

        with scoped_temp_file(description) as message_file:
            result = run_commit(
                command.runner,
                [f"--file={message_file}", "--"],
                command.files,
                settings.max_files_per_batch,
            )
        command.info_messages.extend(result.results)
        command.error_messages.extend(result.errors)
        if not result.success:
            self.rescan(command, command.files)
            return False

        # Committed deletions no longer exist anywhere: drop them from the cache
        self.removed = [f for f in command.files if not os.path.exists(f)]
        removed = set(self.removed)
        remaining = [f for f in command.files if f not in removed]
        self.refresh_head(command)

        ok = True
        if settings.using_locking:
            ok = push_with_retry(command.runner, settings, command.error_messages, command.info_messages)
            if ok:
                # Deleted files keep their server lock until released here
                to_unlock = [
                    f for f in command.files
                    if command.cached_states.get(f) is not None
                    and command.cached_states[f].lock_state == LockState.LOCKED
                    and not command.cached_states[f].is_added()
                ]
                if to_unlock:
                    unlock_errors: List[str] = []
                    if not unlock_files(command.runner, to_unlock, unlock_errors, command.info_messages):
                        logger.warning("Failed to release locks after commit: %s", " ".join(unlock_errors))
                        command.info_messages.extend(unlock_errors)
            # Rebase onto the remote rewrites the commit
            self.refresh_head(command)

        if isinstance(operation, CheckIn):
            operation.success_message = f"Submitted revision {command.commit_id[:8]}: {command.commit_summary}"
        return self.rescan(command, remaining) and ok


class CopyWorker(Worker):
    """Track the destination of a file copied on disk by the host."""
    name = OperationKind.COPY.value

    def execute(self, command: Command) -> bool:
        operation = command.operation
        destination = operation.destination if isinstance(operation, Copy) else None
        if not destination:
            command.error_messages.append("Copy requires a destination path")
            return False

        result = command.runner.run("add", ["--"], [destination])
        command.info_messages.extend(result.results)
        command.error_messages.extend(result.errors)
        return self.rescan(command, list(command.files) + [destination]) and result.success


class ResolveWorker(Worker):
    name = OperationKind.RESOLVE.value

    def execute(self, command: Command) -> bool:
        result = run_batched(command.runner, "add", ["--"], command.files, command.settings.max_files_per_batch)
        command.info_messages.extend(result.results)
        command.error_messages.extend(result.errors)
        return self.rescan(command, command.files) and result.success


WorkerFactory = Callable[[], Worker]

WORKERS: Dict[str, WorkerFactory] = {}


def register_worker(name: str, factory: WorkerFactory) -> None:
    WORKERS[name] = factory


def register_default_workers() -> None:
    for worker in (
        ConnectWorker,
        UpdateStatusWorker,
        MarkForAddWorker,
        DeleteWorker,
        CheckOutWorker,
        RevertWorker,
        SyncWorker,
        PushWorker,
        CheckInWorker,
        CopyWorker,
        ResolveWorker,
    ):
        register_worker(worker.name, worker)


def create_worker(name: str, provider_name: str = "Git") -> Worker:
    """New worker instance for the operation name.

    Raises:
        UnsupportedOperationError: If no worker is registered under name.
    """
    factory: Optional[WorkerFactory] = WORKERS.get(name)
    if factory is None:
        raise UnsupportedOperationError(name, provider_name)
    return factory()


register_default_workers()
