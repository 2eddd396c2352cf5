"""Git source control provider: queues commands and owns the state cache.

All public methods are meant to be called from one dispatching thread (the
host's UI or main loop). Commands run on a thread pool; their results reach
the cache only when tick() drains them on the dispatching thread.
"""

import logging
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from .cache import StateCache
from .command import Command, CompletionCallback
from .config import SourceControlSettings, load_settings
from .constants import DEFAULT_POOL_SIZE, PROVIDER_NAME, SYNC_POLL_INTERVAL
from .core import CacheUsage, CommandResult, Concurrency, FileState, StatePredicate
from .errors import GitNotFoundError, NotARepositoryError, UnsupportedOperationError
from .operations import Copy, Operation, OperationKind, UpdateStatus
from .runner import (
    GitRunner,
    check_git_availability,
    find_root_directory,
    get_branch_name,
    get_user_config,
)
from .workers import create_worker

logger = logging.getLogger(__name__)

StateChangedListener = Callable[[], None]


class ProgressIndicator(Protocol):
    """Ticked on every iteration of a synchronous wait."""

    def tick(self) -> None:
        ...


class NullProgress:
    def tick(self) -> None:
        pass


def _default_executor() -> Executor:
    return ThreadPoolExecutor(max_workers=DEFAULT_POOL_SIZE, thread_name_prefix="git-source-control")


@dataclass
class ProviderDeps:
    """Dependency injection container for testability."""
    settings: SourceControlSettings = field(default_factory=SourceControlSettings)
    runner_factory: Callable[[str, Optional[Path]], GitRunner] = GitRunner
    executor_factory: Callable[[], Executor] = _default_executor
    sleep: Callable[[float], None] = time.sleep


class GitSourceControlProvider:
    """Dispatches operations to workers and keeps file states current.

    Example:
        provider = GitSourceControlProvider(project_dir)
        provider.execute(Connect())
        provider.execute(MarkForAdd(), ["Content/A.uasset"])
        states = provider.get_state(["Content/A.uasset"])
    """

    def __init__(self, path: Optional[Path] = None, deps: Optional[ProviderDeps] = None):
        self.deps = deps or ProviderDeps()
        self.settings = self.deps.settings
        self.path = Path(path or Path.cwd()).resolve()
        self.cache = StateCache()

        self.git_available = False
        self.repository_found = False
        self.repository_root: Optional[Path] = None
        self.version = ""
        self.user_name = ""
        self.user_email = ""
        self.branch_name = ""
        self.commit_id = ""
        self.commit_summary = ""

        self._commands: List[Command] = []
        self._listeners: Dict[int, StateChangedListener] = {}
        self._next_listener = 0
        self._executor: Optional[Executor] = None

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    # ============= Availability =============

    def runner(self, root: Optional[Path] = None) -> GitRunner:
        return self.deps.runner_factory(self.settings.get("binary_path"), root)

    def check_git_availability(self) -> bool:
        """Check the binary, then find the repository and its user/branch."""
        self.git_available, self.version = check_git_availability(self.runner())
        self.repository_found = False
        if not self.git_available:
            logger.warning("Git binary '%s' not available", self.settings.get("binary_path"))
            return False

        root = find_root_directory(self.path)
        if root is None:
            logger.warning("No git repository found above %s", self.path)
            return True

        self.repository_root = root
        self.repository_found = True
        runner = self.runner(root)
        self.user_name, self.user_email = get_user_config(runner)
        self.branch_name = get_branch_name(runner)
        logger.debug("Using repository %s on branch %s", root, self.branch_name)
        return True

    def init(self) -> None:
        self.check_git_availability()

    def is_enabled(self) -> bool:
        return self.repository_found

    def is_available(self) -> bool:
        return self.git_available and self.repository_found

    def status_text(self) -> str:
        return "\n".join([
            f"Enabled: {'yes' if self.is_enabled() else 'no'}",
            f"Repository: {self.repository_root or '(none)'}",
            f"Branch: {self.branch_name}",
            f"User: {self.user_name}",
            f"E-mail: {self.user_email}",
        ])

    # ============= Paths =============

    def normalize(self, filename) -> str:
        path = Path(filename)
        if not path.is_absolute():
            path = self.path / path
        return path.resolve().as_posix()

    # ============= Execution =============

    def _fail(self, operation: Operation, message: str, on_complete: Optional[CompletionCallback]) -> CommandResult:
        logger.error(message)
        operation.add_error_message(message)
        if on_complete is not None:
            on_complete(operation, CommandResult.FAILED)
        return CommandResult.FAILED

    def execute(
        self,
        operation: Operation,
        files: Iterable = (),
        concurrency: Concurrency = Concurrency.SYNCHRONOUS,
        on_complete: Optional[CompletionCallback] = None,
        progress: Optional[ProgressIndicator] = None,
    ) -> CommandResult:
        """Run an operation on files.

        Synchronous: blocks until the command is drained and returns its
        result. Asynchronous: returns SUCCEEDED once queued; a later tick()
        invokes on_complete.
        """
        is_connect = operation.name == OperationKind.CONNECT.value
        if is_connect and not self.is_enabled():
            self.check_git_availability()
        if not self.is_enabled() and not is_connect:
            return self._fail(
                operation, f"Source control provider '{self.name}' is not enabled", on_complete
            )

        try:
            worker = create_worker(operation.name, self.name)
        except UnsupportedOperationError as e:
            return self._fail(operation, str(e), on_complete)

        abs_files = [self.normalize(f) for f in files]
        if isinstance(operation, Copy) and operation.destination:
            operation.destination = self.normalize(operation.destination)
        command = Command(
            operation=operation,
            worker=worker,
            files=abs_files,
            settings=self.settings.snapshot(),
            repository_root=self.repository_root,
            runner=self.runner(self.repository_root),
            cached_states=self.cache.snapshot(abs_files),
            on_complete=on_complete,
            concurrency=concurrency,
        )

        if concurrency == Concurrency.SYNCHRONOUS:
            return self._execute_synchronous(command, progress or NullProgress())

        command.auto_delete = True
        self._issue(command)
        return CommandResult.SUCCEEDED

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = self.deps.executor_factory()
        return self._executor

    def _issue(self, command: Command) -> None:
        self._commands.append(command)
        try:
            future: Future = self._get_executor().submit(command.do_work)
        except RuntimeError:
            # Pool already shut down
            logger.warning("Abandoning %r: provider is closed", command)
            command.abandon()
            return

        def _on_done(f: Future) -> None:
            if f.cancelled():
                command.abandon()

        future.add_done_callback(_on_done)

    def _execute_synchronous(self, command: Command, progress: ProgressIndicator) -> CommandResult:
        command.auto_delete = False
        self._issue(command)

        while not command.is_processed:
            self.tick()
            progress.tick()
            self.deps.sleep(SYNC_POLL_INTERVAL)

        # Drain until this command's results are folded and reported
        while command in self._commands:
            self.tick()
        return command.result()

    def tick(self) -> bool:
        """Drain at most one completed command; True if states changed."""
        changed = False
        for command in self._commands:
            if not command.is_processed:
                continue

            self._commands.remove(command)
            changed = command.worker.update_states(self.cache)
            self._output_messages(command)
            if command.commit_id:
                self.commit_id = command.commit_id
                self.commit_summary = command.commit_summary
            if command.on_complete is not None:
                command.on_complete(command.operation, command.result())
            break

        if changed:
            self._notify_state_changed()
        return changed

    def _output_messages(self, command: Command) -> None:
        for message in command.info_messages:
            logger.info(message)
            command.operation.add_info_message(message)
        for message in command.error_messages:
            logger.error(message)
            command.operation.add_error_message(message)

    @property
    def pending_commands(self) -> int:
        return len(self._commands)

    def can_cancel_operation(self, operation: Operation) -> bool:
        return False

    def cancel_operation(self, operation: Operation) -> None:
        pass

    # ============= Cache =============

    def get_state(self, files: Iterable, usage: CacheUsage = CacheUsage.USE) -> List[FileState]:
        abs_files = [self.normalize(f) for f in files]
        if usage == CacheUsage.FORCE_UPDATE:
            self.execute(UpdateStatus(), abs_files, Concurrency.SYNCHRONOUS)
        return [self.cache.get_state(f) for f in abs_files]

    def get_cached_state_by_predicate(self, predicate: StatePredicate) -> List[FileState]:
        return self.cache.get_by_predicate(predicate)

    def remove_file_from_cache(self, filename) -> bool:
        return self.cache.remove(self.normalize(filename))

    # ============= Notifications =============

    def register_state_changed(self, listener: StateChangedListener) -> int:
        handle = self._next_listener
        self._next_listener += 1
        self._listeners[handle] = listener
        return handle

    def unregister_state_changed(self, handle: int) -> None:
        self._listeners.pop(handle, None)

    def _notify_state_changed(self) -> None:
        for listener in list(self._listeners.values()):
            listener()

    # ============= Lifecycle =============

    def close(self) -> None:
        """Stop the pool, report queued commands as failed and forget all states."""
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
        for command in self._commands:
            if not command.is_processed:
                command.abandon()
        while self._commands:
            self.tick()
        self.cache.clear()
        self.repository_found = False

    def __enter__(self) -> "GitSourceControlProvider":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def open_provider(path: Optional[Path] = None, deps: Optional[ProviderDeps] = None) -> GitSourceControlProvider:
    """Create a connected provider for the repository holding path.

    Settings come from the repository's settings file unless deps carries
    them.

    Raises:
        NotARepositoryError: If no .git directory is found above path
        ConfigError: If the settings file is invalid
        GitNotFoundError: If the configured git binary cannot be run
    """
    path = Path(path or Path.cwd()).resolve()
    root = find_root_directory(path)
    if root is None:
        raise NotARepositoryError(str(path))

    if deps is None:
        deps = ProviderDeps(settings=load_settings(root))
    provider = GitSourceControlProvider(path, deps)
    if not provider.check_git_availability():
        raise GitNotFoundError(deps.settings.get("binary_path"))
    return provider
