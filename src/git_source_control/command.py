"""A queued unit of work: one operation applied to a set of files."""

import logging
import threading
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from .config import SettingsSnapshot
from .core import CommandResult, Concurrency, FileState
from .operations import Operation
from .runner import GitRunner

if TYPE_CHECKING:
    from .workers import Worker

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Operation, CommandResult], None]


class Command:
    """Everything a worker needs, captured on the dispatching thread.

    The worker thread only reads the settings snapshot and cached-state
    copies held here and writes its results into the message lists and
    the worker's own state; nothing shared is touched until the provider
    folds the command in tick().
    """

    def __init__(
        self,
        operation: Operation,
        worker: "Worker",
        files: Sequence[str],
        settings: SettingsSnapshot,
        repository_root,
        runner: GitRunner,
        cached_states: Optional[Dict[str, FileState]] = None,
        on_complete: Optional[CompletionCallback] = None,
        concurrency: Concurrency = Concurrency.SYNCHRONOUS,
    ):
        self.operation = operation
        self.worker = worker
        self.files: List[str] = list(files)
        self.settings = settings
        self.repository_root = repository_root
        self.runner = runner
        self.cached_states: Dict[str, FileState] = cached_states or {}
        self.on_complete = on_complete
        self.concurrency = concurrency

        self.info_messages: List[str] = []
        self.error_messages: List[str] = []
        self.commit_id: str = ""
        self.commit_summary: str = ""

        self.success = False
        self.auto_delete = concurrency == Concurrency.ASYNCHRONOUS
        self._processed = threading.Event()

    def __repr__(self) -> str:
        return f"Command({self.operation.name}, {len(self.files)} files)"

    @property
    def is_processed(self) -> bool:
        return self._processed.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._processed.wait(timeout)

    def do_work(self) -> bool:
        """Run the worker; called on a pool thread.

        The success flag is set before the processed flag so a reader that
        sees the command processed also sees its outcome.
        """
        try:
            self.success = self.worker.execute(self)
        except Exception as e:
            # A bug in a worker must not leave the dispatcher waiting forever
            logger.exception("Worker for %s raised", self.operation.name)
            self.error_messages.append(f"{self.operation.name} failed: {e}")
            self.success = False
        finally:
            self._processed.set()
        return self.success

    def abandon(self) -> None:
        """Mark complete without running (pool shut down)."""
        self.success = False
        self._processed.set()

    def result(self) -> CommandResult:
        return CommandResult.SUCCEEDED if self.success else CommandResult.FAILED
