"""Test doubles for the git runner and the command thread pool."""

import shutil
import subprocess
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from git_source_control.runner import GitResult, GitRunner


def ok(*lines: str) -> GitResult:
    return GitResult(results=list(lines))


def fail(*errors: str, returncode: int = 1) -> GitResult:
    return GitResult(errors=list(errors), returncode=returncode)


@dataclass
class Call:
    command: str
    parameters: List[str]
    files: List[str]


@dataclass
class _Handler:
    command: str
    match: Optional[Callable[[List[str], List[str]], bool]]
    responses: list = field(default_factory=list)

    def respond(self, call: Call) -> GitResult:
        response = self.responses[0] if len(self.responses) == 1 else self.responses.pop(0)
        if callable(response):
            return response(call)
        return response


class FakeRunner(GitRunner):
    """GitRunner that records calls and answers from a script.

    Unscripted commands succeed with no output. Several responses for one
    handler are returned in order, the last one repeating.
    """

    def __init__(self, repository_root: Optional[Path] = None):
        super().__init__("git", repository_root)
        self.calls: List[Call] = []
        self._handlers: List[_Handler] = []

    def on(self, command: str, *responses, match=None) -> "FakeRunner":
        self._handlers.append(_Handler(command, match, list(responses)))
        return self

    def run(self, command, parameters=(), files=()):
        call = Call(command, list(parameters), list(files))
        self.calls.append(call)
        # Most recently scripted handler wins
        for handler in reversed(self._handlers):
            if handler.command == command and (handler.match is None or handler.match(call.parameters, call.files)):
                return handler.respond(call)
        return GitResult()

    def dump_to_file(self, parameter, destination):
        self.calls.append(Call("show", [parameter], []))
        Path(destination).parent.mkdir(parents=True, exist_ok=True)
        Path(destination).write_bytes(b"dumped " + parameter.encode())
        return True

    def calls_for(self, command: str) -> List[Call]:
        return [c for c in self.calls if c.command == command]


class ManualExecutor(Executor):
    """Executor that runs submitted work only when asked to."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as e:
                future.set_exception(e)

    def shutdown(self, wait=True, *, cancel_futures=False):
        if cancel_futures:
            for future, *_ in self.pending:
                future.cancel()
            self.pending = []


def skip_if_no_git():
    """Skip test if the git binary is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git binary not available")


def git(root: Path, *args: str) -> str:
    """Run real git in root and return stdout."""
    proc = subprocess.run(["git", "-C", str(root), *args], capture_output=True, text=True, check=True)
    return proc.stdout
